"""
Producer loop – read the opponent from emulator memory once per frame and
feed the telemetry server.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field

from ..memory.bus import MemoryBus
from ..memory.games import GameAdapter
from ..models import CLEAR, PokemonRecord, WireMessage
from ..transport.server import TelemetryServer

log = logging.getLogger(__name__)


@dataclass
class ProducerStats:
    ticks: int = 0
    decodes: int = 0
    cache_hits: int = 0
    failed_reads: int = 0


class Producer:
    """
    One cooperative tick per emulator frame.

    While the opponent's PID is unchanged the last decoded record is reused,
    so the 48-byte decrypt only runs when a new encounter starts.
    """

    def __init__(self, adapter: GameAdapter, bus: MemoryBus, server: TelemetryServer):
        self.adapter = adapter
        self.bus = bus
        self.server = server
        self.stats = ProducerStats()
        self._cached: PokemonRecord | None = None

    @property
    def current(self) -> PokemonRecord | None:
        return self._cached

    def poll(self) -> WireMessage | None:
        """
        Decode result for this frame: a record, CLEAR when out of battle, or
        None when the read failed and there is nothing to say this tick.
        """
        if not self.adapter.battle_active(self.bus):
            if self._cached is not None:
                log.info("Battle ended")
            self._cached = None
            return CLEAR

        pid = self.adapter.read_pid(self.bus)
        if self._cached is not None and pid == self._cached.pid:
            self.stats.cache_hits += 1
            return self._cached

        record = self.adapter.decode(self.bus)
        if record is None:
            self.stats.failed_reads += 1
            return None

        self.stats.decodes += 1
        self._cached = record
        log.info("Encounter: %s", record.summary())
        return record

    def tick(self) -> bool:
        self.stats.ticks += 1
        return self.server.tick(self.poll())

    def run(self, stop: threading.Event, tick_rate: float = 60.0) -> None:
        """Tick at tick_rate until stop is set or the server gives up."""
        frame = 1.0 / tick_rate
        log.info("Producer running for %r at %.0f Hz", self.adapter, tick_rate)
        while not stop.is_set():
            frame_start = time.perf_counter()
            self.tick()
            if self.server.failed:
                log.error("Telemetry server failed, stopping producer")
                break
            elapsed = time.perf_counter() - frame_start
            if elapsed < frame:
                stop.wait(frame - elapsed)
        log.info(
            "Producer stopped after %d ticks (%d decodes, %d sent)",
            self.stats.ticks, self.stats.decodes, self.server.messages_sent,
        )
