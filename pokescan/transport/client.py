"""
Telemetry client – consumer side of the overlay link.

One asyncio task owns the connection: connect, then read in a loop until
the producer goes away. Reconnects are scheduled on the event loop with
call_later; a manual reconnect() cancels the timer and goes immediately.
Only one connection attempt is ever in flight.

Inbound bytes are framed on newlines (FrameBuffer), decoded, and passed
through InboundThrottle before becoming the current record. The current
record is an immutable PokemonRecord replaced by reference, so any thread
reading `client.current` sees either the old or the new record, never a
half-updated one.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from ..errors import CodecError
from ..models import ClientState, PokemonRecord, WireMessage, is_clear
from . import codec
from .portfile import DEFAULT_PORT, DEFAULT_PORT_FILE, resolve_port

log = logging.getLogger(__name__)

MAX_BUFFER = 64 * 1024
RECONNECT_DELAY = 2.0
MIN_APPLY_INTERVAL = 0.5
READ_SIZE = 4096

RecordListener = Callable[[PokemonRecord | None], None]
StateListener = Callable[[ClientState], None]


class FrameBuffer:
    """
    Growable receive buffer split on newlines.

    If the buffer grows past max_size it is wiped outright, partial frame
    included, rather than searched for the next newline.
    """

    def __init__(self, max_size: int = MAX_BUFFER):
        self.max_size = max_size
        self.overflows = 0
        self._buf = bytearray()

    def __len__(self) -> int:
        return len(self._buf)

    def clear(self) -> None:
        self._buf.clear()

    def feed(self, data: bytes) -> list[bytes]:
        """Append data; return every complete frame (without its newline)."""
        self._buf.extend(data)
        if len(self._buf) > self.max_size:
            log.warning(
                "Receive buffer overflow (%d > %d bytes), discarding buffer",
                len(self._buf), self.max_size,
            )
            self._buf.clear()
            self.overflows += 1
            return []

        if b"\n" not in data:
            return []
        *frames, rest = self._buf.split(b"\n")
        self._buf = bytearray(rest)
        return [bytes(f) for f in frames if f.strip()]


@dataclass
class InboundThrottle:
    """
    Rate limit for applying inbound messages.

    A message is applied if min_interval has passed since the last applied
    one, if it is a clear, or if it is the first since the connection came up.
    Anything else is held in a single pending slot (newest wins) until the
    interval runs out; the producer never resends an unchanged PID.
    """
    min_interval: float = MIN_APPLY_INTERVAL
    clock: Callable[[], float] = time.monotonic

    pending: WireMessage | None = field(default=None, init=False)
    _last_applied: float | None = field(default=None, init=False)
    _fresh: bool = field(default=True, init=False)

    def reset(self) -> None:
        """Connection (re)established: next message goes straight through."""
        self._fresh = True
        self.pending = None

    def offer(self, message: WireMessage, now: float | None = None) -> WireMessage | None:
        """Return the message if it may be applied now, else park it as pending."""
        if self.should_apply(message, now):
            self.pending = None
            return message
        self.pending = message
        return None

    def delay(self, now: float | None = None) -> float:
        """Seconds until a pending message may be applied."""
        if self._last_applied is None:
            return 0.0
        now = self.clock() if now is None else now
        return max(0.0, self.min_interval - (now - self._last_applied))

    def release(self, now: float | None = None) -> WireMessage | None:
        """The pending message once its interval has passed, else None."""
        if self.pending is None or not self.should_apply(self.pending, now):
            return None
        message, self.pending = self.pending, None
        return message

    def should_apply(self, message: WireMessage, now: float | None = None) -> bool:
        now = self.clock() if now is None else now
        if (
            self._fresh
            or is_clear(message)
            or self._last_applied is None
            or now - self._last_applied >= self.min_interval
        ):
            self._fresh = False
            self._last_applied = now
            return True
        return False


class TelemetryClient:
    """
    Reconnecting newline-JSON client.

    Usage (inside a running event loop):
        client = TelemetryClient(port_file="dev/logs/port")
        client.add_listener(lambda record: ...)
        client.start()
        ...
        await client.close()
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int | None = None,
        *,
        port_file: str | Path | None = DEFAULT_PORT_FILE,
        default_port: int = DEFAULT_PORT,
        reconnect_delay: float = RECONNECT_DELAY,
        min_apply_interval: float = MIN_APPLY_INTERVAL,
        max_buffer: int = MAX_BUFFER,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.host = host
        self.port = port
        self.port_file = port_file
        self.default_port = default_port
        self.reconnect_delay = reconnect_delay

        self.buffer = FrameBuffer(max_buffer)
        self.throttle = InboundThrottle(min_apply_interval, clock)

        self.state = ClientState.DISCONNECTED
        self.connect_attempts = 0
        self.messages_applied = 0

        self._current: PokemonRecord | None = None
        self._listeners: list[RecordListener] = []
        self._state_listeners: list[StateListener] = []

        self._loop: asyncio.AbstractEventLoop | None = None
        self._shutdown: asyncio.Event | None = None
        self._task: asyncio.Task | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._apply_handle: asyncio.TimerHandle | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._restart_now = False

    # ─── Observable state ──────────────────────────────────────

    @property
    def current(self) -> PokemonRecord | None:
        return self._current

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def apply_pending(self) -> bool:
        """A throttled update is waiting for its interval to run out."""
        return self._apply_handle is not None

    def add_listener(self, callback: RecordListener) -> None:
        """callback(record or None) on every applied update, in arrival order."""
        self._listeners.append(callback)

    def add_state_listener(self, callback: StateListener) -> None:
        self._state_listeners.append(callback)

    # ─── Lifecycle ─────────────────────────────────────────────

    def start(self) -> None:
        """Begin connecting. Must be called from inside the event loop."""
        self._loop = asyncio.get_running_loop()
        if self._shutdown is None or self._shutdown.is_set():
            self._shutdown = asyncio.Event()
        self._connect_now()

    async def run(self) -> None:
        """start() and wait until close()."""
        self.start()
        assert self._shutdown is not None
        await self._shutdown.wait()

    def reconnect(self) -> None:
        """Manual reconnect: cancel any scheduled attempt and retry now."""
        if self._loop is None:
            raise RuntimeError("client not started")
        self._cancel_reconnect()
        if self.state is ClientState.CONNECTING:
            return
        if self.state is ClientState.CONNECTED and self._writer is not None:
            log.info("Manual reconnect: dropping current connection")
            self._restart_now = True
            self._writer.close()
            return
        self._connect_now()

    async def close(self) -> None:
        if self._shutdown is not None:
            self._shutdown.set()
        self._cancel_reconnect()
        self._cancel_pending()
        self.throttle.pending = None
        if self._writer is not None:
            self._writer.close()
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._set_state(ClientState.DISCONNECTED)

    # ─── Connection task ───────────────────────────────────────

    def _connect_now(self) -> None:
        if self._loop is None or self._shutdown is None or self._shutdown.is_set():
            return
        self._cancel_reconnect()
        if self._task is not None and not self._task.done():
            return
        self._task = self._loop.create_task(self._session())

    async def _session(self) -> None:
        self._set_state(ClientState.CONNECTING)
        port = resolve_port(self.port, self.port_file, self.default_port)
        self.connect_attempts += 1
        writer: asyncio.StreamWriter | None = None
        try:
            log.debug("Connecting to %s:%d", self.host, port)
            reader, writer = await asyncio.open_connection(self.host, port)
            self._writer = writer
            self._on_ready(port)

            while self._shutdown is not None and not self._shutdown.is_set():
                data = await reader.read(READ_SIZE)
                if not data:
                    log.info("Producer closed the connection")
                    break
                self._receive(data)
        except OSError as e:
            log.info("Connection to %s:%d failed: %s", self.host, port, e)
        finally:
            if writer is not None:
                writer.close()
            self._writer = None
            self._on_disconnected()

    def _on_ready(self, port: int) -> None:
        self._cancel_reconnect()
        self._cancel_pending()
        self.buffer.clear()
        self.throttle.reset()
        self._set_state(ClientState.CONNECTED)
        log.info("Connected to producer on %s:%d", self.host, port)

    def _on_disconnected(self) -> None:
        was_connected = self.state is ClientState.CONNECTED
        self._cancel_pending()
        self.throttle.pending = None
        self.buffer.clear()
        self._set_state(ClientState.DISCONNECTED)
        if was_connected and self._current is not None:
            self._publish(None)
        if self._shutdown is None or self._shutdown.is_set():
            return
        if self._restart_now:
            self._restart_now = False
            assert self._loop is not None
            self._loop.call_soon(self._connect_now)
        else:
            self._schedule_reconnect()

    # ─── Reconnect timer ───────────────────────────────────────

    def _schedule_reconnect(self) -> None:
        assert self._loop is not None
        self._cancel_reconnect()
        log.debug("Reconnecting in %.1fs", self.reconnect_delay)
        self._reconnect_handle = self._loop.call_later(
            self.reconnect_delay, self._on_reconnect_timer
        )

    def _on_reconnect_timer(self) -> None:
        self._reconnect_handle = None
        self._connect_now()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    # ─── Receive path ──────────────────────────────────────────

    def _receive(self, data: bytes) -> None:
        for frame in self.buffer.feed(data):
            try:
                message = codec.decode(frame)
            except CodecError as e:
                log.warning("Dropping malformed frame: %s", e)
                continue
            ready = self.throttle.offer(message)
            if ready is None:
                log.debug("Throttled inbound update, holding it")
                self._schedule_pending()
                continue
            self._cancel_pending()
            self._apply(ready)

    def _apply(self, message: WireMessage) -> None:
        self.messages_applied += 1
        self._publish(None if is_clear(message) else message)  # type: ignore[arg-type]

    def _schedule_pending(self) -> None:
        if self._apply_handle is not None or self._loop is None:
            return
        self._apply_handle = self._loop.call_later(
            self.throttle.delay(), self._on_pending_due
        )

    def _on_pending_due(self) -> None:
        self._apply_handle = None
        message = self.throttle.release()
        if message is not None:
            self._apply(message)
        elif self.throttle.pending is not None:
            # timer fired a hair early
            self._schedule_pending()

    def _cancel_pending(self) -> None:
        if self._apply_handle is not None:
            self._apply_handle.cancel()
            self._apply_handle = None

    def _publish(self, record: PokemonRecord | None) -> None:
        self._current = record
        for callback in self._listeners:
            try:
                callback(record)
            except Exception:
                log.exception("Record listener failed")

    def _set_state(self, state: ClientState) -> None:
        if state is self.state:
            return
        self.state = state
        for callback in self._state_listeners:
            try:
                callback(state)
            except Exception:
                log.exception("State listener failed")
