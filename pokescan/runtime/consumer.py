"""
Consumer side – ties the telemetry client to the criteria engine.

Every applied record is judged against the active profile. A catch or
shiny verdict raises an alert once per encounter (keyed by PID) until the
user acknowledges it with clear_alert().
"""

from __future__ import annotations

import logging
from typing import Callable

from ..criteria.engine import CriteriaEngine
from ..models import PokemonRecord, Verdict
from ..transport.client import TelemetryClient

log = logging.getLogger(__name__)

VerdictListener = Callable[[PokemonRecord | None, Verdict | None], None]
AlertListener = Callable[[PokemonRecord, Verdict], None]


class Consumer:
    def __init__(self, client: TelemetryClient, engine: CriteriaEngine):
        self.client = client
        self.engine = engine
        self.verdict: Verdict | None = None
        self.alerting = False

        self._verdict_listeners: list[VerdictListener] = []
        self._alert_listeners: list[AlertListener] = []
        self._alerted_pid: int | None = None

        client.add_listener(self._on_record)

    def add_verdict_listener(self, callback: VerdictListener) -> None:
        self._verdict_listeners.append(callback)

    def add_alert_listener(self, callback: AlertListener) -> None:
        self._alert_listeners.append(callback)

    @property
    def record(self) -> PokemonRecord | None:
        return self.client.current

    def select_profile(self, ordinal: int) -> str | None:
        """Number-key profile switch; re-judges the record on screen."""
        key = self.engine.select_profile(ordinal)
        if key is not None:
            log.info("Active profile: %s", key)
            self._judge(self.client.current)
        return key

    def clear_alert(self) -> None:
        self.alerting = False

    def _on_record(self, record: PokemonRecord | None) -> None:
        if record is None:
            self._alerted_pid = None
            self.alerting = False
        self._judge(record)

    def _judge(self, record: PokemonRecord | None) -> None:
        verdict = self.engine.evaluate(record) if record is not None else None
        self.verdict = verdict

        for callback in self._verdict_listeners:
            try:
                callback(record, verdict)
            except Exception:
                log.exception("Verdict listener failed")

        if record is None or verdict is Verdict.SKIP or record.pid == self._alerted_pid:
            return
        self._alerted_pid = record.pid
        self.alerting = True
        log.info("%s: %s", verdict.value.upper(), record.summary())
        for callback in self._alert_listeners:
            try:
                callback(record, verdict)
            except Exception:
                log.exception("Alert listener failed")
