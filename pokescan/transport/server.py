"""
Telemetry server – producer side of the overlay link.

Runs inside the emulator's frame loop: tick() is called once per frame and
every socket call is a non-blocking poll, so a slow or absent consumer can
never stall emulation. One client at a time; a new connection replaces the
old one.

Outbound traffic goes through SendScheduler:
  - a record with the PID we last sent is dropped (nothing changed)
  - otherwise it waits in a single pending slot, overwritten by newer ones,
    and goes out once min_interval has passed since the last send
  - battle entry, battle exit and the first message to a new client skip
    the wait
"""

from __future__ import annotations

import errno
import logging
import select
import socket
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from ..errors import CodecError
from ..models import CLEAR, PokemonRecord, ServerState, WireMessage, is_clear
from . import codec
from .portfile import DEFAULT_PORT, write_port

log = logging.getLogger(__name__)

MAX_BIND_RETRIES = 10
MIN_SEND_INTERVAL = 0.25

_ADDRESS_IN_USE = {errno.EADDRINUSE, 10048}   # 10048 = WSAEADDRINUSE


@dataclass
class SendScheduler:
    """Change suppression, throttling and coalescing for outbound messages."""
    min_interval: float = MIN_SEND_INTERVAL
    clock: Callable[[], float] = time.monotonic

    last_sent_pid: int | None = field(default=None, init=False)
    last_send_time: float | None = field(default=None, init=False)
    last_payload: WireMessage = field(default=CLEAR, init=False)
    pending: WireMessage | None = field(default=None, init=False)
    force: bool = field(default=False, init=False)

    def offer(self, message: WireMessage) -> bool:
        """Stage a decode result. Returns False if it was suppressed."""
        if is_clear(message):
            if is_clear(self.last_payload) and not self.force:
                # Nothing on screen already; drop anything not yet sent
                self.pending = None
                return False
            self.pending = CLEAR
            return True

        record: PokemonRecord = message  # type: ignore[assignment]
        if record.pid == self.last_sent_pid and not self.force:
            self.pending = None
            return False
        self.pending = record
        return True

    def request_resend(self) -> None:
        """Next due() returns the current state immediately (new client)."""
        self.force = True
        if self.pending is None:
            self.pending = self.last_payload

    def due(self, now: float | None = None) -> WireMessage | None:
        """The pending message if it may be sent now, else None."""
        if self.pending is None:
            return None
        if self.force:
            return self.pending
        if is_clear(self.pending):
            return self.pending             # battle exit
        if is_clear(self.last_payload):
            return self.pending             # battle entry
        if self.last_send_time is None:
            return self.pending
        now = self.clock() if now is None else now
        if now - self.last_send_time >= self.min_interval:
            return self.pending
        return None

    def mark_sent(self, message: WireMessage, now: float | None = None) -> None:
        self.last_payload = message
        self.last_sent_pid = None if is_clear(message) else message.pid  # type: ignore[union-attr]
        self.last_send_time = self.clock() if now is None else now
        self.force = False
        if self.pending is message:
            self.pending = None

    def drop_pending(self) -> None:
        self.pending = None
        self.force = False


class TelemetryServer:
    """
    Single-client, non-blocking TCP server driven by tick().

    Usage:
        server = TelemetryServer(port=9876, port_file="dev/logs/port")
        every frame:
            server.tick(record or CLEAR)
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = DEFAULT_PORT,
        *,
        max_bind_retries: int = MAX_BIND_RETRIES,
        min_send_interval: float = MIN_SEND_INTERVAL,
        port_file: str | Path | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.host = host
        self.port = port
        self.max_bind_retries = max_bind_retries
        self.port_file = Path(port_file) if port_file else None
        self.clock = clock
        self.scheduler = SendScheduler(min_send_interval, clock)

        self.state = ServerState.UNBOUND
        self.retry_count = 0
        self.messages_sent = 0

        self._server: socket.socket | None = None
        self._client: socket.socket | None = None
        self._client_addr: tuple | None = None
        self._outbox = bytearray()

    # ─── Lifecycle ─────────────────────────────────────────────

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def failed(self) -> bool:
        return self.state is ServerState.FAILED

    def start(self) -> bool:
        """
        Bind and listen. On address-in-use, try the next port, up to
        max_bind_retries times; after that (or on any other error) the
        server is FAILED for good.
        """
        if self.state is ServerState.FAILED:
            return False
        if self.state is not ServerState.UNBOUND:
            return True

        while True:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            if sys.platform != "win32":
                # rebind straight over TIME_WAIT after a restart
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                sock.bind((self.host, self.port))
                sock.listen(1)
                sock.setblocking(False)
            except OSError as e:
                sock.close()
                if e.errno in _ADDRESS_IN_USE:
                    self.retry_count += 1
                    if self.retry_count <= self.max_bind_retries:
                        log.info("Port %d in use, trying %d", self.port, self.port + 1)
                        self.port += 1
                        continue
                    log.error("Max bind retries (%d) reached, giving up", self.max_bind_retries)
                else:
                    log.error("Failed to bind %s:%d - %s", self.host, self.port, e)
                self.state = ServerState.FAILED
                return False
            break

        self._server = sock
        self.port = sock.getsockname()[1]
        self.state = ServerState.LISTENING
        log.info("Server listening on %s:%d", self.host, self.port)

        if self.port_file is not None:
            write_port(self.port_file, self.port)
        return True

    def close(self) -> None:
        self._detach("server closing")
        if self._server is not None:
            self._server.close()
            self._server = None
        if self.state is not ServerState.FAILED:
            self.state = ServerState.UNBOUND

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ─── Per-frame work ────────────────────────────────────────

    def tick(self, message: WireMessage | None = None) -> bool:
        """
        One frame: accept / poll the client, stage message (None means no
        new decode result this frame), send if due. Returns True if
        something was written to the client.
        """
        if self.state is ServerState.FAILED:
            return False
        if self.state is ServerState.UNBOUND:
            if not self.start():
                return False

        self._poll_accept()
        self._poll_client()

        if message is not None:
            self.publish(message)
        return self.flush()

    def publish(self, message: WireMessage) -> bool:
        """Stage a decode result; False if change suppression dropped it."""
        return self.scheduler.offer(message)

    def flush(self) -> bool:
        if self._client is None:
            return False

        if self._outbox:
            return self._drain()

        message = self.scheduler.due()
        if message is None:
            return False

        try:
            payload = codec.encode(message)
        except CodecError as e:
            log.error("Dropping unencodable message: %s", e)
            self.scheduler.drop_pending()
            return False

        self._outbox.extend(payload)
        self.scheduler.mark_sent(message)
        self.messages_sent += 1
        return self._drain()

    # ─── Socket polling ────────────────────────────────────────

    def _poll_accept(self) -> None:
        if self._server is None:
            return
        while True:
            try:
                conn, addr = self._server.accept()
            except BlockingIOError:
                return
            except OSError as e:
                log.warning("Accept failed: %s", e)
                return

            conn.setblocking(False)
            if self._client is not None:
                log.info("Replacing old client connection %s", self._client_addr)
                self._close_client()
            self._client = conn
            self._client_addr = addr
            self.state = ServerState.CLIENT_ATTACHED
            self.scheduler.request_resend()
            log.info("Overlay connected from %s", addr)

    def _poll_client(self) -> None:
        client = self._client
        if client is None:
            return
        try:
            readable, _, errored = select.select([client], [], [client], 0)
        except (OSError, ValueError) as e:
            self._detach(f"poll error: {e}")
            return
        if errored:
            self._detach("socket error")
            return
        if not readable:
            return
        try:
            data = client.recv(4096)
        except BlockingIOError:
            return
        except OSError as e:
            self._detach(f"recv error: {e}")
            return
        if not data:
            self._detach("closed by peer")
        # Anything the overlay sends is ignored

    def _drain(self) -> bool:
        client = self._client
        if client is None:
            self._outbox.clear()
            return False
        try:
            sent = client.send(self._outbox)
        except BlockingIOError:
            return False
        except OSError as e:
            self._detach(f"send failed: {e}")
            return False
        del self._outbox[:sent]
        return sent > 0

    def _close_client(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            except OSError:
                pass
        self._client = None
        self._client_addr = None
        self._outbox.clear()

    def _detach(self, reason: str) -> None:
        if self._client is None:
            return
        log.info("Client disconnected (%s)", reason)
        self._close_client()
        if self.state is ServerState.CLIENT_ATTACHED:
            self.state = ServerState.LISTENING
