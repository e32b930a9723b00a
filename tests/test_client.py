"""Telemetry client: framing, inbound throttle, reconnect behaviour."""

import asyncio
import socket

import pytest

from pokescan.models import CLEAR, ClientState, is_clear
from pokescan.transport import codec
from pokescan.transport.client import FrameBuffer, InboundThrottle, TelemetryClient
from pokescan.transport.server import SendScheduler


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def _wait_for(condition, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


# ─── FrameBuffer ───────────────────────────────────────────────────

def test_frames_split_across_reads():
    buf = FrameBuffer()
    assert buf.feed(b'{"clear":') == []
    assert buf.feed(b'true}\n{"cl') == [b'{"clear":true}']
    assert buf.feed(b'ear":true}\n\n') == [b'{"clear":true}']
    assert len(buf) == 0


def test_overflow_wipes_buffer_then_recovers():
    buf = FrameBuffer(max_size=64 * 1024)
    assert buf.feed(b"x" * 40000) == []
    assert buf.feed(b"x" * 30000) == []
    assert len(buf) == 0
    assert buf.overflows == 1
    assert buf.feed(b'{"clear":true}\n') == [b'{"clear":true}']


# ─── InboundThrottle ───────────────────────────────────────────────

def test_throttle_first_message_after_ready(record_factory, clock):
    t = InboundThrottle(0.5, clock)
    assert t.should_apply(record_factory(pid=1))
    clock.advance(0.1)
    assert not t.should_apply(record_factory(pid=2))
    t.reset()
    assert t.should_apply(record_factory(pid=3))


def test_throttle_interval_and_clear(record_factory, clock):
    t = InboundThrottle(0.5, clock)
    t.should_apply(record_factory(pid=1))
    clock.advance(0.2)
    assert t.should_apply(CLEAR)
    clock.advance(0.2)
    assert not t.should_apply(record_factory(pid=2))
    clock.advance(0.4)
    assert t.should_apply(record_factory(pid=2))


def test_throttle_holds_newest_until_due(record_factory, clock):
    t = InboundThrottle(0.5, clock)
    first = record_factory(pid=1)
    assert t.offer(first) is first

    clock.advance(0.1)
    assert t.offer(record_factory(pid=2)) is None
    clock.advance(0.1)
    newest = record_factory(pid=3)
    assert t.offer(newest) is None
    assert t.pending is newest
    assert t.delay() == pytest.approx(0.3)
    assert t.release() is None

    clock.advance(0.4)
    assert t.delay() == 0.0
    assert t.release() is newest
    assert t.pending is None
    assert t.release() is None


def test_throttle_clear_discards_pending(record_factory, clock):
    t = InboundThrottle(0.5, clock)
    t.offer(record_factory(pid=1))
    clock.advance(0.1)
    t.offer(record_factory(pid=2))
    assert is_clear(t.offer(CLEAR))
    assert t.pending is None
    t.offer(record_factory(pid=3))
    t.reset()
    assert t.pending is None


# ─── Receive path without a socket ─────────────────────────────────

def test_receive_drops_malformed_frames(record_factory):
    client = TelemetryClient(port=1, port_file=None, min_apply_interval=0.0)
    seen = []
    client.add_listener(seen.append)
    record = record_factory(pid=9)

    client._receive(b"garbage\n" + codec.encode(record) + b'{"pid":\n')
    assert seen == [record]
    assert client.current == record
    assert client.messages_applied == 1

    client._receive(codec.encode(CLEAR))
    assert client.current is None
    assert seen == [record, None]


def test_listener_errors_do_not_stop_others(record_factory):
    client = TelemetryClient(port=1, port_file=None)
    seen = []

    def broken(record):
        raise RuntimeError("boom")

    client.add_listener(broken)
    client.add_listener(seen.append)
    client._receive(codec.encode(record_factory()))
    assert len(seen) == 1


# ─── Live connections ──────────────────────────────────────────────

def test_receives_from_live_producer(record_factory):
    record = record_factory(pid=0x1111)

    async def scenario():
        writers = []

        async def handle(reader, writer):
            writers.append(writer)
            writer.write(b"{broken\n" + codec.encode(record))
            await writer.drain()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        client = TelemetryClient(port=port, port_file=None, reconnect_delay=5.0)
        states = []
        client.add_state_listener(states.append)
        client.start()
        try:
            await _wait_for(lambda: client.current is not None)
            assert client.current == record
            assert client.state is ClientState.CONNECTED
            assert states[:2] == [ClientState.CONNECTING, ClientState.CONNECTED]

            # producer goes away: record cleared, reconnect scheduled
            writers[0].close()
            await _wait_for(lambda: client.state is ClientState.DISCONNECTED)
            assert client.current is None
            assert client.reconnect_pending
        finally:
            await client.close()
            server.close()
            await server.wait_closed()

    asyncio.run(scenario())


def test_port_from_discovery_file(tmp_path, record_factory):
    record = record_factory(pid=0x2222)

    async def scenario():
        writers = []

        async def handle(reader, writer):
            writers.append(writer)
            writer.write(codec.encode(record))
            await writer.drain()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port_file = tmp_path / "port"
        port_file.write_text(str(server.sockets[0].getsockname()[1]))
        client = TelemetryClient(port_file=port_file, default_port=1)
        client.start()
        try:
            await _wait_for(lambda: client.current is not None)
            assert client.current.pid == 0x2222
        finally:
            await client.close()
            for w in writers:
                w.close()
            server.close()
            await server.wait_closed()

    asyncio.run(scenario())


def test_auto_reconnect_waits_for_delay():
    port = _free_port()

    async def scenario():
        client = TelemetryClient(port=port, port_file=None, reconnect_delay=0.3)
        client.start()
        try:
            await _wait_for(lambda: client.reconnect_pending)
            assert client.connect_attempts == 1
            await asyncio.sleep(0.1)
            assert client.connect_attempts == 1
            await _wait_for(lambda: client.connect_attempts >= 2, timeout=2.0)
        finally:
            await client.close()

    asyncio.run(scenario())


def test_manual_reconnect_cancels_timer():
    port = _free_port()

    async def scenario():
        client = TelemetryClient(port=port, port_file=None, reconnect_delay=30.0)
        client.start()
        try:
            await _wait_for(lambda: client.reconnect_pending)
            assert client.connect_attempts == 1

            client.reconnect()
            assert not client.reconnect_pending
            await _wait_for(lambda: client.connect_attempts == 2)
            # failed again, so a fresh timer is armed
            await _wait_for(lambda: client.reconnect_pending)
        finally:
            await client.close()
        assert not client.reconnect_pending
        assert client.state is ClientState.DISCONNECTED

    asyncio.run(scenario())


def test_manual_reconnect_drops_live_connection():
    async def scenario():
        connections = []

        async def handle(reader, writer):
            connections.append(writer)

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        client = TelemetryClient(port=port, port_file=None, reconnect_delay=30.0)
        client.start()
        try:
            await _wait_for(lambda: client.state is ClientState.CONNECTED)
            client.reconnect()
            await _wait_for(lambda: len(connections) == 2)
            await _wait_for(lambda: client.state is ClientState.CONNECTED)
            assert client.connect_attempts == 2
            assert not client.reconnect_pending
        finally:
            await client.close()
            for w in connections:
                w.close()
            server.close()
            await server.wait_closed()

    asyncio.run(scenario())


# ─── Throttled updates reach the screen ────────────────────────────

async def _relay(client, scheduler, messages, step=0.01):
    """Feed messages through a producer-side scheduler into the client, one per step."""
    for message in messages:
        scheduler.offer(message)
        due = scheduler.due()
        if due is not None:
            scheduler.mark_sent(due)
            client._receive(codec.encode(due))
        await asyncio.sleep(step)


async def _idle_client(min_apply_interval):
    client = TelemetryClient(
        port=_free_port(), port_file=None, reconnect_delay=30.0,
        min_apply_interval=min_apply_interval,
    )
    client.start()
    await _wait_for(lambda: client.reconnect_pending)
    return client


def test_reentry_right_after_clear_is_applied(record_factory):
    first = record_factory(pid=1)
    shiny = record_factory(pid=2, shiny=True)

    async def scenario():
        client = await _idle_client(0.2)
        scheduler = SendScheduler(0.05)
        try:
            # clear 20ms after the first record, shiny re-entry 20ms later;
            # the producer sends pid 2 exactly once
            await _relay(client, scheduler, [first, first, CLEAR, CLEAR] + [shiny] * 40)
            assert scheduler.last_sent_pid == 2
            await _wait_for(lambda: client.current == shiny, timeout=1.0)
            assert not client.apply_pending
        finally:
            await client.close()

    asyncio.run(scenario())


def test_pid_change_within_interval_is_applied(record_factory):
    second = record_factory(pid=3)

    async def scenario():
        client = await _idle_client(0.2)
        scheduler = SendScheduler(0.05)
        try:
            await _relay(client, scheduler, [record_factory(pid=1)] + [second] * 40)
            await _wait_for(lambda: client.current == second, timeout=1.0)
            assert client.messages_applied == 2
        finally:
            await client.close()

    asyncio.run(scenario())


def test_close_cancels_held_update(record_factory):
    async def scenario():
        client = await _idle_client(5.0)
        client._receive(codec.encode(record_factory(pid=1)))
        client._receive(codec.encode(record_factory(pid=2)))
        assert client.apply_pending
        assert client.throttle.pending.pid == 2
        await client.close()
        assert not client.apply_pending
        assert client.throttle.pending is None
        assert client.current.pid == 1

    asyncio.run(scenario())
