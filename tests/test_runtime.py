"""Producer tick and consumer verdict wiring."""

import threading

from pokescan.criteria import CatchProfile, CriteriaEngine, ProfileStore
from pokescan.memory.bus import SnapshotMemory
from pokescan.memory.games import get_adapter
from pokescan.models import Verdict, is_clear
from pokescan.runtime import Consumer, Producer
from pokescan.transport import codec
from pokescan.transport.client import TelemetryClient


class _RecordingServer:
    """Stands in for TelemetryServer: remembers what each tick was given."""

    def __init__(self):
        self.messages = []
        self.failed = False
        self.messages_sent = 0

    def tick(self, message=None):
        self.messages.append(message)
        return False


def _setup(block):
    adapter = get_adapter("emerald")
    mem = SnapshotMemory.blank()
    mem.write(adapter.enemy_party_address, block)
    return adapter, mem


def test_producer_clear_when_out_of_battle(block_factory):
    adapter, mem = _setup(block_factory())
    server = _RecordingServer()
    producer = Producer(adapter, mem, server)
    producer.tick()
    assert is_clear(server.messages[-1])
    assert producer.current is None


def test_producer_caches_by_pid(block_factory):
    adapter, mem = _setup(block_factory(pid=0x100))
    mem.write_u32(adapter.battle_flags_address, 0x4)
    server = _RecordingServer()
    producer = Producer(adapter, mem, server)

    producer.tick()
    producer.tick()
    first, second = server.messages
    assert first is second
    assert first.pid == 0x100
    assert producer.stats.decodes == 1
    assert producer.stats.cache_hits == 1

    mem.write(adapter.enemy_party_address, block_factory(pid=0x200))
    producer.tick()
    assert server.messages[-1].pid == 0x200
    assert producer.stats.decodes == 2

    mem.write_u32(adapter.battle_flags_address, 0)
    producer.tick()
    assert is_clear(server.messages[-1])


def test_producer_nothing_on_bad_block(block_factory):
    adapter, mem = _setup(block_factory(checksum=0xBEEF))
    mem.write_u32(adapter.battle_flags_address, 0x4)
    server = _RecordingServer()
    producer = Producer(adapter, mem, server)
    producer.tick()
    assert server.messages == [None]
    assert producer.stats.failed_reads == 1


def test_producer_run_stops():
    adapter, mem = _setup(bytes(100))
    server = _RecordingServer()
    producer = Producer(adapter, mem, server)
    stop = threading.Event()
    server.tick = lambda message=None: stop.set()
    producer.run(stop, tick_rate=1000.0)
    assert producer.stats.ticks == 1


def _consumer(store=None):
    client = TelemetryClient(port=1, port_file=None, min_apply_interval=0.0)
    consumer = Consumer(client, CriteriaEngine(store))
    verdicts, alerts = [], []
    consumer.add_verdict_listener(lambda r, v: verdicts.append(v))
    consumer.add_alert_listener(lambda r, v: alerts.append((r.pid, v)))
    return client, consumer, verdicts, alerts


def test_consumer_alerts_once_per_encounter(record_factory):
    client, consumer, verdicts, alerts = _consumer()
    record = record_factory(pid=5)
    client._receive(codec.encode(record))
    client._receive(codec.encode(record))
    assert verdicts == [Verdict.CATCH, Verdict.CATCH]
    assert alerts == [(5, Verdict.CATCH)]
    assert consumer.alerting

    consumer.clear_alert()
    assert not consumer.alerting


def test_consumer_skip_does_not_alert(record_factory):
    store = ProfileStore(profiles={"strict": CatchProfile(name="Strict", min_iv_total=186)})
    client, consumer, verdicts, alerts = _consumer(store)
    client._receive(codec.encode(record_factory(ivs=(1,) * 6)))
    assert verdicts == [Verdict.SKIP]
    assert alerts == []

    client._receive(codec.encode(record_factory(pid=6, ivs=(1,) * 6, shiny=True)))
    assert alerts == [(6, Verdict.SHINY)]


def test_consumer_profile_switch_rejudges(record_factory):
    client, consumer, verdicts, alerts = _consumer()
    client._receive(codec.encode(record_factory(ivs=(10,) * 6)))
    assert consumer.verdict is Verdict.CATCH
    assert consumer.select_profile(2) == "good"
    assert consumer.verdict is Verdict.SKIP
    assert consumer.select_profile(7) is None


def test_consumer_clear_resets(record_factory):
    client, consumer, verdicts, alerts = _consumer()
    client._receive(codec.encode(record_factory(pid=5)))
    client._receive(b'{"clear":true}\n')
    assert consumer.record is None
    assert consumer.verdict is None
    assert not consumer.alerting
    client._receive(codec.encode(record_factory(pid=5)))
    assert len(alerts) == 2
