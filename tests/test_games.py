"""Adapters and memory buses against synthetic snapshots."""

import pytest

from pokescan.errors import MemoryReadError
from pokescan.memory import tables
from pokescan.memory.bus import EWRAM_BASE, IWRAM_BASE, EmulatedMemory, SnapshotMemory
from pokescan.memory.games import ADAPTERS, Emerald, FireRedLeafGreen, RubySapphire, get_adapter


def _snapshot_with(adapter, raw, flags):
    mem = SnapshotMemory.blank()
    mem.write(adapter.enemy_party_address, raw)
    mem.write_u32(adapter.battle_flags_address, flags)
    return mem


def test_registry_tags():
    assert isinstance(get_adapter("emerald"), Emerald)
    assert isinstance(get_adapter("FireRed"), FireRedLeafGreen)
    assert isinstance(get_adapter("leafgreen"), FireRedLeafGreen)
    assert isinstance(get_adapter("sapphire"), RubySapphire)
    assert set(ADAPTERS) == {"emerald", "firered", "leafgreen", "ruby", "sapphire"}


def test_unknown_game():
    with pytest.raises(KeyError):
        get_adapter("crystal")


def test_address_overrides():
    adapter = get_adapter("emerald", enemy_party_address=0x02030000)
    assert adapter.enemy_party_address == 0x02030000
    assert adapter.battle_flags_address == Emerald.battle_flags_address
    # class defaults untouched
    assert Emerald.enemy_party_address == 0x02024744


@pytest.mark.parametrize("tag", ["emerald", "firered", "ruby"])
def test_decode_in_battle(tag, block_factory):
    adapter = get_adapter(tag)
    mem = _snapshot_with(adapter, block_factory(species=277), flags=0x4)
    record = adapter.decode(mem)
    assert record is not None
    assert record.species_id == 252
    assert record.game == tag
    assert record.battle_type == "wild"


def test_decode_out_of_battle(block_factory):
    adapter = get_adapter("emerald")
    mem = _snapshot_with(adapter, block_factory(), flags=0)
    assert not adapter.battle_active(mem)
    assert adapter.decode(mem) is None


@pytest.mark.parametrize(
    "flags, expected",
    [
        (0x4, "wild"),
        (tables.BATTLE_TYPE_TRAINER, "trainer"),
        (tables.BATTLE_TYPE_TRAINER | tables.BATTLE_TYPE_DOUBLE, "trainer"),
        (tables.BATTLE_TYPE_SAFARI, "safari"),
        (tables.BATTLE_TYPE_LINK | tables.BATTLE_TYPE_TRAINER, "link"),
    ],
)
def test_battle_type(flags, expected, block_factory):
    adapter = get_adapter("emerald")
    mem = _snapshot_with(adapter, block_factory(), flags=flags)
    assert adapter.battle_type(mem) == expected


def test_read_failure_is_not_in_battle():
    adapter = get_adapter("emerald")
    mem = SnapshotMemory()
    assert not adapter.battle_active(mem)
    assert adapter.battle_type(mem) == "unknown"
    assert adapter.read_pid(mem) is None
    assert adapter.decode(mem) is None


def test_read_pid(block_factory):
    adapter = get_adapter("emerald")
    mem = _snapshot_with(adapter, block_factory(pid=0xCAFEBABE), flags=1)
    assert adapter.read_pid(mem) == 0xCAFEBABE


def test_snapshot_reads():
    mem = SnapshotMemory.blank()
    mem.write(EWRAM_BASE + 0x10, b"\x01\x02\x03\x04")
    assert mem.read_u8(EWRAM_BASE + 0x10) == 1
    assert mem.read_u16(EWRAM_BASE + 0x10) == 0x0201
    assert mem.read_u32(EWRAM_BASE + 0x10) == 0x04030201
    with pytest.raises(MemoryReadError):
        mem.read_bytes(0x08000000, 4)
    with pytest.raises(MemoryReadError):
        mem.read_bytes(IWRAM_BASE + 0x7FFE, 4)


class _FakeProcess:
    def __init__(self, memory: dict[int, bytes]):
        self.memory = memory
        self.reads = []

    def read(self, address, size):
        self.reads.append((address, size))
        return self.memory.get(address, bytes(size))


def test_emulated_memory_translates():
    proc = _FakeProcess({0x10000 + 0x24744: b"\x78\x56\x34\x12"})
    mem = EmulatedMemory(proc, {EWRAM_BASE: 0x10000, IWRAM_BASE: 0x90000})
    assert mem.read_u32(0x02024744) == 0x12345678
    mem.read_bytes(0x030045C0, 100)
    assert proc.reads[-1] == (0x90000 + 0x45C0, 100)


def test_emulated_memory_unmapped():
    mem = EmulatedMemory(_FakeProcess({}), {EWRAM_BASE: 0x10000})
    with pytest.raises(MemoryReadError):
        mem.read_bytes(IWRAM_BASE, 4)
    with pytest.raises(MemoryReadError):
        mem.read_bytes(EWRAM_BASE + 0x3FFFF, 4)
