"""
Memory bus – byte and word reads at GBA addresses.

The decoder and the game adapters only ever see a MemoryBus; where the
bytes come from (a live emulator process or a captured snapshot) is
decided here.
"""

from __future__ import annotations

from typing import Protocol

from ..errors import MemoryReadError
from .process import ProcessMemory

# GBA memory map: region id is the top byte of the address
EWRAM_BASE = 0x02000000
EWRAM_SIZE = 0x40000
IWRAM_BASE = 0x03000000
IWRAM_SIZE = 0x8000

REGION_SIZES: dict[int, int] = {
    EWRAM_BASE: EWRAM_SIZE,
    IWRAM_BASE: IWRAM_SIZE,
}


class MemoryBus(Protocol):
    def read_bytes(self, address: int, size: int) -> bytes: ...

    def read_u8(self, address: int) -> int: ...

    def read_u16(self, address: int) -> int: ...

    def read_u32(self, address: int) -> int: ...


class _WordReads:
    """Little-endian helpers built on read_bytes."""

    def read_bytes(self, address: int, size: int) -> bytes:
        raise NotImplementedError

    def read_u8(self, address: int) -> int:
        return self.read_bytes(address, 1)[0]

    def read_u16(self, address: int) -> int:
        return int.from_bytes(self.read_bytes(address, 2), "little")

    def read_u32(self, address: int) -> int:
        return int.from_bytes(self.read_bytes(address, 4), "little")


def _region_of(address: int) -> int:
    return address & 0xFF000000


class SnapshotMemory(_WordReads):
    """
    Captured regions keyed by GBA base address.

    Used for offline decoding of memory dumps and in tests.
    """

    def __init__(self, regions: dict[int, bytes | bytearray] | None = None):
        self.regions: dict[int, bytearray] = {}
        for base, data in (regions or {}).items():
            self.regions[base] = bytearray(data)

    @classmethod
    def blank(cls) -> SnapshotMemory:
        return cls({base: bytes(size) for base, size in REGION_SIZES.items()})

    def write(self, address: int, data: bytes) -> None:
        base = _region_of(address)
        region = self.regions.setdefault(base, bytearray(REGION_SIZES.get(base, 0)))
        offset = address - base
        if offset + len(data) > len(region):
            region.extend(bytes(offset + len(data) - len(region)))
        region[offset:offset + len(data)] = data

    def write_u32(self, address: int, value: int) -> None:
        self.write(address, (value & 0xFFFFFFFF).to_bytes(4, "little"))

    def read_bytes(self, address: int, size: int) -> bytes:
        region = self.regions.get(_region_of(address))
        if region is None:
            raise MemoryReadError(address, size, "unmapped region")
        offset = address - _region_of(address)
        if offset + size > len(region):
            raise MemoryReadError(address, size, "past end of region")
        return bytes(region[offset:offset + size])


class EmulatedMemory(_WordReads):
    """
    GBA address space inside a running emulator process.

    region_hosts maps a GBA region base (EWRAM_BASE, IWRAM_BASE) to the
    host address where the emulator keeps that region.
    """

    def __init__(self, process: ProcessMemory, region_hosts: dict[int, int]):
        self.process = process
        self.region_hosts = dict(region_hosts)

    def translate(self, address: int, size: int) -> int:
        base = _region_of(address)
        host = self.region_hosts.get(base)
        if host is None:
            raise MemoryReadError(address, size, "region not mapped to host")
        offset = address - base
        limit = REGION_SIZES.get(base)
        if limit is not None and offset + size > limit:
            raise MemoryReadError(address, size, "past end of region")
        return host + offset

    def read_bytes(self, address: int, size: int) -> bytes:
        return self.process.read(self.translate(address, size), size)
