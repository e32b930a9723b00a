"""
Emulator memory access and Gen 3 structure decoding.

Reads the opponent's 100-byte party block straight out of the running
emulator and decodes it into a PokemonRecord.
"""

from .bus import EmulatedMemory, MemoryBus, SnapshotMemory
from .decoder import RawBattleBlock, decode, decode_block
from .games import ADAPTERS, GameAdapter, get_adapter
from .process import ProcessInfo, ProcessMemory

__all__ = [
    "EmulatedMemory",
    "MemoryBus",
    "SnapshotMemory",
    "RawBattleBlock",
    "decode",
    "decode_block",
    "ADAPTERS",
    "GameAdapter",
    "get_adapter",
    "ProcessInfo",
    "ProcessMemory",
]
