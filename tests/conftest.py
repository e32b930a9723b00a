"""Shared fixtures: synthetic party blocks and decoded records."""

from __future__ import annotations

import struct

import pytest

from pokescan.memory import decoder, tables
from pokescan.models import IVs, PokemonRecord


def build_block(
    pid=0x12345678,
    otid=0x00010002,
    species=25,
    exp=1000,
    ivs=(31, 31, 31, 31, 31, 31),
    ability=0,
    checksum=None,
) -> bytes:
    """
    Build an encrypted 100-byte party block.

    species is the internal index; ivs are in storage order
    (hp, atk, def, spe, spa, spd).
    """
    growth = struct.pack("<HHIBBH", species, 0, exp, 0, 70, 0)
    attacks = struct.pack("<HHHHBBBB", 33, 45, 0, 0, 35, 25, 0, 0)
    evs = bytes(12)
    iv_word = decoder.pack_ivs(ivs, flags=(ability & 1) << 31)
    misc = struct.pack("<BBHII", 0, 0, 0, iv_word, 0)
    logical = [growth, attacks, evs, misc]

    plain = b"".join(logical[i] for i in tables.BLOCK_ORDERS[pid % 24])
    assert len(plain) == decoder.DATA_SIZE
    if checksum is None:
        checksum = decoder.compute_checksum(plain)

    header = struct.pack(
        "<II10sH7sBHH", pid, otid, b"\xFF" * 10, 0x0202, b"\xFF" * 7, 0, checksum, 0
    )
    body = decoder.decrypt(plain, pid ^ otid)
    raw = header + body + bytes(decoder.BLOCK_SIZE - decoder.HEADER_SIZE - decoder.DATA_SIZE)
    assert len(raw) == decoder.BLOCK_SIZE
    return raw


def make_record(
    pid=0x12345678,
    ivs=(31, 31, 31, 31, 31, 31),
    nature="Gentle",
    species_id=25,
    shiny=False,
    battle_type="wild",
) -> PokemonRecord:
    """A record with display-order IVs (hp, atk, def, spa, spd, spe)."""
    return PokemonRecord(
        game="emerald",
        battle_type=battle_type,
        pid=pid,
        species_id=species_id,
        species_index=species_id,
        exp=1000,
        nature=nature,
        ability_slot=0,
        gender="female",
        ivs=IVs(*ivs),
        hp_type="Dark",
        hp_power=70,
        shiny=shiny,
        shiny_type="star" if shiny else None,
    )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def block_factory():
    return build_block


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def clock():
    return FakeClock()
