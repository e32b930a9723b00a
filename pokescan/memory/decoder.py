"""
Gen 3 party-structure decoder.

Turns the 100-byte encrypted opponent block into a PokemonRecord:

    raw block ──► header (PID, OTID, checksum)
              ──► 48 encrypted bytes ─ XOR (PID ^ OTID) ─► 4 × 12-byte sub-blocks
              ──► unshuffle by PID % 24 ──► Growth / Attacks / EVs / Misc
              ──► species, exp, IVs, ability, nature, gender, shiny, Hidden Power

Layout reference: pokeemerald include/pokemon.h (struct BoxPokemon).
"""
from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Callable

from ..errors import DecodeError, MemoryReadError
from ..models import IVs, PokemonRecord
from . import tables

log = logging.getLogger(__name__)

BLOCK_SIZE = 100
HEADER_SIZE = 32
DATA_SIZE = 48
SUB_BLOCK_SIZE = 12

_HEADER = struct.Struct("<II10sH7sBHH")   # pid, otid, nickname, language, ot name, markings, checksum, unused
_GROWTH = struct.Struct("<HHIBB")         # species, item, exp, pp bonuses, friendship
_MISC = struct.Struct("<BBHII")           # pokerus, met location, origins, iv word, ribbons

# Storage order inside the IV word
STORAGE_ORDER: tuple[str, ...] = ("hp", "atk", "def", "spe", "spa", "spd")


# ═══════════════════ data classes ═══════════════════════════════════
@dataclass(frozen=True)
class RawBattleBlock:
    pid: int
    otid: int
    nickname: bytes
    language: int
    ot_name: bytes
    markings: int
    checksum: int
    data: bytes                    # still encrypted + shuffled

    @classmethod
    def from_bytes(cls, raw: bytes) -> RawBattleBlock:
        if len(raw) < BLOCK_SIZE:
            raise DecodeError(f"block is {len(raw)} bytes, need {BLOCK_SIZE}")
        pid, otid, nick, lang, ot_name, marks, checksum, _ = _HEADER.unpack_from(raw, 0)
        return cls(
            pid=pid,
            otid=otid,
            nickname=nick,
            language=lang,
            ot_name=ot_name,
            markings=marks,
            checksum=checksum,
            data=bytes(raw[HEADER_SIZE:HEADER_SIZE + DATA_SIZE]),
        )

    @property
    def key(self) -> int:
        return (self.pid ^ self.otid) & 0xFFFFFFFF


@dataclass(frozen=True)
class Growth:
    species: int
    item: int
    exp: int
    pp_bonuses: int
    friendship: int

    @classmethod
    def parse(cls, block: bytes) -> Growth:
        return cls(*_GROWTH.unpack_from(block, 0))


@dataclass(frozen=True)
class Misc:
    pokerus: int
    met_location: int
    origins: int
    iv_word: int
    ribbons: int

    @classmethod
    def parse(cls, block: bytes) -> Misc:
        return cls(*_MISC.unpack_from(block, 0))

    @property
    def ability_bit(self) -> int:
        return self.iv_word >> 31 & 1


# ═══════════════════ primitives ═════════════════════════════════════
def block_order(pid: int) -> tuple[int, int, int, int]:
    """Logical block held in each physical slot for this PID."""
    return tables.BLOCK_ORDERS[pid % 24]


def decrypt(data: bytes, key: int) -> bytes:
    """XOR every little-endian 32-bit word with key."""
    if len(data) % 4:
        raise DecodeError(f"encrypted data length {len(data)} is not word aligned")
    count = len(data) // 4
    words = struct.unpack(f"<{count}I", data)
    return struct.pack(f"<{count}I", *(w ^ key for w in words))


def unshuffle(data: bytes, pid: int) -> list[bytes]:
    """Split decrypted data into sub-blocks indexed by logical block (G, A, E, M)."""
    if len(data) != DATA_SIZE:
        raise DecodeError(f"sub-block data must be {DATA_SIZE} bytes, got {len(data)}")
    blocks: list[bytes] = [b""] * 4
    for slot, logical in enumerate(block_order(pid)):
        start = slot * SUB_BLOCK_SIZE
        blocks[logical] = data[start:start + SUB_BLOCK_SIZE]
    return blocks


def compute_checksum(data: bytes) -> int:
    """Sum of the decrypted data as little-endian 16-bit words, truncated to 16 bits."""
    total = sum(struct.unpack(f"<{len(data) // 2}H", data))
    return total & 0xFFFF


def verify_checksum(decrypted: bytes, expected: int) -> bool:
    """True if the decrypted sub-blocks match the checksum stored in the header."""
    return compute_checksum(decrypted) == expected


def unpack_ivs(word: int) -> tuple[int, int, int, int, int, int]:
    """Six five-bit fields in storage order (hp, atk, def, spe, spa, spd)."""
    return tuple((word >> (5 * i)) & 0x1F for i in range(6))  # type: ignore[return-value]


def pack_ivs(values: tuple[int, ...] | list[int], flags: int = 0) -> int:
    """Inverse of unpack_ivs; flags holds the egg/ability bits (30, 31)."""
    word = flags & 0xC0000000
    for i, value in enumerate(values):
        if not 0 <= value <= 31:
            raise ValueError(f"IV {STORAGE_ORDER[i]}={value} outside 0..31")
        word |= value << (5 * i)
    return word


def to_display(storage: tuple[int, ...]) -> IVs:
    """Reorder storage-order IVs into display order (hp, atk, def, spa, spd, spe)."""
    hp, atk, dfn, spe, spa, spd = storage
    return IVs(hp=hp, atk=atk, defense=dfn, spa=spa, spd=spd, spe=spe)


def hidden_power(storage: tuple[int, ...]) -> tuple[int, int]:
    """(type index 0-15, power 30-70) from IVs in storage order."""
    type_bits = sum((iv & 1) << i for i, iv in enumerate(storage))
    power_bits = sum(((iv >> 1) & 1) << i for i, iv in enumerate(storage))
    return type_bits * 15 // 63, power_bits * 40 // 63 + 30


def shiny_value(pid: int, otid: int) -> int:
    """XOR of the four 16-bit halves of PID and OTID; below 8 means shiny."""
    p1, p2 = pid & 0xFFFF, pid >> 16 & 0xFFFF
    t1, t2 = otid & 0xFFFF, otid >> 16 & 0xFFFF
    return (p1 ^ p2) ^ (t1 ^ t2)


def shiny_type(value: int) -> str | None:
    if value >= 8:
        return None
    return "square" if value == 0 else "star"


def nature_for(pid: int) -> str:
    """Nature name, PID mod 25."""
    return tables.NATURES[pid % 25]


def gender_for(national: int, pid: int) -> str:
    """
    Gender from the species ratio: female when the PID's low byte is below
    the ratio. Fixed-gender and genderless species ignore the PID.
    """
    ratio = tables.gender_ratio(national)
    if ratio == tables.GENDERLESS:
        return "genderless"
    if ratio == tables.ALWAYS_FEMALE:
        return "female"
    if ratio == tables.ALWAYS_MALE:
        return "male"
    return "female" if (pid & 0xFF) < ratio else "male"


# ═══════════════════ decode ═════════════════════════════════════════
def decode_block(
    raw: bytes,
    *,
    game: str = "emerald",
    battle_type: str = "wild",
) -> PokemonRecord:
    """
    Decode one 100-byte block. Raises DecodeError on anything implausible:
    empty slot, checksum mismatch (block mid-write) or unknown species.
    """
    block = RawBattleBlock.from_bytes(raw)
    if block.pid == 0 and block.otid == 0 and block.checksum == 0:
        raise DecodeError("empty party slot")

    decrypted = decrypt(block.data, block.key)
    if not verify_checksum(decrypted, block.checksum):
        raise DecodeError(
            f"checksum mismatch for pid 0x{block.pid:08X}: "
            f"0x{compute_checksum(decrypted):04X} != 0x{block.checksum:04X}"
        )

    subs = unshuffle(decrypted, block.pid)
    growth = Growth.parse(subs[tables.GROWTH])
    misc = Misc.parse(subs[tables.MISC])

    national = tables.national_dex(growth.species)
    if national is None:
        raise DecodeError(f"invalid species index {growth.species}")

    storage = unpack_ivs(misc.iv_word)
    hp_index, hp_power = hidden_power(storage)
    sv = shiny_value(block.pid, block.otid)
    kind = shiny_type(sv)

    return PokemonRecord(
        game=game,
        battle_type=battle_type,
        pid=block.pid,
        species_id=national,
        species_index=growth.species,
        exp=growth.exp,
        nature=nature_for(block.pid),
        ability_slot=misc.ability_bit,
        gender=gender_for(national, block.pid),
        ivs=to_display(storage),
        hp_type=tables.HIDDEN_POWER_TYPES[hp_index],
        hp_power=hp_power,
        shiny=kind is not None,
        shiny_type=kind,
    )


def decode(
    battle_active: bool,
    read_block: Callable[[], bytes],
    *,
    game: str = "emerald",
    battle_type: str = "wild",
) -> PokemonRecord | None:
    """
    Decode the current opponent, or None when not in battle.

    Read and parse failures are logged and reported as None, the same
    as "not in battle"; nothing here raises.
    """
    if not battle_active:
        return None
    try:
        raw = read_block()
        return decode_block(raw, game=game, battle_type=battle_type)
    except MemoryReadError as e:
        log.debug("Memory read failed: %s", e)
    except (DecodeError, struct.error, ValueError) as e:
        log.debug("Block did not decode: %s", e)
    return None
