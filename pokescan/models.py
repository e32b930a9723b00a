"""
Shared value types: decoded records, wire messages, verdicts, connection states.

Records are frozen so the consumer can publish them by swapping a
reference; nothing downstream mutates a record in place.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Union

MAX_IV = 31
MAX_IV_TOTAL = MAX_IV * 6   # 186

# Display / wire order
IV_KEYS: tuple[str, ...] = ("hp", "atk", "def", "spa", "spd", "spe")


@dataclass(frozen=True)
class IVs:
    """Six individual values, 0-31 each, in display order."""
    hp: int = 0
    atk: int = 0
    defense: int = 0
    spa: int = 0
    spd: int = 0
    spe: int = 0

    def __post_init__(self):
        for name, value in zip(IV_KEYS, self.as_tuple()):
            if not 0 <= value <= MAX_IV:
                raise ValueError(f"IV {name}={value} outside 0..{MAX_IV}")

    def as_tuple(self) -> tuple[int, int, int, int, int, int]:
        return (self.hp, self.atk, self.defense, self.spa, self.spd, self.spe)

    def as_dict(self) -> dict[str, int]:
        return dict(zip(IV_KEYS, self.as_tuple()))

    def get(self, key: str) -> int:
        """Look up a stat by its wire key (hp, atk, def, spa, spd, spe)."""
        try:
            index = IV_KEYS.index(key)
        except ValueError:
            raise KeyError(key) from None
        return self.as_tuple()[index]

    @classmethod
    def from_dict(cls, data: dict[str, int]) -> IVs:
        return cls(*(int(data[k]) for k in IV_KEYS))

    @property
    def total(self) -> int:
        return sum(self.as_tuple())

    @property
    def percent(self) -> int:
        """IV total as a truncated percentage of the 186 maximum."""
        return self.total * 100 // MAX_IV_TOTAL


@dataclass(frozen=True)
class PokemonRecord:
    """A decoded opponent, as sent over the wire."""
    game: str
    battle_type: str
    pid: int
    species_id: int          # national dex number
    species_index: int       # internal Gen 3 index
    exp: int
    nature: str
    ability_slot: int
    gender: str
    ivs: IVs
    hp_type: str
    hp_power: int
    shiny: bool
    shiny_type: str | None = None

    @property
    def iv_total(self) -> int:
        return self.ivs.total

    @property
    def iv_percent(self) -> int:
        return self.ivs.percent

    def summary(self) -> str:
        star = f" [{self.shiny_type} shiny]" if self.shiny else ""
        ivs = "/".join(str(v) for v in self.ivs.as_tuple())
        return (
            f"#{self.species_id}{star} {self.nature} {self.gender} "
            f"IVs {ivs} ({self.iv_total}, {self.iv_percent}%) "
            f"HP {self.hp_type} {self.hp_power} pid=0x{self.pid:08X}"
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["ivs"] = self.ivs.as_dict()
        return data


class _Clear:
    """Sentinel telling the consumer the battle is over."""
    _instance: _Clear | None = None

    def __new__(cls) -> _Clear:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CLEAR"

    def __reduce__(self):
        return (_Clear, ())


CLEAR = _Clear()

WireMessage = Union[PokemonRecord, _Clear]


def is_clear(message: object) -> bool:
    return message is CLEAR


class Verdict(str, Enum):
    CATCH = "catch"
    SKIP = "skip"
    SHINY = "shiny"


class ClientState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ServerState(str, Enum):
    UNBOUND = "unbound"
    LISTENING = "listening"
    CLIENT_ATTACHED = "client_attached"
    FAILED = "failed"
