"""
Wire codec – newline-delimited UTF-8 JSON.

Record:  {"type": <battle type>, "game": ..., "pid": ..., "species_id": ...,
          "species_index": ..., "exp": ..., "nature": ..., "ability_slot": ...,
          "gender": ..., "ivs": {"hp":..,"atk":..,"def":..,"spa":..,"spd":..,"spe":..},
          "hp_type": ..., "hp_power": ..., "shiny": ..., "shiny_type": ...}
Clear:   {"clear": true}
"""

from __future__ import annotations

import json
from typing import Any

from ..errors import CodecError
from ..models import CLEAR, IVs, PokemonRecord, WireMessage, is_clear

DELIMITER = b"\n"

_CLEAR_PAYLOAD = {"clear": True}

_INT_FIELDS = ("pid", "species_id", "species_index", "exp", "ability_slot", "hp_power")
_STR_FIELDS = ("game", "nature", "gender", "hp_type")


def to_payload(message: WireMessage) -> dict[str, Any]:
    """JSON-ready dict for a record, or {"clear": true}."""
    if is_clear(message):
        return dict(_CLEAR_PAYLOAD)
    rec: PokemonRecord = message  # type: ignore[assignment]
    return {
        "type": rec.battle_type,
        "game": rec.game,
        "pid": rec.pid,
        "species_id": rec.species_id,
        "species_index": rec.species_index,
        "exp": rec.exp,
        "nature": rec.nature,
        "ability_slot": rec.ability_slot,
        "gender": rec.gender,
        "ivs": rec.ivs.as_dict(),
        "hp_type": rec.hp_type,
        "hp_power": rec.hp_power,
        "shiny": rec.shiny,
        "shiny_type": rec.shiny_type,
    }


def encode(message: WireMessage) -> bytes:
    """Serialize one message as a single newline-terminated frame."""
    try:
        text = json.dumps(to_payload(message), separators=(",", ":"))
    except (TypeError, ValueError, AttributeError) as e:
        raise CodecError(f"cannot encode {message!r}: {e}") from e
    return text.encode("utf-8") + DELIMITER


def from_payload(data: Any) -> WireMessage:
    """
    Inverse of to_payload. Raises CodecError on anything that is not a
    clear or a complete, well-typed record.
    """
    if not isinstance(data, dict):
        raise CodecError(f"frame is {type(data).__name__}, expected object")
    if data.get("clear") is True:
        return CLEAR

    try:
        ivs_raw = data["ivs"]
        if not isinstance(ivs_raw, dict):
            raise CodecError("ivs is not an object")
        fields: dict[str, Any] = {k: int(data[k]) for k in _INT_FIELDS}
        fields.update({k: str(data[k]) for k in _STR_FIELDS})
        shiny = data["shiny"]
        if not isinstance(shiny, bool):
            raise CodecError(f"shiny is {type(shiny).__name__}, expected bool")
        shiny_type = data.get("shiny_type")
        return PokemonRecord(
            battle_type=str(data.get("type", "wild")),
            ivs=IVs.from_dict(ivs_raw),
            shiny=shiny,
            shiny_type=str(shiny_type) if shiny_type is not None else None,
            **fields,
        )
    except KeyError as e:
        raise CodecError(f"missing field {e.args[0]!r}") from e
    except (TypeError, ValueError) as e:
        raise CodecError(f"bad field value: {e}") from e


def decode(frame: bytes | str) -> WireMessage:
    """Parse one frame (with or without its trailing newline)."""
    if isinstance(frame, bytes):
        try:
            frame = frame.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CodecError(f"frame is not UTF-8: {e}") from e
    frame = frame.strip()
    if not frame:
        raise CodecError("empty frame")
    try:
        data = json.loads(frame)
    except json.JSONDecodeError as e:
        raise CodecError(f"invalid JSON: {e}") from e
    return from_payload(data)
