"""
Catch profiles and the persisted profile store.

The store is plain JSON with camelCase keys so it stays readable by the
overlay's settings screen:

    {
      "activeProfile": "hunt",
      "alwaysAlertShiny": true,
      "alertSoundEnabled": true,
      "profiles": {
        "hunt": {"name": "Synchronize hunt", "requiredNatures": ["Adamant"],
                 "minIVs": {"atk": 25, "spe": 25}, "minIVPercent": 70}
      }
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..errors import ConfigError
from ..memory.tables import NATURES
from ..models import IV_KEYS, MAX_IV, MAX_IV_TOTAL

log = logging.getLogger(__name__)

_NATURE_LOOKUP = {n.lower(): n for n in NATURES}


class CatchProfile(BaseModel):
    """One set of acceptance rules. Unset fields impose no constraint."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    species: list[int] | None = None
    required_natures: list[str] | None = Field(default=None, alias="requiredNatures")
    min_ivs: dict[str, int] | None = Field(default=None, alias="minIVs")
    min_iv_total: int | None = Field(default=None, alias="minIVTotal", ge=0, le=MAX_IV_TOTAL)
    min_iv_percent: int | None = Field(default=None, alias="minIVPercent", ge=0, le=100)
    notes: str | None = None

    @field_validator("required_natures")
    @classmethod
    def validate_natures(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        out: list[str] = []
        for nature in v:
            canonical = _NATURE_LOOKUP.get(nature.strip().lower())
            if canonical is None:
                raise ValueError(f"Unknown nature {nature!r}")
            out.append(canonical)
        return out

    @field_validator("min_ivs")
    @classmethod
    def validate_min_ivs(cls, v: dict[str, int] | None) -> dict[str, int] | None:
        if v is None:
            return v
        for stat, minimum in v.items():
            if stat not in IV_KEYS:
                raise ValueError(f"Unknown IV stat {stat!r}; expected one of {IV_KEYS}")
            if not 0 <= minimum <= MAX_IV:
                raise ValueError(f"Minimum IV for {stat} must be 0..{MAX_IV}, got {minimum}")
        return v

    @field_validator("species")
    @classmethod
    def validate_species(cls, v: list[int] | None) -> list[int] | None:
        if v is not None and any(not 1 <= s <= 386 for s in v):
            raise ValueError("Species ids must be national dex numbers 1..386")
        return v


def default_profiles() -> dict[str, CatchProfile]:
    return {
        "any": CatchProfile(name="Anything", notes="Catch every encounter"),
        "good": CatchProfile(name="Good IVs", min_iv_percent=80),
        "perfect": CatchProfile(name="Perfect", min_iv_total=MAX_IV_TOTAL),
    }


class ProfileStore(BaseModel):
    """Ordered key → profile mapping plus the global alert switches."""
    model_config = ConfigDict(populate_by_name=True)

    active_profile: str = Field(default="any", alias="activeProfile")
    always_alert_shiny: bool = Field(default=True, alias="alwaysAlertShiny")
    alert_sound_enabled: bool = Field(default=True, alias="alertSoundEnabled")
    profiles: dict[str, CatchProfile] = Field(default_factory=default_profiles)

    @model_validator(mode="after")
    def check_active(self) -> ProfileStore:
        if not self.profiles:
            self.profiles = default_profiles()
        if self.active_profile not in self.profiles:
            fallback = next(iter(self.profiles))
            log.warning(
                "Active profile %r not defined, using %r", self.active_profile, fallback
            )
            self.active_profile = fallback
        return self

    def profile_keys(self) -> list[str]:
        return list(self.profiles)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProfileStore:
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid profile store: {e}") from e

    @classmethod
    def load(cls, path: str | Path | None) -> ProfileStore:
        """Load from JSON; a missing file gives the built-in defaults."""
        if path is None:
            return cls()
        path = Path(path)
        if not path.exists():
            log.info("No profile store at %s, using defaults", path)
            return cls()
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read profile store {path}: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        log.info("Saved %d profiles to %s", len(self.profiles), path)
