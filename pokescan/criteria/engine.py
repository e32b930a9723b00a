"""
Criteria engine – decides catch / skip / shiny for a decoded record.

Pure: the verdict depends only on the record, the active profile and the
shiny toggle. Alerting is somebody else's job.
"""

from __future__ import annotations

from ..models import PokemonRecord, Verdict
from .profiles import CatchProfile, ProfileStore


def evaluate(
    record: PokemonRecord,
    profile: CatchProfile,
    always_alert_shiny: bool = True,
) -> Verdict:
    """
    Shiny (with the toggle on) wins outright. Otherwise every constraint the
    profile sets must hold; unset ones are ignored.
    """
    if record.shiny and always_alert_shiny:
        return Verdict.SHINY
    return Verdict.CATCH if matches(record, profile) else Verdict.SKIP


def matches(record: PokemonRecord, profile: CatchProfile) -> bool:
    if profile.species is not None and record.species_id not in profile.species:
        return False

    if profile.required_natures is not None:
        wanted = {n.lower() for n in profile.required_natures}
        if record.nature.lower() not in wanted:
            return False

    if profile.min_ivs:
        for stat, minimum in profile.min_ivs.items():
            if record.ivs.get(stat) < minimum:
                return False

    if profile.min_iv_total is not None and record.iv_total < profile.min_iv_total:
        return False

    if profile.min_iv_percent is not None and record.iv_percent < profile.min_iv_percent:
        return False

    return True


class CriteriaEngine:
    """Holds the profile store and which profile is active."""

    def __init__(self, store: ProfileStore | None = None):
        self.store = store or ProfileStore()

    @property
    def active_key(self) -> str:
        return self.store.active_profile

    @property
    def active_profile(self) -> CatchProfile:
        return self.store.profiles[self.store.active_profile]

    @property
    def always_alert_shiny(self) -> bool:
        return self.store.always_alert_shiny

    def profile_keys(self) -> list[str]:
        return self.store.profile_keys()

    def set_active_profile(self, key: str) -> None:
        if key not in self.store.profiles:
            raise KeyError(f"No profile {key!r}")
        self.store.active_profile = key

    def select_profile(self, ordinal: int) -> str | None:
        """Activate the Nth profile (1-based, as on the number keys). Returns its key."""
        keys = self.profile_keys()
        if not 1 <= ordinal <= len(keys):
            return None
        key = keys[ordinal - 1]
        self.store.active_profile = key
        return key

    def evaluate(self, record: PokemonRecord) -> Verdict:
        return evaluate(record, self.active_profile, self.store.always_alert_shiny)
