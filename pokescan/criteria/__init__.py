"""Acceptance rules: catch profiles, the profile store and the verdict engine."""

from .engine import CriteriaEngine, evaluate, matches
from .profiles import CatchProfile, ProfileStore, default_profiles

__all__ = [
    "CriteriaEngine",
    "evaluate",
    "matches",
    "CatchProfile",
    "ProfileStore",
    "default_profiles",
]
