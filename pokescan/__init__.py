"""
PokeScan – live opponent scanner for Gen 3 GBA games.

A producer reads the opponent's party block out of the running emulator,
decodes it and streams it as newline-JSON to a consumer, which judges each
encounter against the active catch profile.
"""

from .models import CLEAR, IVs, PokemonRecord, Verdict

__version__ = "0.1.0"

__all__ = ["CLEAR", "IVs", "PokemonRecord", "Verdict", "__version__"]
