"""
Exception hierarchy for pokescan.

Every failure in the decode / transport / criteria pipeline degrades to
"no telemetry this tick" or a scheduled retry; these types exist so callers
can tell the recoverable classes apart when logging.
"""

from __future__ import annotations


class PokeScanError(Exception):
    """Base class for all pokescan errors."""


class MemoryReadError(PokeScanError):
    """A read from emulator memory failed or came back short."""

    def __init__(self, address: int, size: int, reason: str = ""):
        self.address = address
        self.size = size
        msg = f"read of {size} bytes at 0x{address:08X} failed"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class DecodeError(PokeScanError):
    """The raw block did not decode into a plausible record."""


class BindError(PokeScanError):
    """The telemetry server could not bind or listen."""


class CodecError(PokeScanError):
    """A wire frame could not be encoded or parsed."""


class ConfigError(PokeScanError):
    """Configuration or profile store could not be loaded."""
