"""
Configuration models and loaders for pokescan.
Uses Pydantic for validation and TOML for file format.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError
from .memory.games import ADAPTERS
from .transport.client import MAX_BUFFER, MIN_APPLY_INTERVAL, RECONNECT_DELAY
from .transport.portfile import DEFAULT_PORT, DEFAULT_PORT_FILE
from .transport.server import MAX_BIND_RETRIES, MIN_SEND_INTERVAL


def _parse_address(v: Any) -> int | None:
    """Accept 0x-prefixed strings as well as plain ints."""
    if v is None or v == "":
        return None
    if isinstance(v, str):
        return int(v, 0)
    return int(v)


class MemoryConfig(BaseModel):
    """Which game to read and where the emulator keeps its RAM."""
    game: str = "emerald"
    pid: int | None = None
    process_name: str = "mGBA"
    # Host addresses of the emulator's EWRAM / IWRAM buffers
    ewram_address: int | None = None
    iwram_address: int | None = None
    # GBA-side overrides of the adapter defaults
    enemy_party_address: int | None = None
    battle_flags_address: int | None = None

    @field_validator("game")
    @classmethod
    def validate_game(cls, v: str) -> str:
        v = v.lower()
        if v not in ADAPTERS:
            raise ValueError(f"Game must be one of {sorted(ADAPTERS)}")
        return v

    @field_validator(
        "ewram_address", "iwram_address", "enemy_party_address", "battle_flags_address",
        mode="before",
    )
    @classmethod
    def validate_address(cls, v: Any) -> int | None:
        return _parse_address(v)


class ServerConfig(BaseModel):
    """Producer-side socket settings."""
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    max_bind_retries: int = MAX_BIND_RETRIES
    min_send_interval: float = MIN_SEND_INTERVAL
    port_file: str = str(DEFAULT_PORT_FILE)
    tick_rate: float = 60.0

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 <= v <= 65535:
            raise ValueError("Port must be 0..65535")
        return v

    @field_validator("tick_rate")
    @classmethod
    def validate_tick_rate(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Tick rate must be positive")
        return v


class ClientConfig(BaseModel):
    """Consumer-side connection settings."""
    host: str = "127.0.0.1"
    port: int | None = None
    port_file: str = str(DEFAULT_PORT_FILE)
    default_port: int = DEFAULT_PORT
    reconnect_delay: float = RECONNECT_DELAY
    min_apply_interval: float = MIN_APPLY_INTERVAL
    max_buffer: int = MAX_BUFFER


class CriteriaConfig(BaseModel):
    """Where the catch profiles live."""
    profiles_path: str = "configs/profiles.json"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: str = ""

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v not in valid:
            raise ValueError(f"Log level must be one of {valid}")
        return v


class AppConfig(BaseModel):
    """Complete pokescan configuration."""
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    criteria: CriteriaConfig = Field(default_factory=CriteriaConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_toml(cls, path: str | Path) -> AppConfig:
        """Load configuration from TOML file."""
        path = Path(path)
        try:
            with path.open("rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config {path}: {e}") from e

    @classmethod
    def load(cls, path: str | Path | None = None) -> AppConfig:
        """Load from path, or return defaults when no path is given."""
        if path is None:
            return cls()
        return cls.from_toml(path)

    def to_dict(self) -> dict[str, Any]:
        """Export config as dictionary."""
        return self.model_dump()
