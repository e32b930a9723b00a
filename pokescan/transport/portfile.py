"""Port discovery file: the producer writes its bound port, the consumer reads it."""

from __future__ import annotations

import logging
from pathlib import Path

log = logging.getLogger(__name__)

DEFAULT_PORT = 9876
DEFAULT_PORT_FILE = Path("dev/logs/port")


def write_port(path: str | Path, port: int) -> bool:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(str(port))
    except OSError as e:
        log.warning("Could not write port file %s: %s", path, e)
        return False
    log.info("Port %d written to %s", port, path)
    return True


def read_port(path: str | Path) -> int | None:
    path = Path(path)
    try:
        text = path.read_text().strip()
    except OSError:
        return None
    try:
        port = int(text)
    except ValueError:
        log.warning("Port file %s holds %r, not a port number", path, text)
        return None
    if not 0 < port < 65536:
        log.warning("Port file %s holds out-of-range port %d", path, port)
        return None
    return port


def resolve_port(
    override: int | None = None,
    port_file: str | Path | None = DEFAULT_PORT_FILE,
    default: int = DEFAULT_PORT,
) -> int:
    """Explicit override, then the discovery file, then the default port."""
    if override:
        return override
    if port_file is not None:
        port = read_port(port_file)
        if port is not None:
            return port
    return default
