"""
Logging setup for pokescan.
"""

from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: int | str = logging.INFO,
    log_file: str | Path | None = None,
) -> logging.Logger:
    """
    Configure logging for pokescan.

    Safe to call more than once: handlers installed by a previous call
    are replaced, not duplicated.

    Args:
        level: Logging level (number or name).
        log_file: Optional file to write logs to.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger("pokescan")
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        if getattr(handler, "_pokescan", False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler._pokescan = True  # type: ignore[attr-defined]
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler._pokescan = True  # type: ignore[attr-defined]
        root_logger.addHandler(file_handler)

    return root_logger
