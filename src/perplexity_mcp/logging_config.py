"""
Logging setup shared by all server modules.
"""

import logging
import sys
from typing import Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LEVEL_NAMES = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def normalize_log_level(level: Union[int, str, None], default: str = "INFO") -> str:
    """
    Return the canonical name (``DEBUG``, ``WARNING``, ...) for a level.

    Unknown names map to ``default`` so logging and uvicorn agree on the level.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
    if not isinstance(level, int):
        return default
    name = logging.getLevelName(level)
    if name not in LEVEL_NAMES:
        return default
    return name


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure root logging.

    Logs go to stderr because stdout carries the stdio transport.
    """
    logging.basicConfig(
        level=normalize_log_level(level),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger."""
    return logging.getLogger(name)
