"""Process-wide logging setup shared by the engines, repository and API."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from occupancy_engine.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_active_level: Optional[str] = None


def configure_logging(level: Optional[str] = None) -> str:
    """Install the stdout handler on first use and return the active level.

    The level comes from ``LOG_LEVEL`` unless one is passed explicitly.
    Later calls keep the first configuration, whatever order modules are
    imported in.
    """
    global _active_level
    if _active_level is not None:
        return _active_level

    resolved_level = (level or get_settings().log_level).upper()
    if not isinstance(logging.getLevelName(resolved_level), int):
        raise ValueError(f"unknown log level {resolved_level!r}")

    logging.basicConfig(level=resolved_level, format=LOG_FORMAT, stream=sys.stdout)
    _active_level = resolved_level
    return _active_level


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
