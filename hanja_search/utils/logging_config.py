"""Helpers for configuring consistent project logging output."""

from __future__ import annotations

import logging
import os
from typing import Optional

LOG_LEVEL_ENV = "HANJA_LOG_LEVEL"

_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_CONFIGURED = False


def _resolve_level(level: str | int | None) -> int:
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    try:
        return int(level)
    except (TypeError, ValueError):
        normalized = str(level).strip().upper()
        resolved = logging.getLevelName(normalized)
        return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: Optional[str | int] = None, *, force: bool = False) -> None:
    """Install a root handler and set the ``hanja_search`` logger level.

    The level comes from ``level`` when given, otherwise from the
    ``HANJA_LOG_LEVEL`` environment variable, and defaults to ``INFO``.
    Repeated calls are ignored unless ``force`` is set.
    """

    global _CONFIGURED

    if _CONFIGURED and not force:
        return

    resolved_level = _resolve_level(level if level is not None else os.environ.get(LOG_LEVEL_ENV))

    logging.basicConfig(level=resolved_level, format=_DEFAULT_FORMAT, force=force)
    logging.getLogger("hanja_search").setLevel(resolved_level)
    _CONFIGURED = True


__all__ = ["configure_logging", "LOG_LEVEL_ENV"]
