"""Environment-driven settings for the search application."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DB_PATH_ENV = "HANJA_DB_PATH"
DATA_VERSION_ENV = "HANJA_DATA_VERSION"
CACHE_BACKEND_ENV = "HANJA_CACHE_BACKEND"
CACHE_MAX_ENTRIES_ENV = "HANJA_CACHE_MAX_ENTRIES"
DB_POOL_SIZE_ENV = "HANJA_DB_POOL_SIZE"
DB_POOL_TIMEOUT_ENV = "HANJA_DB_POOL_TIMEOUT"
WARM_ESSENTIAL_ENV = "HANJA_WARM_ESSENTIAL"

CACHE_BACKENDS = ("memory", "none")


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    try:
        return int(str(env.get(name, "")).strip())
    except ValueError:
        return default


def _float_setting(env: Mapping[str, str], name: str, default: float) -> float:
    try:
        return float(str(env.get(name, "")).strip())
    except ValueError:
        return default


def _bool_setting(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or not str(value).strip():
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class SearchSettings:
    db_path: str = "hanja.db"
    data_version: str = "1.0.0"
    cache_backend: str = "memory"
    cache_max_entries: int = 1024
    db_pool_size: int = 4
    db_pool_timeout: float = 5.0
    warm_essential: bool = False

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "SearchSettings":
        """Read settings from ``env`` (defaults to ``os.environ``).

        Malformed numbers fall back to defaults; an unknown cache backend
        disables caching.
        """

        env = os.environ if env is None else env
        defaults = cls()
        backend = str(env.get(CACHE_BACKEND_ENV, defaults.cache_backend)).strip().lower()
        if backend not in CACHE_BACKENDS:
            backend = "none"
        return cls(
            db_path=env.get(DB_PATH_ENV) or defaults.db_path,
            data_version=env.get(DATA_VERSION_ENV) or defaults.data_version,
            cache_backend=backend,
            cache_max_entries=_int_setting(env, CACHE_MAX_ENTRIES_ENV, defaults.cache_max_entries),
            db_pool_size=_int_setting(env, DB_POOL_SIZE_ENV, defaults.db_pool_size),
            db_pool_timeout=_float_setting(env, DB_POOL_TIMEOUT_ENV, defaults.db_pool_timeout),
            warm_essential=_bool_setting(env, WARM_ESSENTIAL_ENV, defaults.warm_essential),
        )


__all__ = ["SearchSettings", "CACHE_BACKENDS"]
