"""Versioned, tiered caching of search result pages.

Keys embed the data version, so bumping the version after a bulk reload
orphans every existing entry without touching the store.  Prefix
invalidation is kept for clearing the orphans eagerly.  Store faults never
reach the caller: a failed read is a miss and a failed write is skipped.
"""

from __future__ import annotations

import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol, Tuple
from urllib.parse import quote

from hanja_search.core.models import SearchQuery, SearchResultPage
from hanja_search.utils.observability import create_counter, get_logger

SEARCH_KEY_PREFIX = "hanja:q:"
ESSENTIAL_KEY_PREFIX = "hanja:essential:"

ESSENTIAL_READINGS: Tuple[str, ...] = (
    "김", "금", "이", "리", "박", "최", "정", "조", "윤", "장",
    "강", "임", "림", "한", "오", "신", "양", "량", "송", "현",
    "고", "주", "서", "문", "손", "안", "유", "류", "전", "허",
)
ESSENTIAL_LIMIT = 10


class TtlTier(str, Enum):
    FIRST_PAGE = "first_page"
    CURSOR_PAGE = "cursor_page"
    ESSENTIAL = "essential"


TTL_SECONDS: Dict[TtlTier, int] = {
    TtlTier.FIRST_PAGE: 24 * 60 * 60,
    TtlTier.CURSOR_PAGE: 4 * 60 * 60,
    TtlTier.ESSENTIAL: 7 * 24 * 60 * 60,
}


class CacheStore(Protocol):
    """Byte-oriented key/value store with expiry."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set_with_ttl(self, key: str, value: bytes, seconds: int) -> None:
        ...

    def delete_by_prefix(self, prefix: str) -> int:
        ...


class NullCacheStore:
    """Store used when no cache backend is configured."""

    def get(self, key: str) -> Optional[bytes]:
        return None

    def set_with_ttl(self, key: str, value: bytes, seconds: int) -> None:
        return None

    def delete_by_prefix(self, prefix: str) -> int:
        return 0


class InMemoryCacheStore:
    """Process-local store with per-key expiry and LRU eviction."""

    def __init__(
        self,
        *,
        max_entries: int = 1024,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._max_entries = max(1, int(max_entries))
        self._clock = clock or time.monotonic
        self._lock = threading.RLock()
        self._entries: "OrderedDict[str, Tuple[float, bytes]]" = OrderedDict()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            cached = self._entries.get(key)
            if cached is None:
                return None
            expires_at, value = cached
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    def set_with_ttl(self, key: str, value: bytes, seconds: int) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + max(0, int(seconds)), bytes(value))
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def delete_by_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    data_version: str
    ttl_tier: TtlTier
    page: SearchResultPage

    def serialize(self) -> bytes:
        payload = {
            "key": self.key,
            "data_version": self.data_version,
            "ttl_tier": self.ttl_tier.value,
            "page": self.page.to_dict(),
        }
        return json.dumps(payload, ensure_ascii=False, sort_keys=True).encode("utf-8")

    @classmethod
    def deserialize(cls, raw: bytes) -> "CacheEntry":
        payload = json.loads(_payload_text(raw))
        return cls(
            key=payload["key"],
            data_version=payload["data_version"],
            ttl_tier=TtlTier(payload["ttl_tier"]),
            page=SearchResultPage.from_dict(payload["page"]),
        )


def _payload_text(raw: Any) -> str:
    if not isinstance(raw, (bytes, bytearray)):
        raise TypeError(f"Cache payload must be bytes, got {type(raw).__name__}")
    return bytes(raw).decode("utf-8")


def _key_part(value: Any) -> str:
    return quote(str(value), safe="")


def _normalize_prefix(pattern: str) -> str:
    return pattern[:-1] if pattern.endswith("*") else pattern


class CacheLayer:
    """Search-page cache over a :class:`CacheStore`."""

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        *,
        data_version: str = "1.0.0",
    ) -> None:
        self.store: CacheStore = store if store is not None else NullCacheStore()
        self.data_version = str(data_version)
        self._logger = get_logger(__name__).bind(
            component="cache_layer",
            store=type(self.store).__name__,
        )
        self._metric_hits = create_counter(
            "hanja_cache_hits_total",
            "Search pages served from the cache.",
        )
        self._metric_misses = create_counter(
            "hanja_cache_misses_total",
            "Search page lookups that missed the cache.",
        )
        self._metric_faults = create_counter(
            "hanja_cache_faults_total",
            "Cache store operations that failed and were bypassed.",
            label_names=("operation",),
        )

    @property
    def enabled(self) -> bool:
        return not isinstance(self.store, NullCacheStore)

    @staticmethod
    def compute_key(query: SearchQuery, data_version: str, *, reading: Optional[str] = None) -> str:
        """Encode every query field plus ``data_version`` into a cache key.

        ``reading`` overrides ``query.reading`` so callers can key on the
        normalized form.
        """

        parts = (
            reading if reading is not None else query.reading,
            "true" if query.surname_mode else "false",
            query.limit,
            query.cursor if query.cursor is not None else "-",
            query.sort.value,
            data_version,
        )
        return SEARCH_KEY_PREFIX + ":".join(_key_part(part) for part in parts)

    @staticmethod
    def tier_for(query: SearchQuery) -> TtlTier:
        return TtlTier.FIRST_PAGE if query.cursor is None else TtlTier.CURSOR_PAGE

    def _record_fault(self, operation: str, key: str, exc: BaseException) -> None:
        self._metric_faults.labels(operation=operation).inc()
        self._logger.warning(
            "Cache store fault; continuing without cache",
            context={"operation": operation, "key": key, "error": str(exc)},
        )

    def get(self, key: str) -> Optional[SearchResultPage]:
        try:
            raw = self.store.get(key)
        except Exception as exc:
            self._record_fault("get", key, exc)
            return None

        if raw is None:
            self._metric_misses.inc()
            return None

        try:
            entry = CacheEntry.deserialize(raw)
        except (ValueError, KeyError, TypeError) as exc:
            self._record_fault("decode", key, exc)
            return None

        if entry.key != key or entry.data_version != self.data_version:
            self._metric_misses.inc()
            return None

        self._metric_hits.inc()
        self._logger.debug("Cache hit", context={"key": key})
        return entry.page

    def set(self, key: str, page: SearchResultPage, ttl_tier: TtlTier) -> bool:
        entry = CacheEntry(key=key, data_version=self.data_version, ttl_tier=ttl_tier, page=page)
        try:
            self.store.set_with_ttl(key, entry.serialize(), TTL_SECONDS[ttl_tier])
        except Exception as exc:
            self._record_fault("set", key, exc)
            return False
        return True

    def essential_manifest_key(self) -> str:
        return ESSENTIAL_KEY_PREFIX + _key_part(self.data_version)

    def get_essential_manifest(self) -> Optional[Tuple[str, ...]]:
        """Readings warmed for the current data version, if any."""

        key = self.essential_manifest_key()
        try:
            raw = self.store.get(key)
        except Exception as exc:
            self._record_fault("get", key, exc)
            return None
        if raw is None:
            return None
        try:
            return tuple(json.loads(_payload_text(raw)))
        except (ValueError, TypeError) as exc:
            self._record_fault("decode", key, exc)
            return None

    def set_essential_manifest(self, readings: Tuple[str, ...]) -> bool:
        key = self.essential_manifest_key()
        payload = json.dumps(list(readings), ensure_ascii=False).encode("utf-8")
        try:
            self.store.set_with_ttl(key, payload, TTL_SECONDS[TtlTier.ESSENTIAL])
        except Exception as exc:
            self._record_fault("set", key, exc)
            return False
        return True

    def invalidate(self, pattern: str) -> int:
        prefix = _normalize_prefix(pattern)
        try:
            removed = int(self.store.delete_by_prefix(prefix))
        except Exception as exc:
            self._record_fault("invalidate", prefix, exc)
            return 0
        self._logger.info("Cache invalidated", context={"prefix": prefix, "removed": removed})
        return removed

    def invalidate_after_reload(self) -> int:
        return self.invalidate(SEARCH_KEY_PREFIX + "*") + self.invalidate(ESSENTIAL_KEY_PREFIX + "*")

    def bump_data_version(self, data_version: str) -> str:
        previous, self.data_version = self.data_version, str(data_version)
        self._logger.info(
            "Data version bumped",
            context={"previous": previous, "current": self.data_version},
        )
        return previous


__all__ = [
    "CacheEntry",
    "CacheLayer",
    "CacheStore",
    "ESSENTIAL_KEY_PREFIX",
    "ESSENTIAL_LIMIT",
    "ESSENTIAL_READINGS",
    "InMemoryCacheStore",
    "NullCacheStore",
    "SEARCH_KEY_PREFIX",
    "TTL_SECONDS",
    "TtlTier",
]
