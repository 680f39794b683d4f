"""Application wiring for the hanja search service."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List, Optional, Sequence

from hanja_search.core import (
    ConflictRegistry,
    HanjaSearchError,
    PhoneticExpander,
    SearchQuery,
    SearchResultPage,
)
from hanja_search.utils import SearchTelemetry, TelemetryLogger, configure_logging
from hanja_search.utils.observability import get_logger

from hanja_search.app.data.database import HanjaRepository, SQLiteHanjaRepository
from hanja_search.app.services.cache import (
    ESSENTIAL_READINGS,
    CacheLayer,
    CacheStore,
    InMemoryCacheStore,
    NullCacheStore,
)
from hanja_search.app.services.conflict_admin import ConflictAdminService
from hanja_search.app.services.result_formatter import format_error, format_search_response
from hanja_search.app.services.search_service import HanjaSearchEngine
from hanja_search.app.settings import SearchSettings


class HanjaSearchApp:
    """High-level application facade bundling dependencies."""

    def __init__(
        self,
        settings: Optional[SearchSettings] = None,
        *,
        repository: Optional[HanjaRepository] = None,
        registry: Optional[ConflictRegistry] = None,
        cache_store: Optional[CacheStore] = None,
        expander: Optional[PhoneticExpander] = None,
        telemetry: Optional[SearchTelemetry] = None,
    ) -> None:
        self.settings = settings or SearchSettings.from_env()
        self._logger = get_logger(__name__).bind(component="app_facade")
        self._logger.info(
            "Initialising application facade",
            context={
                "db_path": self.settings.db_path,
                "data_version": self.settings.data_version,
                "cache_backend": self.settings.cache_backend,
            },
        )

        if repository is None:
            repository = SQLiteHanjaRepository(
                self.settings.db_path,
                pool_size=self.settings.db_pool_size,
                pool_timeout=self.settings.db_pool_timeout,
            )
            try:
                row_count = repository.ensure_database()
            except Exception as exc:
                self._logger.error(
                    "Database initialisation failed",
                    context={"db_path": self.settings.db_path, "error": str(exc)},
                )
                raise
            self._logger.info(
                "Database ready",
                context={"db_path": self.settings.db_path, "row_count": row_count},
            )
        self.repository = repository

        self.registry = registry or ConflictRegistry()
        self.cache = CacheLayer(
            cache_store if cache_store is not None else self._build_cache_store(),
            data_version=self.settings.data_version,
        )
        if telemetry is None:
            telemetry = SearchTelemetry(listeners=[TelemetryLogger()])
        self.engine = HanjaSearchEngine(
            repository=self.repository,
            registry=self.registry,
            cache=self.cache,
            expander=expander,
            telemetry=telemetry,
        )
        self.admin = ConflictAdminService(self.registry, self.cache)

        self._logger.info(
            "Application dependencies wired",
            context={"cache_enabled": self.cache.enabled},
        )
        if self.settings.warm_essential:
            self.warm_essential_readings()

    def _build_cache_store(self) -> CacheStore:
        if self.settings.cache_backend == "memory":
            return InMemoryCacheStore(max_entries=self.settings.cache_max_entries)
        return NullCacheStore()

    # Public API ------------------------------------------------------------
    def search(
        self,
        reading: Any,
        surname: Any = False,
        limit: Any = None,
        cursor: Any = None,
        sort: Any = None,
    ) -> Dict[str, Any]:
        query = SearchQuery.from_params(reading, surname, limit, cursor, sort)
        return format_search_response(self.engine.search(query))

    def search_page(self, query: SearchQuery) -> SearchResultPage:
        return self.engine.search(query)

    def warm_essential_readings(self, *, force: bool = False) -> List[str]:
        """Warm the essential surname readings once per data version.

        Returns the readings warmed by this call; an existing manifest for the
        current data version makes this a no-op unless ``force`` is set.
        """

        if not force and self.cache.get_essential_manifest() is not None:
            self._logger.info(
                "Essential readings already warm",
                context={"data_version": self.cache.data_version},
            )
            return []
        warmed = self.engine.warm(ESSENTIAL_READINGS)
        if len(warmed) == len(ESSENTIAL_READINGS):
            self.cache.set_essential_manifest(warmed)
        return list(warmed)

    def handle_bulk_reload(self, data_version: str) -> int:
        """Adopt ``data_version`` after an offline reload and drop stale entries."""

        previous = self.cache.bump_data_version(data_version)
        removed = self.cache.invalidate_after_reload()
        self._logger.info(
            "Bulk reload handled",
            context={"previous": previous, "current": data_version, "removed": removed},
        )
        return removed

    def get_latest_telemetry(self) -> Dict[str, Any]:
        return self.engine.get_latest_telemetry()

    def close(self) -> None:
        closer = getattr(self.repository, "close", None)
        if callable(closer):
            closer()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Look up hanja candidates for a Korean reading."
    )
    parser.add_argument("reading", help="Hangul reading to resolve, e.g. 이 or 김.")
    parser.add_argument(
        "--surname",
        action="store_true",
        help="Rank surname characters by their surname priority.",
    )
    parser.add_argument("--limit", type=int, default=None, help="Page size (capped at 50).")
    parser.add_argument("--cursor", default=None, help="Id of the last item of the previous page.")
    parser.add_argument(
        "--sort",
        choices=("popularity", "strokes", "element"),
        default=None,
        help="Primary ordering of the candidates.",
    )
    parser.add_argument("--log-level", default=None, help="Logging level override.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(args.log_level)

    app = HanjaSearchApp()
    try:
        payload = app.search(
            args.reading,
            surname=args.surname,
            limit=args.limit,
            cursor=args.cursor,
            sort=args.sort,
        )
    except HanjaSearchError as exc:
        print(json.dumps({"error": format_error(exc)}, ensure_ascii=False), file=sys.stderr)
        return 1
    finally:
        app.close()

    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


__all__ = ["HanjaSearchApp", "main"]
