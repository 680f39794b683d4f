"""Search engine orchestrating reading expansion, masking, ordering and caching."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from hanja_search.core import (
    CharacterProjection,
    CharacterRecord,
    ConflictRegistry,
    HanjaSearchError,
    InvalidInput,
    PhoneticExpander,
    ReadingEquivalenceClass,
    SearchQuery,
    SearchResultPage,
    SortMode,
    UpstreamUnavailable,
)
from hanja_search.core.phonetic import DEFAULT_EXPANDER

from ..data.database import HanjaRepository
from ...utils.observability import (
    add_span_attributes,
    create_counter,
    create_histogram,
    get_logger,
    record_exception,
    start_span,
)
from ...utils.telemetry import SearchTelemetry
from .cache import ESSENTIAL_LIMIT, ESSENTIAL_READINGS, CacheLayer, TtlTier

MAX_PAGE_SIZE = 50

_NULL_ELEMENT_RANK = 99

SortKey = Callable[[CharacterProjection], Tuple[Any, ...]]

_SORT_KEYS: Dict[SortMode, SortKey] = {
    SortMode.POPULARITY: lambda item: (-item.name_frequency, -item.usage_frequency, item.id),
    SortMode.STROKES: lambda item: (item.strokes, item.id),
    SortMode.ELEMENT: lambda item: (
        item.element.rank if item.element is not None else _NULL_ELEMENT_RANK,
        item.id,
    ),
}


def order_projections(
    items: Iterable[CharacterProjection],
    sort: SortMode,
    *,
    surname_mode: bool = False,
) -> List[CharacterProjection]:
    """Primary sort by ``sort``; surname mode then stably reorders by priority."""

    ordered = sorted(items, key=_SORT_KEYS[sort])
    if surname_mode:
        ordered.sort(key=lambda item: item.priority)
    return ordered


def paginate(
    ordered: Sequence[CharacterProjection],
    cursor: Optional[str],
    page_size: int,
) -> Tuple[List[CharacterProjection], Optional[str], bool]:
    """Slice ``ordered`` strictly after the item whose id is ``cursor``.

    A cursor that does not occur in ``ordered`` yields an empty slice.
    """

    start = 0
    if cursor is not None:
        start = len(ordered)
        for index, item in enumerate(ordered):
            if item.id == cursor:
                start = index + 1
                break
    window = list(ordered[start : start + page_size])
    next_cursor = window[-1].id if window else None
    return window, next_cursor, len(window) == page_size


class HanjaSearchEngine:
    """Resolves a Korean reading to a page of hanja candidates.

    Lookups go expander → cache → repository → conflict masking → ordering →
    pagination → cache.  Invalid readings fail before any I/O; repository
    failures surface as :class:`UpstreamUnavailable`.
    """

    def __init__(
        self,
        *,
        repository: HanjaRepository,
        registry: Optional[ConflictRegistry] = None,
        cache: Optional[CacheLayer] = None,
        expander: Optional[PhoneticExpander] = None,
        max_page_size: int = MAX_PAGE_SIZE,
        telemetry: Optional[SearchTelemetry] = None,
    ) -> None:
        self.repository = repository
        self.registry = registry or ConflictRegistry()
        self.cache = cache or CacheLayer()
        self.expander = expander or DEFAULT_EXPANDER
        self.max_page_size = max(1, int(max_page_size))
        self.telemetry = telemetry or SearchTelemetry()

        self._logger = get_logger(__name__).bind(
            component="hanja_search_engine",
            repository=type(repository).__name__,
        )
        self._metric_request_total = create_counter(
            "hanja_search_requests_total",
            "Total hanja search requests received.",
        )
        self._metric_request_failures = create_counter(
            "hanja_search_request_failures_total",
            "Hanja search requests that raised an exception.",
            label_names=("error",),
        )
        self._metric_request_duration = create_histogram(
            "hanja_search_request_seconds",
            "Latency of hanja search requests.",
        )
        self._logger.info(
            "Hanja search engine initialised",
            context={
                "max_page_size": self.max_page_size,
                "cache_enabled": self.cache.enabled,
                "data_version": self.cache.data_version,
            },
        )

    def get_latest_telemetry(self) -> Dict[str, Any]:
        """Snapshot of the most recent trace.

        The engine holds one :class:`SearchTelemetry`, and every search starts
        a new trace on it.  With concurrent searches the snapshot may combine
        stages from overlapping requests; it is a diagnostic, not a per-request
        record.
        """

        return self.telemetry.snapshot()

    # Public API ------------------------------------------------------------
    def search(self, query: SearchQuery) -> SearchResultPage:
        return self._search(query, ttl_tier=None, use_cached=True)

    def warm(
        self,
        readings: Iterable[str] = ESSENTIAL_READINGS,
        *,
        surname_mode: bool = True,
        limit: int = ESSENTIAL_LIMIT,
    ) -> Tuple[str, ...]:
        """Recompute first pages for ``readings`` and cache them at the essential tier."""

        warmed: List[str] = []
        for reading in readings:
            query = SearchQuery(reading=reading, surname_mode=surname_mode, limit=limit)
            try:
                self._search(query, ttl_tier=TtlTier.ESSENTIAL, use_cached=False)
            except UpstreamUnavailable as exc:
                self._logger.warning(
                    "Cache warm-up skipped reading",
                    context={"reading": reading, "error": str(exc)},
                )
                continue
            warmed.append(reading)
        self._logger.info("Cache warm-up finished", context={"warmed": len(warmed)})
        return tuple(warmed)

    # Internal pipeline -----------------------------------------------------
    def _search(
        self,
        query: SearchQuery,
        *,
        ttl_tier: Optional[TtlTier],
        use_cached: bool,
    ) -> SearchResultPage:
        telemetry = self.telemetry
        request_context: Dict[str, Any] = {
            "reading": query.reading,
            "surname_mode": query.surname_mode,
            "limit": query.limit,
            "cursor": query.cursor,
            "sort": query.sort.value,
        }

        telemetry.start_trace("hanja_search")
        telemetry.annotate("input", dict(request_context))
        self._metric_request_total.inc()
        self._logger.info("Search request received", context=request_context)

        with start_span("hanja.search", request_context) as span:
            try:
                with self._metric_request_duration.time():
                    page, cache_hit = self._run_pipeline(query, ttl_tier, use_cached)
            except Exception as exc:
                error_code = getattr(exc, "code", type(exc).__name__)
                self._metric_request_failures.labels(error=error_code).inc()
                failure_context = dict(request_context)
                failure_context["error"] = str(exc)
                failure_context["code"] = error_code
                log = self._logger.info if isinstance(exc, InvalidInput) else self._logger.error
                log("Search request failed", context=failure_context)
                record_exception(span, exc)
                telemetry.increment("search.failed")
                raise

            telemetry.increment("search.completed")
            telemetry.annotate("result.count", len(page.items))
            telemetry.annotate("result.total", page.total)
            add_span_attributes(
                span,
                {
                    "search.cache_hit": cache_hit,
                    "result.count": len(page.items),
                    "result.total": page.total,
                },
            )
            self._logger.info(
                "Search request completed",
                context={
                    "reading": query.reading,
                    "cache_hit": cache_hit,
                    "count": len(page.items),
                    "total": page.total,
                    "has_more": page.has_more,
                },
            )
            return page

    def _run_pipeline(
        self,
        query: SearchQuery,
        ttl_tier: Optional[TtlTier],
        use_cached: bool,
    ) -> Tuple[SearchResultPage, bool]:
        telemetry = self.telemetry

        with telemetry.stage("expand"):
            expanded = self.expander.expand(query.reading)
        telemetry.annotate("readings", list(expanded.readings))

        key = self.cache.compute_key(query, self.cache.data_version, reading=expanded.normalized)
        if use_cached:
            with telemetry.stage("cache_lookup"):
                cached = self.cache.get(key)
            if cached is not None:
                telemetry.increment("cache.hit")
                return cached, True
            telemetry.increment("cache.miss")

        with telemetry.stage("fetch"):
            records = self._fetch_candidates(expanded)

        with telemetry.stage("assemble"):
            page = self._assemble_page(records, query)

        with telemetry.stage("cache_store"):
            self.cache.set(key, page, ttl_tier or self.cache.tier_for(query))
        return page, False

    def _fetch_candidates(self, expanded: ReadingEquivalenceClass) -> List[CharacterRecord]:
        try:
            return list(self.repository.fetch_by_readings(expanded.readings))
        except HanjaSearchError:
            raise
        except Exception as exc:
            raise UpstreamUnavailable(f"Hanja repository lookup failed: {exc}") from exc

    def _assemble_page(
        self,
        records: Iterable[CharacterRecord],
        query: SearchQuery,
    ) -> SearchResultPage:
        distinct: Dict[str, CharacterRecord] = {}
        for record in records:
            distinct.setdefault(record.character, record)

        projections = [
            CharacterProjection.from_record(
                record,
                self.registry.get_masked_element(record.character, record.element),
            )
            for record in distinct.values()
        ]
        masked = sum(
            1 for record, item in zip(distinct.values(), projections) if item.element != record.element
        )
        self.telemetry.annotate("masked", masked)

        ordered = order_projections(projections, query.sort, surname_mode=query.surname_mode)
        page_size = min(query.limit, self.max_page_size)
        window, next_cursor, has_more = paginate(ordered, query.cursor, page_size)

        return SearchResultPage(
            items=tuple(window),
            total=len(distinct),
            limit=page_size,
            next_cursor=next_cursor,
            has_more=has_more,
        )


__all__ = ["HanjaSearchEngine", "MAX_PAGE_SIZE", "order_projections", "paginate"]
