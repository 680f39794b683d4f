"""Search engine ordering, pagination, masking and cache behaviour."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import pytest

from hanja_search.app.services.cache import CacheLayer, InMemoryCacheStore
from hanja_search.app.services.search_service import (
    MAX_PAGE_SIZE,
    HanjaSearchEngine,
    order_projections,
    paginate,
)
from hanja_search.core import (
    CharacterProjection,
    CharacterRecord,
    ConflictRegistry,
    Element,
    InMemoryConflictStore,
    InvalidInput,
    SearchQuery,
    SortMode,
    UpstreamUnavailable,
)


class StaticRepository:
    """Repository stub serving a fixed record list ordered by id."""

    def __init__(self, records: Iterable[CharacterRecord]) -> None:
        self.records = sorted(records, key=lambda record: record.id)
        self.calls: List[Sequence[str]] = []

    def fetch_by_readings(self, readings: Sequence[str]) -> List[CharacterRecord]:
        self.calls.append(tuple(readings))
        wanted = set(readings)
        return [record for record in self.records if wanted & set(record.readings)]

    def fetch_by_character(self, character: str) -> Optional[CharacterRecord]:
        for record in self.records:
            if record.character == character:
                return record
        return None

    def fetch_by_ids(self, ids: Iterable[str]) -> List[CharacterRecord]:
        wanted = set(ids)
        return [record for record in self.records if record.id in wanted]


class FailingRepository(StaticRepository):
    def __init__(self) -> None:
        super().__init__(())

    def fetch_by_readings(self, readings: Sequence[str]) -> List[CharacterRecord]:
        self.calls.append(tuple(readings))
        raise OSError("disk unplugged")


class ExplodingStore:
    def get(self, key):
        raise ConnectionError("cache offline")

    def set_with_ttl(self, key, value, seconds):
        raise ConnectionError("cache offline")

    def delete_by_prefix(self, prefix):
        raise ConnectionError("cache offline")


def _record(id, character, reading, *, alternatives=(), element=None, strokes=8,
            usage=0, name=0, surname=None) -> CharacterRecord:
    return CharacterRecord(
        id=id,
        character=character,
        meaning="",
        strokes=strokes,
        korean_reading=reading,
        alternative_readings=alternatives,
        element=element,
        usage_frequency=usage,
        name_frequency=name,
        surname_priority=surname,
    )


KIM_RECORDS = (
    _record("h1", "金", "김", alternatives=("금",), element=Element.METAL, name=100, surname=1),
    _record("h2", "錦", "김", element=Element.METAL, name=50),
    _record("h3", "今", "김", element=Element.FIRE, name=10),
)


def _engine(repository, *, registry=None, store=None, **kwargs) -> HanjaSearchEngine:
    return HanjaSearchEngine(
        repository=repository,
        registry=registry or ConflictRegistry(InMemoryConflictStore()),
        cache=CacheLayer(store) if store is not None else None,
        **kwargs,
    )


def _ids(page) -> List[str]:
    return [item.id for item in page.items]


def test_first_and_second_page_do_not_overlap():
    engine = _engine(StaticRepository(KIM_RECORDS))

    first = engine.search(SearchQuery(reading="김", limit=2))
    second = engine.search(SearchQuery(reading="김", limit=2, cursor=first.next_cursor))

    assert _ids(first) == ["h1", "h2"]
    assert first.has_more is True
    assert first.total == 3
    assert _ids(second) == ["h3"]
    assert second.has_more is False
    assert not set(_ids(first)) & set(_ids(second))


def test_cursor_chain_visits_every_candidate_once(demo_repository, registry):
    engine = _engine(demo_repository, registry=registry)
    full = engine.search(SearchQuery(reading="현", limit=MAX_PAGE_SIZE))

    seen: List[str] = []
    cursor = None
    while True:
        page = engine.search(SearchQuery(reading="현", limit=2, cursor=cursor))
        seen.extend(_ids(page))
        if not page.has_more:
            break
        cursor = page.next_cursor

    assert seen == _ids(full)
    assert len(seen) == full.total == 5


def test_exact_multiple_ends_with_empty_page():
    engine = _engine(StaticRepository(KIM_RECORDS[:2]))

    first = engine.search(SearchQuery(reading="김", limit=2))
    tail = engine.search(SearchQuery(reading="김", limit=2, cursor=first.next_cursor))

    assert first.has_more is True
    assert tail.items == ()
    assert tail.has_more is False
    assert tail.next_cursor is None


def test_unknown_cursor_yields_empty_page():
    engine = _engine(StaticRepository(KIM_RECORDS))

    page = engine.search(SearchQuery(reading="김", cursor="missing"))

    assert page.items == ()
    assert page.total == 3


def test_expansion_merges_dueum_partners(demo_repository, registry):
    engine = _engine(demo_repository, registry=registry)

    page = engine.search(SearchQuery(reading="이"))

    assert [item.character for item in page.items] == ["李", "理", "利", "伊", "二"]


def test_duplicate_characters_are_returned_once():
    duplicate = _record("h9", "金", "금", element=Element.METAL, name=1)
    engine = _engine(StaticRepository(KIM_RECORDS + (duplicate,)))

    page = engine.search(SearchQuery(reading="금"))

    assert [item.character for item in page.items] == ["金"]
    assert page.total == 1


def test_surname_mode_ranks_by_priority_then_sort(demo_repository, registry):
    engine = _engine(demo_repository, registry=registry)

    plain = engine.search(SearchQuery(reading="현", sort="strokes"))
    surname = engine.search(SearchQuery(reading="현", surname_mode=True, sort="strokes"))

    assert plain.items[0].character == "玄"
    assert [item.character for item in surname.items] == ["玄", "炫", "現", "鉉", "賢"]
    assert surname.items[0].is_surname is True
    assert all(item.priority == 999 for item in surname.items[1:])


def test_strokes_sort_orders_ascending(demo_repository, registry):
    engine = _engine(demo_repository, registry=registry)

    page = engine.search(SearchQuery(reading="금", sort=SortMode.STROKES))

    assert [item.character for item in page.items] == ["今", "金", "琴", "錦"]


def test_element_sort_puts_masked_elements_last(demo_repository, registry):
    engine = _engine(demo_repository, registry=registry)

    page = engine.search(SearchQuery(reading="현", sort="element"))

    assert [item.character for item in page.items] == ["玄", "炫", "現", "鉉", "賢"]
    assert page.items[-1].element is None


def test_pending_conflict_hides_element(demo_repository, registry):
    engine = _engine(demo_repository, registry=registry)

    page = engine.search(SearchQuery(reading="현"))
    by_character = {item.character: item for item in page.items}

    assert by_character["賢"].element is None
    assert by_character["鉉"].element is Element.METAL


def test_resolved_conflict_shows_resolved_element(demo_repository, registry):
    engine = _engine(demo_repository, registry=registry)
    registry.update_conflict_status("賢", "resolved", "METAL", "KS_X_1001")

    page = engine.search(SearchQuery(reading="현"))
    by_character = {item.character: item for item in page.items}

    assert by_character["賢"].element is Element.METAL


def test_page_size_is_capped():
    records = [_record(f"h{index:03d}", chr(0x4E00 + index), "가") for index in range(60)]
    engine = _engine(StaticRepository(records))

    page = engine.search(SearchQuery(reading="가", limit=500))

    assert len(page.items) == MAX_PAGE_SIZE
    assert page.limit == MAX_PAGE_SIZE
    assert page.total == 60
    assert page.has_more is True


def test_empty_result_is_not_an_error():
    engine = _engine(StaticRepository(KIM_RECORDS))

    page = engine.search(SearchQuery(reading="뷁"))

    assert page.items == ()
    assert page.total == 0
    assert page.has_more is False


@pytest.mark.parametrize("reading", ["", "abc", "가" * 11, "金"])
def test_invalid_reading_fails_before_io(reading):
    repository = StaticRepository(KIM_RECORDS)
    store = InMemoryCacheStore()
    engine = _engine(repository, store=store)

    with pytest.raises(InvalidInput):
        engine.search(SearchQuery(reading=reading))

    assert repository.calls == []
    assert len(store) == 0


def test_invalid_limit_and_sort_are_rejected():
    with pytest.raises(InvalidInput):
        SearchQuery(reading="김", limit=0)
    with pytest.raises(InvalidInput):
        SearchQuery(reading="김", limit=True)
    with pytest.raises(InvalidInput):
        SearchQuery(reading="김", sort="alphabetical")
    with pytest.raises(InvalidInput):
        SearchQuery.from_params("김", limit="ten")


def test_repository_failure_surfaces_as_upstream_unavailable(caplog):
    engine = _engine(FailingRepository())

    with caplog.at_level("ERROR", logger="hanja_search.app.services.search_service"):
        with pytest.raises(UpstreamUnavailable) as excinfo:
            engine.search(SearchQuery(reading="김"))

    assert excinfo.value.retryable is True
    assert any("Search request failed" in record.message for record in caplog.records)
    assert engine.get_latest_telemetry()["counters"]["search.failed"] == 1


def test_cache_is_transparent():
    cached_repository = StaticRepository(KIM_RECORDS)
    cached = _engine(cached_repository, store=InMemoryCacheStore())
    uncached = _engine(StaticRepository(KIM_RECORDS))
    query = SearchQuery(reading="김", limit=2)

    first = cached.search(query)
    second = cached.search(query)

    assert first == second == uncached.search(query)
    assert len(cached_repository.calls) == 1
    assert cached.get_latest_telemetry()["counters"]["cache.hit"] == 1


def test_cache_faults_do_not_change_results():
    engine = _engine(StaticRepository(KIM_RECORDS), store=ExplodingStore())
    baseline = _engine(StaticRepository(KIM_RECORDS))
    query = SearchQuery(reading="김")

    assert engine.search(query) == baseline.search(query)


def test_cache_key_uses_normalized_reading():
    repository = StaticRepository(KIM_RECORDS)
    engine = _engine(repository, store=InMemoryCacheStore())

    engine.search(SearchQuery(reading=" 김 "))
    engine.search(SearchQuery(reading="김"))

    assert len(repository.calls) == 1


def test_warm_stores_first_pages_at_essential_tier():
    store = InMemoryCacheStore()
    repository = StaticRepository(KIM_RECORDS)
    engine = _engine(repository, store=store)

    warmed = engine.warm(("김", "이"))
    query = SearchQuery(reading="김", surname_mode=True, limit=10)
    key = engine.cache.compute_key(query, engine.cache.data_version)

    assert warmed == ("김", "이")
    assert len(store) == 2
    assert engine.cache.get(key) is not None
    assert engine.search(query).total == 3
    assert len(repository.calls) == 2


def test_warm_skips_unavailable_readings():
    engine = _engine(FailingRepository(), store=InMemoryCacheStore())

    assert engine.warm(("김",)) == ()


def test_telemetry_records_pipeline_stages():
    engine = _engine(StaticRepository(KIM_RECORDS), store=InMemoryCacheStore())

    engine.search(SearchQuery(reading="김"))
    snapshot = engine.get_latest_telemetry()

    assert snapshot["name"] == "hanja_search"
    assert set(snapshot["stages"]) == {"expand", "cache_lookup", "fetch", "assemble", "cache_store"}
    assert snapshot["metadata"]["readings"] == ["김"]
    assert snapshot["metadata"]["result.total"] == 3


def test_order_projections_keeps_id_as_final_tiebreaker():
    tied = [_record("b", "乙", "가"), _record("a", "甲", "가")]
    projections = [CharacterProjection.from_record(record, record.element) for record in tied]

    for mode in SortMode:
        assert [item.id for item in order_projections(projections, mode)] == ["a", "b"]


def test_paginate_reports_has_more_on_full_window():
    projections = [
        CharacterProjection.from_record(_record(f"h{index}", chr(0x4E00 + index), "가"), None)
        for index in range(3)
    ]

    window, next_cursor, has_more = paginate(projections, None, 3)
    rest, rest_cursor, rest_more = paginate(projections, "h0", 3)

    assert [item.id for item in window] == ["h0", "h1", "h2"]
    assert next_cursor == "h2"
    assert has_more is True
    assert [item.id for item in rest] == ["h1", "h2"]
    assert rest_cursor == "h2"
    assert rest_more is False
