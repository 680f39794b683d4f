from __future__ import annotations

import pytest

from hanja_search.core import (
    DEFAULT_CONFLICTS,
    ConflictEntry,
    ConflictRegistry,
    ConflictStateError,
    ConflictStatus,
    Element,
    InMemoryConflictStore,
    authority_rank,
)


def test_default_conflicts_are_pending_and_high_priority(registry):
    conflicts = registry.list_conflicts()

    assert {entry.character for entry in conflicts} == {"賢", "星"}
    assert all(entry.is_pending for entry in conflicts)
    assert all(entry.priority.value == "high" for entry in conflicts)


def test_pending_conflict_masks_element(registry):
    assert registry.is_conflicted("賢")
    assert registry.get_masked_element("賢", Element.WOOD) is None


def test_character_without_conflict_passes_element_through(registry):
    assert not registry.is_conflicted("金")
    assert registry.get_masked_element("金", Element.METAL) is Element.METAL
    assert registry.get_masked_element("金", None) is None


def test_resolved_conflict_substitutes_resolved_element(registry):
    updated = registry.update_conflict_status(
        "賢", "resolved", resolved_element="金", source="KS_X_1001"
    )

    assert updated.status is ConflictStatus.RESOLVED
    assert updated.resolved_element is Element.METAL
    assert updated.authority_source == "KS_X_1001"
    assert registry.get_masked_element("賢", Element.WOOD) is Element.METAL


def test_resolution_replaces_entry_without_mutating_original(registry, conflict_store):
    before = conflict_store.get("星")

    registry.update_conflict_status("星", ConflictStatus.RESOLVED, Element.FIRE, "Unicode_Unihan")

    assert before.is_pending
    assert conflict_store.get("星") is not before


@pytest.mark.parametrize(
    "kwargs",
    [
        {"resolved_element": None, "source": "KS_X_1001"},
        {"resolved_element": "WOOD", "source": None},
        {"resolved_element": "WOOD", "source": ""},
        {"resolved_element": "WOOD", "source": "Wikipedia"},
    ],
)
def test_resolution_requires_element_and_known_source(registry, kwargs):
    with pytest.raises(ConflictStateError):
        registry.update_conflict_status("賢", "resolved", **kwargs)

    assert registry.get_conflict_info("賢").is_pending


def test_resolved_entries_cannot_be_reopened_or_resolved_again(registry):
    registry.update_conflict_status("賢", "resolved", "WOOD", "Kangxi_Dictionary")

    with pytest.raises(ConflictStateError):
        registry.update_conflict_status("賢", "pending")
    with pytest.raises(ConflictStateError):
        registry.update_conflict_status("賢", "resolved", "METAL", "KS_X_1001")

    assert registry.get_masked_element("賢", None) is Element.WOOD


def test_pending_to_pending_is_a_no_op(registry):
    before = registry.get_conflict_info("星")

    assert registry.update_conflict_status("星", "pending") is before


def test_unknown_character_and_status_are_rejected(registry):
    with pytest.raises(ConflictStateError):
        registry.update_conflict_status("金", "resolved", "METAL", "KS_X_1001")
    with pytest.raises(ConflictStateError):
        registry.update_conflict_status("賢", "withdrawn")


def test_resolution_stats_are_monotonic(registry):
    initial = registry.get_conflict_resolution_stats()
    assert (initial.total, initial.pending, initial.resolved) == (2, 2, 0)
    assert initial.resolution_rate == 0.0

    registry.update_conflict_status("賢", "resolved", "METAL", "KS_X_1001")
    halfway = registry.get_conflict_resolution_stats()
    registry.update_conflict_status("星", "resolved", "FIRE", "Traditional_Reference")
    final = registry.get_conflict_resolution_stats()

    assert initial.resolved <= halfway.resolved <= final.resolved
    assert halfway.resolution_rate == pytest.approx(0.5)
    assert final.to_dict() == {"total": 2, "pending": 0, "resolved": 2, "resolution_rate": 1.0}


def test_empty_registry_reports_zero_rate():
    stats = ConflictRegistry(InMemoryConflictStore()).get_conflict_resolution_stats()

    assert stats.total == 0
    assert stats.resolution_rate == 0.0


def test_register_accepts_only_new_pending_entries(registry):
    entry = ConflictEntry(character="現", base_element="金", expanded_element="火", reading="현")

    registry.register(entry)
    assert registry.get_masked_element("現", Element.METAL) is None

    with pytest.raises(ConflictStateError):
        registry.register(entry)


def test_resolved_entry_requires_resolution_fields():
    with pytest.raises(ConflictStateError):
        ConflictEntry(character="賢", base_element="WOOD", expanded_element="METAL", status="resolved")
    with pytest.raises(ConflictStateError):
        ConflictEntry(
            character="賢",
            base_element="WOOD",
            expanded_element="METAL",
            resolved_element="WOOD",
        )


def test_store_reset_restores_seed_state(registry, conflict_store):
    registry.update_conflict_status("賢", "resolved", "METAL", "KS_X_1001")

    conflict_store.reset(DEFAULT_CONFLICTS)

    assert registry.get_conflict_info("賢").is_pending
    assert len(conflict_store) == 2


def test_conflict_entry_serializes_enum_values(registry):
    payload = registry.get_conflict_info("星").to_dict()

    assert payload["base_element"] == "FIRE"
    assert payload["expanded_element"] == "METAL"
    assert payload["status"] == "pending"
    assert payload["resolved_element"] is None


def test_authority_rank_orders_sources():
    assert authority_rank("KS_X_1001") < authority_rank("Statistical_Analysis")
    with pytest.raises(ConflictStateError):
        authority_rank("Blog")


@pytest.mark.parametrize(
    "value, expected",
    [
        ("木", Element.WOOD),
        ("화", Element.FIRE),
        ("흙", Element.EARTH),
        ("metal", Element.METAL),
        ("WATER", Element.WATER),
    ],
)
def test_element_parse_accepts_every_notation(value, expected):
    parsed = Element.parse(value)

    assert parsed is expected
    assert Element.parse(parsed.korean) is expected
    assert Element.parse(parsed.cjk) is expected
