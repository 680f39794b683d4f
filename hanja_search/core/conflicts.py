"""Element-classification conflicts and the masking policy built on them.

A character whose element derivations disagree gets a :class:`ConflictEntry`.
While the entry is pending its element is hidden from search results; once an
authority source settles it, the resolved element replaces whatever the
dictionary row says.  Entries only ever move from pending to resolved.
"""

from __future__ import annotations

import dataclasses
import threading
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from .errors import ConflictStateError
from .models import (
    ConflictEntry,
    ConflictPriority,
    ConflictStats,
    ConflictStatus,
    Element,
    parse_optional_element,
)
from ..utils.observability import create_counter, get_logger

# Ordered from most to least authoritative.
AUTHORITY_SOURCES: Tuple[str, ...] = (
    "KS_X_1001",
    "Unicode_Unihan",
    "Kangxi_Dictionary",
    "Korean_National_Dictionary",
    "Traditional_Reference",
    "Statistical_Analysis",
)

DEFAULT_CONFLICTS: Tuple[ConflictEntry, ...] = (
    ConflictEntry(
        character="賢",
        meaning="어질",
        reading="현",
        base_element=Element.WOOD,
        expanded_element=Element.METAL,
        priority=ConflictPriority.HIGH,
        reason="Base data shows 목(wood), expanded data shows 金(metal)",
    ),
    ConflictEntry(
        character="星",
        meaning="별",
        reading="성",
        base_element=Element.FIRE,
        expanded_element=Element.METAL,
        priority=ConflictPriority.HIGH,
        reason="Base data shows 화(fire), expanded data shows 金(metal)",
    ),
)


def authority_rank(source: str) -> int:
    """Position of ``source`` in :data:`AUTHORITY_SOURCES` (0 is strongest)."""

    try:
        return AUTHORITY_SOURCES.index(source)
    except ValueError:
        raise ConflictStateError(f"Unknown authority source: {source!r}") from None


class ConflictStore(Protocol):
    """Storage for conflict entries, keyed by character."""

    def get(self, character: str) -> Optional[ConflictEntry]:
        ...

    def all(self) -> List[ConflictEntry]:
        ...

    def add(self, entry: ConflictEntry) -> None:
        ...

    def replace(self, expected: ConflictEntry, updated: ConflictEntry) -> bool:
        ...


class InMemoryConflictStore:
    """Thread-safe in-process store holding immutable entries.

    ``replace`` swaps a whole entry under the lock, and only if the current
    entry is still ``expected``, so readers never see a partial update.
    ``seed`` and ``reset`` belong to data loading and test fixtures; they
    bypass the pending-to-resolved state machine.
    """

    def __init__(self, entries: Optional[Iterable[ConflictEntry]] = None) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, ConflictEntry] = {}
        if entries is not None:
            self.seed(entries)

    def get(self, character: str) -> Optional[ConflictEntry]:
        return self._entries.get(character)

    def all(self) -> List[ConflictEntry]:
        with self._lock:
            return list(self._entries.values())

    def add(self, entry: ConflictEntry) -> None:
        with self._lock:
            if entry.character in self._entries:
                raise ConflictStateError(f"Conflict already registered for {entry.character!r}")
            self._entries[entry.character] = entry

    def replace(self, expected: ConflictEntry, updated: ConflictEntry) -> bool:
        with self._lock:
            if self._entries.get(expected.character) is not expected:
                return False
            self._entries[updated.character] = updated
            return True

    def seed(self, entries: Iterable[ConflictEntry]) -> None:
        with self._lock:
            for entry in entries:
                self._entries[entry.character] = entry

    def reset(self, entries: Optional[Iterable[ConflictEntry]] = None) -> None:
        with self._lock:
            self._entries = {entry.character: entry for entry in (entries or ())}

    def __len__(self) -> int:
        return len(self._entries)


class ConflictRegistry:
    """Answers conflict queries and applies the pending-to-resolved transition."""

    def __init__(self, store: Optional[ConflictStore] = None) -> None:
        self.store = store if store is not None else InMemoryConflictStore(DEFAULT_CONFLICTS)
        self._logger = get_logger(__name__).bind(component="conflict_registry")
        self._metric_updates = create_counter(
            "hanja_conflict_updates_total",
            "Conflict status updates applied through the registry.",
            label_names=("status",),
        )

    def is_conflicted(self, character: str) -> bool:
        return self.store.get(character) is not None

    def get_conflict_info(self, character: str) -> Optional[ConflictEntry]:
        return self.store.get(character)

    def list_conflicts(self) -> List[ConflictEntry]:
        return self.store.all()

    def get_masked_element(
        self, character: str, requested_element: Optional[Element]
    ) -> Optional[Element]:
        """Return the element that may be shown for ``character``.

        No entry passes ``requested_element`` through, a pending entry hides
        it, and a resolved entry substitutes its resolved element.
        """

        entry = self.store.get(character)
        if entry is None:
            return requested_element
        if entry.is_pending:
            return None
        return entry.resolved_element

    def register(self, entry: ConflictEntry) -> ConflictEntry:
        if not entry.is_pending:
            raise ConflictStateError("New conflicts must be registered as pending")
        self.store.add(entry)
        self._logger.info(
            "Conflict registered",
            context={"character": entry.character, "priority": entry.priority.value},
        )
        return entry

    def update_conflict_status(
        self,
        character: str,
        status: ConflictStatus | str,
        resolved_element: Optional[Element | str] = None,
        source: Optional[str] = None,
    ) -> ConflictEntry:
        try:
            target = ConflictStatus(status)
        except ValueError:
            raise ConflictStateError(f"Unknown conflict status: {status!r}") from None
        current = self.store.get(character)
        if current is None:
            raise ConflictStateError(f"No conflict registered for {character!r}")

        if target is ConflictStatus.PENDING:
            if not current.is_pending:
                raise ConflictStateError(f"Conflict for {character!r} is already resolved")
            return current

        if not current.is_pending:
            raise ConflictStateError(f"Conflict for {character!r} is already resolved")
        element = parse_optional_element(resolved_element)
        if element is None or not source:
            raise ConflictStateError("Resolving a conflict requires a resolved element and a source")
        authority_rank(source)

        updated = dataclasses.replace(
            current,
            status=ConflictStatus.RESOLVED,
            resolved_element=element,
            authority_source=source,
        )
        if not self.store.replace(current, updated):
            raise ConflictStateError(f"Conflict for {character!r} changed during update")

        self._metric_updates.labels(status=target.value).inc()
        self._logger.info(
            "Conflict resolved",
            context={
                "character": character,
                "resolved_element": element.value,
                "source": source,
            },
        )
        return updated

    def get_conflict_resolution_stats(self) -> ConflictStats:
        entries = self.store.all()
        total = len(entries)
        resolved = sum(1 for entry in entries if entry.status is ConflictStatus.RESOLVED)
        pending = total - resolved
        rate = resolved / total if total else 0.0
        return ConflictStats(total=total, pending=pending, resolved=resolved, resolution_rate=rate)


__all__ = [
    "AUTHORITY_SOURCES",
    "DEFAULT_CONFLICTS",
    "ConflictRegistry",
    "ConflictStore",
    "InMemoryConflictStore",
    "authority_rank",
]
