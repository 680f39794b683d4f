"""Reading expansion, conflict masking and the shared data model."""

from .conflicts import (
    AUTHORITY_SOURCES,
    DEFAULT_CONFLICTS,
    ConflictRegistry,
    ConflictStore,
    InMemoryConflictStore,
    authority_rank,
)
from .errors import ConflictStateError, HanjaSearchError, InvalidInput, UpstreamUnavailable
from .models import (
    CharacterProjection,
    CharacterRecord,
    ConflictEntry,
    ConflictPriority,
    ConflictStats,
    ConflictStatus,
    Element,
    ReadingEquivalenceClass,
    SearchQuery,
    SearchResultPage,
    SortMode,
)
from .phonetic import DEFAULT_EXPANDER, DUEUM_PAIRS, PhoneticExpander

__all__ = [
    "AUTHORITY_SOURCES",
    "DEFAULT_CONFLICTS",
    "DEFAULT_EXPANDER",
    "DUEUM_PAIRS",
    "CharacterProjection",
    "CharacterRecord",
    "ConflictEntry",
    "ConflictPriority",
    "ConflictRegistry",
    "ConflictStateError",
    "ConflictStats",
    "ConflictStatus",
    "ConflictStore",
    "Element",
    "HanjaSearchError",
    "InMemoryConflictStore",
    "InvalidInput",
    "PhoneticExpander",
    "ReadingEquivalenceClass",
    "SearchQuery",
    "SearchResultPage",
    "SortMode",
    "UpstreamUnavailable",
    "authority_rank",
]
