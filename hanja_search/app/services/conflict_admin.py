"""Internal administration surface over the conflict registry."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from hanja_search.core import ConflictRegistry, ConflictStatus
from hanja_search.utils.observability import get_logger

from .cache import SEARCH_KEY_PREFIX, CacheLayer


class ConflictAdminService:
    """Reads and updates conflict entries for operators.

    Resolving an entry changes what searches may show for the character, so
    cached search pages are dropped after every successful resolution.
    """

    def __init__(self, registry: ConflictRegistry, cache: Optional[CacheLayer] = None) -> None:
        self.registry = registry
        self.cache = cache
        self._logger = get_logger(__name__).bind(component="conflict_admin")

    def list_conflicts(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.registry.list_conflicts()]

    def get_conflict(self, character: str) -> Optional[Dict[str, Any]]:
        entry = self.registry.get_conflict_info(character)
        return entry.to_dict() if entry is not None else None

    def update_status(
        self,
        character: str,
        status: ConflictStatus | str,
        resolved_element: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Dict[str, Any]:
        before = self.registry.get_conflict_info(character)
        entry = self.registry.update_conflict_status(
            character, status, resolved_element=resolved_element, source=source
        )
        if entry is not before and self.cache is not None:
            removed = self.cache.invalidate(SEARCH_KEY_PREFIX + "*")
            self._logger.info(
                "Search cache cleared after conflict update",
                context={"character": character, "removed": removed},
            )
        return entry.to_dict()

    def get_stats(self) -> Dict[str, Any]:
        return self.registry.get_conflict_resolution_stats().to_dict()


__all__ = ["ConflictAdminService"]
