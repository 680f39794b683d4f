"""Rendering of search pages and errors into the public response envelope."""

from __future__ import annotations

from typing import Any, Dict

from hanja_search.core import CharacterProjection, HanjaSearchError, SearchResultPage


def format_character(item: CharacterProjection) -> Dict[str, Any]:
    return {
        "id": item.id,
        "character": item.character,
        "meaning": item.meaning,
        "strokes": item.strokes,
        "element": item.element.value if item.element is not None else None,
        "koreanReading": item.korean_reading,
        "alternativeReadings": list(item.alternative_readings),
        "isSurname": item.is_surname,
        "priority": item.priority,
        "usageFrequency": item.usage_frequency,
        "nameFrequency": item.name_frequency,
    }


def format_search_response(page: SearchResultPage) -> Dict[str, Any]:
    """Return ``{"data": [...], "pagination": {...}}``; ``cursor`` is omitted when absent."""

    pagination: Dict[str, Any] = {
        "total": page.total,
        "limit": page.limit,
        "hasMore": page.has_more,
    }
    if page.next_cursor is not None:
        pagination["cursor"] = page.next_cursor
    return {
        "data": [format_character(item) for item in page.items],
        "pagination": pagination,
    }


def format_error(error: HanjaSearchError) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"code": error.code, "message": str(error)}
    if error.retryable:
        payload["retryable"] = True
    return payload


__all__ = ["format_character", "format_error", "format_search_response"]
