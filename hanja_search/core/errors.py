"""Exception taxonomy for hanja search."""

from __future__ import annotations


class HanjaSearchError(Exception):
    """Base class for errors raised by :mod:`hanja_search`."""

    code = "INTERNAL_ERROR"
    retryable = False


class InvalidInput(HanjaSearchError, ValueError):
    """Malformed, oversized or non-Hangul input; raised before any I/O."""

    code = "INVALID_INPUT"


class UpstreamUnavailable(HanjaSearchError):
    """The persistence backend failed; callers may retry with backoff."""

    code = "UPSTREAM_UNAVAILABLE"
    retryable = True


class ConflictStateError(HanjaSearchError):
    """An element-conflict update that the state machine does not allow."""

    code = "CONFLICT_STATE"


__all__ = [
    "HanjaSearchError",
    "InvalidInput",
    "UpstreamUnavailable",
    "ConflictStateError",
]
