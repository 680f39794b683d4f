"""Reading normalization and dueum (두음법칙) expansion."""

from __future__ import annotations

import unicodedata
from typing import Any, Dict, Iterable, Tuple

from .errors import InvalidInput
from .models import ReadingEquivalenceClass

MAX_READING_LENGTH = 10

HANGUL_SYLLABLE_START = 0xAC00  # '가'
HANGUL_SYLLABLE_END = 0xD7A3  # '힣'

# Initial-sound alternation pairs: (word-initial form, original ㄹ/ㄴ form).
DUEUM_PAIRS: Tuple[Tuple[str, str], ...] = (
    ("이", "리"),
    ("유", "류"),
    ("임", "림"),
    ("노", "로"),
    ("나", "라"),
    ("양", "량"),
    ("여", "려"),
    ("연", "련"),
    ("열", "렬"),
    ("염", "렴"),
    ("영", "령"),
    ("예", "례"),
    ("요", "료"),
    ("용", "룡"),
    ("우", "루"),
    ("육", "륙"),
    ("윤", "륜"),
    ("은", "른"),
    ("을", "를"),
    ("음", "름"),
    ("읍", "릅"),
    ("응", "릉"),
    ("인", "린"),
    ("일", "릴"),
    ("익", "릭"),
)


def _build_partner_table(pairs: Iterable[Tuple[str, str]]) -> Dict[str, Tuple[str, ...]]:
    table: Dict[str, Tuple[str, ...]] = {}
    for left, right in pairs:
        table[left] = tuple(dict.fromkeys((*table.get(left, ()), right)))
        table[right] = tuple(dict.fromkeys((*table.get(right, ()), left)))
    return table


def is_hangul_syllable(char: str) -> bool:
    return HANGUL_SYLLABLE_START <= ord(char) <= HANGUL_SYLLABLE_END


class PhoneticExpander:
    """Normalizes readings and expands them to their dueum equivalents.

    Partners come only from the explicit pair table, in both directions; a
    partner's own partners are not followed.
    """

    def __init__(
        self,
        pairs: Iterable[Tuple[str, str]] = DUEUM_PAIRS,
        *,
        max_length: int = MAX_READING_LENGTH,
    ) -> None:
        self._partners = _build_partner_table(pairs)
        self.max_length = max_length

    def normalize(self, reading: Any) -> str:
        if not isinstance(reading, str):
            raise InvalidInput("Reading parameter is required")
        normalized = unicodedata.normalize("NFKC", reading).strip()
        if not normalized:
            raise InvalidInput("Reading cannot be empty")
        if len(normalized) > self.max_length:
            raise InvalidInput(f"Reading cannot exceed {self.max_length} characters")
        if not all(is_hangul_syllable(char) for char in normalized):
            raise InvalidInput("Only Korean syllables are allowed")
        return normalized

    def partners(self, reading: str) -> Tuple[str, ...]:
        return self._partners.get(self.normalize(reading), ())

    def expand(self, reading: Any) -> ReadingEquivalenceClass:
        normalized = self.normalize(reading)
        readings = tuple(dict.fromkeys((normalized, *self._partners.get(normalized, ()))))
        return ReadingEquivalenceClass(normalized=normalized, readings=readings)


DEFAULT_EXPANDER = PhoneticExpander()

__all__ = [
    "DUEUM_PAIRS",
    "DEFAULT_EXPANDER",
    "MAX_READING_LENGTH",
    "PhoneticExpander",
    "is_hangul_syllable",
]
