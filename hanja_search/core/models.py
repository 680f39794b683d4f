"""Data model shared by the reading expander, conflict registry and search engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import ConflictStateError, InvalidInput

SURNAME_PRIORITY_SENTINEL = 999
DEFAULT_LIMIT = 20


class Element(str, Enum):
    """Five-phase (오행) classification, declared in sort order."""

    WOOD = "WOOD"
    FIRE = "FIRE"
    EARTH = "EARTH"
    METAL = "METAL"
    WATER = "WATER"

    @property
    def rank(self) -> int:
        return _ELEMENT_ORDER.index(self)

    @property
    def korean(self) -> str:
        return _ELEMENT_KOREAN[self]

    @property
    def cjk(self) -> str:
        return _ELEMENT_CJK[self]

    @classmethod
    def parse(cls, value: Any) -> "Element":
        """Map any supported notation (木, 목, 나무, wood, WOOD) to an element."""

        if isinstance(value, Element):
            return value
        if value is None:
            raise InvalidInput("Element value is missing")
        normalized = str(value).strip()
        if not normalized:
            raise InvalidInput("Element value is empty")
        element = _ELEMENT_ALIASES.get(normalized) or _ELEMENT_ALIASES.get(normalized.lower())
        if element is None:
            raise InvalidInput(f"Invalid element value: {value!r}")
        return element


_ELEMENT_ORDER = tuple(Element)

_ELEMENT_KOREAN = {
    Element.WOOD: "목",
    Element.FIRE: "화",
    Element.EARTH: "토",
    Element.METAL: "금",
    Element.WATER: "수",
}

_ELEMENT_CJK = {
    Element.WOOD: "木",
    Element.FIRE: "火",
    Element.EARTH: "土",
    Element.METAL: "金",
    Element.WATER: "水",
}

_ELEMENT_ALIASES: Dict[str, Element] = {
    "나무": Element.WOOD,
    "불": Element.FIRE,
    "흙": Element.EARTH,
    "쇠": Element.METAL,
    "철": Element.METAL,
    "물": Element.WATER,
}
for _element in Element:
    _ELEMENT_ALIASES[_ELEMENT_KOREAN[_element]] = _element
    _ELEMENT_ALIASES[_ELEMENT_CJK[_element]] = _element
    _ELEMENT_ALIASES[_element.value.lower()] = _element
del _element


def parse_optional_element(value: Any) -> Optional[Element]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return Element.parse(value)


class ConflictStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class ConflictPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SortMode(str, Enum):
    POPULARITY = "popularity"
    STROKES = "strokes"
    ELEMENT = "element"

    @classmethod
    def parse(cls, value: Any) -> "SortMode":
        if isinstance(value, SortMode):
            return value
        if value is None or not str(value).strip():
            return cls.POPULARITY
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidInput(f"Unknown sort mode: {value!r}") from None


@dataclass(frozen=True)
class CharacterRecord:
    """One dictionary row as loaded by the offline data path."""

    id: str
    character: str
    meaning: str
    strokes: int
    korean_reading: str
    alternative_readings: Tuple[str, ...] = ()
    element: Optional[Element] = None
    usage_frequency: int = 0
    name_frequency: int = 0
    surname_priority: Optional[int] = None

    def __post_init__(self) -> None:
        unique = tuple(dict.fromkeys(r for r in self.alternative_readings if r))
        object.__setattr__(self, "alternative_readings", unique)
        object.__setattr__(self, "element", parse_optional_element(self.element))

    @property
    def readings(self) -> Tuple[str, ...]:
        return tuple(dict.fromkeys((self.korean_reading, *self.alternative_readings)))

    @property
    def effective_priority(self) -> int:
        if self.surname_priority is None:
            return SURNAME_PRIORITY_SENTINEL
        return self.surname_priority


@dataclass(frozen=True)
class ConflictEntry:
    """Disagreement between two element derivations for one character.

    ``resolved_element`` and ``authority_source`` are set exactly when the
    entry is resolved.
    """

    character: str
    base_element: Element
    expanded_element: Element
    status: ConflictStatus = ConflictStatus.PENDING
    resolved_element: Optional[Element] = None
    authority_source: Optional[str] = None
    priority: ConflictPriority = ConflictPriority.MEDIUM
    meaning: str = ""
    reading: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_element", Element.parse(self.base_element))
        object.__setattr__(self, "expanded_element", Element.parse(self.expanded_element))
        object.__setattr__(self, "status", ConflictStatus(self.status))
        object.__setattr__(self, "priority", ConflictPriority(self.priority))
        object.__setattr__(self, "resolved_element", parse_optional_element(self.resolved_element))

        if self.status is ConflictStatus.RESOLVED:
            if self.resolved_element is None or not self.authority_source:
                raise ConflictStateError(
                    f"Resolved conflict for {self.character!r} needs a resolved element and source"
                )
        elif self.resolved_element is not None or self.authority_source is not None:
            raise ConflictStateError(
                f"Pending conflict for {self.character!r} cannot carry a resolution"
            )

    @property
    def is_pending(self) -> bool:
        return self.status is ConflictStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        for key in ("base_element", "expanded_element", "resolved_element", "status", "priority"):
            value = payload[key]
            payload[key] = value.value if isinstance(value, Enum) else value
        return payload


@dataclass(frozen=True)
class ConflictStats:
    total: int
    pending: int
    resolved: int
    resolution_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReadingEquivalenceClass:
    """Readings treated as interchangeable for one query; ``normalized`` comes first."""

    normalized: str
    readings: Tuple[str, ...]

    def __iter__(self):
        return iter(self.readings)

    def __contains__(self, reading: object) -> bool:
        return reading in self.readings

    def __len__(self) -> int:
        return len(self.readings)


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


@dataclass(frozen=True)
class SearchQuery:
    reading: str
    surname_mode: bool = False
    limit: int = DEFAULT_LIMIT
    cursor: Optional[str] = None
    sort: SortMode = SortMode.POPULARITY

    def __post_init__(self) -> None:
        object.__setattr__(self, "sort", SortMode.parse(self.sort))
        if isinstance(self.limit, bool) or not isinstance(self.limit, int):
            raise InvalidInput(f"Limit must be an integer, got {self.limit!r}")
        if self.limit < 1:
            raise InvalidInput("Limit must be a positive integer")
        if self.cursor is not None and not str(self.cursor).strip():
            object.__setattr__(self, "cursor", None)

    @classmethod
    def from_params(
        cls,
        reading: Any,
        surname_mode: Any = False,
        limit: Any = None,
        cursor: Any = None,
        sort: Any = None,
    ) -> "SearchQuery":
        """Build a query from loosely typed request parameters."""

        if limit is None or (isinstance(limit, str) and not limit.strip()):
            parsed_limit = DEFAULT_LIMIT
        else:
            try:
                parsed_limit = int(str(limit).strip())
            except ValueError:
                raise InvalidInput(f"Limit must be an integer, got {limit!r}") from None
        return cls(
            reading=reading,
            surname_mode=_coerce_bool(surname_mode),
            limit=parsed_limit,
            cursor=str(cursor) if cursor is not None else None,
            sort=SortMode.parse(sort),
        )


@dataclass(frozen=True)
class CharacterProjection:
    """Search output row; ``element`` is already masked."""

    id: str
    character: str
    meaning: str
    strokes: int
    element: Optional[Element]
    korean_reading: str
    alternative_readings: Tuple[str, ...]
    is_surname: bool
    priority: int
    usage_frequency: int
    name_frequency: int

    @classmethod
    def from_record(
        cls, record: CharacterRecord, element: Optional[Element]
    ) -> "CharacterProjection":
        return cls(
            id=record.id,
            character=record.character,
            meaning=record.meaning,
            strokes=record.strokes,
            element=element,
            korean_reading=record.korean_reading,
            alternative_readings=record.alternative_readings,
            is_surname=record.surname_priority is not None,
            priority=record.effective_priority,
            usage_frequency=record.usage_frequency,
            name_frequency=record.name_frequency,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["element"] = self.element.value if self.element is not None else None
        payload["alternative_readings"] = list(self.alternative_readings)
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CharacterProjection":
        return cls(
            id=str(payload["id"]),
            character=payload["character"],
            meaning=payload["meaning"],
            strokes=int(payload["strokes"]),
            element=parse_optional_element(payload.get("element")),
            korean_reading=payload["korean_reading"],
            alternative_readings=tuple(payload.get("alternative_readings") or ()),
            is_surname=bool(payload["is_surname"]),
            priority=int(payload["priority"]),
            usage_frequency=int(payload["usage_frequency"]),
            name_frequency=int(payload["name_frequency"]),
        )


@dataclass(frozen=True)
class SearchResultPage:
    items: Tuple[CharacterProjection, ...]
    total: int
    limit: int
    next_cursor: Optional[str]
    has_more: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "limit": self.limit,
            "next_cursor": self.next_cursor,
            "has_more": self.has_more,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SearchResultPage":
        return cls(
            items=tuple(CharacterProjection.from_dict(item) for item in payload["items"]),
            total=int(payload["total"]),
            limit=int(payload["limit"]),
            next_cursor=payload.get("next_cursor"),
            has_more=bool(payload["has_more"]),
        )


__all__ = [
    "Element",
    "ConflictStatus",
    "ConflictPriority",
    "SortMode",
    "CharacterRecord",
    "ConflictEntry",
    "ConflictStats",
    "ReadingEquivalenceClass",
    "SearchQuery",
    "CharacterProjection",
    "SearchResultPage",
    "SURNAME_PRIORITY_SENTINEL",
    "DEFAULT_LIMIT",
    "parse_optional_element",
]
