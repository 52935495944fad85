from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Sequence

from core.models import CanonicalRecord


class KindFilter(str, Enum):
    ALL = "Todos"
    BUDGET = "Mes"
    ACTUAL = "Real"


@dataclass(frozen=True)
class FilterSpec:
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    kind: KindFilter = KindFilter.ALL
    categories: FrozenSet[str] = field(default_factory=frozenset)
    channels: FrozenSet[str] = field(default_factory=frozenset)
    search_text: str = ""

    @property
    def is_empty(self) -> bool:
        return (
            self.date_from is None
            and self.date_to is None
            and self.kind is KindFilter.ALL
            and not self.categories
            and not self.channels
            and not self.search_text
        )


def _as_date(value: object) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _as_str_set(values: Optional[Iterable[object]]) -> FrozenSet[str]:
    if not values:
        return frozenset()
    return frozenset(str(v) for v in values if v is not None and str(v) != "")


def _as_kind(value: object) -> KindFilter:
    if isinstance(value, KindFilter):
        return value
    try:
        return KindFilter(str(value))
    except ValueError:
        return KindFilter.ALL


def normalize_filters(raw: dict) -> FilterSpec:
    """Build a FilterSpec from loosely typed UI/API input."""
    raw = raw or {}
    return FilterSpec(
        date_from=_as_date(raw.get("date_from")),
        date_to=_as_date(raw.get("date_to")),
        kind=_as_kind(raw.get("kind", KindFilter.ALL)),
        categories=_as_str_set(raw.get("categories")),
        channels=_as_str_set(raw.get("channels")),
        # Kept verbatim: the row-number match is case-sensitive on the raw text.
        search_text=str(raw.get("search_text") or ""),
    )


def matches(record: CanonicalRecord, spec: FilterSpec) -> bool:
    if spec.date_from is not None and record.date < spec.date_from:
        return False
    if spec.date_to is not None and record.date > spec.date_to:
        return False
    if spec.kind is not KindFilter.ALL and record.kind.value != spec.kind.value:
        return False
    if spec.categories and record.category not in spec.categories:
        return False
    if spec.channels and record.channel not in spec.channels:
        return False
    if spec.search_text:
        in_description = spec.search_text.lower() in record.description.lower()
        in_row_number = spec.search_text in str(record.row_number)
        if not in_description and not in_row_number:
            return False
    return True


def apply_filters(records: Sequence[CanonicalRecord], spec: FilterSpec) -> List[CanonicalRecord]:
    if spec.is_empty:
        return list(records)
    return [r for r in records if matches(r, spec)]
