from __future__ import annotations

import math
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Sequence, Tuple

from core.models import CanonicalRecord
from core.settings import PAGE_SIZE


SortField = Literal["date", "kind", "category", "channel", "amount", "description"]
SortDirection = Literal["asc", "desc"]
SORT_FIELDS = ("date", "kind", "category", "channel", "amount", "description")


@dataclass(frozen=True)
class TablePage:
    items: List[CanonicalRecord] = field(default_factory=list)
    total_pages: int = 1
    total_count: int = 0
    page: int = 1


def collation_key(value: str) -> Tuple[str, str]:
    """Accent- and case-insensitive ordering; on a case-only tie lowercase comes first."""
    decomposed = unicodedata.normalize("NFKD", value)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), value.swapcase()


_SORT_KEYS: Dict[str, Callable[[CanonicalRecord], Any]] = {
    "date": lambda r: r.date.toordinal(),
    "amount": lambda r: r.amount,
    "kind": lambda r: collation_key(r.kind.value),
    "category": lambda r: collation_key(r.category),
    "channel": lambda r: collation_key(r.channel),
    "description": lambda r: collation_key(r.description),
}


def sort_records(
    records: Sequence[CanonicalRecord],
    sort_field: SortField = "date",
    direction: SortDirection = "desc",
) -> List[CanonicalRecord]:
    if sort_field not in _SORT_KEYS:
        raise ValueError(f"Unknown sort field: {sort_field}")
    if direction not in ("asc", "desc"):
        raise ValueError(f"Unknown sort direction: {direction}")
    # sorted() is stable in both directions, so ties keep input order.
    return sorted(records, key=_SORT_KEYS[sort_field], reverse=(direction == "desc"))


def total_pages(count: int, page_size: int = PAGE_SIZE) -> int:
    return max(1, math.ceil(count / page_size))


def clamp_page(page: int, pages: int) -> int:
    return max(1, min(pages, page))


def project(
    records: Sequence[CanonicalRecord],
    sort_field: SortField = "date",
    direction: SortDirection = "desc",
    page: int = 1,
    page_size: int = PAGE_SIZE,
) -> TablePage:
    """Sort and slice one page. Out-of-range pages give an empty slice."""
    ordered = sort_records(records, sort_field, direction)
    start = (page - 1) * page_size
    items = ordered[start : start + page_size] if page >= 1 else []
    return TablePage(
        items=items,
        total_pages=total_pages(len(ordered), page_size),
        total_count=len(ordered),
        page=page,
    )
