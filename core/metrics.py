from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, List, Literal, Sequence

import pandas as pd

from core.formatters import format_date
from core.models import CanonicalRecord, Kind


NO_DATA_LABEL = "Sin datos"
NO_CATEGORY = "N/A"

GroupKey = Literal["category", "channel", "date"]
GROUP_KEYS = ("category", "channel", "date")
FRAME_COLUMNS = ["row_number", "date", "kind", "category", "channel", "amount", "budget", "actual"]


@dataclass(frozen=True)
class GroupTotals:
    key: Any
    budget: float
    actual: float

    @property
    def deviation(self) -> float:
        """Positive means under budget."""
        return self.budget - self.actual

    def to_dict(self) -> Dict[str, Any]:
        key = self.key.isoformat() if isinstance(self.key, date) else self.key
        return {"key": key, "budget": self.budget, "actual": self.actual, "deviation": self.deviation}


@dataclass(frozen=True)
class TopCategory:
    name: str = NO_CATEGORY
    amount: float = 0.0


@dataclass(frozen=True)
class KpiSet:
    total_actual: float = 0.0
    total_budget: float = 0.0
    total_deviation: float = 0.0
    most_profitable: TopCategory = field(default_factory=TopCategory)
    operation_count: int = 0
    average_ticket: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def records_frame(records: Sequence[CanonicalRecord]) -> pd.DataFrame:
    """One row per record with ``budget``/``actual`` holding the absolute amount of its side."""
    if not records:
        return pd.DataFrame(columns=FRAME_COLUMNS)
    df = pd.DataFrame(
        {
            "row_number": [r.row_number for r in records],
            "date": [r.date for r in records],
            "kind": [r.kind.value for r in records],
            "category": [r.category for r in records],
            "channel": [r.channel for r in records],
            "amount": [float(r.amount) for r in records],
        }
    )
    magnitude = df["amount"].abs()
    df["budget"] = magnitude.where(df["kind"].eq(Kind.BUDGET.value), 0.0)
    df["actual"] = magnitude.where(df["kind"].eq(Kind.ACTUAL.value), 0.0)
    return df


def grouped_sums(records: Sequence[CanonicalRecord], by: GroupKey = "category") -> List[GroupTotals]:
    """Budget/actual totals per group.

    Category and channel groups come out in order of first appearance; date
    groups are chronological.
    """
    if by not in GROUP_KEYS:
        raise ValueError(f"Unknown grouping key: {by}")
    df = records_frame(records)
    if df.empty:
        return []
    grouped = df.groupby(by, sort=(by == "date"))[["budget", "actual"]].sum()
    return [
        GroupTotals(key=key, budget=float(row["budget"]), actual=float(row["actual"]))
        for key, row in grouped.iterrows()
    ]


def category_deviations(records: Sequence[CanonicalRecord]) -> Dict[str, float]:
    return {g.key: g.deviation for g in grouped_sums(records, "category")}


def actual_by_category(records: Sequence[CanonicalRecord]) -> List[Dict[str, Any]]:
    """Actual spend per category with its share of the total (donut chart)."""
    df = records_frame(records)
    df = df[df["kind"].eq(Kind.ACTUAL.value)]
    if df.empty:
        return []
    totals = df.groupby("category", sort=False)["actual"].sum()
    grand_total = float(totals.sum())
    return [
        {
            "category": str(category),
            "actual": float(value),
            "share": (float(value) / grand_total) if grand_total else 0.0,
        }
        for category, value in totals.items()
    ]


def most_profitable_category(groups: Sequence[GroupTotals]) -> TopCategory:
    best = TopCategory()
    for group in groups:
        # Strictly greater: on ties the first category found wins.
        if group.deviation > best.amount:
            best = TopCategory(name=str(group.key), amount=group.deviation)
    return best


def compute_kpis(records: Sequence[CanonicalRecord]) -> KpiSet:
    df = records_frame(records)
    if df.empty:
        return KpiSet()

    total_actual = float(df["actual"].sum())
    total_budget = float(df["budget"].sum())
    actual_count = int(df["kind"].eq(Kind.ACTUAL.value).sum())

    return KpiSet(
        total_actual=total_actual,
        total_budget=total_budget,
        total_deviation=total_budget - total_actual,
        most_profitable=most_profitable_category(grouped_sums(records, "category")),
        operation_count=int(len(df)),
        average_ticket=(total_actual / actual_count) if actual_count else 0.0,
    )


def date_range_label(records: Sequence[CanonicalRecord]) -> str:
    if not records:
        return NO_DATA_LABEL
    dates = [r.date for r in records]
    return f"{format_date(min(dates))} - {format_date(max(dates))}"


def distinct_values(records: Sequence[CanonicalRecord], field_name: Literal["category", "channel"]) -> List[str]:
    """Choice list for a filter; pass the unfiltered snapshot."""
    if field_name not in ("category", "channel"):
        raise ValueError(f"Unknown field: {field_name}")
    return sorted({getattr(r, field_name) for r in records if getattr(r, field_name)})
