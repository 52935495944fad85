from __future__ import annotations

from datetime import date

from core.filters import FilterSpec, KindFilter, apply_filters, normalize_filters
from core.models import CanonicalRecord, Kind


def _record(row_number: int, description: str = "Ops - Real ENERO 2024") -> CanonicalRecord:
    return CanonicalRecord(
        row_number=row_number,
        date=date(2024, 1, 15),
        kind=Kind.ACTUAL,
        category="Ops",
        channel="Planta",
        amount=10.0,
        description=description,
    )


def test_empty_spec_is_identity(records):
    result = apply_filters(records, FilterSpec())
    assert result == list(records)


def test_apply_is_idempotent(records):
    spec = FilterSpec(kind=KindFilter.ACTUAL, channels=frozenset({"Planta", "Ventas"}), search_text="ops")
    once = apply_filters(records, spec)
    assert apply_filters(once, spec) == once


def test_date_bounds_are_inclusive(records):
    spec = FilterSpec(date_from=date(2024, 2, 15), date_to=date(2024, 2, 15))
    assert [r.row_number for r in apply_filters(records, spec)] == [4, 5]

    spec = FilterSpec(date_from=date(2024, 2, 16))
    assert {r.date for r in apply_filters(records, spec)} == {date(2024, 3, 15)}


def test_kind_category_and_channel_are_conjunctive(records):
    spec = FilterSpec(kind=KindFilter.BUDGET, categories=frozenset({"Ops", "Viajes"}), channels=frozenset({"Planta"}))
    result = apply_filters(records, spec)
    assert [r.row_number for r in result] == [4, 6]
    assert all(r.kind is Kind.BUDGET for r in result)


def test_search_matches_description_case_insensitively(records):
    spec = FilterSpec(search_text="PRESUPUESTO marzo")
    assert [r.row_number for r in apply_filters(records, spec)] == [6, 8]


def test_search_matches_row_number_substring():
    kept = _record(5, description="Ops - Real ENERO 2024")
    other = _record(6, description="Ops - Real ENERO 2024")
    assert apply_filters([kept, other], FilterSpec(search_text="5")) == [kept]


def test_row_number_match_uses_raw_search_text():
    # Lower-casing applies to the description side only.
    record = _record(12, description="Nothing here")
    assert apply_filters([record], FilterSpec(search_text="12")) == [record]
    assert apply_filters([record], FilterSpec(search_text="HERE")) == [record]
    assert apply_filters([record], FilterSpec(search_text="x12")) == []


def test_filter_preserves_input_order(records):
    reversed_records = list(reversed(records))
    result = apply_filters(reversed_records, FilterSpec(kind=KindFilter.ACTUAL))
    assert [r.row_number for r in result] == [9, 7, 5, 3]


def test_normalize_filters_coerces_loose_input():
    spec = normalize_filters(
        {
            "date_from": "2024-01-01",
            "date_to": date(2024, 3, 31),
            "kind": "Real",
            "categories": ["Ops", None, ""],
            "channels": None,
            "search_text": None,
        }
    )
    assert spec == FilterSpec(
        date_from=date(2024, 1, 1),
        date_to=date(2024, 3, 31),
        kind=KindFilter.ACTUAL,
        categories=frozenset({"Ops"}),
    )


def test_normalize_filters_defaults():
    assert normalize_filters({}) == FilterSpec()
    assert normalize_filters({"kind": "whatever", "date_from": "not-a-date"}) == FilterSpec()
    assert normalize_filters({}).is_empty
