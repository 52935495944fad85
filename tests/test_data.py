from __future__ import annotations

from datetime import date

import pytest
import requests

from core.data import (
    LOAD_ERROR_MESSAGE,
    MISSING_CATEGORY,
    MISSING_CHANNEL,
    DataLoadError,
    DatasetStore,
    extract_raw_records,
    fetch_raw_records,
    month_number,
    normalize_record,
    normalize_records,
)
from core.models import Kind

from tests.helpers.http_stub import FakeResponse, FakeSession


def test_normalize_record_yields_budget_and_actual():
    raw = {"row_number": 1, "anio": 2024, "mes": "ENERO", "centro_costo": "Ventas", "concepto": "Marketing",
           "presupuesto": 1000, "real": 800}
    budget, actual = normalize_record(raw)

    assert budget.row_number == 2
    assert budget.kind is Kind.BUDGET
    assert budget.amount == 1000
    assert budget.date == date(2024, 1, 15)
    assert budget.category == "Marketing"
    assert budget.channel == "Ventas"
    assert budget.description == "Marketing - Presupuesto ENERO 2024"

    assert actual.row_number == 3
    assert actual.kind is Kind.ACTUAL
    assert actual.amount == 800
    assert actual.date == date(2024, 1, 15)
    assert actual.description == "Marketing - Real ENERO 2024"


@pytest.mark.parametrize("raw", [None, "row", {}, {"anio": 2024}, {"mes": "ENERO"}, {"anio": 0, "mes": "ENERO"},
                                 {"anio": 2024, "mes": ""}, {"anio": "abc", "mes": "ENERO", "real": 1}])
def test_unusable_rows_are_dropped(raw):
    assert normalize_record(raw, fallback_row=1) == []


def test_presence_not_value_decides_each_side():
    only_budget = normalize_record({"row_number": 5, "anio": 2024, "mes": "MAYO", "presupuesto": 0})
    assert [(r.row_number, r.kind, r.amount) for r in only_budget] == [(10, Kind.BUDGET, 0.0)]

    only_actual = normalize_record({"row_number": 5, "anio": 2024, "mes": "MAYO", "real": None})
    assert [(r.row_number, r.kind, r.amount) for r in only_actual] == [(11, Kind.ACTUAL, 0.0)]

    assert normalize_record({"row_number": 5, "anio": 2024, "mes": "MAYO"}) == []


def test_month_lookup_is_case_insensitive_and_defaults_to_january():
    assert month_number("diciembre") == 12
    assert month_number("Septiembre") == 9
    assert month_number("SETIEMBRE") == 1
    assert month_number("SETIEMBRE", strict=True) is None

    (record,) = normalize_record({"row_number": 1, "anio": 2023, "mes": "Smarch", "real": 5})
    assert record.date == date(2023, 1, 15)
    assert normalize_record({"row_number": 1, "anio": 2023, "mes": "Smarch", "real": 5}, strict_months=True) == []


def test_missing_labels_use_sentinels_and_sign_is_kept():
    (record,) = normalize_record({"row_number": 7, "anio": 2024, "mes": "JUNIO", "concepto": "", "real": -42.5})
    assert record.category == MISSING_CATEGORY
    assert record.channel == MISSING_CHANNEL
    assert record.amount == -42.5
    assert record.description == f"{MISSING_CATEGORY} - Real JUNIO 2024"


def test_variance_is_passed_through():
    budget, actual = normalize_record({"row_number": 1, "anio": 2024, "mes": "ENERO", "presupuesto": 10,
                                       "real": 8, "variacion_real_presup": -2})
    assert budget.variance == -2.0
    assert actual.variance == -2.0


def test_row_numbers_never_collide(raw_rows):
    records = normalize_records(raw_rows)
    numbers = [r.row_number for r in records]
    assert len(numbers) == len(set(numbers))
    for raw in raw_rows:
        r = raw["row_number"]
        produced = {rec.row_number for rec in normalize_record(raw)}
        assert produced <= {2 * r, 2 * r + 1}


def test_normalize_records_flattens_in_input_order(raw_rows):
    records = normalize_records([raw_rows[1], {"anio": None}, raw_rows[0]])
    assert [r.row_number for r in records] == [4, 5, 2, 3]


def test_normalize_is_idempotent(raw_rows):
    assert normalize_records(raw_rows) == normalize_records(raw_rows)


def test_rows_without_number_are_numbered_in_order():
    records = normalize_records([{"anio": 2024, "mes": "ENERO", "real": 1}, {"anio": 2024, "mes": "ENERO", "real": 2}])
    assert [r.row_number for r in records] == [3, 5]


@pytest.mark.parametrize(
    "payload, expected",
    [
        ([{"a": 1}], [{"a": 1}]),
        ({"Data": [{"a": 1}], "Count": 1}, [{"a": 1}]),
        ({"data": [{"a": 2}]}, [{"a": 2}]),
        ({"Data": [], "data": [{"a": 3}]}, []),
        ({"Data": None, "data": [{"a": 4}]}, [{"a": 4}]),
        ({"other": []}, []),
        ("nope", []),
        (None, []),
    ],
)
def test_extract_raw_records(payload, expected):
    assert extract_raw_records(payload) == expected


def test_fetch_raw_records_unwraps_payload(raw_rows):
    session = FakeSession(FakeResponse({"Data": raw_rows, "Count": len(raw_rows)}))
    assert fetch_raw_records("http://example.test/data", timeout=5, session=session) == raw_rows
    assert session.calls == [{"method": "GET", "url": "http://example.test/data", "timeout": 5}]


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(FakeResponse({"error": "boom"}, status_code=500)),
        FakeSession(FakeResponse(invalid_json=True)),
        FakeSession(error=requests.ConnectionError("unreachable")),
    ],
)
def test_fetch_failures_surface_one_message(session):
    with pytest.raises(DataLoadError) as excinfo:
        fetch_raw_records("http://example.test/data", session=session)
    assert excinfo.value.message == LOAD_ERROR_MESSAGE
    assert len(session.calls) == 1


def test_store_loads_lazily_and_replaces_snapshot(raw_rows):
    batches = [raw_rows[:1], raw_rows]
    calls = []

    def fetcher():
        calls.append(1)
        return batches[len(calls) - 1]

    store = DatasetStore(fetcher)
    assert not store.loaded
    first = store.snapshot()
    assert [r.row_number for r in first] == [2, 3]
    assert store.snapshot() is first
    assert len(calls) == 1

    second = store.refresh()
    assert len(second) == 8
    assert store.snapshot() is second
    assert isinstance(second, tuple)


def test_store_failure_sets_error_state(raw_rows):
    outcomes = [DataLoadError(), raw_rows]

    def fetcher():
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    store = DatasetStore(fetcher)
    with pytest.raises(DataLoadError):
        store.snapshot()
    assert store.error == LOAD_ERROR_MESSAGE
    assert not store.loaded

    assert len(store.refresh()) == 8
    assert store.error is None


def test_unnumbered_rows_do_not_collide_with_numbered_ones():
    raw = [
        {"anio": 2024, "mes": "ENERO", "presupuesto": 1, "real": 1},
        {"row_number": 1, "anio": 2024, "mes": "ENERO", "presupuesto": 2, "real": 2},
        {"row_number": 3, "anio": 2024, "mes": "ENERO", "presupuesto": 3},
        {"anio": 2024, "mes": "ENERO", "real": 4},
    ]
    numbers = [r.row_number for r in normalize_records(raw)]
    assert numbers == [8, 9, 2, 3, 6, 11]
    assert len(numbers) == len(set(numbers))


def test_non_string_month_is_unusable():
    assert month_number(3) is None
    assert normalize_record({"row_number": 1, "anio": 2024, "mes": 3, "real": 5}) == []


def test_month_lookup_does_not_trim():
    assert month_number(" MARZO") == 1
    assert month_number(" MARZO", strict=True) is None
