from __future__ import annotations

import logging
import math
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import requests

from core.models import CanonicalRecord, Kind


logger = logging.getLogger(__name__)

MONTH_NUMBERS: Dict[str, int] = {
    "ENERO": 1,
    "FEBRERO": 2,
    "MARZO": 3,
    "ABRIL": 4,
    "MAYO": 5,
    "JUNIO": 6,
    "JULIO": 7,
    "AGOSTO": 8,
    "SEPTIEMBRE": 9,
    "OCTUBRE": 10,
    "NOVIEMBRE": 11,
    "DICIEMBRE": 12,
}
DEFAULT_MONTH = 1
RECORD_DAY = 15

MISSING_CATEGORY = "Sin concepto"
MISSING_CHANNEL = "Sin centro de costo"
LOAD_ERROR_MESSAGE = "Error al cargar datos del servidor"

# Raw field names as delivered by the upstream webhook.
RAW_ROW = "row_number"
RAW_YEAR = "anio"
RAW_MONTH = "mes"
RAW_CHANNEL = "centro_costo"
RAW_CATEGORY = "concepto"
RAW_BUDGET = "presupuesto"
RAW_ACTUAL = "real"
RAW_VARIANCE = "variacion_real_presup"


class DataLoadError(Exception):
    """Raised when the raw dataset cannot be fetched or decoded."""

    def __init__(self, message: str = LOAD_ERROR_MESSAGE):
        super().__init__(message)
        self.message = message


def month_number(value: object, *, strict: bool = False) -> Optional[int]:
    """Map a Spanish month name to 1-12.

    Unknown names fall back to January unless ``strict`` is set, in which case
    ``None`` is returned. Non-string values are never a month.
    """
    if not isinstance(value, str):
        return None
    number = MONTH_NUMBERS.get(value.upper())
    if number is None:
        return None if strict else DEFAULT_MONTH
    return number


def _as_amount(value: object) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(out) or math.isinf(out):
        return 0.0
    return out


def _as_optional_float(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return None if math.isnan(out) else out


def _as_int(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(out) or math.isinf(out) or not out.is_integer():
        return None
    return int(out)


def _as_label(value: object, default: str) -> str:
    if value is None:
        return default
    s = str(value)
    return s if s else default


def normalize_record(
    raw: Any,
    *,
    fallback_row: Optional[int] = None,
    strict_months: bool = False,
) -> List[CanonicalRecord]:
    """Turn one raw budget/actual row into zero, one or two canonical records.

    ``fallback_row`` is used as the source row only when the row carries no
    usable ``row_number``; without either the row is dropped.
    """
    if not isinstance(raw, Mapping):
        return []
    if not raw.get(RAW_YEAR) or not raw.get(RAW_MONTH):
        return []

    year = _as_int(raw.get(RAW_YEAR))
    month = month_number(raw.get(RAW_MONTH), strict=strict_months)
    if year is None or month is None:
        return []
    try:
        record_date = date(year, month, RECORD_DAY)
    except ValueError:
        return []

    source_row = _as_int(raw.get(RAW_ROW))
    if source_row is None:
        source_row = fallback_row
    if source_row is None:
        return []

    category = _as_label(raw.get(RAW_CATEGORY), MISSING_CATEGORY)
    channel = _as_label(raw.get(RAW_CHANNEL), MISSING_CHANNEL)
    variance = _as_optional_float(raw.get(RAW_VARIANCE))
    period = f"{raw.get(RAW_MONTH)} {raw.get(RAW_YEAR)}"

    records: List[CanonicalRecord] = []
    for kind, field, offset in ((Kind.BUDGET, RAW_BUDGET, 0), (Kind.ACTUAL, RAW_ACTUAL, 1)):
        # Presence of the key decides, not its value: a zero or null amount
        # still yields a record.
        if field not in raw:
            continue
        records.append(
            CanonicalRecord(
                row_number=source_row * 2 + offset,
                date=record_date,
                kind=kind,
                category=category,
                channel=channel,
                amount=_as_amount(raw.get(field)),
                description=f"{category} - {kind.label} {period}",
                variance=variance,
            )
        )
    return records


def _explicit_row(raw: Any) -> Optional[int]:
    return _as_int(raw.get(RAW_ROW)) if isinstance(raw, Mapping) else None


def normalize_records(raw_records: Iterable[Any], *, strict_months: bool = False) -> List[CanonicalRecord]:
    """Normalize a whole dataset, keeping input order.

    Rows without a ``row_number`` are numbered after the largest explicit one,
    so their ids cannot collide with numbered rows.
    """
    rows = list(raw_records)
    explicit = [n for n in (_explicit_row(raw) for raw in rows) if n is not None]
    next_row = max(explicit, default=0) + 1

    out: List[CanonicalRecord] = []
    dropped = 0
    for raw in rows:
        fallback_row = None
        if _explicit_row(raw) is None:
            fallback_row = next_row
            next_row += 1
        normalized = normalize_record(raw, fallback_row=fallback_row, strict_months=strict_months)
        if not normalized:
            dropped += 1
        out.extend(normalized)
    if dropped:
        logger.info("Dropped %d unusable raw rows during normalization", dropped)
    logger.debug("Normalized %d canonical records", len(out))
    return out


def extract_raw_records(payload: Any) -> List[Any]:
    """Unwrap the webhook payload: a bare list or ``{"Data": [...]}`` / ``{"data": [...]}``."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        rows = payload["Data"] if payload.get("Data") is not None else payload.get("data")
        return list(rows) if isinstance(rows, list) else []
    return []


def fetch_raw_records(
    url: str,
    *,
    timeout: float = 30.0,
    session: Optional[requests.Session] = None,
) -> List[Any]:
    """Single GET against the data endpoint; no retry."""
    http = session or requests
    try:
        response = http.get(url, timeout=timeout)
    except requests.RequestException as exc:
        logger.exception("Fetching financial data failed")
        raise DataLoadError() from exc
    if not response.ok:
        logger.error("Data endpoint returned HTTP %s", response.status_code)
        raise DataLoadError()
    try:
        payload = response.json()
    except ValueError as exc:
        logger.exception("Data endpoint returned invalid JSON")
        raise DataLoadError() from exc
    return extract_raw_records(payload)


Fetcher = Callable[[], List[Any]]


class DatasetStore:
    """Process-scoped holder of the canonical snapshot.

    The snapshot is loaded on first use and replaced wholesale by ``refresh``;
    readers always see either the old tuple or the new one.
    """

    def __init__(self, fetcher: Fetcher, *, strict_months: bool = False):
        self._fetcher = fetcher
        self._strict_months = strict_months
        self._records: Optional[Tuple[CanonicalRecord, ...]] = None
        self.error: Optional[str] = None

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        timeout: float = 30.0,
        strict_months: bool = False,
        session: Optional[requests.Session] = None,
    ) -> "DatasetStore":
        return cls(lambda: fetch_raw_records(url, timeout=timeout, session=session), strict_months=strict_months)

    @property
    def loaded(self) -> bool:
        return self._records is not None

    def refresh(self) -> Tuple[CanonicalRecord, ...]:
        try:
            raw_records = self._fetcher()
        except DataLoadError as exc:
            self._records = None
            self.error = exc.message
            raise
        records = tuple(normalize_records(raw_records, strict_months=self._strict_months))
        self._records = records
        self.error = None
        logger.info("Loaded snapshot with %d records from %d raw rows", len(records), len(raw_records))
        return records

    def snapshot(self) -> Tuple[CanonicalRecord, ...]:
        if self._records is None:
            return self.refresh()
        return self._records
