"""Display formatting in the es-AR convention (dd/mm/yyyy, ``1.234,56``)."""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def _swap_separators(text: str) -> str:
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def round_half_up(value: float, ndigits: int = 2) -> Decimal:
    q = Decimal(10) ** -ndigits
    return Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP)


def format_currency(value: Optional[float]) -> str:
    if value is None:
        return "$ 0,00"
    amount = round_half_up(value, 2)
    body = _swap_separators(f"{abs(amount):,.2f}")
    sign = "-" if amount < 0 else ""
    return f"{sign}$ {body}"


def format_number(value: Optional[float]) -> str:
    if value is None:
        return "0"
    if float(value).is_integer():
        return _swap_separators(f"{int(value):,}")
    return _swap_separators(f"{round_half_up(value, 3).normalize():,f}")
