"""Shared fixtures: sample webhook rows and their canonical records."""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from core.data import normalize_records


@pytest.fixture
def raw_rows() -> List[Dict[str, Any]]:
    return [
        {"row_number": 1, "anio": 2024, "mes": "ENERO", "centro_costo": "Ventas", "concepto": "Marketing",
         "presupuesto": 1000, "real": 800, "variacion_real_presup": -200},
        {"row_number": 2, "anio": 2024, "mes": "febrero", "centro_costo": "Planta", "concepto": "Ops",
         "presupuesto": 500, "real": 200},
        {"row_number": 3, "anio": 2024, "mes": "Marzo", "centro_costo": "Planta", "concepto": "Ops",
         "presupuesto": 300, "real": 100},
        {"row_number": 4, "anio": 2024, "mes": "MARZO", "centro_costo": "Ventas", "concepto": "Viajes",
         "presupuesto": 100, "real": -250},
    ]


@pytest.fixture
def records(raw_rows):
    return normalize_records(raw_rows)
