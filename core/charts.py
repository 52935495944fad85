from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

import altair as alt
import pandas as pd

from core.metrics import GroupTotals, actual_by_category, grouped_sums
from core.models import CanonicalRecord

alt.data_transformers.disable_max_rows()

SERIES_LABELS = {"budget": "Presupuesto", "actual": "Real"}
SERIES_COLORS = ["#6366f1", "#ec4899"]


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _long_frame(groups: Sequence[GroupTotals], key_name: str) -> pd.DataFrame:
    rows = []
    for g in groups:
        rows.append({key_name: g.key, "series": SERIES_LABELS["budget"], "amount": g.budget})
        rows.append({key_name: g.key, "series": SERIES_LABELS["actual"], "amount": g.actual})
    df = pd.DataFrame(rows)
    if key_name == "date" and not df.empty:
        df["date"] = pd.to_datetime(df["date"])
    return df


def _color() -> alt.Color:
    return alt.Color(
        "series:N",
        title=None,
        scale=alt.Scale(domain=list(SERIES_LABELS.values()), range=SERIES_COLORS),
    )


def date_chart(records: Sequence[CanonicalRecord]) -> Optional[alt.Chart]:
    df = _long_frame(grouped_sums(records, "date"), "date")
    if df.empty:
        return None
    return (
        alt.Chart(df)
        .mark_line(point=True)
        .encode(
            x=alt.X("date:T", title="Fecha", axis=alt.Axis(format="%d/%m/%Y")),
            y=alt.Y("amount:Q", title="Importe", axis=alt.Axis(format="$,.0f")),
            color=_color(),
            tooltip=["series", alt.Tooltip("date:T", format="%d/%m/%Y"), alt.Tooltip("amount:Q", format="$,.2f")],
        )
        .properties(title="Presupuesto vs Real")
    )


def _grouped_bar(records: Sequence[CanonicalRecord], by: str, title: str, axis_title: str) -> Optional[alt.Chart]:
    df = _long_frame(grouped_sums(records, by), by)  # type: ignore[arg-type]
    if df.empty:
        return None
    return (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X(f"{by}:N", title=axis_title, sort=None),
            xOffset="series:N",
            y=alt.Y("amount:Q", title="Importe", axis=alt.Axis(format="$,.0f")),
            color=_color(),
            tooltip=[by, "series", alt.Tooltip("amount:Q", format="$,.2f")],
        )
        .properties(title=title)
    )


def category_chart(records: Sequence[CanonicalRecord]) -> Optional[alt.Chart]:
    return _grouped_bar(records, "category", "Por cuenta contable", "Cuenta contable")


def channel_chart(records: Sequence[CanonicalRecord]) -> Optional[alt.Chart]:
    return _grouped_bar(records, "channel", "Por centro de costo", "Centro de costo")


def share_chart(records: Sequence[CanonicalRecord]) -> Optional[alt.Chart]:
    df = pd.DataFrame(actual_by_category(records))
    if df.empty:
        return None
    return (
        alt.Chart(df)
        .mark_arc(innerRadius=60)
        .encode(
            theta=alt.Theta("actual:Q"),
            color=alt.Color("category:N", title="Cuenta contable"),
            tooltip=["category", alt.Tooltip("actual:Q", format="$,.2f"), alt.Tooltip("share:Q", format=".1%")],
        )
        .properties(title="Distribución del gasto real")
    )


def compute_charts(records: Sequence[CanonicalRecord]) -> Dict[str, Optional[Dict[str, Any]]]:
    charts = {
        "by_date": date_chart(records),
        "by_category": category_chart(records),
        "by_channel": channel_chart(records),
        "actual_share": share_chart(records),
    }
    return {name: (to_vega_spec(chart) if chart is not None else None) for name, chart in charts.items()}
