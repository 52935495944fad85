from __future__ import annotations

import logging
import math
from typing import Literal, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import ChatRequest, FilterSpecModel
from core.assistant import Conversation, SessionIdStore
from core.charts import compute_charts
from core.data import DataLoadError, DatasetStore
from core.filters import FilterSpec, apply_filters, normalize_filters
from core.formatters import format_currency, format_date
from core.metrics import category_deviations, compute_kpis, date_range_label, distinct_values, grouped_sums
from core.settings import PAGE_SIZE, configure_logging, load_settings
from core.table import clamp_page, project, sort_records, total_pages


settings = load_settings()
configure_logging(settings.log_level)

app = FastAPI(title="Budget Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

store = DatasetStore.from_url(settings.data_url, timeout=settings.timeout, strict_months=settings.strict_months)
session_ids = SessionIdStore(settings.session_file)
conversation: Optional[Conversation] = None

EXPORT_COLUMNS = ["row_number", "date", "kind", "category", "channel", "amount", "description", "variance"]


def _get_conversation() -> Conversation:
    global conversation
    if conversation is None:
        conversation = Conversation(session_ids.get(), settings.assistant_url, timeout=settings.timeout)
    return conversation


def _spec_from_model(model: FilterSpecModel) -> FilterSpec:
    return normalize_filters(model.model_dump())


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _failure(exc: Exception, where: str) -> JSONResponse:
    if isinstance(exc, DataLoadError):
        logger.warning("%s: %s", where, exc.message)
        return JSONResponse(status_code=503, content={"error": exc.message})
    logger.exception("%s failed", where)
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/categories")
def meta_categories():
    try:
        return _json({"values": distinct_values(store.snapshot(), "category")})
    except Exception as exc:
        return _failure(exc, "meta_categories")


@app.get("/meta/channels")
def meta_channels():
    try:
        return _json({"values": distinct_values(store.snapshot(), "channel")})
    except Exception as exc:
        return _failure(exc, "meta_channels")


@app.post("/refresh")
def refresh():
    try:
        records = store.refresh()
        return _json({"records": len(records), "date_range": date_range_label(records)})
    except Exception as exc:
        return _failure(exc, "refresh")


@app.post("/kpis")
def kpis(filters: FilterSpecModel):
    try:
        filtered = apply_filters(store.snapshot(), _spec_from_model(filters))
        return _json({"kpis": compute_kpis(filtered).to_dict(), "date_range": date_range_label(filtered)})
    except Exception as exc:
        return _failure(exc, "kpis")


@app.post("/groupings/{by}")
def groupings(by: Literal["category", "channel", "date"], filters: FilterSpecModel):
    try:
        filtered = apply_filters(store.snapshot(), _spec_from_model(filters))
        return _json({"by": by, "groups": [g.to_dict() for g in grouped_sums(filtered, by)]})
    except Exception as exc:
        return _failure(exc, "groupings")


@app.post("/charts")
def charts(filters: FilterSpecModel):
    try:
        filtered = apply_filters(store.snapshot(), _spec_from_model(filters))
        return _json(compute_charts(filtered))
    except Exception as exc:
        return _failure(exc, "charts")


@app.post("/transactions")
def transactions(
    filters: FilterSpecModel,
    sort_field: Literal["date", "kind", "category", "channel", "amount", "description"] = Query(default="date"),
    direction: Literal["asc", "desc"] = Query(default="desc"),
    page: int = Query(default=1),
):
    try:
        filtered = apply_filters(store.snapshot(), _spec_from_model(filters))
        page = clamp_page(page, total_pages(len(filtered), PAGE_SIZE))
        table = project(filtered, sort_field, direction, page, PAGE_SIZE)
        deviations = category_deviations(filtered)
        items = []
        for record in table.items:
            row = record.to_dict()
            row["deviation"] = deviations.get(record.category, 0.0)
            row["date_display"] = format_date(record.date)
            row["amount_display"] = format_currency(record.amount)
            items.append(row)
        return _json(
            {
                "items": items,
                "page": table.page,
                "total_pages": table.total_pages,
                "total_count": table.total_count,
            }
        )
    except Exception as exc:
        return _failure(exc, "transactions")


@app.post("/chat")
def chat(request: ChatRequest):
    try:
        conv = _get_conversation()
        reply = conv.send(request.message)
        if reply is None:
            return JSONResponse(status_code=400, content={"error": "empty message"})
        return _json({"session_id": conv.session_id, "role": reply.role, "text": reply.text})
    except Exception as exc:
        return _failure(exc, "chat")


@app.post("/export/transactions")
def export_transactions(
    filters: FilterSpecModel,
    sort_field: Literal["date", "kind", "category", "channel", "amount", "description"] = Query(default="date"),
    direction: Literal["asc", "desc"] = Query(default="desc"),
):
    try:
        filtered = apply_filters(store.snapshot(), _spec_from_model(filters))
    except Exception as exc:
        return _failure(exc, "export_transactions")
    ordered = sort_records(filtered, sort_field, direction)
    export_df = pd.DataFrame([r.to_dict() for r in ordered], columns=EXPORT_COLUMNS)
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(
        content=csv_bytes,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=transactions.csv"},
    )
