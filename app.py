import altair as alt
import pandas as pd
import streamlit as st
from typing import List

from core.assistant import Conversation, generate_session_id
from core.charts import category_chart, channel_chart, date_chart, share_chart
from core.data import DataLoadError, DatasetStore
from core.filters import KindFilter, apply_filters, normalize_filters
from core.formatters import format_currency, format_date
from core.metrics import category_deviations, compute_kpis, date_range_label, distinct_values
from core.settings import PAGE_SIZE, configure_logging, load_settings
from core.table import SORT_FIELDS, clamp_page, project, total_pages

alt.data_transformers.disable_max_rows()

SORT_LABELS = {
    "date": "Fecha",
    "kind": "Tipo",
    "category": "Cuenta contable",
    "channel": "Canal",
    "amount": "Importe",
    "description": "Descripción",
}


@st.cache_resource
def get_store() -> DatasetStore:
    settings = load_settings()
    configure_logging(settings.log_level)
    return DatasetStore.from_url(settings.data_url, timeout=settings.timeout, strict_months=settings.strict_months)


def get_conversation() -> Conversation:
    if "conversation" not in st.session_state:
        settings = load_settings()
        st.session_state["conversation"] = Conversation(
            generate_session_id(), settings.assistant_url, timeout=settings.timeout
        )
    return st.session_state["conversation"]


def render_error(message: str) -> None:
    st.error(message)
    if st.button("Reintentar"):
        # The rerun calls snapshot(), which performs the single fetch.
        st.rerun()
    st.stop()


def format_filter_summary(kind: str, categories: List[str], channels: List[str], search: str) -> str:
    chips = [f"Tipo: {kind}"]
    chips.append("Cuentas: Todas" if not categories else f"Cuentas: {', '.join(categories)}")
    chips.append("Canales: Todos" if not channels else f"Canales: {', '.join(channels)}")
    if search:
        chips.append(f"Búsqueda: {search}")
    return " · ".join(chips)


st.set_page_config(page_title="Dashboard Financiero", layout="wide")

store = get_store()
try:
    records = store.snapshot()
except DataLoadError as exc:
    render_error(exc.message)

with st.sidebar:
    st.header("Filtros")
    if st.button("Recargar datos"):
        try:
            records = store.refresh()
        except DataLoadError as exc:
            render_error(exc.message)
    date_from = st.date_input("Desde", value=None, format="DD/MM/YYYY")
    date_to = st.date_input("Hasta", value=None, format="DD/MM/YYYY")
    kind = st.selectbox("Tipo", [k.value for k in KindFilter])
    categories = st.multiselect("Cuentas contables", options=distinct_values(records, "category"))
    channels = st.multiselect("Canales", options=distinct_values(records, "channel"))
    search_text = st.text_input("Buscar (descripción o nº de fila)", "")

spec = normalize_filters(
    {
        "date_from": date_from,
        "date_to": date_to,
        "kind": kind,
        "categories": categories,
        "channels": channels,
        "search_text": search_text,
    }
)
filtered = apply_filters(records, spec)
kpis = compute_kpis(filtered)

st.title("Dashboard Financiero")
st.caption(f"{date_range_label(filtered)} · {format_filter_summary(kind, categories, channels, search_text)}")

cols = st.columns(4)
cols[0].metric("Gastos Totales", format_currency(kpis.total_actual), help="Suma de gastos reales")
cols[1].metric(
    "Desvíos",
    format_currency(kpis.total_deviation),
    "Por debajo del presupuesto" if kpis.total_deviation >= 0 else "Por encima del presupuesto",
    delta_color="normal" if kpis.total_deviation >= 0 else "inverse",
)
cols[2].metric("C.C Más Rentable", kpis.most_profitable.name, f"Ahorro: {format_currency(kpis.most_profitable.amount)}")
cols[3].metric("Operaciones", str(kpis.operation_count), f"Ticket medio: {format_currency(kpis.average_ticket)}", delta_color="off")

for left_chart, right_chart in ((date_chart(filtered), category_chart(filtered)), (share_chart(filtered), channel_chart(filtered))):
    left, right = st.columns(2)
    with left:
        if left_chart is not None:
            st.altair_chart(left_chart, use_container_width=True)
        else:
            st.info("Sin datos para el gráfico.")
    with right:
        if right_chart is not None:
            st.altair_chart(right_chart, use_container_width=True)
        else:
            st.info("Sin datos para el gráfico.")

st.subheader("Detalle de Transacciones")
sort_cols = st.columns(3)
sort_field = sort_cols[0].selectbox("Ordenar por", SORT_FIELDS, format_func=SORT_LABELS.get)
direction = sort_cols[1].selectbox("Dirección", ["desc", "asc"], format_func=lambda d: "Descendente" if d == "desc" else "Ascendente")
pages = total_pages(len(filtered), PAGE_SIZE)
page = clamp_page(int(sort_cols[2].number_input("Página", min_value=1, value=1, step=1)), pages)

table = project(filtered, sort_field, direction, page, PAGE_SIZE)
deviations = category_deviations(filtered)
rows = [
    {
        "Fecha": format_date(r.date),
        "Tipo": r.kind.value,
        "Cuenta Contable": r.category,
        "Canal": r.channel,
        "Importe ($)": format_currency(r.amount),
        "Descripción": r.description,
        "Desvío": ("▼ " if deviations.get(r.category, 0.0) >= 0 else "▲ ")
        + format_currency(abs(deviations.get(r.category, 0.0))),
    }
    for r in table.items
]
st.dataframe(pd.DataFrame(rows), hide_index=True, use_container_width=True)
st.caption(f"Página {page} de {table.total_pages} ({table.total_count} registros)")

with st.expander("Asistente IA"):
    conversation = get_conversation()
    for message in conversation.messages:
        with st.chat_message(message.role):
            st.write(message.text)
    prompt = st.chat_input("Escribe tu pregunta…")
    if prompt:
        conversation.send(prompt)
        st.rerun()
