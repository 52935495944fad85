"""Core (UI-agnostic) budget dashboard logic.

This package contains:
- raw record normalization and the dataset snapshot (webhook JSON -> records)
- filter specs and the filter engine
- aggregations and KPIs (pandas)
- table sorting/paging
- chart helpers (Altair -> Vega-Lite spec dict)
- the chat assistant client
"""
