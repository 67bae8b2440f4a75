"""Core (UI-agnostic) HR dashboard logic.

This package contains:
- settings, retry policies and the fetch-with-retry helpers (httpx)
- row normalization of the positional spreadsheet tables (-> pandas)
- filter normalization and predicates
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
- admin authentication and the local session file
"""
