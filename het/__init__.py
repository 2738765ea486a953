"""Core (UI-agnostic) summary logic.

This package contains:
- dataset fetching (JSON endpoint -> pandas)
- record selection, derived share fields, and field-name driven formatting
- table and chart compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
