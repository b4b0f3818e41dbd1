"""Core (UI-agnostic) group-booking analytics.

This package contains:
- row normalization (raw string rows -> BookingRecord / pandas frame)
- classification and filter normalization
- view compute functions (JSON-serializable payloads)
- variance, drill-down and the memoized view engine
- chart helpers (Altair -> Vega-Lite spec dict)
"""
