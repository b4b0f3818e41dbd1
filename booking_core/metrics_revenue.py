from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

import pandas as pd

from booking_core.constants import GROUP_SALES, LOCAL_CATERING
from booking_core.data import BookingDataset, col_sum
from booking_core.filters import DashboardFilters, EngineSettings, FilterSet, apply_filter, converted


def group_vs_catering_base(frame: pd.DataFrame, filt: FilterSet) -> pd.DataFrame:
    return converted(apply_filter(frame, filt))


def event_revenue_base(frame: pd.DataFrame, filt: FilterSet) -> pd.DataFrame:
    base = converted(apply_filter(frame, filt))
    return base[base["entered_year"].notna()]


def _partition(dataset: BookingDataset, df: pd.DataFrame, category: str) -> Dict[str, Any]:
    part = df[df["booking_category"] == category]
    return {
        "category": category,
        "count": len(part),
        "room_nights": col_sum(part, "room_night"),
        "group_revenue": col_sum(part, "total_revenue"),
        "event_revenue": col_sum(part, "event_revenue"),
        "fnb_revenue": col_sum(part, "fnb_revenue"),
        "rental_revenue": col_sum(part, "rental_revenue"),
        "bookings": dataset.records_at(part.index),
    }


def compute_group_vs_catering(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    filt = filters.local("group_vs_catering")
    df = group_vs_catering_base(dataset.frame, filt)
    group = _partition(dataset, df, GROUP_SALES)
    catering = _partition(dataset, df, LOCAL_CATERING)
    group_rn = group["room_nights"]
    return {
        "filters": asdict(filt),
        "group": group,
        "catering": catering,
        "spend_per_group_rn": group["event_revenue"] / group_rn if group_rn > 0 else 0.0,
    }


def compute_event_revenue_by_year(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    filt = filters.local("event_revenue")
    df = event_revenue_base(dataset.frame, filt)
    if df.empty:
        return {"filters": asdict(filt), "rows": []}
    grouped = (
        df.groupby("entered_year")
        .agg(fnb=("fnb_revenue", "sum"), rental=("rental_revenue", "sum"), total=("event_revenue", "sum"))
        .reset_index()
        .sort_values("entered_year")
    )
    rows = [
        {"year": int(r.entered_year), "fnb": float(r.fnb), "rental": float(r.rental), "total": float(r.total)}
        for r in grouped.itertuples(index=False)
    ]
    return {"filters": asdict(filt), "rows": rows}
