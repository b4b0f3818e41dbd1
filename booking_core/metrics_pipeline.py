from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from booking_core.data import BookingDataset, col_sum, sort_grade_labels
from booking_core.filters import DashboardFilters, EngineSettings, apply_filter, pipeline


def pipeline_base(frame: pd.DataFrame, filters: DashboardFilters) -> pd.DataFrame:
    return pipeline(apply_filter(frame, filters.global_filter))


def grade_breakdown(dataset: BookingDataset, df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Per grade label: count, room nights and revenue; "Ungraded" sorts last."""
    rows = []
    for label in sort_grade_labels(df["grade_label"].unique()):
        part = df[df["grade_label"] == label]
        rows.append(
            {
                "grade": label,
                "count": len(part),
                "room_nights": col_sum(part, "room_night"),
                "revenue": col_sum(part, "total_revenue"),
                "event_revenue": col_sum(part, "event_revenue"),
                "bookings": dataset.records_at(part.index),
            }
        )
    return rows


def compute_pipeline(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    df = pipeline_base(dataset.frame, filters)
    grades = grade_breakdown(dataset, df)
    return {
        "filters": asdict(filters.global_filter),
        "total": len(df),
        "room_nights": col_sum(df, "room_night"),
        "revenue": col_sum(df, "total_revenue"),
        "grades": grades,
    }
