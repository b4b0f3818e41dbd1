from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from booking_core.constants import (
    CORPORATE,
    GROUP_SALES,
    LOCAL_CATERING,
    RESPONSE_TIME_BUCKETS,
    SOCIAL,
)
from booking_core.data import BookingDataset, between_mask, col_sum, pct, positive_mean, round_half_up
from booking_core.filters import (
    DashboardFilters,
    EngineSettings,
    apply_filter,
    converted,
    lost,
    pipeline,
    year_rows,
)
from booking_core.variance import compute_variances


def _round_int(value: float) -> int:
    return int(round_half_up(value) or 0)


def response_distribution(df: pd.DataFrame) -> List[Dict[str, Any]]:
    times = df.loc[df["lead_response_time"] > 0, "lead_response_time"] if not df.empty else pd.Series(dtype=float)
    rows = []
    for label, low, high in RESPONSE_TIME_BUCKETS:
        mask = between_mask(times, None, high)
        if low is not None:
            mask &= times > low
        rows.append({"range": label, "count": int(mask.sum())})
    return rows


def compute_kpi_summary(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    df = apply_filter(dataset.frame, filters.global_filter)
    conv = converted(df)
    total = len(df)
    converted_count = len(conv)
    revenue = col_sum(conv, "total_revenue")

    group = conv[conv["booking_category"] == GROUP_SALES]
    group_rn = col_sum(group, "room_night")

    kpis = {
        "total_leads": total,
        "converted_count": converted_count,
        "tentative_count": len(pipeline(df)),
        "lost_count": len(lost(df)),
        "total_room_nights": col_sum(conv, "room_night"),
        "total_revenue": revenue,
        "total_event_revenue": col_sum(conv, "event_revenue"),
        "total_fnb_revenue": col_sum(conv, "fnb_revenue"),
        "total_rental_revenue": col_sum(conv, "rental_revenue"),
        "conversion_rate": pct(converted_count, total),
        "avg_lead_time": _round_int(positive_mean(df, "lead_time")),
        "avg_response_time": round_half_up(positive_mean(df, "lead_response_time"), 1),
        "avg_booking_value": revenue / converted_count if converted_count else 0.0,
        "spend_per_group_rn": col_sum(group, "event_revenue") / group_rn if group_rn > 0 else 0.0,
    }
    return {
        "filters": asdict(filters.global_filter),
        "record_count": dataset.record_count,
        "kpis": kpis,
        "variances": compute_variances(dataset, filters.global_filter),
    }


def _conversion(df: pd.DataFrame) -> float:
    return pct(len(converted(df)), len(df))


def compute_kpi_details(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    """Breakdowns behind the clickable KPI cards (lead time, conversion, response, room nights)."""
    df = apply_filter(dataset.frame, filters.global_filter)
    years = dataset.entered_years()
    conv = converted(df)
    with_lead = df[df["lead_time"] > 0]

    def lead_avg(sub: pd.DataFrame) -> int:
        return _round_int(positive_mean(sub, "lead_time"))

    lead_by_year = []
    for year in years:
        y = year_rows(with_lead, year)
        lead_by_year.append(
            {
                "year": year,
                "avg_lead_time": lead_avg(y),
                "corporate": lead_avg(y[y["segment_category"] == CORPORATE]),
                "social": lead_avg(y[y["segment_category"] != CORPORATE]),
            }
        )

    responses = df[df["lead_response_time"] > 0]
    return {
        "filters": asdict(filters.global_filter),
        "lead_time": {
            "avg_lead_time": lead_avg(with_lead),
            "corporate": lead_avg(with_lead[with_lead["segment_category"] == CORPORATE]),
            "social": lead_avg(with_lead[with_lead["segment_category"] == SOCIAL]),
            "group": lead_avg(with_lead[with_lead["booking_category"] == GROUP_SALES]),
            "catering": lead_avg(with_lead[with_lead["booking_category"] == LOCAL_CATERING]),
            "by_year": lead_by_year,
        },
        "conversion": {
            "overall": _conversion(df),
            "corporate": _conversion(df[df["segment_category"] == CORPORATE]),
            "social": _conversion(df[df["segment_category"] == SOCIAL]),
            "group": _conversion(df[df["booking_category"] == GROUP_SALES]),
            "catering": _conversion(df[df["booking_category"] == LOCAL_CATERING]),
            "by_year": [
                {"year": year, "rate": _conversion(year_rows(df, year))} for year in years
            ],
        },
        "response": {
            "avg_response": round_half_up(positive_mean(df, "lead_response_time"), 1),
            "under_2h": pct(int((responses["lead_response_time"] <= 2).sum()), len(responses)),
            "under_24h": pct(int((responses["lead_response_time"] <= 24).sum()), len(responses)),
            "distribution": response_distribution(df),
        },
        "room_nights": {
            "total": col_sum(conv, "room_night"),
            "avg_per_booking": _round_int(col_sum(conv, "room_night") / len(conv)) if len(conv) else 0,
            "group": col_sum(conv[conv["booking_category"] == GROUP_SALES], "room_night"),
            "catering": col_sum(conv[conv["booking_category"] == LOCAL_CATERING], "room_night"),
            "by_year": [
                {"year": year, "room_nights": col_sum(year_rows(conv, year), "room_night")}
                for year in years
            ],
        },
    }
