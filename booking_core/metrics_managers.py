from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from booking_core.constants import CONVERTED_STATUSES, NO_REASON
from booking_core.data import (
    BookingDataset,
    col_sum,
    format_month_label,
    pct,
    positive_mean,
    round_half_up,
    safe_mean,
)
from booking_core.filters import DashboardFilters, EngineSettings, apply_filter, converted, lost, pipeline
from booking_core.metrics_overview import response_distribution
from booking_core.metrics_pipeline import grade_breakdown


def manager_base(frame: pd.DataFrame, filters: DashboardFilters, settings: EngineSettings) -> pd.DataFrame:
    df = apply_filter(frame, filters.global_filter)
    return df[df["sales_manager"].isin(settings.allowed_managers)]


def manager_rows(frame: pd.DataFrame, filters: DashboardFilters, settings: EngineSettings, manager: str) -> pd.DataFrame:
    df = manager_base(frame, filters, settings)
    return df[df["sales_manager"] == manager]


def _scorecard(dataset: BookingDataset, manager: str, df: pd.DataFrame) -> Dict[str, Any]:
    conv = converted(df)
    revenue = col_sum(conv, "total_revenue")
    return {
        "manager": manager,
        "leads": len(df),
        "converted": len(conv),
        "conversion_rate": pct(len(conv), len(df)),
        "revenue": revenue,
        "event_revenue": col_sum(conv, "event_revenue"),
        "room_nights": col_sum(conv, "room_night"),
        "avg_response_time": round_half_up(positive_mean(df, "lead_response_time"), 1),
        "avg_rate": positive_mean(df, "avg_rate"),
        "avg_booking_value": revenue / len(conv) if len(conv) else 0.0,
        "bookings": dataset.records_at(df.index),
    }


def team_averages(scorecards: List[Dict[str, Any]]) -> Dict[str, float]:
    responders = [m["avg_response_time"] for m in scorecards if m["avg_response_time"] > 0]
    return {
        "leads": safe_mean(m["leads"] for m in scorecards),
        "conversion_rate": safe_mean(m["conversion_rate"] for m in scorecards),
        "avg_response": safe_mean(responders),
    }


def compute_manager_performance(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    settings = settings or EngineSettings()
    df = manager_base(dataset.frame, filters, settings)
    scorecards = [_scorecard(dataset, str(name), grp) for name, grp in df.groupby("sales_manager", sort=False)]
    scorecards.sort(key=lambda m: m["converted"], reverse=True)
    return {
        "filters": asdict(filters.global_filter),
        "allowed_managers": list(settings.allowed_managers),
        "managers": scorecards,
        "team_average": team_averages(scorecards),
    }


def compute_manager_detail(
    dataset: BookingDataset,
    filters: DashboardFilters,
    manager: str,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    """Deep dive for one allow-listed manager, compared with the team averages."""
    settings = settings or EngineSettings()
    df = manager_rows(dataset.frame, filters, settings, manager)
    team = compute_manager_performance(dataset, filters, settings)["team_average"]
    card = _scorecard(dataset, manager, df)
    conv = converted(df)
    lost_df = lost(df)

    reasons = lost_df["terminal_reason"].where(lost_df["terminal_reason"].ne(""), NO_REASON)
    top_reasons = [
        {"reason": str(reason), "count": int(count)}
        for reason, count in reasons.value_counts(sort=True).head(settings.manager_lost_reasons_top_n).items()
    ]

    segments = []
    for segment, grp in conv.groupby("segment_category", sort=False):
        segments.append({"segment": str(segment), "count": len(grp), "revenue": col_sum(grp, "total_revenue")})

    monthly = []
    with_month = df[df["entered_month"].notna()]
    for month_key, grp in sorted(with_month.groupby("entered_month"), key=lambda kv: kv[0]):
        monthly.append(
            {
                "month": str(month_key),
                "month_label": format_month_label(str(month_key)),
                "leads": len(grp),
                "converted": int(grp["status"].isin(CONVERTED_STATUSES).sum()),
            }
        )

    card.pop("bookings")
    return {
        "filters": asdict(filters.global_filter),
        "manager": manager,
        "kpis": {
            **card,
            "lost": len(lost_df),
            "tentative": len(pipeline(df)),
        },
        "versus_team": {
            "leads": card["leads"] - team["leads"],
            "conversion_rate": card["conversion_rate"] - team["conversion_rate"],
            "avg_response": card["avg_response_time"] - team["avg_response"],
        },
        "team_average": team,
        "pipeline": grade_breakdown(dataset, pipeline(df)),
        "lost_reasons": top_reasons,
        "segments": segments,
        "monthly": monthly[-12:],
        "response_distribution": response_distribution(df),
    }
