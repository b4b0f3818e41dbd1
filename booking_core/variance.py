"""Year-over-year variance for the headline KPIs.

Variance is only meaningful when the global filter pins exactly one entered
year. The current-year value is read from the globally filtered slice (so it
matches the KPI card it annotates); the prior year always comes from the
unfiltered dataset. A metric is ``None`` ("unavailable") whenever there is no
prior-year data or the prior value is zero.
"""

from __future__ import annotations

from typing import Dict, Literal, Optional, Tuple

import pandas as pd

from booking_core.constants import GROUP_SALES
from booking_core.data import BookingDataset, col_sum, positive_mean, round_half_up
from booking_core.filters import FilterSet, apply_filter, converted, pipeline, year_rows

VarianceMetric = Literal[
    "leads",
    "conversion",
    "converted",
    "room_nights",
    "group_revenue",
    "event_revenue",
    "fnb_revenue",
    "rental_revenue",
    "lead_time",
    "response_time",
    "spend_per_rn",
    "pipeline",
]

VARIANCE_METRICS: Tuple[str, ...] = (
    "leads",
    "conversion",
    "converted",
    "room_nights",
    "group_revenue",
    "event_revenue",
    "fnb_revenue",
    "rental_revenue",
    "lead_time",
    "response_time",
    "spend_per_rn",
    "pipeline",
)


def metric_value(df: pd.DataFrame, metric: str) -> float:
    conv = converted(df)
    if metric == "leads":
        return float(len(df))
    if metric == "conversion":
        return len(conv) / len(df) * 100 if len(df) else 0.0
    if metric == "converted":
        return float(len(conv))
    if metric == "room_nights":
        return col_sum(conv, "room_night")
    if metric == "group_revenue":
        return col_sum(conv, "total_revenue")
    if metric == "event_revenue":
        return col_sum(conv, "event_revenue")
    if metric == "fnb_revenue":
        return col_sum(conv, "fnb_revenue")
    if metric == "rental_revenue":
        return col_sum(conv, "rental_revenue")
    if metric == "lead_time":
        return positive_mean(df, "lead_time")
    if metric == "response_time":
        return positive_mean(df, "lead_response_time")
    if metric == "spend_per_rn":
        group = conv[conv["booking_category"] == GROUP_SALES]
        rn = col_sum(group, "room_night")
        return col_sum(group, "event_revenue") / rn if rn > 0 else 0.0
    if metric == "pipeline":
        return float(len(pipeline(df)))
    return 0.0


def percent_change(current: float, prior: float) -> Optional[float]:
    if not prior:
        return None
    return round_half_up((current - prior) / prior * 100, 1)


def compute_variances(dataset: BookingDataset, global_filter: FilterSet) -> Dict[str, Optional[float]]:
    unavailable: Dict[str, Optional[float]] = {m: None for m in VARIANCE_METRICS}
    if len(set(global_filter.years)) != 1:
        return unavailable

    year = global_filter.years[0]
    frame = dataset.frame
    prior = year_rows(frame, year - 1)
    if prior.empty:
        return unavailable
    current = apply_filter(frame, global_filter)
    current = year_rows(current, year)

    return {m: percent_change(metric_value(current, m), metric_value(prior, m)) for m in VARIANCE_METRICS}


def compute_variance(dataset: BookingDataset, global_filter: FilterSet, metric: VarianceMetric) -> Optional[float]:
    if metric not in VARIANCE_METRICS:
        raise KeyError(metric)
    return compute_variances(dataset, global_filter)[metric]
