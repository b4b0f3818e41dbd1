"""Drill-down: the records behind one aggregate cell.

Every resolver re-applies the same base predicate the view reducer used, then
narrows to the requested cell, so the list always matches the displayed count
for the current filters. Unknown views or incomplete cell keys give ``[]``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from booking_core.constants import CONVERTED_STATUSES
from booking_core.data import BookingDataset, BookingRecord
from booking_core.filters import (
    DashboardFilters,
    EngineSettings,
    apply_filter,
    converted,
    lost,
    pipeline,
    resolve_years,
    year_rows,
)
from booking_core.metrics_arrivals import block_size_base, block_size_bucket, heat_map_base, heat_map_cell, heat_map_years
from booking_core.metrics_leads import lead_time_base, lead_time_bucket, lead_volume_base, segment_base
from booking_core.metrics_lost import comment_theme_records, lost_base, lost_reason_labels
from booking_core.metrics_managers import manager_rows
from booking_core.metrics_pipeline import pipeline_base
from booking_core.metrics_revenue import event_revenue_base, group_vs_catering_base

logger = logging.getLogger(__name__)

Cell = Dict[str, Any]
Resolver = Callable[[BookingDataset, DashboardFilters, EngineSettings, Cell], List[BookingRecord]]


def _int(value: object) -> Optional[int]:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _month_rows(df: pd.DataFrame, month: Optional[int], column: str = "entered_month_num") -> pd.DataFrame:
    return df[df[column].isin([month]).astype(bool)]


def drill_entered_month(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    month = cell.get("month")
    if not month:
        return []
    df = apply_filter(dataset.frame, filters.global_filter)
    return dataset.records_at(df.index[df["entered_month"] == str(month)])


def drill_kpi(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    df = apply_filter(dataset.frame, filters.global_filter)
    group = str(cell.get("group") or "all").lower()
    selectors = {
        "all": lambda d: d,
        "converted": converted,
        "tentative": pipeline,
        "lost": lost,
    }
    if group not in selectors:
        return []
    return dataset.records_at(selectors[group](df).index)


def drill_group_vs_catering(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    df = group_vs_catering_base(dataset.frame, filters.local("group_vs_catering"))
    return dataset.records_at(df.index[df["booking_category"] == cell.get("category")])


def drill_event_revenue(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    year = _int(cell.get("year"))
    if year is None:
        return []
    df = event_revenue_base(dataset.frame, filters.local("event_revenue"))
    return dataset.records_at(year_rows(df, year).index)


def drill_lead_volume(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    year, month = _int(cell.get("year")), _int(cell.get("month_num"))
    if year is None or month is None:
        return []
    df = lead_volume_base(dataset.frame, filters.local("lead_volume"))
    return dataset.records_at(_month_rows(year_rows(df, year), month).index)


def drill_monthly_comparison(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    year, month = _int(cell.get("year")), _int(cell.get("month_num"))
    filt = filters.local("monthly_comparison")
    if year is None or month is None or year not in resolve_years(filt.years, dataset.entered_years()):
        return []
    df = apply_filter(dataset.frame, filt)
    return dataset.records_at(_month_rows(year_rows(df, year), month).index)


def drill_segment(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    year = _int(cell.get("year"))
    if year is None:
        return []
    df = year_rows(segment_base(dataset.frame, filters.local("segment")), year)
    segment = cell.get("segment")
    if segment:
        df = df[df["segment_category"] == segment]
    return dataset.records_at(df.index)


def drill_lead_time(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    key = cell.get("range")
    if not key:
        return []
    df = lead_time_bucket(lead_time_base(dataset.frame, filters.local("lead_time")), str(key))
    year = _int(cell.get("year"))
    if year is not None:
        df = year_rows(df, year)
    return dataset.records_at(df.index)


def drill_heat_map(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    year, month = _int(cell.get("year")), _int(cell.get("month_num"))
    if year is None or month is None:
        return []
    filt = filters.local("heat_map")
    df = heat_map_base(dataset.frame, filt, heat_map_years(dataset, filt))
    return dataset.records_at(heat_map_cell(df, year, month).index)


def drill_block_size(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    key = cell.get("key")
    if not key:
        return []
    df = block_size_base(dataset.frame, filters.local("block_size"))
    return dataset.records_at(block_size_bucket(df, str(key)).index)


def drill_manager(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    manager = cell.get("manager")
    if not manager:
        return []
    df = manager_rows(dataset.frame, filters, settings, str(manager))
    if cell.get("converted_only"):
        df = df[df["status"].isin(CONVERTED_STATUSES)]
    return dataset.records_at(df.index)


def drill_pipeline(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    df = pipeline_base(dataset.frame, filters)
    return dataset.records_at(df.index[df["grade_label"] == cell.get("grade")])


def drill_lost_reason(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    reason = cell.get("reason")
    if not reason:
        return []
    df = lost_base(dataset.frame, filters.local("lost"))
    df = df[lost_reason_labels(df) == reason]
    year = _int(cell.get("year"))
    if year is not None:
        df = year_rows(df, year)
    return dataset.records_at(df.index)


def drill_comment_theme(dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings, cell: Cell):
    """Members of one comment theme inside a lost-reason row; no theme selects the unthemed rest."""
    bucket = drill_lost_reason(dataset, filters, settings, {"reason": cell.get("reason")})
    return comment_theme_records(bucket, cell.get("theme") or None)


DRILLDOWNS: Dict[str, Resolver] = {
    "entered_month": drill_entered_month,
    "kpi_summary": drill_kpi,
    "group_vs_catering": drill_group_vs_catering,
    "event_revenue_by_year": drill_event_revenue,
    "lead_volume": drill_lead_volume,
    "monthly_comparison": drill_monthly_comparison,
    "segment_comparison": drill_segment,
    "lead_time_distribution": drill_lead_time,
    "arrival_heat_map": drill_heat_map,
    "block_size": drill_block_size,
    "manager_performance": drill_manager,
    "pipeline": drill_pipeline,
    "lost_analysis": drill_lost_reason,
    "comment_themes": drill_comment_theme,
}


def resolve_drilldown(
    dataset: BookingDataset,
    filters: DashboardFilters,
    view: str,
    cell: Optional[Cell] = None,
    settings: Optional[EngineSettings] = None,
) -> List[BookingRecord]:
    resolver = DRILLDOWNS.get(view)
    if resolver is None:
        logger.warning("No drill-down registered for view %r", view)
        return []
    return resolver(dataset, filters, settings or EngineSettings(), dict(cell or {}))
