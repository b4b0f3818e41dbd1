from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from booking_core.constants import BLOCK_SIZE_BUCKETS, MONTH_NAMES
from booking_core.data import BookingDataset, between_mask, col_sum, round_half_up
from booking_core.filters import DashboardFilters, EngineSettings, FilterSet, apply_filter, resolve_years, year_rows


def heat_map_years(dataset: BookingDataset, filt: FilterSet) -> List[int]:
    return resolve_years(filt.years, dataset.heat_map_years())


def heat_map_base(frame: pd.DataFrame, filt: FilterSet, years: List[int]) -> pd.DataFrame:
    base = apply_filter(frame, filt, year_column="arrival_year")
    base = base[base["arrival_year"].isin(years).astype(bool)]
    return base[base["arrival_month_num"].notna()]


def heat_map_cell(df: pd.DataFrame, year: int, month: int) -> pd.DataFrame:
    year_df = year_rows(df, year, year_column="arrival_year")
    return year_df[year_df["arrival_month_num"].isin([month]).astype(bool)]


def compute_arrival_heat_map(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    """Arrivals per year x month; each year's shares sum to 100%.

    ``intensity`` scales each cell against the busiest month of its own year
    (never less than a 1% share), so colour is comparable within a row only.
    """
    filt = filters.local("heat_map")
    years = heat_map_years(dataset, filt)
    base = heat_map_base(dataset.frame, filt, years)

    rows = []
    for year in years:
        year_df = year_rows(base, year, year_column="arrival_year")
        total = len(year_df)
        month_groups = [heat_map_cell(year_df, year, m) for m in range(1, 13)]
        shares = [len(g) / total * 100 if total else 0.0 for g in month_groups]
        max_share = max(shares + [1.0])
        cells = []
        for month, (group, share) in enumerate(zip(month_groups, shares), start=1):
            cells.append(
                {
                    "month": MONTH_NAMES[month - 1],
                    "month_num": month,
                    "count": len(group),
                    "pct": round_half_up(share, 1),
                    "intensity": min(share / max_share, 1.0),
                    "bookings": dataset.records_at(group.index),
                }
            )
        rows.append({"year": year, "total": total, "cells": cells})
    return {"filters": asdict(filt), "years": years, "rows": rows}


def block_size_base(frame: pd.DataFrame, filt: FilterSet) -> pd.DataFrame:
    base = apply_filter(frame, filt)
    return base[base["peak_room_nights"] > 0]


def block_size_bucket(df: pd.DataFrame, key: str) -> pd.DataFrame:
    for bucket_key, low, high in BLOCK_SIZE_BUCKETS:
        if bucket_key == key:
            return df[between_mask(df["peak_room_nights"], low, high)]
    return df.iloc[0:0]


def compute_block_size(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    filt = filters.local("block_size")
    df = block_size_base(dataset.frame, filt)
    buckets = []
    for key, low, high in BLOCK_SIZE_BUCKETS:
        bucket = block_size_bucket(df, key)
        buckets.append(
            {
                "key": key,
                "label": f"{key} RN",
                "min": low,
                "max": high,
                "count": len(bucket),
                "revenue": col_sum(bucket, "total_revenue"),
                "bookings": dataset.records_at(bucket.index),
            }
        )
    return {"filters": asdict(filt), "buckets": buckets}
