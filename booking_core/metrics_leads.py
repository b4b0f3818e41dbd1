from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from booking_core.constants import CORPORATE, LEAD_TIME_BUCKETS, MONTH_NAMES, SOCIAL
from booking_core.data import BookingDataset, between_mask, pct
from booking_core.filters import DashboardFilters, EngineSettings, FilterSet, apply_filter, resolve_years, year_rows


def month_year_counts(
    df: pd.DataFrame,
    years: List[int],
    *,
    month_column: str = "entered_month_num",
    year_column: str = "entered_year",
) -> pd.DataFrame:
    """Count matrix indexed by month number 1-12 with one column per year."""
    out = pd.DataFrame(0, index=range(1, 13), columns=years, dtype=int)
    df = df.dropna(subset=[month_column, year_column])
    if df.empty or not years:
        return out
    counts = df.groupby([month_column, year_column]).size()
    for (month, year), n in counts.items():
        if int(year) in out.columns:
            out.at[int(month), int(year)] = int(n)
    return out


def lead_volume_base(frame: pd.DataFrame, filt: FilterSet) -> pd.DataFrame:
    return apply_filter(frame, filt)


def compute_lead_volume(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    filt = filters.local("lead_volume")
    years = resolve_years(filt.years, dataset.entered_years())
    counts = month_year_counts(lead_volume_base(dataset.frame, filt), years)
    rows = []
    for month in range(1, 13):
        row: Dict[str, Any] = {"month": MONTH_NAMES[month - 1], "month_num": month}
        for year in years:
            row[f"y{year}"] = int(counts.at[month, year])
        rows.append(row)
    return {"filters": asdict(filt), "years": years, "rows": rows}


def compute_lead_growth(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    """Month-over-month lead growth between exactly two selected years; empty otherwise."""
    filt = filters.local("lead_volume")
    years = resolve_years(filt.years, dataset.entered_years())
    if len(years) != 2:
        return {"filters": asdict(filt), "years": years, "rows": []}
    year1, year2 = years
    counts = month_year_counts(lead_volume_base(dataset.frame, filt), years)
    rows = []
    for month in range(1, 13):
        y1 = int(counts.at[month, year1])
        y2 = int(counts.at[month, year2])
        rows.append(
            {
                "month": MONTH_NAMES[month - 1],
                "month_num": month,
                "growth": pct(y2 - y1, y1),
                "y1": y1,
                "y2": y2,
            }
        )
    return {"filters": asdict(filt), "years": years, "rows": rows}


def compute_monthly_comparison(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    filt = filters.local("monthly_comparison")
    years = resolve_years(filt.years, dataset.entered_years())
    base = apply_filter(dataset.frame, filt)
    base = base[base["entered_year"].isin(years).astype(bool)]
    counts = month_year_counts(base, years)
    present = sorted(int(m) for m in base["entered_month_num"].dropna().unique())
    rows = []
    for month in present:
        row: Dict[str, Any] = {"month_num": month, "month": MONTH_NAMES[month - 1]}
        for year in years:
            row[f"y{year}"] = int(counts.at[month, year])
        rows.append(row)
    return {"filters": asdict(filt), "years": years, "rows": rows}


def segment_base(frame: pd.DataFrame, filt: FilterSet) -> pd.DataFrame:
    base = apply_filter(frame, filt)
    return base[base["entered_year"].notna()]


def _segment_split(df: pd.DataFrame) -> Dict[str, Any]:
    corporate = int((df["segment_category"] == CORPORATE).sum())
    social = int((df["segment_category"] == SOCIAL).sum())
    total = corporate + social
    return {
        "corporate": corporate,
        "social": social,
        "total": total,
        "corporate_pct": pct(corporate, total),
        "social_pct": pct(social, total),
    }


def compute_segment_comparison(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    filt = filters.local("segment")
    df = segment_base(dataset.frame, filt)
    rows = []
    for year in sorted(int(y) for y in df["entered_year"].unique()):
        rows.append({"year": year, **_segment_split(year_rows(df, year))})
    return {"filters": asdict(filt), "rows": rows}


def compute_segment_monthly(dataset: BookingDataset, year: int) -> Dict[str, Any]:
    """Corporate vs social arrivals per month for one arrival year."""
    df = year_rows(dataset.frame, year, year_column="arrival_year")
    rows = []
    for month in range(1, 13):
        month_df = df[df["arrival_month_num"].isin([month]).astype(bool)]
        rows.append({"month": MONTH_NAMES[month - 1], "month_num": month, **_segment_split(month_df)})
    return {"year": year, "rows": rows}


def lead_time_base(frame: pd.DataFrame, filt: FilterSet) -> pd.DataFrame:
    base = apply_filter(frame, filt)
    return base[base["lead_time"] > 0]


def lead_time_bucket(df: pd.DataFrame, key: str) -> pd.DataFrame:
    for bucket_key, low, high in LEAD_TIME_BUCKETS:
        if bucket_key == key:
            return df[between_mask(df["lead_time"], low, high)]
    return df.iloc[0:0]


def compute_lead_time_distribution(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    filt = filters.local("lead_time")
    years = resolve_years(filt.years, dataset.entered_years())
    df = lead_time_base(dataset.frame, filt)
    rows = []
    for key, low, high in LEAD_TIME_BUCKETS:
        bucket = df[between_mask(df["lead_time"], low, high)]
        row: Dict[str, Any] = {"range": key}
        for year in years:
            row[f"y{year}"] = len(year_rows(bucket, year))
        rows.append(row)
    return {"filters": asdict(filt), "years": years, "rows": rows}
