from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from booking_core.classify import comment_theme, lost_reason_theme
from booking_core.constants import COMMENT_THEMES, NO_REASON
from booking_core.data import BookingDataset, BookingRecord
from booking_core.filters import DashboardFilters, EngineSettings, FilterSet, apply_filter, lost, resolve_years, year_rows


def lost_base(frame: pd.DataFrame, filt: FilterSet) -> pd.DataFrame:
    return lost(apply_filter(frame, filt))


def lost_reason_labels(df: pd.DataFrame) -> pd.Series:
    reasons = df["terminal_reason"].where(df["terminal_reason"].ne(""), NO_REASON)
    return reasons.map(lost_reason_theme)


def is_comment_bucket(label: str) -> bool:
    """True for the "Other - C-comments" style labels that hold free-text comments."""
    s = label.lower()
    return "other" in s and ("c-comment" in s or "c comment" in s)


def compute_lost_analysis(
    dataset: BookingDataset,
    filters: DashboardFilters,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    settings = settings or EngineSettings()
    filt = filters.local("lost")
    years = resolve_years(filt.years, dataset.entered_years())
    df = lost_base(dataset.frame, filt)
    labels = lost_reason_labels(df)

    rows = []
    for label in dict.fromkeys(labels.tolist()):
        part = df[labels == label]
        row: Dict[str, Any] = {"reason": label, "total": len(part)}
        for year in years:
            row[f"y{year}"] = len(year_rows(part, year))
        row["has_comment_themes"] = is_comment_bucket(label)
        row["bookings"] = dataset.records_at(part.index)
        rows.append(row)
    rows.sort(key=lambda r: r["total"], reverse=True)
    return {
        "filters": asdict(filt),
        "years": years,
        "total_lost": len(df),
        "rows": rows[: settings.lost_top_n],
    }


def compute_comment_themes(
    records: Sequence[BookingRecord],
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Any]:
    """Re-cluster the given records by the fine comment theme table."""
    settings = settings or EngineSettings()
    grouped: Dict[str, List[BookingRecord]] = {}
    unthemed: List[BookingRecord] = []
    for record in records:
        theme = comment_theme(record.terminal_reason)
        if theme is None:
            unthemed.append(record)
        else:
            grouped.setdefault(theme, []).append(record)

    themes = [{"theme": t, "count": len(b), "bookings": b} for t, b in grouped.items()]
    themes.sort(key=lambda t: t["count"], reverse=True)
    return {
        "total": len(records),
        "theme_count": len(themes),
        "themes": themes,
        "unthemed_count": len(unthemed),
        "unthemed": unthemed[: settings.unthemed_display_limit],
    }


def comment_theme_records(records: Sequence[BookingRecord], theme: Optional[str]) -> List[BookingRecord]:
    """Members of one comment theme; ``None`` selects the unthemed remainder."""
    if theme is not None and theme not in COMMENT_THEMES:
        return []
    return [r for r in records if comment_theme(r.terminal_reason) == theme]
