from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from booking_core.constants import (
    ALL,
    BOOKING_CATEGORIES,
    CONVERTED_STATUSES,
    DEFAULT_ALLOWED_MANAGERS,
    LOST_STATUSES,
    PIPELINE_STATUS,
    SEGMENT_CATEGORIES,
)

# Local filter keys, one per widget that owns its own selectors.
LOCAL_FILTER_KEYS: Tuple[str, ...] = (
    "group_vs_catering",
    "event_revenue",
    "lead_volume",
    "monthly_comparison",
    "segment",
    "lead_time",
    "heat_map",
    "block_size",
    "lost",
)

KNOWN_STATUSES: Tuple[str, ...] = CONVERTED_STATUSES + LOST_STATUSES + (PIPELINE_STATUS,)


@dataclass(frozen=True)
class EngineSettings:
    allowed_managers: Tuple[str, ...] = DEFAULT_ALLOWED_MANAGERS
    lost_top_n: int = 15
    unthemed_display_limit: int = 15
    manager_lost_reasons_top_n: int = 5


@dataclass(frozen=True)
class FilterSet:
    years: Tuple[int, ...] = ()
    status: str = ALL
    grades: Tuple[str, ...] = ()
    booking_category: str = ALL
    segment: str = ALL


@dataclass(frozen=True)
class DashboardFilters:
    global_filter: FilterSet = field(default_factory=FilterSet)
    local_filters: Dict[str, FilterSet] = field(default_factory=dict)

    def local(self, key: str) -> FilterSet:
        return self.local_filters.get(key) or FilterSet()

    def with_global(self, filter_set: FilterSet) -> "DashboardFilters":
        return replace(self, global_filter=filter_set)

    def with_local(self, key: str, filter_set: FilterSet) -> "DashboardFilters":
        local_filters = dict(self.local_filters)
        local_filters[key] = filter_set
        return replace(self, local_filters=local_filters)


def _as_int_list(values: Optional[Iterable[object]]) -> List[int]:
    if not values:
        return []
    out: List[int] = []
    for v in values:
        try:
            out.append(int(v))
        except (TypeError, ValueError):
            continue
    return out


def _as_choice(value: object, known: Iterable[str] = ()) -> str:
    """Trimmed selector value; a case-insensitive match on a known label returns that label."""
    s = str(value).strip() if value is not None else ""
    if not s or s.lower() == ALL:
        return ALL
    for label in known:
        if label.lower() == s.lower():
            return label
    return s


def normalize_filter_set(raw: Optional[dict]) -> FilterSet:
    raw = raw or {}
    years = tuple(sorted(set(_as_int_list(raw.get("years")))))
    grades = tuple(dict.fromkeys(str(g) for g in (raw.get("grades") or []) if g is not None))
    return FilterSet(
        years=years,
        status=_as_choice(raw.get("status"), KNOWN_STATUSES),
        grades=grades,
        booking_category=_as_choice(raw.get("booking_category"), BOOKING_CATEGORIES),
        segment=_as_choice(raw.get("segment"), SEGMENT_CATEGORIES),
    )


def normalize_filters(raw: Optional[dict]) -> DashboardFilters:
    raw = raw or {}
    local_raw = raw.get("local_filters") or {}
    local_filters = {str(k): normalize_filter_set(v) for k, v in local_raw.items()}
    return DashboardFilters(
        global_filter=normalize_filter_set(raw.get("global_filter")),
        local_filters=local_filters,
    )


def normalize_settings(raw: Optional[dict]) -> EngineSettings:
    raw = raw or {}
    defaults = EngineSettings()

    def _positive(key: str, default: int) -> int:
        try:
            return max(1, int(raw.get(key, default)))
        except (TypeError, ValueError):
            return default

    managers = raw.get("allowed_managers")
    return EngineSettings(
        allowed_managers=tuple(str(m) for m in managers) if managers else defaults.allowed_managers,
        lost_top_n=_positive("lost_top_n", defaults.lost_top_n),
        unthemed_display_limit=_positive("unthemed_display_limit", defaults.unthemed_display_limit),
        manager_lost_reasons_top_n=_positive("manager_lost_reasons_top_n", defaults.manager_lost_reasons_top_n),
    )


def resolve_years(years: Iterable[int], available: Iterable[int]) -> List[int]:
    """Selected years in ascending order; an open selection means every available year."""
    selected = sorted(set(years))
    return selected if selected else sorted(set(available))


# ---------------- Predicates ----------------
def filter_mask(frame: pd.DataFrame, filt: FilterSet, *, year_column: str = "entered_year") -> pd.Series:
    mask = pd.Series(True, index=frame.index)
    if frame.empty:
        return mask
    if filt.years:
        mask &= frame[year_column].isin(list(filt.years)).astype(bool)
    if filt.status != ALL:
        mask &= frame["status"].eq(filt.status)
    if filt.grades:
        mask &= frame["grade_label"].isin(list(filt.grades))
    if filt.booking_category != ALL:
        mask &= frame["booking_category"].eq(filt.booking_category)
    if filt.segment != ALL:
        mask &= frame["segment_category"].eq(filt.segment)
    return mask


def apply_filter(frame: pd.DataFrame, filt: FilterSet, *, year_column: str = "entered_year") -> pd.DataFrame:
    return frame[filter_mask(frame, filt, year_column=year_column)]


def converted(frame: pd.DataFrame) -> pd.DataFrame:
    return frame[frame["status"].isin(CONVERTED_STATUSES)]


def lost(frame: pd.DataFrame) -> pd.DataFrame:
    return frame[frame["status"].isin(LOST_STATUSES)]


def pipeline(frame: pd.DataFrame) -> pd.DataFrame:
    return frame[frame["status"].eq(PIPELINE_STATUS)]


def year_rows(frame: pd.DataFrame, year: int, *, year_column: str = "entered_year") -> pd.DataFrame:
    return frame[frame[year_column].isin([year]).astype(bool)]
