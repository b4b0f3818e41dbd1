"""Memoized view graph over one immutable dataset.

Each view declares the inputs it reads (global filter, one local filter key,
settings). ``AnalyticsEngine.view`` recomputes a view only when the
fingerprint of those inputs changed; filter updates replace ``FilterSet``s and
never touch the cached payloads of views that do not read them.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple

from booking_core.data import BookingDataset, BookingRecord
from booking_core.drilldown import resolve_drilldown
from booking_core.filters import LOCAL_FILTER_KEYS, DashboardFilters, EngineSettings, FilterSet
from booking_core.metrics_arrivals import compute_arrival_heat_map, compute_block_size
from booking_core.metrics_leads import (
    compute_lead_growth,
    compute_lead_time_distribution,
    compute_lead_volume,
    compute_monthly_comparison,
    compute_segment_comparison,
    compute_segment_monthly,
)
from booking_core.metrics_lost import compute_comment_themes, compute_lost_analysis
from booking_core.metrics_managers import compute_manager_detail, compute_manager_performance
from booking_core.metrics_overview import compute_kpi_details, compute_kpi_summary
from booking_core.metrics_pipeline import compute_pipeline
from booking_core.metrics_revenue import compute_event_revenue_by_year, compute_group_vs_catering
from booking_core.variance import compute_variance, compute_variances

logger = logging.getLogger(__name__)

ViewFn = Callable[[BookingDataset, DashboardFilters, Optional[EngineSettings]], Dict[str, Any]]


@dataclass(frozen=True)
class ViewNode:
    name: str
    compute: ViewFn
    reads_global: bool = False
    local_key: Optional[str] = None
    reads_settings: bool = False

    def fingerprint(self, dataset: BookingDataset, filters: DashboardFilters, settings: EngineSettings) -> Tuple[Hashable, ...]:
        return (
            dataset.signature,
            filters.global_filter if self.reads_global else None,
            filters.local(self.local_key) if self.local_key else None,
            settings if self.reads_settings else None,
        )


VIEWS: Dict[str, ViewNode] = {
    node.name: node
    for node in (
        ViewNode("kpi_summary", compute_kpi_summary, reads_global=True),
        ViewNode("kpi_details", compute_kpi_details, reads_global=True),
        ViewNode("group_vs_catering", compute_group_vs_catering, local_key="group_vs_catering"),
        ViewNode("event_revenue_by_year", compute_event_revenue_by_year, local_key="event_revenue"),
        ViewNode("lead_volume", compute_lead_volume, local_key="lead_volume"),
        ViewNode("lead_growth", compute_lead_growth, local_key="lead_volume"),
        ViewNode("monthly_comparison", compute_monthly_comparison, local_key="monthly_comparison"),
        ViewNode("segment_comparison", compute_segment_comparison, local_key="segment"),
        ViewNode("lead_time_distribution", compute_lead_time_distribution, local_key="lead_time"),
        ViewNode("arrival_heat_map", compute_arrival_heat_map, local_key="heat_map"),
        ViewNode("block_size", compute_block_size, local_key="block_size"),
        ViewNode("manager_performance", compute_manager_performance, reads_global=True, reads_settings=True),
        ViewNode("pipeline", compute_pipeline, reads_global=True),
        ViewNode("lost_analysis", compute_lost_analysis, local_key="lost", reads_settings=True),
    )
}


class AnalyticsEngine:
    """Holds one dataset plus the current filter state and the view cache.

    Every read method accepts an optional ``filters``/``settings`` pair. When
    given, that snapshot is used for the whole call instead of the engine's
    own state, so concurrent callers never see each other's selections.
    """

    def __init__(
        self,
        dataset: BookingDataset,
        filters: Optional[DashboardFilters] = None,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self.dataset = dataset
        self.filters = filters or DashboardFilters()
        self.settings = settings or EngineSettings()
        self._cache: Dict[str, Tuple[Tuple[Hashable, ...], Dict[str, Any]]] = {}
        self._lock = threading.Lock()
        self.compute_counts: Dict[str, int] = {name: 0 for name in VIEWS}

    # ---------------- State ----------------
    def set_filters(self, filters: DashboardFilters) -> None:
        self.filters = filters

    def set_global_filter(self, filter_set: FilterSet) -> None:
        self.filters = self.filters.with_global(filter_set)

    def set_local_filter(self, key: str, filter_set: FilterSet) -> None:
        if key not in LOCAL_FILTER_KEYS:
            raise KeyError(key)
        self.filters = self.filters.with_local(key, filter_set)

    def set_settings(self, settings: EngineSettings) -> None:
        self.settings = settings

    def _snapshot(
        self, filters: Optional[DashboardFilters], settings: Optional[EngineSettings]
    ) -> Tuple[DashboardFilters, EngineSettings]:
        return (
            self.filters if filters is None else filters,
            self.settings if settings is None else settings,
        )

    # ---------------- Views ----------------
    def view(
        self,
        name: str,
        filters: Optional[DashboardFilters] = None,
        settings: Optional[EngineSettings] = None,
    ) -> Dict[str, Any]:
        node = VIEWS[name]
        filters, settings = self._snapshot(filters, settings)
        key = node.fingerprint(self.dataset, filters, settings)
        with self._lock:
            cached = self._cache.get(name)
        if cached is not None and cached[0] == key:
            return cached[1]
        logger.debug("Recomputing view %s", name)
        payload = node.compute(self.dataset, filters, settings)
        with self._lock:
            self._cache[name] = (key, payload)
            self.compute_counts[name] += 1
        return payload

    def views(self, names: Optional[Sequence[str]] = None) -> Dict[str, Dict[str, Any]]:
        filters, settings = self._snapshot(None, None)
        return {name: self.view(name, filters, settings) for name in (names or list(VIEWS))}

    def variances(
        self, metric: Optional[str] = None, filters: Optional[DashboardFilters] = None
    ) -> Dict[str, Optional[float]]:
        global_filter = self._snapshot(filters, None)[0].global_filter
        if metric:
            return {metric: compute_variance(self.dataset, global_filter, metric)}  # type: ignore[arg-type]
        return compute_variances(self.dataset, global_filter)

    def segment_monthly(self, year: int) -> Dict[str, Any]:
        return compute_segment_monthly(self.dataset, year)

    def drilldown(
        self,
        view: str,
        cell: Optional[Dict[str, Any]] = None,
        filters: Optional[DashboardFilters] = None,
        settings: Optional[EngineSettings] = None,
    ) -> List[BookingRecord]:
        filters, settings = self._snapshot(filters, settings)
        return resolve_drilldown(self.dataset, filters, view, cell, settings)

    def comment_themes(
        self,
        records: Optional[Sequence[BookingRecord]] = None,
        cell: Optional[Dict[str, Any]] = None,
        filters: Optional[DashboardFilters] = None,
        settings: Optional[EngineSettings] = None,
    ) -> Dict[str, Any]:
        """Theme the given records, or the lost-analysis row named by ``cell["reason"]``."""
        filters, settings = self._snapshot(filters, settings)
        if records is None:
            records = resolve_drilldown(self.dataset, filters, "lost_analysis", cell, settings)
        return compute_comment_themes(records, settings)

    def manager_detail(
        self,
        manager: str,
        filters: Optional[DashboardFilters] = None,
        settings: Optional[EngineSettings] = None,
    ) -> Dict[str, Any]:
        filters, settings = self._snapshot(filters, settings)
        if manager not in settings.allowed_managers:
            raise KeyError(manager)
        return compute_manager_detail(self.dataset, filters, manager, settings)
