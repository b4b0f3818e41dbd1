from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class EngineSettingsModel(BaseModel):
    allowed_managers: List[str] = Field(default_factory=lambda: ["Whitney Britton", "Anna Lawless"])
    lost_top_n: int = 15
    unthemed_display_limit: int = 15
    manager_lost_reasons_top_n: int = 5


class FilterSetModel(BaseModel):
    years: List[int] = Field(default_factory=list)
    status: str = "all"
    grades: List[str] = Field(default_factory=list)
    booking_category: str = "all"
    segment: str = "all"


class DashboardFiltersModel(BaseModel):
    global_filter: FilterSetModel = Field(default_factory=FilterSetModel)
    local_filters: Dict[str, FilterSetModel] = Field(default_factory=dict)
    settings: EngineSettingsModel = Field(default_factory=EngineSettingsModel)


class RowsPayload(BaseModel):
    rows: List[Dict[str, Optional[str]]]


class DrilldownRequest(BaseModel):
    filters: DashboardFiltersModel = Field(default_factory=DashboardFiltersModel)
    cell: Dict[str, Any] = Field(default_factory=dict)


class CommentThemesRequest(BaseModel):
    filters: DashboardFiltersModel = Field(default_factory=DashboardFiltersModel)
    reason: Optional[str] = None
    booking_numbers: List[str] = Field(default_factory=list)


class DatasetSummary(BaseModel):
    record_count: int
    rows_read: int
    rows_rejected: int
    entered_years: List[int]
    arrival_years: List[int]
    fnb_column: Optional[str] = None
    rental_column: Optional[str] = None
