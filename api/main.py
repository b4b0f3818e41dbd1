from __future__ import annotations

import io
import logging
import math
from dataclasses import asdict
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from fastapi import FastAPI, File, Query, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import CommentThemesRequest, DashboardFiltersModel, DatasetSummary, DrilldownRequest, RowsPayload
from booking_core.charts import build_charts
from booking_core.constants import BOOKING_CATEGORIES, SEGMENT_CATEGORIES
from booking_core.data import BookingDataset, NoValidRecordsError, build_dataset, records_frame
from booking_core.engine import VIEWS, AnalyticsEngine
from booking_core.filters import (
    LOCAL_FILTER_KEYS,
    DashboardFilters,
    EngineSettings,
    normalize_filters,
    normalize_settings,
)


app = FastAPI(title="Group Booking Analytics API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One in-memory batch per upload; replaced wholesale by the next upload.
_STATE: Dict[str, AnalyticsEngine] = {}


class NoDatasetError(RuntimeError):
    """Raised when a view is requested before any dataset was uploaded."""


def _engine() -> AnalyticsEngine:
    engine = _STATE.get("engine")
    if engine is None:
        raise NoDatasetError("No dataset loaded; POST /dataset first")
    return engine


def _request_state(model: DashboardFiltersModel) -> Tuple[DashboardFilters, EngineSettings]:
    """Per-request filters and settings; the shared engine state is left untouched."""
    return normalize_filters(model.model_dump()), normalize_settings(model.settings.model_dump())


def _load(rows: List[Dict[str, object]]) -> JSONResponse:
    dataset = build_dataset(rows)
    _STATE["engine"] = AnalyticsEngine(dataset)
    return _json(_summary(dataset).model_dump())


def _summary(dataset: BookingDataset) -> DatasetSummary:
    return DatasetSummary(
        record_count=dataset.record_count,
        rows_read=dataset.rows_read,
        rows_rejected=dataset.rows_rejected,
        entered_years=dataset.entered_years(),
        arrival_years=dataset.arrival_years(),
        fnb_column=dataset.columns.fnb_column,
        rental_column=dataset.columns.rental_column,
    )


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception, where: str) -> JSONResponse:
    content = {"error": str(exc), "type": type(exc).__name__}
    if isinstance(exc, NoValidRecordsError):
        return JSONResponse(status_code=422, content=content)
    if isinstance(exc, NoDatasetError):
        return JSONResponse(status_code=409, content=content)
    if isinstance(exc, KeyError):
        return JSONResponse(status_code=404, content=content)
    logger.exception("%s failed", where)
    return JSONResponse(status_code=500, content=content)


@app.post("/dataset")
async def upload_dataset(file: UploadFile = File(...)):
    try:
        content = await file.read()
        raw = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False)
        logger.info("Read %d rows from %s", len(raw), file.filename)
        return _load(raw.to_dict(orient="records"))
    except Exception as exc:
        return _error(exc, "upload_dataset")


@app.post("/dataset/rows")
def upload_rows(payload: RowsPayload):
    try:
        return _load([{k: ("" if v is None else v) for k, v in row.items()} for row in payload.rows])
    except Exception as exc:
        return _error(exc, "upload_rows")


@app.get("/meta/years")
def meta_years():
    try:
        dataset = _engine().dataset
        return _json(
            {
                "entered_years": dataset.entered_years(),
                "arrival_years": dataset.arrival_years(),
                "heat_map_years": dataset.heat_map_years(),
            }
        )
    except Exception as exc:
        return _error(exc, "meta_years")


@app.get("/meta/statuses")
def meta_statuses():
    try:
        return _json({"statuses": _engine().dataset.statuses()})
    except Exception as exc:
        return _error(exc, "meta_statuses")


@app.get("/meta/grades")
def meta_grades():
    try:
        return _json({"grades": _engine().dataset.grades()})
    except Exception as exc:
        return _error(exc, "meta_grades")


@app.get("/meta/categories")
def meta_categories():
    return _json({"booking_categories": list(BOOKING_CATEGORIES), "segments": list(SEGMENT_CATEGORIES)})


@app.get("/meta/views")
def meta_views():
    return _json(
        {
            "views": [
                {"name": node.name, "global": node.reads_global, "local_filter": node.local_key}
                for node in VIEWS.values()
            ],
            "local_filters": list(LOCAL_FILTER_KEYS),
        }
    )


@app.post("/views/{name}")
def view(name: str, filters: DashboardFiltersModel, include_charts: bool = Query(default=False)):
    try:
        payload = _engine().view(name, *_request_state(filters))
        if include_charts:
            payload = {**payload, "charts": build_charts(name, payload)}
        return _json(payload)
    except Exception as exc:
        return _error(exc, f"view {name}")


@app.post("/variances")
def variances(filters: DashboardFiltersModel, metric: Optional[str] = Query(default=None)):
    try:
        dashboard_filters, _ = _request_state(filters)
        return _json(
            {
                "filters": asdict(dashboard_filters.global_filter),
                "variances": _engine().variances(metric, dashboard_filters),
            }
        )
    except Exception as exc:
        return _error(exc, "variances")


@app.get("/segments/monthly/{year}")
def segment_monthly(year: int):
    try:
        return _json(_engine().segment_monthly(year))
    except Exception as exc:
        return _error(exc, "segment_monthly")


@app.post("/drilldown/{view_name}")
def drilldown(view_name: str, request: DrilldownRequest):
    try:
        records = _engine().drilldown(view_name, request.cell, *_request_state(request.filters))
        return _json({"view": view_name, "cell": request.cell, "count": len(records), "bookings": records})
    except Exception as exc:
        return _error(exc, f"drilldown {view_name}")


@app.post("/comment-themes")
def comment_themes(request: CommentThemesRequest):
    try:
        engine = _engine()
        dashboard_filters, settings = _request_state(request.filters)
        records = None
        if request.booking_numbers:
            wanted = set(request.booking_numbers)
            records = [r for r in engine.dataset.records if r.booking_number in wanted]
        payload = engine.comment_themes(
            records, {"reason": request.reason}, filters=dashboard_filters, settings=settings
        )
        return _json(payload)
    except Exception as exc:
        return _error(exc, "comment_themes")


@app.post("/managers/{manager}")
def manager_detail(manager: str, filters: DashboardFiltersModel):
    try:
        return _json(_engine().manager_detail(manager, *_request_state(filters)))
    except Exception as exc:
        return _error(exc, f"manager_detail {manager}")


@app.post("/export/records")
def export_records(filters: DashboardFiltersModel, group: str = Query(default="all")):
    """CSV of the globally filtered records (optionally one KPI status group)."""
    try:
        records = _engine().drilldown("kpi_summary", {"group": group}, *_request_state(filters))
        export_df = records_frame(records)
    except Exception as exc:
        return _error(exc, "export_records")
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(
        content=csv_bytes,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=bookings.csv"},
    )
