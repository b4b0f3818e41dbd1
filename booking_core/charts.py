from __future__ import annotations

from typing import Any, Callable, Dict, List

import altair as alt
import pandas as pd

from booking_core.constants import MONTH_NAMES

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _year_columns_long(rows: List[Dict[str, Any]], id_cols: List[str]) -> pd.DataFrame:
    """Melt the ``y<year>`` columns of a view's rows into (id..., year, count)."""
    df = pd.DataFrame(rows)
    year_cols = [c for c in df.columns if c.startswith("y") and c[1:].isdigit()]
    if df.empty or not year_cols:
        return pd.DataFrame(columns=id_cols + ["year", "count"])
    long_df = df.melt(id_vars=id_cols, value_vars=year_cols, var_name="year", value_name="count")
    long_df["year"] = long_df["year"].str[1:]
    return long_df


def lead_volume_chart(payload: Dict[str, Any]) -> Dict[str, Any]:
    long_df = _year_columns_long(payload.get("rows", []), ["month", "month_num"])
    hover = alt.selection_point(fields=["year"], on="mouseover", empty="all")
    chart = (
        alt.Chart(long_df)
        .mark_line(point={"filled": True, "size": 60})
        .encode(
            x=alt.X("month:N", sort=MONTH_NAMES, title="Month", axis=alt.Axis(grid=False)),
            y=alt.Y("count:Q", title="Leads", axis=alt.Axis(format="d", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("year:N", title="Year"),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.2)),
            tooltip=["year", "month", alt.Tooltip("count:Q", format=",")],
        )
        .add_params(hover)
    )
    return {"lead_volume": to_vega_spec(chart)}


def heat_map_chart(payload: Dict[str, Any]) -> Dict[str, Any]:
    cells = [
        {"year": str(row["year"]), "month": cell["month"], "count": cell["count"], "pct": cell["pct"], "intensity": cell["intensity"]}
        for row in payload.get("rows", [])
        for cell in row["cells"]
    ]
    chart = (
        alt.Chart(pd.DataFrame(cells, columns=["year", "month", "count", "pct", "intensity"]))
        .mark_rect()
        .encode(
            x=alt.X("month:N", sort=MONTH_NAMES, title="Arrival Month"),
            y=alt.Y("year:O", title="Arrival Year"),
            color=alt.Color("intensity:Q", scale=alt.Scale(domain=[0, 1], scheme="blues"), legend=None),
            tooltip=["year", "month", alt.Tooltip("count:Q", format=","), alt.Tooltip("pct:Q", title="Share %", format=".1f")],
        )
    )
    return {"arrival_heat_map": to_vega_spec(chart)}


def block_size_chart(payload: Dict[str, Any]) -> Dict[str, Any]:
    df = pd.DataFrame(
        [{"label": b["label"], "count": b["count"], "revenue": b["revenue"]} for b in payload.get("buckets", [])],
        columns=["label", "count", "revenue"],
    )
    hover = alt.selection_point(fields=["label"], on="mouseover", empty="all")
    chart = (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("label:N", sort=None, title="Peak Room Nights", axis=alt.Axis(grid=False)),
            y=alt.Y("count:Q", title="Bookings", axis=alt.Axis(gridDash=[4, 4], domain=False, ticks=False)),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
            tooltip=["label", alt.Tooltip("count:Q", format=","), alt.Tooltip("revenue:Q", format="$,.0f")],
        )
        .add_params(hover)
    )
    return {"block_size": to_vega_spec(chart)}


def segment_comparison_chart(payload: Dict[str, Any]) -> Dict[str, Any]:
    records = []
    for row in payload.get("rows", []):
        records.append({"year": str(row["year"]), "segment": "Corporate", "count": row["corporate"], "pct": row["corporate_pct"]})
        records.append({"year": str(row["year"]), "segment": "Social", "count": row["social"], "pct": row["social_pct"]})
    chart = (
        alt.Chart(pd.DataFrame(records, columns=["year", "segment", "count", "pct"]))
        .mark_bar()
        .encode(
            x=alt.X("year:O", title="Entered Year"),
            y=alt.Y("count:Q", stack="zero", title="Leads"),
            color=alt.Color("segment:N", title="Segment"),
            tooltip=["year", "segment", "count", alt.Tooltip("pct:Q", title="Share %", format=".1f")],
        )
    )
    return {"segment_comparison": to_vega_spec(chart)}


def event_revenue_chart(payload: Dict[str, Any]) -> Dict[str, Any]:
    df = pd.DataFrame(payload.get("rows", []), columns=["year", "fnb", "rental", "total"])
    long_df = df.melt(id_vars=["year"], value_vars=["fnb", "rental"], var_name="line", value_name="revenue")
    long_df["line"] = long_df["line"].map({"fnb": "F&B", "rental": "Rental"})
    chart = (
        alt.Chart(long_df)
        .mark_bar()
        .encode(
            x=alt.X("year:O", title="Entered Year"),
            y=alt.Y("revenue:Q", stack="zero", axis=alt.Axis(format="$~s", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("line:N", title="Revenue"),
            tooltip=["year", "line", alt.Tooltip("revenue:Q", format="$,.0f")],
        )
    )
    return {"event_revenue_by_year": to_vega_spec(chart)}


CHART_BUILDERS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    "lead_volume": lead_volume_chart,
    "arrival_heat_map": heat_map_chart,
    "block_size": block_size_chart,
    "segment_comparison": segment_comparison_chart,
    "event_revenue_by_year": event_revenue_chart,
}


def build_charts(view_name: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    builder = CHART_BUILDERS.get(view_name)
    return builder(payload) if builder else {}
