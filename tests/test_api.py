#!/usr/bin/env python3
"""
test_api.py

Endpoint tests for the FastAPI service (TestClient, in-memory dataset).
"""

import io
import unittest
from pathlib import Path
import sys

import pandas as pd
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from api import main
from booking_core.filters import DashboardFilters
from sample_rows import make_row

ROWS = [
    make_row("B1", entered="2023-02-01", revenue="$1,000", status="Definite"),
    make_row("B2", entered="2024-02-01", revenue="$1,500", status="Definite", peak="12"),
    make_row("B3", entered="2024-03-01", status="Lost", reason="Other - C-comments: event postponed"),
    make_row("B4", type="Internal Hold"),
]


class TestApi(unittest.TestCase):

    def setUp(self):
        main._STATE.clear()
        self.client = TestClient(main.app)

    def load(self):
        response = self.client.post("/dataset/rows", json={"rows": ROWS})
        self.assertEqual(response.status_code, 200)
        return response.json()

    def test_upload_rows(self):
        summary = self.load()
        self.assertEqual(summary["record_count"], 3)
        self.assertEqual(summary["rows_rejected"], 1)
        self.assertEqual(summary["entered_years"], [2023, 2024])

    def test_upload_csv(self):
        buffer = io.StringIO()
        pd.DataFrame(ROWS).to_csv(buffer, index=False)
        files = {"file": ("bookings.csv", buffer.getvalue().encode("utf-8"), "text/csv")}
        response = self.client.post("/dataset", files=files)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["record_count"], 3)

    def test_no_valid_records(self):
        response = self.client.post("/dataset/rows", json={"rows": [make_row("B1", type="Internal")]})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["type"], "NoValidRecordsError")

    def test_requires_dataset(self):
        response = self.client.post("/views/kpi_summary", json={})
        self.assertEqual(response.status_code, 409)

    def test_meta(self):
        self.load()
        self.assertEqual(self.client.get("/meta/years").json()["entered_years"], [2023, 2024])
        self.assertEqual(self.client.get("/meta/statuses").json()["statuses"], ["Definite", "Lost"])
        self.assertEqual(self.client.get("/meta/grades").json()["grades"], ["Ungraded"])
        names = [v["name"] for v in self.client.get("/meta/views").json()["views"]]
        self.assertIn("arrival_heat_map", names)

    def test_view_with_filters(self):
        self.load()
        body = {"global_filter": {"years": [2024]}}
        payload = self.client.post("/views/kpi_summary", json=body).json()
        self.assertEqual(payload["kpis"]["total_leads"], 2)
        self.assertEqual(payload["kpis"]["total_revenue"], 1500.0)
        self.assertEqual(payload["variances"]["leads"], 100.0)

    def test_single_variance_metric(self):
        self.load()
        body = {"global_filter": {"years": [2024]}}
        response = self.client.post("/variances", params={"metric": "leads"}, json=body)
        self.assertEqual(response.json()["variances"], {"leads": 100.0})
        self.assertEqual(self.client.post("/variances", params={"metric": "bogus"}, json=body).status_code, 404)

    def test_categories_and_segment_monthly(self):
        self.load()
        categories = self.client.get("/meta/categories").json()
        self.assertEqual(categories["segments"], ["Corporate", "Social"])
        rows = self.client.get("/segments/monthly/2024").json()["rows"]
        self.assertEqual(rows[2]["corporate"], 3)

    def test_view_with_charts(self):
        self.load()
        payload = self.client.post("/views/block_size", params={"include_charts": True}, json={}).json()
        self.assertIn("block_size", payload["charts"])
        self.assertEqual(payload["buckets"][2]["count"], 1)

    def test_unknown_view(self):
        self.load()
        response = self.client.post("/views/nope", json={})
        self.assertEqual(response.status_code, 404)

    def test_drilldown(self):
        self.load()
        response = self.client.post(
            "/drilldown/event_revenue_by_year", json={"cell": {"year": 2024}}
        )
        body = response.json()
        self.assertEqual(body["count"], 1)
        self.assertEqual(body["bookings"][0]["booking_number"], "B2")
        self.assertEqual(body["bookings"][0]["entered_date"], "2024-02-01")

    def test_drilldown_cell_named_like_parameters(self):
        self.load()
        cell = {"view": "x", "settings": "y", "year": 2024, "month_num": 2}
        response = self.client.post("/drilldown/lead_volume", json={"cell": cell})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([b["booking_number"] for b in response.json()["bookings"]], ["B2"])

    def test_requests_do_not_change_shared_filters(self):
        self.load()
        engine = main._STATE["engine"]
        self.client.post("/views/kpi_summary", json={"global_filter": {"years": [2024]}})
        self.assertEqual(engine.filters, DashboardFilters())
        payload = self.client.post("/views/kpi_summary", json={}).json()
        self.assertEqual(payload["kpis"]["total_leads"], 3)

    def test_comment_themes(self):
        self.load()
        lost = self.client.post("/views/lost_analysis", json={}).json()
        self.assertTrue(lost["rows"][0]["has_comment_themes"])
        reason = lost["rows"][0]["reason"]
        themes = self.client.post("/comment-themes", json={"reason": reason}).json()
        self.assertEqual(themes["themes"][0]["theme"], "Event Cancelled")
        by_number = self.client.post("/comment-themes", json={"booking_numbers": ["B1"]}).json()
        self.assertEqual(by_number["unthemed_count"], 1)

    def test_manager_detail(self):
        self.load()
        response = self.client.post("/managers/Whitney Britton", json={})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["kpis"]["leads"], 3)
        self.assertEqual(self.client.post("/managers/Nobody", json={}).status_code, 404)

    def test_export_records(self):
        self.load()
        response = self.client.post("/export/records", json={"global_filter": {"status": "Definite"}})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/csv"))
        exported = pd.read_csv(io.StringIO(response.text))
        self.assertEqual(exported["booking_number"].tolist(), ["B1", "B2"])


if __name__ == "__main__":
    unittest.main()
