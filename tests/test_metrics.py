#!/usr/bin/env python3
"""
test_metrics.py

Unit tests for the view reducers (overview, revenue, leads, arrivals,
managers, pipeline, lost analysis and comment themes).
"""

import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from booking_core.filters import DashboardFilters, EngineSettings, FilterSet
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
from sample_rows import make_dataset, make_row


def kpi_dataset():
    return make_dataset(
        make_row("B1", status="Definite", revenue="$10,000", rn="100", event="2000", fnb="1500", rental="500",
                 entered="2024-01-01", arrival="2024-03-10", response="2"),
        make_row("B2", status="Actual", type="Event - Wedding", revenue="$5,000", event="4000", segment="SMERF",
                 entered="2024-02-01", arrival="2024-02-15"),
        make_row("B3", status="Tentative", grade="2", revenue="3000", rn="30",
                 entered="2024-03-01", arrival="2024-06-01", response="5"),
        make_row("B4", status="Lost", reason="Rate was too expensive for our budget",
                 entered="2024-04-01", arrival="2024-04-01"),
    )


class TestOverview(unittest.TestCase):

    def test_kpi_summary(self):
        payload = compute_kpi_summary(kpi_dataset(), DashboardFilters())
        kpis = payload["kpis"]
        self.assertEqual(kpis["total_leads"], 4)
        self.assertEqual(kpis["converted_count"], 2)
        self.assertEqual(kpis["tentative_count"], 1)
        self.assertEqual(kpis["lost_count"], 1)
        self.assertEqual(kpis["conversion_rate"], 50.0)
        self.assertEqual(kpis["total_revenue"], 15000.0)
        self.assertEqual(kpis["total_room_nights"], 100.0)
        self.assertEqual(kpis["total_event_revenue"], 6000.0)
        self.assertEqual(kpis["total_fnb_revenue"], 1500.0)
        self.assertEqual(kpis["total_rental_revenue"], 500.0)
        # (69 + 14 + 92) / 3, lead time 0 excluded
        self.assertEqual(kpis["avg_lead_time"], 58)
        self.assertEqual(kpis["avg_response_time"], 3.5)
        self.assertEqual(kpis["avg_booking_value"], 7500.0)
        self.assertEqual(kpis["spend_per_group_rn"], 20.0)
        self.assertTrue(all(v is None for v in payload["variances"].values()))

    def test_empty_selection_is_guarded(self):
        filters = DashboardFilters(global_filter=FilterSet(years=(1999,)))
        kpis = compute_kpi_summary(kpi_dataset(), filters)["kpis"]
        self.assertEqual(kpis["total_leads"], 0)
        self.assertEqual(kpis["conversion_rate"], 0.0)
        self.assertEqual(kpis["avg_lead_time"], 0)
        self.assertEqual(kpis["avg_booking_value"], 0.0)
        self.assertEqual(kpis["spend_per_group_rn"], 0.0)

    def test_kpi_details(self):
        details = compute_kpi_details(kpi_dataset(), DashboardFilters())
        self.assertEqual(details["conversion"]["overall"], 50.0)
        self.assertEqual(details["conversion"]["social"], 100.0)
        self.assertEqual(details["lead_time"]["catering"], 14)
        self.assertEqual(details["response"]["under_2h"], 50.0)
        counts = {row["range"]: row["count"] for row in details["response"]["distribution"]}
        self.assertEqual(counts["0-2h"], 1)
        self.assertEqual(counts["4-8h"], 1)
        self.assertEqual(details["room_nights"]["group"], 100.0)


class TestRevenue(unittest.TestCase):

    def test_shared_category_revenue(self):
        dataset = make_dataset(
            make_row("B1", status="Definite", revenue="$10,000"),
            make_row("B2", status="Actual", revenue="$5,000"),
        )
        payload = compute_group_vs_catering(dataset, DashboardFilters())
        self.assertEqual(payload["group"]["group_revenue"], 15000.0)
        self.assertEqual(payload["group"]["count"], 2)
        self.assertEqual(payload["catering"]["count"], 0)

    def test_converted_only_partition(self):
        payload = compute_group_vs_catering(kpi_dataset(), DashboardFilters())
        self.assertEqual(payload["group"]["group_revenue"], 10000.0)
        self.assertEqual(payload["catering"]["group_revenue"], 5000.0)
        self.assertEqual(payload["catering"]["event_revenue"], 4000.0)
        self.assertEqual(payload["spend_per_group_rn"], 20.0)

    def test_event_revenue_by_year_sorted(self):
        dataset = make_dataset(
            make_row("B1", entered="2024-02-01", fnb="100", rental="50", event="150"),
            make_row("B2", entered="2023-02-01", fnb="10", rental="5", event="15"),
            make_row("B3", entered="2023-03-01", fnb="1", event="1"),
            make_row("B4", entered="2023-03-01", status="Lost", fnb="999"),
        )
        rows = compute_event_revenue_by_year(dataset, DashboardFilters())["rows"]
        self.assertEqual([r["year"] for r in rows], [2023, 2024])
        self.assertEqual(rows[0], {"year": 2023, "fnb": 11.0, "rental": 5.0, "total": 16.0})


class TestLeads(unittest.TestCase):

    def setUp(self):
        self.dataset = make_dataset(
            make_row("B1", entered="2023-01-05", segment="SMERF"),
            make_row("B2", entered="2023-01-20"),
            make_row("B3", entered="2024-01-10", status="Lost"),
            make_row("B4", entered="2024-02-10", segment="Social"),
        )

    def test_lead_volume(self):
        payload = compute_lead_volume(self.dataset, DashboardFilters())
        self.assertEqual(payload["years"], [2023, 2024])
        self.assertEqual(len(payload["rows"]), 12)
        jan, feb = payload["rows"][0], payload["rows"][1]
        self.assertEqual((jan["month"], jan["y2023"], jan["y2024"]), ("Jan", 2, 1))
        self.assertEqual((feb["y2023"], feb["y2024"]), (0, 1))

    def test_lead_growth_needs_two_years(self):
        rows = compute_lead_growth(self.dataset, DashboardFilters())["rows"]
        self.assertEqual(rows[0]["growth"], -50.0)
        self.assertEqual(rows[1]["growth"], 0.0)

        one_year = DashboardFilters().with_local("lead_volume", FilterSet(years=(2024,)))
        self.assertEqual(compute_lead_growth(self.dataset, one_year)["rows"], [])
        three_years = DashboardFilters().with_local("lead_volume", FilterSet(years=(2022, 2023, 2024)))
        self.assertEqual(compute_lead_growth(self.dataset, three_years)["rows"], [])

    def test_monthly_comparison(self):
        rows = compute_monthly_comparison(self.dataset, DashboardFilters())["rows"]
        self.assertEqual([r["month"] for r in rows], ["Jan", "Feb"])
        self.assertEqual(rows[1]["y2023"], 0)

    def test_segment_comparison(self):
        rows = compute_segment_comparison(self.dataset, DashboardFilters())["rows"]
        self.assertEqual(rows[0], {
            "year": 2023, "corporate": 1, "social": 1, "total": 2, "corporate_pct": 50.0, "social_pct": 50.0,
        })
        self.assertEqual(rows[1]["social_pct"], 50.0)

    def test_segment_monthly(self):
        rows = compute_segment_monthly(self.dataset, 2024)["rows"]
        self.assertEqual(rows[2]["corporate"], 2)
        self.assertEqual(rows[2]["social"], 2)
        self.assertEqual(sum(r["total"] for r in rows), 4)

    def test_lead_time_distribution(self):
        dataset = make_dataset(
            make_row("B1", entered="2024-01-01", arrival="2024-03-10"),
            make_row("B2", entered="2024-01-01", arrival="2024-01-15"),
            make_row("B3", entered="2024-01-01", arrival="2024-01-01"),
            make_row("B4", entered="2023-01-01", arrival="2025-03-15", segment="SMERF"),
        )
        rows = {r["range"]: r for r in compute_lead_time_distribution(dataset, DashboardFilters())["rows"]}
        self.assertEqual(len(rows), 10)
        self.assertEqual(rows["61-90"]["y2024"], 1)
        self.assertEqual(rows["0-30"]["y2024"], 1)
        self.assertEqual(rows["731+"]["y2023"], 1)
        self.assertEqual(sum(r["y2024"] for r in rows.values()), 2)

        social = DashboardFilters().with_local("lead_time", FilterSet(segment="Social"))
        rows = compute_lead_time_distribution(dataset, social)["rows"]
        self.assertEqual(sum(r["y2023"] + r["y2024"] for r in rows), 1)


class TestArrivals(unittest.TestCase):

    def setUp(self):
        self.dataset = make_dataset(
            make_row("B1", arrival="2024-03-01", entered="2023-12-01", peak="3", revenue="100"),
            make_row("B2", arrival="2024-03-20", entered="2024-01-01", peak="150", revenue="900"),
            make_row("B3", arrival="2024-06-01", entered="2024-01-01", grade="1", peak="0"),
        )

    def test_heat_map_rows_sum_to_100(self):
        payload = compute_arrival_heat_map(self.dataset, DashboardFilters())
        self.assertEqual(payload["years"], [2023, 2024])
        by_year = {row["year"]: row for row in payload["rows"]}
        row_2024 = by_year[2024]
        self.assertEqual(row_2024["total"], 3)
        self.assertAlmostEqual(sum(c["pct"] for c in row_2024["cells"]), 100.0, delta=0.1)
        march, june = row_2024["cells"][2], row_2024["cells"][5]
        self.assertEqual(march["count"], 2)
        self.assertEqual(march["pct"], 66.7)
        self.assertEqual(march["intensity"], 1.0)
        self.assertAlmostEqual(june["intensity"], 0.5)
        self.assertEqual(by_year[2023]["total"], 0)
        self.assertTrue(all(c["intensity"] == 0 for c in by_year[2023]["cells"]))

    def test_heat_map_local_grade_filter(self):
        filters = DashboardFilters().with_local("heat_map", FilterSet(years=(2024,), grades=("Grade 1",)))
        payload = compute_arrival_heat_map(self.dataset, filters)
        self.assertEqual(payload["years"], [2024])
        self.assertEqual(payload["rows"][0]["total"], 1)
        self.assertEqual(payload["rows"][0]["cells"][5]["pct"], 100.0)

    def test_block_size(self):
        buckets = {b["key"]: b for b in compute_block_size(self.dataset, DashboardFilters())["buckets"]}
        self.assertEqual(len(buckets), 8)
        self.assertEqual(buckets["1-5"]["count"], 1)
        self.assertEqual(buckets["101+"]["revenue"], 900.0)
        self.assertEqual(buckets["101+"]["label"], "101+ RN")
        self.assertEqual(sum(b["count"] for b in buckets.values()), 2)


class TestManagers(unittest.TestCase):

    def setUp(self):
        self.dataset = make_dataset(
            make_row("B1", manager="Whitney Britton", status="Definite", revenue="1000", response="2", rate="150"),
            make_row("B2", manager="Whitney Britton", status="Lost", response="4", reason="Went with cheaper hotel"),
            make_row("B3", manager="Anna Lawless", status="Actual", revenue="500"),
            make_row("B4", manager="Somebody Else", status="Definite", revenue="9999"),
        )

    def test_allow_list_and_team_average(self):
        payload = compute_manager_performance(self.dataset, DashboardFilters())
        managers = payload["managers"]
        self.assertEqual([m["manager"] for m in managers], ["Whitney Britton", "Anna Lawless"])
        wb = managers[0]
        self.assertEqual((wb["leads"], wb["converted"], wb["conversion_rate"]), (2, 1, 50.0))
        self.assertEqual(wb["avg_response_time"], 3.0)
        self.assertEqual(wb["avg_rate"], 150.0)
        self.assertEqual(wb["avg_booking_value"], 1000.0)
        self.assertEqual(managers[1]["avg_response_time"], 0.0)
        team = payload["team_average"]
        self.assertEqual(team["leads"], 1.5)
        self.assertEqual(team["conversion_rate"], 75.0)
        self.assertEqual(team["avg_response"], 3.0)

    def test_custom_allow_list(self):
        settings = EngineSettings(allowed_managers=("Somebody Else",))
        managers = compute_manager_performance(self.dataset, DashboardFilters(), settings)["managers"]
        self.assertEqual([m["manager"] for m in managers], ["Somebody Else"])

    def test_manager_detail(self):
        detail = compute_manager_detail(self.dataset, DashboardFilters(), "Whitney Britton")
        self.assertEqual(detail["kpis"]["lost"], 1)
        self.assertEqual(detail["lost_reasons"], [{"reason": "Went with cheaper hotel", "count": 1}])
        self.assertEqual(detail["versus_team"]["leads"], 0.5)
        self.assertEqual(detail["monthly"][0]["month_label"], "Jan 24")
        self.assertEqual(detail["segments"][0]["segment"], "Corporate")

    def test_manager_detail_pipeline_puts_ungraded_last(self):
        dataset = make_dataset(
            make_row("T1", status="Tentative", grade="0"),
            make_row("T2", status="Tentative", grade="3"),
            make_row("T3", status="Tentative", grade="1"),
        )
        detail = compute_manager_detail(dataset, DashboardFilters(), "Whitney Britton")
        self.assertEqual([g["grade"] for g in detail["pipeline"]], ["Grade 1", "Grade 3", "Ungraded"])


class TestPipelineAndLost(unittest.TestCase):

    def test_pipeline_sorted_ungraded_last(self):
        dataset = make_dataset(
            make_row("B1", status="Tentative", grade="0", rn="10"),
            make_row("B2", status="Tentative", grade="2", revenue="200"),
            make_row("B3", status="Tentative", grade="1"),
            make_row("B4", status="Definite", grade="1"),
        )
        payload = compute_pipeline(dataset, DashboardFilters())
        self.assertEqual([g["grade"] for g in payload["grades"]], ["Grade 1", "Grade 2", "Ungraded"])
        self.assertEqual(payload["total"], 3)
        self.assertEqual(payload["grades"][2]["room_nights"], 10.0)

    def test_lost_analysis_themes(self):
        dataset = make_dataset(
            make_row("B1", status="Lost", reason="Rate was too expensive for our budget", entered="2023-02-01"),
            make_row("B2", status="Turn Down", reason="Price", entered="2024-02-01"),
            make_row("B3", status="Cancelled", reason="", entered="2024-02-01"),
            make_row("B4", status="Lost", reason="Other - C-comments", entered="2024-02-01"),
            make_row("B5", status="Definite", reason="Price"),
        )
        payload = compute_lost_analysis(dataset, DashboardFilters())
        rows = {r["reason"]: r for r in payload["rows"]}
        self.assertEqual(payload["total_lost"], 4)
        self.assertEqual(payload["rows"][0]["reason"], "Price")
        self.assertEqual((rows["Price"]["total"], rows["Price"]["y2023"], rows["Price"]["y2024"]), (2, 1, 1))
        self.assertIn("No Reason Given", rows)
        self.assertTrue(rows["Other - C-comments"]["has_comment_themes"])
        self.assertFalse(rows["Price"]["has_comment_themes"])

        capped = compute_lost_analysis(dataset, DashboardFilters(), EngineSettings(lost_top_n=2))
        self.assertEqual(len(capped["rows"]), 2)

    def test_comment_themes(self):
        dataset = make_dataset(
            make_row("B1", reason="Rate was too expensive for our budget"),
            make_row("B2", reason="Client never heard back"),
            make_row("B3", reason="Budget cut"),
            make_row("B4", reason="???"),
            make_row("B5", reason="Board vote"),
        )
        payload = compute_comment_themes(dataset.records, EngineSettings(unthemed_display_limit=1))
        self.assertEqual(payload["total"], 5)
        self.assertEqual(payload["themes"][0]["theme"], "Rate Too High")
        self.assertEqual(payload["themes"][0]["count"], 2)
        self.assertEqual(payload["themes"][1]["theme"], "No Response")
        self.assertEqual(payload["unthemed_count"], 2)
        self.assertEqual([r.booking_number for r in payload["unthemed"]], ["B4"])


if __name__ == "__main__":
    unittest.main()
