#!/usr/bin/env python3
"""
test_variance.py

Unit tests for year-over-year variance.
"""

import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from booking_core.filters import FilterSet
from booking_core.variance import VARIANCE_METRICS, compute_variance, compute_variances, percent_change
from sample_rows import make_dataset, make_row


def leads(year, count, **overrides):
    values = {"entered": f"{year}-02-01", "status": "Tentative"}
    values.update(overrides)
    return [make_row(f"{year}-{values['status']}-{i}", **values) for i in range(count)]


class TestVariance(unittest.TestCase):

    def test_leads_variance_against_prior_year(self):
        dataset = make_dataset(*(leads(2023, 80) + leads(2024, 100)))
        result = compute_variances(dataset, FilterSet(years=(2024,)))
        self.assertEqual(result["leads"], 25.0)
        self.assertEqual(result["pipeline"], 25.0)
        # no converted bookings in the prior year: prior value 0 is unavailable, not 0%
        self.assertIsNone(result["conversion"])
        self.assertIsNone(result["group_revenue"])

    def test_unavailable_without_prior_year(self):
        dataset = make_dataset(*leads(2024, 100))
        result = compute_variances(dataset, FilterSet(years=(2024,)))
        self.assertEqual(set(result), set(VARIANCE_METRICS))
        self.assertTrue(all(v is None for v in result.values()))

    def test_requires_exactly_one_year(self):
        dataset = make_dataset(*(leads(2023, 10) + leads(2024, 20)))
        self.assertTrue(all(v is None for v in compute_variances(dataset, FilterSet()).values()))
        both = compute_variances(dataset, FilterSet(years=(2023, 2024)))
        self.assertTrue(all(v is None for v in both.values()))

    def test_current_year_uses_global_filter(self):
        rows = leads(2023, 10) + leads(2024, 10) + leads(2024, 5, status="Lost")
        dataset = make_dataset(*rows)
        unfiltered = compute_variance(dataset, FilterSet(years=(2024,)), "leads")
        tentative_only = compute_variance(dataset, FilterSet(years=(2024,), status="Tentative"), "leads")
        self.assertEqual(unfiltered, 50.0)
        self.assertEqual(tentative_only, 0.0)

    def test_revenue_variance(self):
        rows = leads(2023, 1, status="Definite", revenue="1000") + leads(2024, 1, status="Definite", revenue="1500")
        result = compute_variances(make_dataset(*rows), FilterSet(years=(2024,)))
        self.assertEqual(result["group_revenue"], 50.0)
        self.assertEqual(result["conversion"], 0.0)

    def test_percent_change(self):
        self.assertIsNone(percent_change(10, 0))
        self.assertEqual(percent_change(90, 120), -25.0)

    def test_unknown_metric(self):
        dataset = make_dataset(*leads(2024, 1))
        with self.assertRaises(KeyError):
            compute_variance(dataset, FilterSet(years=(2024,)), "bogus")


if __name__ == "__main__":
    unittest.main()
