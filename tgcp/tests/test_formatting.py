from __future__ import annotations

import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from tgcp.formatting import (  # noqa: E402
    compact_relative_age,
    enrich_budgets,
    enrich_project_billing_info,
    enrich_skus,
    extract_json_value,
    format_currency,
    format_size,
    format_unit_price,
    post_process,
    truncate,
)


class ExtractTests(unittest.TestCase):
    def test_paths(self):
        item = {"a": {"b": [{"c": 3}]}, "flag": False, "tags": ["x", "y"], "meta": {}}
        self.assertEqual(extract_json_value(item, "a.b.0.c"), "3")
        self.assertEqual(extract_json_value(item, "a.b.5.c"), "-")
        self.assertEqual(extract_json_value(item, "missing"), "-")
        self.assertEqual(extract_json_value(item, "flag"), "false")
        self.assertEqual(extract_json_value(item, "tags"), "[2 items]")
        self.assertEqual(extract_json_value(item, "meta"), "[object]")


class FormatTests(unittest.TestCase):
    def test_size(self):
        self.assertEqual(format_size(512), "512 B")
        self.assertEqual(format_size("1536"), "1.5 KB")
        self.assertEqual(format_size(10 * 1024 ** 3), "10.0 GB")
        self.assertEqual(format_size("n/a"), "-")

    def test_currency(self):
        self.assertEqual(format_currency(12.5), "$12.50")
        self.assertEqual(format_currency(1500), "$1.5K")
        self.assertEqual(format_currency(2_500_000), "$2.5M")
        self.assertEqual(format_currency(-1), "Last Period")
        self.assertEqual(format_unit_price(0), "Free")
        self.assertEqual(format_unit_price(0.02), "$0.0200")

    def test_truncate(self):
        self.assertEqual(truncate("instance-1", 20), "instance-1")
        self.assertEqual(truncate("instance-1", 5), "inst…")
        self.assertEqual(truncate("abc", 0), "")

    def test_relative_age(self):
        self.assertEqual(compact_relative_age(12), "12s ago")
        self.assertEqual(compact_relative_age(190), "3m ago")
        self.assertEqual(compact_relative_age(7200), "2h ago")
        self.assertEqual(compact_relative_age(None), "n/a")


class PostProcessTests(unittest.TestCase):
    def test_short_fields(self):
        item = post_process(
            {
                "zone": "https://www.googleapis.com/compute/v1/projects/p/zones/us-east1-b",
                "machineType": "projects/p/zones/us-east1-b/machineTypes/e2-small",
                "users": ["a", "b"],
                "creationTimestamp": "2024-03-01T10:00:00.000-07:00",
                "allowed": [{"IPProtocol": "tcp"}],
            }
        )
        self.assertEqual(item["zone_short"], "us-east1-b")
        self.assertEqual(item["machineType_short"], "e2-small")
        self.assertEqual(item["users_count"], "2")
        self.assertEqual(item["creationTimestamp_short"], "2024-03-01")
        self.assertEqual(item["action_display"], "ALLOW")

    def test_gke_displays(self):
        item = post_process({"autopilot": {"enabled": True}, "autoscaling": {"enabled": False}})
        self.assertEqual(item["autopilot_display"], "Autopilot")
        self.assertEqual(item["autoscaling_display"], "No")


class BillingTransformTests(unittest.TestCase):
    def test_budgets(self):
        response = enrich_budgets(
            {
                "budgets": [
                    {"amount": {"specifiedAmount": {"units": "2000"}}, "thresholdRules": [{}, {}]},
                    {"amount": {"lastPeriodAmount": {}}},
                ]
            }
        )
        first, second = response["budgets"]
        self.assertEqual(first["amount_display"], "$2.0K")
        self.assertEqual(first["thresholdRules_count"], "2")
        self.assertEqual(second["amount_display"], "Last Period")

    def test_project_billing_info_becomes_single_row(self):
        response = enrich_project_billing_info({"billingAccountName": "billingAccounts/AAA-111"})
        self.assertEqual(response["_self"][0]["billingAccountName_short"], "AAA-111")

    def test_sku_price(self):
        sku = {
            "pricingInfo": [
                {
                    "pricingExpression": {
                        "usageUnit": "GiBy.mo",
                        "tieredRates": [{"unitPrice": {"units": "0", "nanos": 20000000}}],
                    }
                }
            ]
        }
        response = enrich_skus({"skus": [sku, {}]})
        self.assertEqual((sku["price_display"], sku["usage_unit"]), ("$0.0200", "GiBy.mo"))
        self.assertEqual(response["skus"][1]["price_display"], "-")


if __name__ == "__main__":
    unittest.main()
