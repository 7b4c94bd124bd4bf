from __future__ import annotations

import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from tgcp.dispatch import (  # noqa: E402
    COMPUTE_BASE,
    DispatchError,
    MissingParameter,
    MissingScope,
    UnknownMethod,
    flatten_aggregated,
    is_known,
    resolve,
    with_query,
)
from tgcp.models import Scope  # noqa: E402

ZONAL = Scope(project="demo-project", zone="us-central1-a")


class ResolveTests(unittest.TestCase):
    def test_unknown_method(self):
        calls = []

        def builder(params, scope):
            calls.append(params)

        with self.assertRaises(UnknownMethod) as ctx:
            resolve("compute", "list_teapots", {}, ZONAL, table={("compute", "list_instances"): builder})
        self.assertEqual(ctx.exception.method, "list_teapots")
        self.assertEqual(calls, [])
        self.assertFalse(is_known("compute", "list_teapots"))

    def test_zonal_list(self):
        spec = resolve("compute", "list_instances", {}, ZONAL)
        self.assertEqual(spec.verb, "GET")
        self.assertEqual(spec.url, f"{COMPUTE_BASE}/projects/demo-project/zones/us-central1-a/instances")
        self.assertIsNone(spec.transform)

    def test_all_zones_uses_aggregated_endpoint(self):
        spec = resolve("compute", "list_instances", {"pageToken": "t1"}, Scope("demo-project", "all"))
        self.assertEqual(spec.url, f"{COMPUTE_BASE}/projects/demo-project/aggregated/instances?pageToken=t1")
        self.assertIs(spec.transform, flatten_aggregated)

    def test_action_uses_item_zone_over_scope(self):
        spec = resolve("compute", "start_instance", {"resource": "web-1", "zone": "europe-west1-b"}, ZONAL)
        self.assertEqual(spec.verb, "POST")
        self.assertEqual(
            spec.url, f"{COMPUTE_BASE}/projects/demo-project/zones/europe-west1-b/instances/web-1/start"
        )

    def test_zonal_action_needs_a_zone(self):
        with self.assertRaises(MissingScope):
            resolve("compute", "delete_instance", {"resource": "web-1"}, Scope("demo-project", "all"))

    def test_regional_list_derives_region_from_zone(self):
        spec = resolve("compute", "list_subnetworks", {}, ZONAL)
        self.assertEqual(spec.url, f"{COMPUTE_BASE}/projects/demo-project/regions/us-central1/subnetworks")

    def test_global_list_ignores_zone(self):
        spec = resolve("compute", "list_firewalls", {}, ZONAL)
        self.assertEqual(spec.url, f"{COMPUTE_BASE}/projects/demo-project/global/firewalls")

    def test_missing_project(self):
        with self.assertRaises(MissingScope):
            resolve("compute", "list_networks", {}, Scope())

    def test_missing_parameter(self):
        with self.assertRaises(MissingParameter) as ctx:
            resolve("container", "list_nodepools", {"location": "us-central1"}, ZONAL)
        self.assertEqual(ctx.exception.name, "cluster")

    def test_filter_is_encoded_as_query(self):
        params = {"filter": ['network = "default"'], "zone": "us-central1-a"}
        spec = resolve("compute", "list_subnetworks", params, ZONAL)
        self.assertTrue(spec.url.endswith("/subnetworks?filter=network%20%3D%20%22default%22"))

    def test_storage_objects(self):
        spec = resolve("storage", "list_objects", {"bucket": ["logs"], "pageToken": "p"}, ZONAL)
        self.assertEqual(spec.url, "https://storage.googleapis.com/storage/v1/b/logs/o?pageToken=p")

    def test_budgets_prefix_account(self):
        spec = resolve("billing", "list_budgets", {"billingAccount": "0123-4567"}, ZONAL)
        self.assertEqual(spec.url, "https://billingbudgets.googleapis.com/v1/billingAccounts/0123-4567/budgets")
        self.assertIsNotNone(spec.transform)

    def test_operation_poll_requires_google_url(self):
        link = f"{COMPUTE_BASE}/projects/demo-project/zones/us-central1-a/operations/op-1"
        self.assertEqual(resolve("operations", "get", {"self_link": link}, ZONAL).url, link)
        with self.assertRaises(DispatchError):
            resolve("operations", "get", {"self_link": "https://example.com/op"}, ZONAL)


class HelperTests(unittest.TestCase):
    def test_with_query_skips_internal_params(self):
        url = with_query("https://x/y", {"zone": "a", "maxResults": 5, "flag": True, "skip": None})
        self.assertEqual(url, "https://x/y?maxResults=5&flag=true")

    def test_with_query_repeats_list_values(self):
        self.assertEqual(with_query("https://x/y?a=1", {"filter": ["p", "q"]}), "https://x/y?a=1&filter=p&filter=q")

    def test_flatten_aggregated(self):
        response = {
            "items": {
                "zones/us-central1-a": {"instances": [{"name": "a"}]},
                "zones/us-east1-b": {"warning": {"code": "NO_RESULTS_ON_PAGE"}},
                "zones/europe-west1-b": {"instances": [{"name": "b"}, {"name": "c"}]},
            },
            "nextPageToken": "n",
        }
        flat = flatten_aggregated(response)
        self.assertEqual([item["name"] for item in flat["items"]], ["a", "b", "c"])
        self.assertEqual(flat["nextPageToken"], "n")
        self.assertEqual(flatten_aggregated({}), {"items": []})


if __name__ == "__main__":
    unittest.main()
