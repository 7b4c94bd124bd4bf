from __future__ import annotations

import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from tgcp.commands import Command, parse, resolve_resource, suggestions  # noqa: E402
from tgcp.tests.fakes import sample_registry  # noqa: E402

ALIASES = {"box": "vm", "stale": "compute-instances"}


class ParseTests(unittest.TestCase):
    def setUp(self):
        self.registry = sample_registry()

    def parse(self, text):
        return parse(text, self.registry, ALIASES)

    def test_builtins(self):
        self.assertEqual(self.parse("q"), Command("quit"))
        self.assertEqual(self.parse(":exit"), Command("quit"))
        self.assertEqual(self.parse("Refresh"), Command("refresh"))
        self.assertEqual(self.parse("project other-project"), Command("project", ("other-project",)))
        self.assertEqual(self.parse("project"), Command("projects"))
        self.assertEqual(self.parse("zone"), Command("zones"))
        self.assertEqual(self.parse("notif clear"), Command("clear_notifications"))
        self.assertIsNone(self.parse("   "))

    def test_alias_usage(self):
        self.assertEqual(self.parse("alias x vm"), Command("alias", ("x", "vm")))
        self.assertEqual(self.parse("alias x").name, "invalid")

    def test_resources(self):
        self.assertEqual(self.parse("disk"), Command("navigate", ("disk",)))
        self.assertEqual(self.parse("box"), Command("navigate", ("vm",)))
        self.assertEqual(self.parse("di"), Command("navigate", ("disk",)))
        self.assertEqual(self.parse("stale"), Command("unknown", ("stale",)))
        self.assertEqual(self.parse("nope").arg, "nope")


class ResolveTests(unittest.TestCase):
    def test_exact_then_alias_then_unique_prefix(self):
        registry = sample_registry()
        self.assertEqual(resolve_resource("vm", registry, {"vm": "disk"}), "vm")
        self.assertEqual(resolve_resource("box", registry, ALIASES), "vm")
        self.assertEqual(resolve_resource("v", registry, {}), "vm")
        self.assertIsNone(resolve_resource("", registry, {}))


class SuggestionTests(unittest.TestCase):
    def test_empty_needle_lists_resources_first(self):
        result = suggestions("", sample_registry(), ALIASES)
        self.assertEqual(result[:4], ["disk", "vm", "box", "stale"])
        self.assertEqual(len(result), 8)

    def test_prefix_before_substring(self):
        self.assertEqual(suggestions("pro", sample_registry(), {}), ["projects", "project"])
        self.assertEqual(suggestions("ones", sample_registry(), {}), ["zones"])

    def test_arguments_stop_suggestions(self):
        self.assertEqual(suggestions("project a", sample_registry(), {}), [])


if __name__ == "__main__":
    unittest.main()
