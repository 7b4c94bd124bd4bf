from __future__ import annotations

import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from tgcp.navigation import NavigationError, NavigationFrame, NavigationStack  # noqa: E402
from tgcp.tests.fakes import SCOPE  # noqa: E402


class NavigationFrameTests(unittest.TestCase):
    def test_updated_keeps_identity(self):
        frame = NavigationFrame("vm", SCOPE, label="VMs")
        updated = frame.updated(items=({"name": "a"},), fetched_at=5.0)
        self.assertEqual(updated.frame_id, frame.frame_id)
        self.assertEqual(frame.items, ())
        self.assertNotEqual(NavigationFrame("vm", SCOPE).frame_id, frame.frame_id)

    def test_request_carries_filter_and_context(self):
        frame = NavigationFrame("disk", SCOPE, filter=("filter", "users:a"), context=(("zone", "us-east1-b"),))
        request = frame.request("tok")
        self.assertEqual(request.filter, ("filter", "users:a"))
        self.assertEqual(request.context, (("zone", "us-east1-b"),))
        self.assertEqual(request.page_token, "tok")

    def test_staleness(self):
        frame = NavigationFrame("vm", SCOPE)
        self.assertTrue(frame.is_stale(60, now=0))
        fresh = frame.updated(fetched_at=100.0)
        self.assertFalse(fresh.is_stale(60, now=150.0))
        self.assertTrue(fresh.is_stale(60, now=161.0))


class NavigationStackTests(unittest.TestCase):
    def test_pop_at_root_is_noop(self):
        stack = NavigationStack(NavigationFrame("vm", SCOPE))
        self.assertIsNone(stack.pop())
        self.assertEqual(stack.depth, 1)

    def test_push_pop_round_trip(self):
        root = NavigationFrame("vm", SCOPE, label="VMs")
        stack = NavigationStack(root)
        stack.replace_top(root.updated(scroll_offset=7, filter_text="web"))
        child = NavigationFrame("disk", SCOPE, label="Disks (web-1)")
        stack.push(child)
        self.assertEqual(stack.breadcrumbs(), ["VMs", "Disks (web-1)"])
        self.assertIs(stack.pop(), child)
        self.assertEqual(stack.top.scroll_offset, 7)
        self.assertEqual(stack.top.filter_text, "web")

    def test_depth_limit(self):
        stack = NavigationStack(NavigationFrame("vm", SCOPE), max_depth=2)
        stack.push(NavigationFrame("disk", SCOPE))
        with self.assertRaises(NavigationError):
            stack.push(NavigationFrame("disk", SCOPE))

    def test_replace_by_identity(self):
        root = NavigationFrame("vm", SCOPE)
        stack = NavigationStack(root)
        child = NavigationFrame("disk", SCOPE)
        stack.push(child)
        self.assertTrue(stack.replace(root.updated(items=({"name": "a"},))))
        self.assertEqual(stack.root.items, ({"name": "a"},))
        self.assertIs(stack.top, child)
        stack.pop()
        self.assertFalse(stack.replace(child.updated(items=())))
        self.assertFalse(stack.contains(child.frame_id))
        self.assertIsNone(stack.find(child.frame_id))


if __name__ == "__main__":
    unittest.main()
