from __future__ import annotations

import io
import time
import unittest
from pathlib import Path
import sys

from rich.console import Console

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from tgcp.config import Config  # noqa: E402
from tgcp import machine  # noqa: E402
from tgcp.panels import dialogs, describe, header, screen, status, table  # noqa: E402
from tgcp.state import AppState, DescribeView, Mode  # noqa: E402
from tgcp.tests.fakes import SCOPE, sample_registry, vms  # noqa: E402


def render_text(renderable, width: int = 120, height: int = 30) -> str:
    console = Console(file=io.StringIO(), record=True, width=width, height=height, color_system=None)
    console.print(renderable)
    return console.export_text()


def loaded_state(*names: str) -> AppState:
    state = AppState.initial(sample_registry(), SCOPE, "vm")
    state.stack.replace_top(state.top.updated(items=tuple(vms(*names)), fetched_at=time.monotonic()))
    state.recompute()
    return state


class TablePanelTests(unittest.TestCase):
    def test_rows_and_title(self):
        state = loaded_state("web-1", "web-2")
        state.selected_rows.add(1)
        text = render_text(table.render(state, 120))
        self.assertIn("VM Instances (2)", text)
        self.assertIn("STATUS", text)
        self.assertIn("web-2", text)
        self.assertIn("●", text)

    def test_narrow_width_drops_columns(self):
        text = render_text(table.render(loaded_state("web-1"), 40), width=40)
        self.assertIn("NAME", text)
        self.assertNotIn("STATUS", text)

    def test_sort_indicator(self):
        state = loaded_state("web-1")
        state.toggle_sort(1)
        self.assertIn("STATUS ▲", render_text(table.render(state, 120)))

    def test_empty_messages(self):
        state = loaded_state("web-1")
        state.set_filter("zzz")
        text = render_text(table.render(state, 120))
        self.assertIn("No matches for 'zzz'", text)
        self.assertIn("(0/1)", text)
        self.assertIn("No resources found", render_text(table.render(loaded_state(), 120)))

    def test_loading(self):
        state = AppState.initial(sample_registry(), SCOPE, "vm")
        machine.start(state, Config())
        self.assertIn("Loading...", render_text(table.render(state, 120)))


class HeaderAndStatusTests(unittest.TestCase):
    def test_header_modes(self):
        state = loaded_state("web-1")
        wide = render_text(header.render(state, "wide", now=time.monotonic()))
        self.assertIn("Project: demo-project", wide)
        self.assertIn("View: VM Instances", wide)
        self.assertIn("updated", wide)
        narrow = render_text(header.render(state, "narrow"), width=80)
        self.assertEqual(len(narrow.strip().splitlines()), 1)

    def test_readonly_marker(self):
        state = loaded_state("web-1")
        state.readonly = True
        self.assertIn("read-only", render_text(header.render(state, "medium")))

    def test_status_precedence(self):
        state = loaded_state("web-1")
        self.assertIn("? help", status.render(state).plain)
        state.selected_rows.add(0)
        self.assertEqual(status.render(state).plain, "1 selected (esc clears)")
        state.set_status("Cancelled")
        self.assertEqual(status.render(state).plain, "Cancelled")
        state.set_error("boom")
        self.assertEqual(status.render(state).plain, "Error: boom")

    def test_input_modes(self):
        state = loaded_state("web-1")
        state.mode = Mode.FILTER
        state.filter_text = "web"
        self.assertEqual(status.render(state).plain, "/web_")
        state.mode = Mode.COMMAND
        state.command.text = "di"
        state.command.suggestions = ["disk"]
        self.assertTrue(status.render(state).plain.startswith(":di_"))


class DialogTests(unittest.TestCase):
    def test_confirm_in_screen(self):
        state = loaded_state("web-1")
        machine.handle_key(state, "D", Config())
        text = render_text(screen.render(state, 120, 30))
        self.assertIn("Delete instance 'web-1'?", text)
        self.assertIn("Yes", text)

    def test_help_lists_actions(self):
        text = render_text(dialogs.render_help(sample_registry().lookup("vm")))
        self.assertIn("Help: VM Instances", text)
        self.assertIn("delete", text)
        self.assertIn("open Disks", text)

    def test_selector_filters(self):
        state = loaded_state("web-1")
        state.zones = ["all", "us-central1-a", "us-east1-b"]
        machine.handle_key(state, "z", Config())
        state.selector.query = "east"
        text = render_text(dialogs.render_selector(state.selector, 10))
        self.assertIn("us-east1-b", text)
        self.assertNotIn("us-central1-a", text)
        self.assertIn("1/3", text)

    def test_notifications(self):
        state = loaded_state("web-1")
        self.assertIn("No notifications", render_text(dialogs.render_notifications(state.notifications)))
        state.notifications.create("delete_instance", "vm", "web-1")
        self.assertIn("Deleting web-1 [vm]", render_text(dialogs.render_notifications(state.notifications)))

    def test_describe(self):
        view = DescribeView("vm", "web-1", {"name": "web-1", "cpus": 4}, loading=True)
        text = render_text(describe.render(view, 20))
        self.assertIn('"cpus": 4', text)
        self.assertIn("loading", text)


class ScreenTests(unittest.TestCase):
    def test_viewport_height(self):
        self.assertEqual(screen.list_viewport_height(120, 30), 23)
        self.assertEqual(screen.list_viewport_height(80, 30), 25)
        self.assertEqual(screen.list_viewport_height(80, 3), 1)

    def test_wide_describe_shows_list_and_detail(self):
        state = loaded_state("web-1")
        state.describe = DescribeView("vm", "web-1", {"name": "web-1", "machineType": "e2-small"})
        state.mode = Mode.DESCRIBE
        text = render_text(screen.render(state, 180, 30), width=180)
        self.assertIn("VM Instances (1)", text)
        self.assertIn('"machineType": "e2-small"', text)


if __name__ == "__main__":
    unittest.main()
