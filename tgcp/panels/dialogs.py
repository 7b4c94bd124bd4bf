"""Modal renderers: confirm, help, selectors and notification history."""

from __future__ import annotations

from typing import Optional

from rich.console import Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tgcp.notifications import NotificationCenter
from tgcp.panels import border_for, empty_panel, kv_table, panel_from_table
from tgcp.registry import ResourceDefinition
from tgcp.state import ConfirmRequest, Selector

MAX_LISTED_TARGETS = 5

NAVIGATION_HELP = [
    ("j/k, arrows", "move"),
    ("gg / G", "first / last row"),
    ("PgUp/PgDn", "page"),
    ("1-9", "jump to row"),
    ("enter, d", "describe"),
    ("/", "filter"),
    (":", "command"),
    ("b, backspace", "back"),
    ("]", "next page"),
    ("R", "refresh"),
    ("space / V", "select row / all"),
    ("F1-F6, F12", "sort by column / clear"),
    ("p / z", "project / zone"),
    ("n", "notifications"),
    ("q, ctrl-c", "quit"),
]


def render_confirm(confirm: ConfirmRequest) -> Panel:
    yes_style = "bold reverse" if confirm.selected_yes else "dim"
    no_style = "dim" if confirm.selected_yes else "bold reverse"
    buttons = Text.assemble(("  Yes  ", yes_style), "   ", ("  No  ", no_style))

    lines: list = [Text(confirm.message, style="bold")]
    if len(confirm.targets) > 1:
        names = [target_id for target_id, _ in confirm.targets[:MAX_LISTED_TARGETS]]
        extra = len(confirm.targets) - len(names)
        listing = ", ".join(names) + (f" +{extra} more" if extra > 0 else "")
        lines.append(Text(listing, style="dim"))
    lines.append(buttons)
    lines.append(Text("y/n, tab to toggle, enter to choose", style="dim"))
    status = "error" if confirm.destructive else "warn"
    return Panel(Group(*lines), title=f"[bold]{escape(confirm.action.display_name)}[/bold]", border_style=border_for(status))


def render_help(definition: Optional[ResourceDefinition]) -> Panel:
    rows = list(NAVIGATION_HELP)
    if definition is not None:
        for action in definition.actions:
            rows.append((action.key, action.display_name))
        for link in definition.sub_resources:
            rows.append((link.shortcut, f"open {link.display_name}"))
    title = f"Help: {definition.display_name}" if definition is not None else "Help"
    return panel_from_table(escape(title), "ok", kv_table(rows))


def render_selector(selector: Selector, height: int) -> Panel:
    options = selector.filtered
    title = "Select project" if selector.kind == "project" else "Select zone"
    query = Text.assemble(("> ", "bold"), selector.query, ("_", "blink"))
    if not options:
        return Panel(Group(query, Text("no matches", style="dim")), title=f"[bold]{title}[/bold]", border_style="cyan")

    visible = max(1, height)
    start = max(0, min(selector.selected - visible // 2, len(options) - visible))
    rows = [query]
    for index, option in enumerate(options[start:start + visible], start=start):
        style = "reverse" if index == selector.selected else ""
        rows.append(Text(option, style=style))
    subtitle = f"[dim]{len(options)}/{len(selector.options)}[/dim]"
    return Panel(Group(*rows), title=f"[bold]{title}[/bold]", subtitle=subtitle, border_style="cyan")


def render_notifications(center: NotificationCenter, now: Optional[float] = None) -> Panel:
    history = center.history()
    if not history:
        return empty_panel("Notifications", "No notifications")

    table = Table(box=None, expand=True, show_header=False)
    table.add_column("message", overflow="fold")
    for item in history:
        style = {"success": "green", "error": "red", "in_progress": "yellow"}.get(item.status, "")
        table.add_row(Text(item.message("verbose", now), style=style))
    title = f"Notifications ({len(history)}) [dim]c clears[/dim]"
    return panel_from_table(title, "ok", table)
