"""Describe (JSON detail) renderer."""

from __future__ import annotations

from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax

from tgcp.formatting import pretty_json
from tgcp.panels import border_for
from tgcp.state import DescribeView


def render(view: DescribeView, height: int) -> Panel:
    lines = pretty_json(view.data).splitlines()
    visible = max(1, height)
    start = min(view.scroll, max(0, len(lines) - 1))
    body = Syntax(
        "\n".join(lines[start:start + visible]),
        "json",
        theme="ansi_dark",
        line_numbers=True,
        start_line=start + 1,
        word_wrap=False,
    )
    suffix = " [dim](loading...)[/dim]" if view.loading else ""
    position = f"[dim]{start + 1}-{min(len(lines), start + visible)}/{len(lines)}[/dim]"
    return Panel(
        body,
        title=f"[bold]{escape(view.target_id)}[/bold]{suffix}",
        subtitle=position,
        border_style=border_for("busy" if view.loading else "ok"),
    )
