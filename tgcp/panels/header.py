"""Header renderer."""

from __future__ import annotations

from typing import Optional

from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from tgcp.formatting import compact_relative_age
from tgcp.state import AppState


def _breadcrumbs(state: AppState) -> str:
    return " > ".join(escape(crumb) for crumb in state.stack.breadcrumbs())


def _freshness(state: AppState, now: Optional[float]) -> str:
    if state.loading:
        return "[yellow]loading...[/yellow]"
    age = state.frame_age(now)
    if age is None:
        return "[dim]not loaded[/dim]"
    return f"updated {compact_relative_age(age)}"


def render(state: AppState, layout_mode: str, now: Optional[float] = None):
    scope = state.scope
    count = f"{len(state.filtered)}/{len(state.items)}" if state.filter_text else str(len(state.items))
    active = state.notifications.active_count()

    if layout_mode == "narrow":
        line = f"[bold]{escape(scope.project)}[/bold] {escape(scope.label())} | {_breadcrumbs(state)} ({count})"
        header = Text.from_markup(line, overflow="ellipsis")
        header.no_wrap = True
        return header

    text = (
        f"Project: [bold]{escape(scope.project)}[/bold]   "
        f"Zone: [bold]{escape(scope.label())}[/bold]   "
        f"View: [bold]{_breadcrumbs(state)}[/bold]   "
        f"Items: [bold]{count}[/bold]   "
        f"{_freshness(state, now)}"
    )
    if active:
        text += f"   Ops: [bold]{active}[/bold]"
    if state.readonly:
        text += "   [magenta]read-only[/magenta]"
    return Panel(text, title="[bold]tgcp[/bold]", border_style="cyan")
