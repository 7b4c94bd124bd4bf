"""Full-screen composition of the panels for one frame."""

from __future__ import annotations

from typing import Optional

from rich.layout import Layout

from tgcp.layout import select_layout_mode
from tgcp.panels import dialogs, describe, header, status, table
from tgcp.state import AppState, Mode

HEADER_ROWS = {"narrow": 1, "medium": 3, "wide": 3}
FOOTER_ROWS = 1
# Panel border (2) plus the table header row.
TABLE_CHROME = 3
CONFIRM_ROWS = 7


def body_height(width: int, height: int) -> int:
    mode = select_layout_mode(width)
    return max(1, height - HEADER_ROWS[mode] - FOOTER_ROWS)


def list_viewport_height(width: int, height: int) -> int:
    """Rows of the resource table visible at this terminal size."""
    return max(1, body_height(width, height) - TABLE_CHROME)


def _body(state: AppState, mode: str, width: int, height: int, now: Optional[float]):
    rows = body_height(width, height)
    if state.mode == Mode.HELP:
        return dialogs.render_help(state.definition)
    if state.mode == Mode.NOTIFICATIONS:
        return dialogs.render_notifications(state.notifications, now)
    if state.mode in (Mode.PROJECT_SELECT, Mode.ZONE_SELECT) and state.selector is not None:
        return dialogs.render_selector(state.selector, rows - 3)

    if state.mode == Mode.DESCRIBE and state.describe is not None:
        detail = describe.render(state.describe, rows - 2)
        if mode != "wide":
            return detail
        split = Layout()
        split.split_row(
            Layout(table.render(state, width * 3 // 5), name="list", ratio=3),
            Layout(detail, name="describe", ratio=2),
        )
        return split

    listing = table.render(state, width)
    if state.mode == Mode.CONFIRM and state.confirm is not None:
        split = Layout()
        split.split_column(
            Layout(listing, name="list"),
            Layout(dialogs.render_confirm(state.confirm), name="confirm", size=CONFIRM_ROWS),
        )
        return split
    return listing


def render(state: AppState, width: int, height: int, now: Optional[float] = None) -> Layout:
    mode = select_layout_mode(width)
    layout = Layout()
    layout.split_column(
        Layout(header.render(state, mode, now), name="header", size=HEADER_ROWS[mode]),
        Layout(_body(state, mode, width, height, now), name="body"),
        Layout(status.render(state), name="footer", size=FOOTER_ROWS),
    )
    return layout
