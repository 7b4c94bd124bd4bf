"""Resource list renderer."""

from __future__ import annotations

from rich.markup import escape
from rich.table import Table
from rich.text import Text

from tgcp.formatting import extract_json_value, truncate
from tgcp.layout import fit_columns
from tgcp.panels import empty_panel, panel_from_table, rgb_style
from tgcp.state import AppState

SELECTED_MARK = "●"


def _status(state: AppState) -> str:
    if state.last_error:
        return "error"
    if state.loading:
        return "busy"
    return "ok"


def _header(title: str, index: int, state: AppState) -> str:
    if state.sort is not None and state.sort.column == index:
        return f"{title} {'▲' if state.sort.ascending else '▼'}"
    return title


def _title(state: AppState) -> str:
    label = escape(state.top.label or state.top.resource_key)
    total = len(state.items)
    shown = len(state.filtered)
    more = "+" if state.top.page_token else ""
    if state.filter_text:
        return f"{label} ({shown}/{total}{more}) /{escape(state.filter_text)}"
    return f"{label} ({total}{more})"


def render(state: AppState, width: int):
    definition = state.definition
    if definition is None:
        return empty_panel(state.top.resource_key, f"Unknown resource type: {state.top.resource_key}", "error")

    if not state.filtered:
        if state.loading:
            message = "Loading..."
        elif state.filter_text:
            message = f"No matches for '{state.filter_text}'"
        else:
            message = "No resources found"
        return empty_panel(_title(state), message, _status(state))

    # Panel borders and padding take four cells.
    columns = fit_columns(definition.columns, width - 4)
    table = Table(box=None, expand=True, pad_edge=False, header_style="bold")
    table.add_column("", width=1, no_wrap=True)
    for index, column in enumerate(columns):
        table.add_column(_header(column.header, index, state), no_wrap=True, min_width=min(column.width, 8))

    cursor = state.selected_index()
    for index in state.visible_rows():
        item = state.items[index]
        cells = [Text(SELECTED_MARK if index in state.selected_rows else " ", style="green")]
        for column in columns:
            value = extract_json_value(item, column.json_path)
            color = state.registry.color_for(column.color_map, value)
            cells.append(Text(truncate(value, column.width), style=rgb_style(color)))
        table.add_row(*cells, style="reverse" if index == cursor else None)

    return panel_from_table(_title(state), _status(state), table)
