"""Application state aggregate and its list projections."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from tgcp.fetcher import InFlightFetches
from tgcp.formatting import extract_json_value
from tgcp.models import FETCH, PendingOperation, Scope
from tgcp.navigation import NavigationFrame, NavigationStack
from tgcp.notifications import NotificationCenter
from tgcp.registry import Action, Registry, ResourceDefinition


class Mode(str, Enum):
    NORMAL = "normal"
    FILTER = "filter"
    COMMAND = "command"
    CONFIRM = "confirm"
    DESCRIBE = "describe"
    HELP = "help"
    PROJECT_SELECT = "project_select"
    ZONE_SELECT = "zone_select"
    NOTIFICATIONS = "notifications"


@dataclass
class ConfirmRequest:
    action: Action
    resource_key: str
    targets: list[tuple[str, dict[str, Any]]]
    message: str
    destructive: bool = False
    selected_yes: bool = False


@dataclass
class DescribeView:
    resource_key: str
    target_id: str
    data: Any
    scroll: int = 0
    correlation_id: Optional[str] = None
    loading: bool = False


@dataclass
class CommandInput:
    text: str = ""
    suggestions: list[str] = field(default_factory=list)
    suggestion_index: Optional[int] = None


@dataclass
class Selector:
    kind: str
    options: list[str]
    query: str = ""
    selected: int = 0

    @property
    def filtered(self) -> list[str]:
        needle = self.query.lower()
        if not needle:
            return list(self.options)
        return [option for option in self.options if needle in option.lower()]

    def move(self, delta: int) -> None:
        count = len(self.filtered)
        if count == 0:
            self.selected = 0
            return
        self.selected = max(0, min(count - 1, self.selected + delta))

    def current(self) -> Optional[str]:
        options = self.filtered
        if not options:
            return None
        return options[min(self.selected, len(options) - 1)]


@dataclass
class SortState:
    column: int
    ascending: bool = True


def _sort_key(value: str):
    try:
        return (0, float(value), "")
    except ValueError:
        return (1, 0.0, value.lower())


@dataclass
class AppState:
    registry: Registry
    scope: Scope
    stack: NavigationStack
    mode: Mode = Mode.NORMAL
    filter_text: str = ""
    filtered: list[int] = field(default_factory=list)
    selected: int = 0
    scroll_offset: int = 0
    selected_rows: set[int] = field(default_factory=set)
    pending: dict[str, PendingOperation] = field(default_factory=dict)
    in_flight: InFlightFetches = field(default_factory=InFlightFetches)
    last_error: Optional[str] = None
    status_message: Optional[str] = None
    confirm: Optional[ConfirmRequest] = None
    describe: Optional[DescribeView] = None
    command: CommandInput = field(default_factory=CommandInput)
    selector: Optional[Selector] = None
    # resource key -> (items, fetched_at, next page token) from startup preload
    preloaded: dict[str, tuple[tuple[dict[str, Any], ...], float, Optional[str]]] = field(default_factory=dict)
    projects: list[str] = field(default_factory=list)
    zones: list[str] = field(default_factory=list)
    notifications: NotificationCenter = field(default_factory=NotificationCenter)
    readonly: bool = False
    sort: Optional[SortState] = None
    viewport_height: int = 20
    last_key: Optional[str] = None
    running: bool = True

    @classmethod
    def initial(cls, registry: Registry, scope: Scope, resource_key: str, **kwargs) -> "AppState":
        definition = registry.lookup(resource_key)
        label = definition.display_name if definition else resource_key
        root = NavigationFrame(resource_key=resource_key, scope=scope, label=label)
        return cls(registry=registry, scope=scope, stack=NavigationStack(root), **kwargs)

    # -- frame access ------------------------------------------------------

    @property
    def top(self) -> NavigationFrame:
        return self.stack.top

    @property
    def definition(self) -> Optional[ResourceDefinition]:
        return self.registry.lookup(self.top.resource_key)

    @property
    def items(self) -> tuple[dict[str, Any], ...]:
        return self.top.items

    @property
    def loading(self) -> bool:
        frame_id = self.top.frame_id
        return any(
            op.kind == FETCH and op.tag == "list" and op.frame_id == frame_id for op in self.pending.values()
        )

    def save_cursor(self) -> None:
        """Copy cursor/filter state into the top frame before leaving it."""
        self.stack.replace_top(
            self.top.updated(
                selected=self.selected,
                scroll_offset=self.scroll_offset,
                filter_text=self.filter_text,
            )
        )

    def restore_cursor(self) -> None:
        frame = self.top
        self.filter_text = frame.filter_text
        self.selected_rows.clear()
        self.sort = None
        self.recompute()
        self.selected = frame.selected
        self.scroll_offset = frame.scroll_offset
        self.clamp()

    # -- projections -------------------------------------------------------

    def row_values(self, item: dict[str, Any]) -> list[str]:
        definition = self.definition
        if definition is None:
            return []
        return [extract_json_value(item, column.json_path) for column in definition.columns]

    def recompute(self) -> None:
        needle = self.filter_text.lower()
        items = self.items
        indices = list(range(len(items)))
        if needle:
            indices = [i for i in indices if any(needle in v.lower() for v in self.row_values(items[i]))]
        if self.sort is not None:
            column = self.sort.column
            indices.sort(
                key=lambda i: _sort_key(self._column_value(items[i], column)),
                reverse=not self.sort.ascending,
            )
        self.filtered = indices
        self.clamp()

    def _column_value(self, item: dict[str, Any], column: int) -> str:
        values = self.row_values(item)
        return values[column] if column < len(values) else ""

    def set_filter(self, text: str) -> None:
        if text != self.filter_text:
            self.selected_rows.clear()
        self.filter_text = text
        self.selected = 0
        self.scroll_offset = 0
        self.recompute()

    def toggle_sort(self, column: int) -> bool:
        definition = self.definition
        if definition is None or column >= len(definition.columns):
            return False
        if self.sort is not None and self.sort.column == column:
            self.sort = SortState(column, not self.sort.ascending)
        else:
            self.sort = SortState(column, True)
        self.recompute()
        return True

    def clear_sort(self) -> None:
        self.sort = None
        self.recompute()

    # -- cursor ------------------------------------------------------------

    def clamp(self) -> None:
        count = len(self.filtered)
        if count == 0:
            self.selected = 0
            self.scroll_offset = 0
            return
        self.selected = max(0, min(self.selected, count - 1))
        height = max(1, self.viewport_height)
        if self.selected < self.scroll_offset:
            self.scroll_offset = self.selected
        elif self.selected >= self.scroll_offset + height:
            self.scroll_offset = self.selected - height + 1
        self.scroll_offset = max(0, min(self.scroll_offset, max(0, count - height)))

    def move(self, delta: int) -> None:
        self.selected += delta
        self.clamp()

    def move_to(self, index: int) -> None:
        self.selected = index
        self.clamp()

    def visible_rows(self) -> list[int]:
        height = max(1, self.viewport_height)
        return self.filtered[self.scroll_offset:self.scroll_offset + height]

    def selected_index(self) -> Optional[int]:
        if not self.filtered:
            return None
        return self.filtered[self.selected]

    def selected_item(self) -> Optional[dict[str, Any]]:
        index = self.selected_index()
        if index is None:
            return None
        return self.items[index]

    def toggle_row(self) -> None:
        index = self.selected_index()
        if index is None:
            return
        if index in self.selected_rows:
            self.selected_rows.discard(index)
        else:
            self.selected_rows.add(index)

    def select_all(self) -> None:
        self.selected_rows = set(self.filtered)

    def target_items(self) -> list[dict[str, Any]]:
        """Multi-selected rows in display order, else the cursor row."""
        if self.selected_rows:
            return [self.items[i] for i in self.filtered if i in self.selected_rows]
        item = self.selected_item()
        return [item] if item is not None else []

    # -- messages ----------------------------------------------------------

    def set_error(self, message: str) -> None:
        self.last_error = message
        self.status_message = None

    def set_status(self, message: str) -> None:
        self.status_message = message
        self.last_error = None

    def clear_messages(self) -> None:
        self.last_error = None
        self.status_message = None

    def frame_age(self, now: Optional[float] = None) -> Optional[float]:
        fetched_at = self.top.fetched_at
        if fetched_at is None:
            return None
        return (time.monotonic() if now is None else now) - fetched_at
