"""Notification history for mutating operations."""

from __future__ import annotations

import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional

PENDING = "pending"
IN_PROGRESS = "in_progress"
SUCCESS = "success"
ERROR = "error"

STATUS_ICONS = {
    PENDING: "◯",
    IN_PROGRESS: "↻",
    SUCCESS: "✓",
    ERROR: "✗",
}

DETAIL_LEVELS = ("minimal", "detailed", "verbose")
MAX_HISTORY = 50
TOAST_SECONDS = 5.0

# method -> (name, past tense, present participle)
OPERATION_LABELS = {
    "start_instance": ("Start", "Started", "Starting"),
    "stop_instance": ("Stop", "Stopped", "Stopping"),
    "reset_instance": ("Reset", "Reset", "Resetting"),
}


def operation_labels(method: str) -> tuple[str, str, str]:
    if method in OPERATION_LABELS:
        return OPERATION_LABELS[method]
    if method.startswith("delete_"):
        return ("Delete", "Deleted", "Deleting")
    return (method, "Completed", "Processing")


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"
    whole = int(seconds)
    if whole < 60:
        return f"{whole}s"
    return f"{whole // 60}m{whole % 60}s"


@dataclass
class Notification:
    method: str
    resource_key: str
    resource_id: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: str = PENDING
    error: Optional[str] = None
    operation_url: Optional[str] = None
    created_at: float = field(default_factory=time.monotonic)
    completed_at: Optional[float] = None

    @property
    def terminal(self) -> bool:
        return self.status in (SUCCESS, ERROR)

    @property
    def icon(self) -> str:
        return STATUS_ICONS[self.status]

    def duration(self, now: Optional[float] = None) -> float:
        end = self.completed_at if self.completed_at is not None else (time.monotonic() if now is None else now)
        return max(0.0, end - self.created_at)

    def message(self, detail: str = "detailed", now: Optional[float] = None) -> str:
        name, past, progressive = operation_labels(self.method)
        if self.status == SUCCESS:
            verb = past
        elif self.status == ERROR:
            verb = "Failed"
        else:
            verb = progressive

        if detail == "minimal":
            return f"{self.icon} {verb} {self.resource_id}"
        if detail == "verbose":
            base = f"{self.icon} {verb} {self.resource_id} [{self.resource_key}]"
            if self.status == ERROR:
                return f"{base} - {self.error}"
            if self.terminal:
                return f"{base} ({format_duration(self.duration(now))})"
            return f"{base}..."
        if self.terminal:
            text = f"{self.icon} {verb} {self.resource_id} ({format_duration(self.duration(now))})"
            if self.status == ERROR and self.error:
                text = f"{text}: {self.error}"
            return text
        return f"{self.icon} {verb} {self.resource_id}..."


class NotificationCenter:
    """Newest-first notification history with a single transient toast."""

    def __init__(
        self,
        max_history: int = MAX_HISTORY,
        toast_seconds: float = TOAST_SECONDS,
        detail: str = "detailed",
        clock: Callable[[], float] = time.monotonic,
    ):
        self._items: deque[Notification] = deque(maxlen=max_history)
        self.toast_seconds = toast_seconds
        self.detail = detail if detail in DETAIL_LEVELS else "detailed"
        self._clock = clock
        self._last_change: Optional[float] = None

    def __len__(self) -> int:
        return len(self._items)

    def history(self) -> list[Notification]:
        return list(self._items)

    def get(self, notification_id: str) -> Optional[Notification]:
        for item in self._items:
            if item.id == notification_id:
                return item
        return None

    def _touch(self) -> None:
        self._last_change = self._clock()

    def create(self, method: str, resource_key: str, resource_id: str) -> str:
        notification = Notification(method, resource_key, resource_id, created_at=self._clock())
        self._items.appendleft(notification)
        self._touch()
        return notification.id

    def mark_in_progress(self, notification_id: str, operation_url: Optional[str] = None) -> None:
        item = self.get(notification_id)
        if item is None or item.terminal:
            return
        item.status = IN_PROGRESS
        item.operation_url = operation_url
        self._touch()

    def mark_success(self, notification_id: str) -> None:
        item = self.get(notification_id)
        if item is None or item.terminal:
            return
        item.status = SUCCESS
        item.completed_at = self._clock()
        self._touch()

    def mark_error(self, notification_id: str, error: str) -> None:
        item = self.get(notification_id)
        if item is None or item.terminal:
            return
        item.status = ERROR
        item.error = error
        item.completed_at = self._clock()
        self._touch()

    def active_count(self) -> int:
        return sum(1 for item in self._items if not item.terminal)

    def toast(self) -> Optional[str]:
        if not self._items or self._last_change is None:
            return None
        now = self._clock()
        if now - self._last_change > self.toast_seconds:
            return None
        return self._items[0].message(self.detail, now)

    def clear(self) -> None:
        self._items.clear()
        self._last_change = None
