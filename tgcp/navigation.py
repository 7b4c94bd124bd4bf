"""Breadcrumb navigation frames."""

from __future__ import annotations

import itertools
import time
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from tgcp.models import FetchRequest, Scope

MAX_DEPTH = 16

_frame_ids = itertools.count(1)


def next_frame_id() -> int:
    return next(_frame_ids)


@dataclass(frozen=True)
class NavigationFrame:
    """One resource list in a scope/filter context.

    Frames are values: updating one produces a copy that keeps ``frame_id``,
    so background results can be matched to the frame that asked for them.
    """

    resource_key: str
    scope: Scope
    frame_id: int = field(default_factory=next_frame_id)
    filter: Optional[tuple[str, str]] = None
    context: tuple[tuple[str, str], ...] = ()
    label: str = ""
    filter_text: str = ""
    selected: int = 0
    scroll_offset: int = 0
    page_token: Optional[str] = None
    items: tuple[dict[str, Any], ...] = ()
    fetched_at: Optional[float] = None
    awaiting_refresh: bool = False

    def request(self, page_token: Optional[str] = None) -> FetchRequest:
        return FetchRequest(
            resource_key=self.resource_key,
            scope=self.scope,
            page_token=page_token,
            filter=self.filter,
            context=self.context,
        )

    def updated(self, **changes) -> "NavigationFrame":
        return replace(self, **changes)

    def is_stale(self, max_age: float, now: Optional[float] = None) -> bool:
        if self.fetched_at is None:
            return True
        now = time.monotonic() if now is None else now
        return now - self.fetched_at > max_age


class NavigationError(Exception):
    pass


class NavigationStack:
    """Bounded stack of frames; the root frame is never popped."""

    def __init__(self, root: NavigationFrame, max_depth: int = MAX_DEPTH):
        self._frames: list[NavigationFrame] = [root]
        self.max_depth = max_depth

    @property
    def top(self) -> NavigationFrame:
        return self._frames[-1]

    @property
    def root(self) -> NavigationFrame:
        return self._frames[0]

    @property
    def depth(self) -> int:
        return len(self._frames)

    def frames(self) -> tuple[NavigationFrame, ...]:
        return tuple(self._frames)

    def push(self, frame: NavigationFrame) -> None:
        if len(self._frames) >= self.max_depth:
            raise NavigationError(f"navigation depth limit ({self.max_depth}) reached")
        self._frames.append(frame)

    def pop(self) -> Optional[NavigationFrame]:
        if len(self._frames) <= 1:
            return None
        return self._frames.pop()

    def replace_top(self, frame: NavigationFrame) -> None:
        self._frames[-1] = frame

    def reset(self, root: NavigationFrame) -> None:
        self._frames = [root]

    def find(self, frame_id: Optional[int]) -> Optional[NavigationFrame]:
        for frame in self._frames:
            if frame.frame_id == frame_id:
                return frame
        return None

    def replace(self, frame: NavigationFrame) -> bool:
        for index, existing in enumerate(self._frames):
            if existing.frame_id == frame.frame_id:
                self._frames[index] = frame
                return True
        return False

    def contains(self, frame_id: Optional[int]) -> bool:
        return self.find(frame_id) is not None

    def breadcrumbs(self) -> list[str]:
        return [frame.label or frame.resource_key for frame in self._frames]
