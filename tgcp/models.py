"""Shared model contracts for the resource data flow."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Optional

FETCH = "fetch"
MUTATE = "mutate"
POLL = "poll"

ALL_ZONES = "all"


def new_correlation_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Scope:
    """Project/zone/region context that qualifies where a resource lives."""

    project: str = ""
    zone: Optional[str] = None
    region: Optional[str] = None

    @property
    def all_zones(self) -> bool:
        return self.zone == ALL_ZONES

    @property
    def effective_region(self) -> Optional[str]:
        if self.region:
            return self.region
        if not self.zone or self.all_zones:
            return None
        head, sep, _ = self.zone.rpartition("-")
        return head if sep else self.zone

    def narrowed(self, scope_kind: str) -> "Scope":
        """Drop the components a global or regional resource does not need."""
        if scope_kind == "global":
            return Scope(project=self.project)
        if scope_kind == "regional":
            return Scope(project=self.project, zone=self.zone, region=self.region)
        return self

    def label(self) -> str:
        return self.zone or self.region or "global"


@dataclass(frozen=True)
class FetchRequest:
    resource_key: str
    scope: Scope
    page_token: Optional[str] = None
    filter: Optional[tuple[str, str]] = None
    query: Optional[str] = None
    # Parent-row values a child list needs besides its filter (e.g. location).
    context: tuple[tuple[str, str], ...] = ()

    def next_page(self, token: str) -> "FetchRequest":
        return replace(self, page_token=token)

    def first_page(self) -> "FetchRequest":
        return replace(self, page_token=None)


@dataclass
class FetchResult:
    resource_key: str
    items: list[dict[str, Any]] = field(default_factory=list)
    next_page_token: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, resource_key: str, error: Exception) -> "FetchResult":
        return cls(resource_key=resource_key, error=error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource": self.resource_key,
            "ok": self.ok,
            "items": self.items,
            "next_page_token": self.next_page_token,
            "error": str(self.error) if self.error else None,
        }


@dataclass(frozen=True)
class Origin:
    """Resource + action + target a piece of background work came from."""

    resource_key: str
    action_key: Optional[str] = None
    target_id: Optional[str] = None


@dataclass
class PendingOperation:
    correlation_id: str
    kind: str
    origin: Origin
    tag: str = "list"
    frame_id: Optional[int] = None
    notification_id: Optional[str] = None
    # Every resource type a multi-list fetch holds the in-flight gate for.
    resource_keys: tuple[str, ...] = ()
    submitted_at: float = field(default_factory=time.monotonic)
    completed: bool = False

    def complete(self) -> None:
        if self.completed:
            raise RuntimeError(f"operation {self.correlation_id} already completed")
        self.completed = True


# Background work requested by the state machine. The loop turns each of
# these into a task; the machine itself never performs I/O.


@dataclass(frozen=True)
class FetchEffect:
    correlation_id: str
    request: FetchRequest


@dataclass(frozen=True)
class PreloadEffect:
    correlation_id: str
    resource_keys: tuple[str, ...]
    scope: Scope


@dataclass(frozen=True)
class CatalogEffect:
    correlation_id: str
    catalog: str
    scope: Scope


@dataclass(frozen=True)
class DetailEffect:
    correlation_id: str
    resource_key: str
    params: dict
    scope: Scope


@dataclass(frozen=True)
class MutateEffect:
    correlation_id: str
    service: str
    method: str
    params: dict
    scope: Scope


@dataclass(frozen=True)
class PollEffect:
    correlation_id: str
    handle: Any


@dataclass(frozen=True)
class ShellEffect:
    method: str
    target_id: str
    item: dict
    resource_key: str
    scope: Scope


@dataclass(frozen=True)
class SaveConfigEffect:
    pass


@dataclass(frozen=True)
class QuitEffect:
    pass
