"""Resource list fetching: single page, full pagination, concurrent fan-out."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Sequence

from tgcp.auth import AuthError
from tgcp.dispatch import DispatchError
from tgcp.formatting import lookup_path, post_process
from tgcp.models import FetchRequest, FetchResult, Scope
from tgcp.registry import ResourceDefinition
from tgcp.transport import TransportError

logger = logging.getLogger(__name__)

MAX_PAGES = 500
DEFAULT_WORKERS = 8

RUNTIME_ERRORS = (DispatchError, TransportError, AuthError)


class FetchError(Exception):
    pass


class AlreadyInFlight(FetchError):
    def __init__(self, resource_key: str):
        super().__init__(f"fetch already in flight for {resource_key}")
        self.resource_key = resource_key


class PageLimitExceeded(FetchError):
    def __init__(self, resource_key: str, max_pages: int):
        super().__init__(f"{resource_key}: more than {max_pages} pages; narrow the scope or filter")
        self.resource_key = resource_key
        self.max_pages = max_pages


class FetchCancelled(FetchError):
    pass


def build_params(definition: ResourceDefinition, request: FetchRequest) -> dict[str, Any]:
    params: dict[str, Any] = dict(definition.sdk_method_params)
    for key, value in request.context:
        params[key] = value
    if request.filter is not None:
        key, value = request.filter
        params[key] = [value]
    if request.query:
        existing = params.get("filter")
        if isinstance(existing, list):
            params["filter"] = existing + [request.query]
        else:
            params["filter"] = [request.query]
    if request.page_token:
        params["pageToken"] = request.page_token
    return params


def extract_items(response: Any, response_path: str) -> list[dict[str, Any]]:
    found = lookup_path(response, response_path)
    if found is None:
        return []
    if isinstance(found, dict):
        found = [found]
    if not isinstance(found, list):
        return []
    return [post_process(item) for item in found if isinstance(item, dict)]


def fetch_one(client, definition: ResourceDefinition, request: FetchRequest) -> FetchResult:
    """One dispatch call; runtime failures become a failed ``FetchResult``."""
    params = build_params(definition, request)
    scope = request.scope.narrowed(definition.scope)
    try:
        response = client.call(definition.service, definition.sdk_method, params, scope)
    except RUNTIME_ERRORS as exc:
        logger.error("fetch %s failed: %s", definition.key, exc)
        return FetchResult.failure(definition.key, exc)

    token = response.get("nextPageToken") if isinstance(response, dict) else None
    return FetchResult(
        resource_key=definition.key,
        items=extract_items(response, definition.response_path),
        next_page_token=token or None,
    )


def fetch_all(
    client,
    definition: ResourceDefinition,
    request: FetchRequest,
    max_pages: int = MAX_PAGES,
    cancel: Optional[threading.Event] = None,
    fetch_page: Callable[..., FetchResult] = fetch_one,
) -> FetchResult:
    """Follow page tokens until exhausted; any page failure fails the whole list."""
    items: list[dict[str, Any]] = []
    current = request
    for _ in range(max_pages):
        if cancel is not None and cancel.is_set():
            return FetchResult.failure(definition.key, FetchCancelled(f"{definition.key}: cancelled"))
        page = fetch_page(client, definition, current)
        if not page.ok:
            return page
        items.extend(page.items)
        if not page.next_page_token:
            return FetchResult(resource_key=definition.key, items=items)
        current = current.next_page(page.next_page_token)
    logger.error("fetch %s exceeded %d pages", definition.key, max_pages)
    return FetchResult.failure(definition.key, PageLimitExceeded(definition.key, max_pages))


def fetch_concurrent(
    client,
    definitions: Sequence[ResourceDefinition],
    scope: Scope,
    max_workers: int = DEFAULT_WORKERS,
    cancel: Optional[threading.Event] = None,
    fetch: Callable[..., FetchResult] = fetch_all,
) -> list[FetchResult]:
    """Fetch every definition independently; results keep input order."""
    if not definitions:
        return []

    results: list[FetchResult] = []
    workers = max(1, min(max_workers, len(definitions)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tgcp-fetch") as executor:
        futures = [
            executor.submit(fetch, client, definition, FetchRequest(definition.key, scope), cancel=cancel)
            for definition in definitions
        ]
        for definition, future in zip(definitions, futures):
            try:
                results.append(future.result())
            except Exception as exc:
                logger.exception("fetch %s raised", definition.key)
                results.append(FetchResult.failure(definition.key, exc))
    return results


class InFlightFetches:
    """Per-resource-type fetch gate, owned by the control thread."""

    def __init__(self):
        self._owners: dict[str, str] = {}

    def claim(self, resource_key: str, correlation_id: str) -> None:
        if resource_key in self._owners:
            raise AlreadyInFlight(resource_key)
        self._owners[resource_key] = correlation_id

    def release(self, resource_key: str, correlation_id: str) -> bool:
        if self._owners.get(resource_key) != correlation_id:
            return False
        del self._owners[resource_key]
        return True

    def owner(self, resource_key: str) -> Optional[str]:
        return self._owners.get(resource_key)

    def is_busy(self, resource_key: str) -> bool:
        return resource_key in self._owners

    def __len__(self) -> int:
        return len(self._owners)

    def clear(self) -> None:
        self._owners.clear()
