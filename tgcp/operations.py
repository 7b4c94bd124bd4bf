"""Long-running operation tracking."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from tgcp.auth import AuthError
from tgcp.models import Scope
from tgcp.transport import TransportError, describe_error

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 2.0
MAX_POLL_FAILURES = 3

DONE = "DONE"
SUCCEEDED = "SUCCEEDED"
FAILED = "FAILED"
CANCELLED = "CANCELLED"

SUCCESS_STATES = frozenset({DONE, SUCCEEDED})
ERROR_STATES = frozenset({FAILED, "ERROR", "ABORTED"})


class OperationError(Exception):
    pass


class PollingFailed(OperationError):
    def __init__(self, failures: int, cause: Exception):
        super().__init__(f"lost track of operation after {failures} failed polls: {describe_error(cause)}")
        self.failures = failures


class OperationTimedOut(OperationError):
    def __init__(self, seconds: float):
        super().__init__(f"operation still running after {seconds:.0f}s")
        self.seconds = seconds


@dataclass(frozen=True)
class OperationHandle:
    self_link: str
    scope: Scope
    name: str = ""

    @classmethod
    def from_response(cls, response: Any, scope: Scope) -> Optional["OperationHandle"]:
        """Handle for an operation-shaped mutate response, else None."""
        if not isinstance(response, dict):
            return None
        link = response.get("selfLink")
        kind = str(response.get("kind", ""))
        if not link or not (kind.endswith("#operation") or "operationType" in response):
            return None
        return cls(self_link=str(link), scope=scope, name=str(response.get("name", "")))


@dataclass(frozen=True)
class OperationStatus:
    value: str
    error: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.value in SUCCESS_STATES or self.value in ERROR_STATES or self.value == CANCELLED

    @property
    def succeeded(self) -> bool:
        return self.value in SUCCESS_STATES and self.error is None

    @classmethod
    def cancelled(cls) -> "OperationStatus":
        return cls(CANCELLED)


def parse_status(response: Any) -> OperationStatus:
    if not isinstance(response, dict):
        return OperationStatus("UNKNOWN")
    value = str(response.get("status") or "UNKNOWN").upper()
    error = response.get("error")
    if value in SUCCESS_STATES and error:
        errors = error.get("errors") if isinstance(error, dict) else None
        message = None
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            message = errors[0].get("message")
        if not message and isinstance(error, dict):
            message = error.get("message")
        return OperationStatus(FAILED, str(message or "operation failed"))
    if value in ERROR_STATES:
        return OperationStatus(value, str(response.get("statusMessage") or "operation failed"))
    return OperationStatus(value)


def is_transient(exc: Exception) -> bool:
    """Connection failures and server-side errors; 4xx and auth errors are final."""
    if not isinstance(exc, TransportError):
        return False
    return exc.status_code is None or exc.status_code >= 500


def track(
    client,
    handle: OperationHandle,
    cancel: Optional[threading.Event] = None,
    interval: float = POLL_INTERVAL_SECONDS,
    timeout: Optional[float] = None,
    max_failures: int = MAX_POLL_FAILURES,
    clock: Callable[[], float] = time.monotonic,
) -> OperationStatus:
    """Poll ``handle`` until it reaches a terminal status.

    Network-level failures are retried on the next interval; more than
    ``max_failures`` in a row raises ``PollingFailed``. HTTP 4xx responses and
    ``AuthError`` propagate immediately. The cancel event is checked before
    each poll and interrupts the wait between polls.
    """
    started = clock()
    failures = 0
    while True:
        if cancel is not None and cancel.is_set():
            return OperationStatus.cancelled()

        try:
            response = client.call("operations", "get", {"self_link": handle.self_link}, handle.scope)
        except (TransportError, AuthError) as exc:
            if not is_transient(exc):
                raise
            failures += 1
            logger.warning("poll %s failed (%d/%d): %s", handle.name or handle.self_link, failures, max_failures, exc)
            if failures > max_failures:
                raise PollingFailed(failures, exc) from exc
        else:
            failures = 0
            status = parse_status(response)
            if status.terminal:
                logger.info("operation %s finished: %s", handle.name or handle.self_link, status.value)
                return status

        if timeout is not None and clock() - started >= timeout:
            raise OperationTimedOut(timeout)

        if cancel is not None:
            if cancel.wait(interval):
                return OperationStatus.cancelled()
        else:
            time.sleep(interval)
