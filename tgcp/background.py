"""Background task pool and the completion channel back to the control thread."""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 8
SHUTDOWN_GRACE_SECONDS = 1.0


@dataclass
class Completion:
    correlation_id: str
    kind: str
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BackgroundWorker:
    """Runs callables off the control thread; results come back via ``drain``.

    Tasks receive nothing but their own arguments plus the shared cancel
    event; they report exactly one ``Completion`` each, errors included.
    """

    def __init__(self, max_workers: int = DEFAULT_WORKERS):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="tgcp-bg")
        self._completions: "queue.Queue[Completion]" = queue.Queue()
        self._futures: set[Future] = set()
        self._lock = threading.Lock()
        self.cancel_event = threading.Event()

    def submit(self, correlation_id: str, kind: str, fn: Callable[..., Any], *args, **kwargs) -> None:
        def run() -> None:
            try:
                value = fn(*args, **kwargs)
            except Exception as exc:
                logger.warning("%s task %s failed: %s", kind, correlation_id, exc)
                self._completions.put(Completion(correlation_id, kind, error=exc))
            else:
                self._completions.put(Completion(correlation_id, kind, value=value))

        future = self._executor.submit(run)
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    def drain(self, timeout: float = 0.0) -> list[Completion]:
        """Completed results in arrival order; waits up to ``timeout`` for the first."""
        drained: list[Completion] = []
        try:
            if timeout > 0:
                drained.append(self._completions.get(timeout=timeout))
            while True:
                drained.append(self._completions.get_nowait())
        except queue.Empty:
            pass
        return drained

    @property
    def outstanding(self) -> int:
        with self._lock:
            return len(self._futures)

    def shutdown(self, grace: float = SHUTDOWN_GRACE_SECONDS) -> bool:
        """Cancel everything; True when all tasks stopped within ``grace``."""
        self.cancel_event.set()
        self._executor.shutdown(wait=False, cancel_futures=True)
        with self._lock:
            pending = set(self._futures)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=grace)
        if not_done:
            logger.warning("%d background tasks still running after %.1fs", len(not_done), grace)
        return not not_done
