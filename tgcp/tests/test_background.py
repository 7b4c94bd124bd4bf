from __future__ import annotations

import threading
import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from tgcp.background import BackgroundWorker  # noqa: E402
from tgcp.models import FETCH, MUTATE  # noqa: E402


def drain_all(worker: BackgroundWorker, count: int, timeout: float = 2.0):
    drained = []
    while len(drained) < count:
        batch = worker.drain(timeout=timeout)
        if not batch:
            break
        drained.extend(batch)
    return drained


class BackgroundWorkerTests(unittest.TestCase):
    def setUp(self):
        self.worker = BackgroundWorker(max_workers=2)

    def tearDown(self):
        self.worker.shutdown(grace=0.5)

    def test_value_and_error_become_completions(self):
        def fail():
            raise ValueError("bad input")

        self.worker.submit("c1", FETCH, lambda x: x * 2, 21)
        self.worker.submit("c2", MUTATE, fail)
        completions = {c.correlation_id: c for c in drain_all(self.worker, 2)}
        self.assertEqual(completions["c1"].value, 42)
        self.assertTrue(completions["c1"].ok)
        self.assertEqual(completions["c2"].kind, MUTATE)
        self.assertIsInstance(completions["c2"].error, ValueError)
        self.assertFalse(completions["c2"].ok)

    def test_drain_without_results_is_empty(self):
        self.assertEqual(self.worker.drain(), [])
        self.assertEqual(self.worker.drain(timeout=0.01), [])

    def test_shutdown_signals_cancel(self):
        started = threading.Event()

        def wait_for_cancel():
            started.set()
            return self.worker.cancel_event.wait(5)

        self.worker.submit("c1", FETCH, wait_for_cancel)
        started.wait(1)
        self.assertTrue(self.worker.shutdown(grace=1.0))
        self.assertTrue(self.worker.cancel_event.is_set())

    def test_shutdown_reports_stuck_tasks(self):
        release = threading.Event()
        started = threading.Event()

        def stuck():
            started.set()
            release.wait(5)

        self.worker.submit("c1", FETCH, stuck)
        started.wait(1)
        try:
            self.assertFalse(self.worker.shutdown(grace=0.05))
        finally:
            release.set()


if __name__ == "__main__":
    unittest.main()
