from __future__ import annotations

import threading
import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from tgcp.auth import AuthError  # noqa: E402
from tgcp.operations import (  # noqa: E402
    CANCELLED,
    FAILED,
    OperationHandle,
    OperationTimedOut,
    PollingFailed,
    is_transient,
    parse_status,
    track,
)
from tgcp.tests.fakes import SCOPE, FakeClient  # noqa: E402
from tgcp.transport import TransportError  # noqa: E402

LINK = "https://compute.googleapis.com/compute/v1/projects/demo-project/zones/us-central1-a/operations/op-1"
HANDLE = OperationHandle(LINK, SCOPE, "op-1")


def op(status: str, **extra) -> dict:
    return {"kind": "compute#operation", "selfLink": LINK, "status": status, **extra}


class TrackTests(unittest.TestCase):
    def test_running_running_done_polls_three_times(self):
        client = FakeClient({("operations", "get"): [op("RUNNING"), op("RUNNING"), op("DONE")]})
        status = track(client, HANDLE, interval=0)
        self.assertEqual(status.value, "DONE")
        self.assertTrue(status.succeeded)
        self.assertEqual(len(client.calls), 3)
        self.assertEqual(client.calls[0][2], {"self_link": LINK})

    def test_cancel_between_polls_halts_polling(self):
        cancel = threading.Event()

        def on_call(count):
            if count == 1:
                cancel.set()

        client = FakeClient({("operations", "get"): [op("RUNNING"), op("RUNNING"), op("DONE")]}, on_call=on_call)
        status = track(client, HANDLE, cancel=cancel, interval=5.0)
        self.assertEqual(status.value, CANCELLED)
        self.assertEqual(len(client.calls), 1)

    def test_done_with_error_is_failure(self):
        error = {"errors": [{"code": "RESOURCE_IN_USE", "message": "disk is attached"}]}
        client = FakeClient({("operations", "get"): [op("DONE", error=error)]})
        status = track(client, HANDLE, interval=0)
        self.assertEqual(status.value, FAILED)
        self.assertEqual(status.error, "disk is attached")
        self.assertFalse(status.succeeded)

    def test_transient_failures_are_retried(self):
        client = FakeClient(
            {("operations", "get"): [TransportError("reset"), TransportError("reset"), op("DONE")]}
        )
        self.assertEqual(track(client, HANDLE, interval=0).value, "DONE")

    def test_too_many_failures(self):
        client = FakeClient({("operations", "get"): [TransportError("down", 503)] * 4})
        with self.assertRaises(PollingFailed) as ctx:
            track(client, HANDLE, interval=0, max_failures=3)
        self.assertEqual(ctx.exception.failures, 4)

    def test_client_errors_are_not_retried(self):
        client = FakeClient({("operations", "get"): [TransportError("not found", 404), op("DONE")]})
        with self.assertRaises(TransportError) as ctx:
            track(client, HANDLE, interval=0)
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(len(client.calls), 1)

    def test_auth_error_is_not_retried(self):
        client = FakeClient({("operations", "get"): [AuthError("Run 'gcloud auth login'."), op("DONE")]})
        with self.assertRaises(AuthError):
            track(client, HANDLE, interval=0)
        self.assertEqual(len(client.calls), 1)

    def test_server_errors_are_retried(self):
        client = FakeClient({("operations", "get"): [TransportError("unavailable", 503), op("DONE")]})
        self.assertEqual(track(client, HANDLE, interval=0).value, "DONE")
        self.assertEqual(len(client.calls), 2)

    def test_transient_classification(self):
        self.assertTrue(is_transient(TransportError("reset")))
        self.assertTrue(is_transient(TransportError("bad gateway", 502)))
        self.assertFalse(is_transient(TransportError("forbidden", 403)))
        self.assertFalse(is_transient(TransportError("slow down", 429)))
        self.assertFalse(is_transient(AuthError("expired")))

    def test_timeout(self):
        now = [0.0]

        def clock():
            now[0] += 10
            return now[0]

        client = FakeClient({("operations", "get"): [op("RUNNING")] * 5})
        with self.assertRaises(OperationTimedOut):
            track(client, HANDLE, interval=0, timeout=25, clock=clock)


class HandleTests(unittest.TestCase):
    def test_from_response(self):
        handle = OperationHandle.from_response(op("PENDING", name="op-1"), SCOPE)
        self.assertEqual(handle, HANDLE)
        self.assertIsNone(OperationHandle.from_response({"name": "bucket"}, SCOPE))
        self.assertIsNone(OperationHandle.from_response(None, SCOPE))

    def test_parse_status(self):
        self.assertEqual(parse_status(op("running")).value, "RUNNING")
        self.assertFalse(parse_status(op("RUNNING")).terminal)
        self.assertEqual(parse_status({}).value, "UNKNOWN")


if __name__ == "__main__":
    unittest.main()
