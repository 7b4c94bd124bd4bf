"""In-memory stand-ins for the network side, shared by the test modules."""

from __future__ import annotations

import threading
from collections import defaultdict, deque

from tgcp import registry
from tgcp.background import Completion
from tgcp.models import FETCH, FetchResult, Scope

SCOPE = Scope(project="demo-project", zone="us-central1-a")


def vm_schema() -> dict:
    return {
        "color_maps": {
            "instance_status": [
                {"value": "RUNNING", "color": [0, 200, 0]},
                {"value": "TERMINATED", "color": [200, 0, 0]},
            ]
        },
        "resources": {
            "vm": {
                "display_name": "VM Instances",
                "service": "compute",
                "sdk_method": "list_instances",
                "detail_sdk_method": "get_instance",
                "response_path": "items",
                "id_field": "name",
                "name_field": "name",
                "columns": [
                    {"header": "NAME", "json_path": "name", "width": 20},
                    {"header": "STATUS", "json_path": "status", "width": 12, "color_map": "instance_status"},
                    {"header": "CPUS", "json_path": "cpus", "width": 6},
                ],
                "actions": [
                    {"key": "start", "display_name": "Start", "shortcut": "s", "sdk_method": "start_instance",
                     "confirm": {"message": "Start instance", "default_yes": True}},
                    {"key": "reset", "display_name": "Reset", "shortcut": "r", "sdk_method": "reset_instance"},
                    {"key": "delete", "display_name": "Delete", "shortcut": "D", "sdk_method": "delete_instance",
                     "confirm": {"message": "Delete instance", "destructive": True, "default_yes": False}},
                    {"key": "ssh", "display_name": "SSH", "shortcut": "S", "sdk_method": "ssh_instance",
                     "shell_action": True},
                ],
                "sub_resources": [
                    {"resource_key": "disk", "display_name": "Disks", "shortcut": "o",
                     "parent_id_field": "name", "filter_param": "filter",
                     "filter_template": "users:{value}"},
                ],
            },
            "disk": {
                "display_name": "Disks",
                "service": "compute",
                "sdk_method": "list_disks",
                "response_path": "items",
                "id_field": "name",
                "name_field": "name",
                "columns": [{"header": "NAME", "json_path": "name", "width": 20}],
            },
        },
    }


def sample_registry() -> registry.Registry:
    return registry.load([vm_schema()])


def vms(*names: str, status: str = "RUNNING") -> list[dict]:
    return [{"name": name, "status": status, "zone_short": "us-central1-a"} for name in names]


def list_done(correlation_id: str, items, token=None, resource_key: str = "vm") -> Completion:
    return Completion(correlation_id, FETCH, value=FetchResult(resource_key, list(items), token))


def list_failed(correlation_id: str, error: Exception) -> Completion:
    return Completion(correlation_id, FETCH, error=error)


class FakeClient:
    """Answers ``call`` from scripted per-method queues; exceptions are raised."""

    def __init__(self, responses=None, on_call=None):
        self._responses = defaultdict(deque)
        for key, values in (responses or {}).items():
            self._responses[key].extend(values)
        self._lock = threading.Lock()
        self._on_call = on_call
        self.calls: list[tuple[str, str, dict, Scope]] = []

    def add(self, service: str, method: str, *values) -> None:
        with self._lock:
            self._responses[(service, method)].extend(values)

    def call(self, service, method, params, scope):
        with self._lock:
            self.calls.append((service, method, dict(params or {}), scope))
            queue = self._responses[(service, method)]
            if not queue:
                raise AssertionError(f"unexpected call {service}.{method}")
            value = queue.popleft()
        if self._on_call is not None:
            self._on_call(len(self.calls))
        if isinstance(value, BaseException):
            raise value
        return value

    def methods(self) -> list[str]:
        return [method for _, method, _, _ in self.calls]

    def close(self) -> None:
        pass
