"""Interactive loop: render, read keys, run requested work, apply results."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from rich.console import Console
from rich.live import Live

from tgcp import machine
from tgcp.background import BackgroundWorker, SHUTDOWN_GRACE_SECONDS
from tgcp.config import Config, save_config
from tgcp.fetcher import MAX_PAGES, FetchError, fetch_concurrent, fetch_one
from tgcp.formatting import post_process
from tgcp.keys import KeyReader
from tgcp.models import (
    FETCH,
    MUTATE,
    POLL,
    CatalogEffect,
    DetailEffect,
    FetchEffect,
    MutateEffect,
    PollEffect,
    PreloadEffect,
    QuitEffect,
    SaveConfigEffect,
    Scope,
    ShellEffect,
)
from tgcp.operations import OperationHandle, track
from tgcp.panels import screen
from tgcp.registry import ResourceDefinition
from tgcp.shell import TAKEOVER_METHODS, run_shell_action
from tgcp.state import AppState

logger = logging.getLogger(__name__)

INPUT_WAIT_SECONDS = 0.1


# --- background tasks -------------------------------------------------------
# Each runs on a worker thread and sees only its own arguments.


def list_projects(client, scope: Scope, cancel: Optional[threading.Event] = None) -> list[str]:
    """Ids of every ACTIVE project visible to the caller."""
    projects: list[str] = []
    params: dict[str, Any] = {}
    for _ in range(MAX_PAGES):
        if cancel is not None and cancel.is_set():
            break
        response = client.call("resourcemanager", "list_projects", params, Scope(project=scope.project)) or {}
        for project in response.get("projects", []):
            if project.get("lifecycleState", "ACTIVE") == "ACTIVE" and project.get("projectId"):
                projects.append(project["projectId"])
        token = response.get("nextPageToken")
        if not token:
            break
        params = {"pageToken": token}
    return sorted(projects)


def list_zones(client, scope: Scope) -> list[str]:
    response = client.call("compute", "list_zones", {}, Scope(project=scope.project)) or {}
    return [zone["name"] for zone in response.get("items", []) if zone.get("name")]


def fetch_detail(client, definition: ResourceDefinition, params: dict, scope: Scope) -> Any:
    response = client.call(definition.service, definition.detail_sdk_method, params, scope.narrowed(definition.scope))
    return post_process(response) if isinstance(response, dict) else response


def submit_mutation(client, service: str, method: str, params: dict, scope: Scope) -> Optional[OperationHandle]:
    """Send a mutating call; returns a handle when the API answered with an operation."""
    response = client.call(service, method, params, scope)
    return OperationHandle.from_response(response, scope)


def _unknown_resource(resource_key: str):
    raise FetchError(f"unknown resource type: {resource_key}")


# --- loop -------------------------------------------------------------------


class Loop:
    def __init__(
        self,
        state: AppState,
        config: Config,
        client,
        console: Optional[Console] = None,
        worker: Optional[BackgroundWorker] = None,
        reader: Optional[KeyReader] = None,
        input_wait: float = INPUT_WAIT_SECONDS,
        grace: float = SHUTDOWN_GRACE_SECONDS,
    ):
        self.state = state
        self.config = config
        self.client = client
        self.console = console or Console()
        self.worker = worker or BackgroundWorker()
        self.reader = reader or KeyReader()
        self.input_wait = input_wait
        self.grace = grace
        self.clean_shutdown = True
        self._live: Optional[Live] = None

    # -- effects -----------------------------------------------------------

    def execute(self, effects: list) -> None:
        for effect in effects:
            self._execute_one(effect)

    def _execute_one(self, effect) -> None:
        state = self.state
        worker = self.worker
        if isinstance(effect, FetchEffect):
            definition = state.registry.lookup(effect.request.resource_key)
            if definition is None:
                worker.submit(effect.correlation_id, FETCH, _unknown_resource, effect.request.resource_key)
            else:
                worker.submit(effect.correlation_id, FETCH, fetch_one, self.client, definition, effect.request)
        elif isinstance(effect, PreloadEffect):
            definitions = [state.registry.lookup(key) for key in effect.resource_keys]
            worker.submit(
                effect.correlation_id,
                FETCH,
                fetch_concurrent,
                self.client,
                [definition for definition in definitions if definition is not None],
                effect.scope,
                cancel=worker.cancel_event,
            )
        elif isinstance(effect, CatalogEffect):
            if effect.catalog == "projects":
                worker.submit(effect.correlation_id, FETCH, list_projects, self.client, effect.scope, worker.cancel_event)
            else:
                worker.submit(effect.correlation_id, FETCH, list_zones, self.client, effect.scope)
        elif isinstance(effect, DetailEffect):
            definition = state.registry.lookup(effect.resource_key)
            if definition is None:
                worker.submit(effect.correlation_id, FETCH, _unknown_resource, effect.resource_key)
            else:
                worker.submit(effect.correlation_id, FETCH, fetch_detail, self.client, definition, effect.params, effect.scope)
        elif isinstance(effect, MutateEffect):
            worker.submit(
                effect.correlation_id,
                MUTATE,
                submit_mutation,
                self.client,
                effect.service,
                effect.method,
                effect.params,
                effect.scope,
            )
        elif isinstance(effect, PollEffect):
            worker.submit(
                effect.correlation_id,
                POLL,
                track,
                self.client,
                effect.handle,
                cancel=worker.cancel_event,
                interval=self.config.poll_interval_seconds,
            )
        elif isinstance(effect, ShellEffect):
            self._run_shell(effect)
        elif isinstance(effect, SaveConfigEffect):
            try:
                save_config(self.config)
            except OSError as exc:
                logger.warning("could not save config: %s", exc)
        elif isinstance(effect, QuitEffect):
            logger.info("quit requested with %d operations pending", len(state.pending))
        else:
            raise TypeError(f"unsupported effect: {effect!r}")

    def _run_shell(self, effect: ShellEffect) -> None:
        """Hand the terminal over for the duration of an external command."""
        takeover = effect.method in TAKEOVER_METHODS
        live = self._live
        if takeover:
            if live is not None:
                live.stop()
            self.reader.suspend()
        try:
            message = run_shell_action(effect.method, effect.item, effect.resource_key, effect.scope, self.config.ssh)
        finally:
            if takeover:
                self.reader.resume()
                if live is not None:
                    live.start(refresh=True)
        self.state.set_status(message)

    # -- iteration ---------------------------------------------------------

    def tick(self, keys: list[str]) -> None:
        """Apply typed keys, then every background result that has landed."""
        for key in keys:
            self.execute(machine.handle_key(self.state, key, self.config))
            if not self.state.running:
                return
        for completion in self.worker.drain():
            self.execute(machine.handle_completion(self.state, completion, self.config))

    def _renderable(self):
        width, height = self.console.size
        self.state.viewport_height = screen.list_viewport_height(width, height)
        self.state.clamp()
        return screen.render(self.state, width, height)

    def run(self) -> int:
        self.execute(machine.start(self.state, self.config))
        try:
            with self.reader, Live(self._renderable(), console=self.console, auto_refresh=False, screen=True) as live:
                self._live = live
                while self.state.running:
                    live.update(self._renderable(), refresh=True)
                    self.tick(self.reader.read(self.input_wait))
        except KeyboardInterrupt:
            self.state.running = False
        finally:
            self._live = None
            self.clean_shutdown = self.worker.shutdown(self.grace)
        return 0
