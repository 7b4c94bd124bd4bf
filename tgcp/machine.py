"""Application state machine.

``handle_key`` and ``handle_completion`` are the only entry points. Both run
on the control thread, update ``AppState`` in place and return the background
work the loop should start. Nothing here performs I/O.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from tgcp import commands, dispatch
from tgcp.auth import FALLBACK_ZONES
from tgcp.background import Completion
from tgcp.config import Config
from tgcp.fetcher import AlreadyInFlight
from tgcp.formatting import extract_json_value, pretty_json
from tgcp.models import (
    ALL_ZONES,
    FETCH,
    MUTATE,
    POLL,
    CatalogEffect,
    DetailEffect,
    FetchEffect,
    FetchResult,
    MutateEffect,
    Origin,
    PendingOperation,
    PollEffect,
    PreloadEffect,
    QuitEffect,
    SaveConfigEffect,
    Scope,
    ShellEffect,
    new_correlation_id,
)
from tgcp.navigation import NavigationError, NavigationFrame
from tgcp.notifications import operation_labels
from tgcp.operations import CANCELLED
from tgcp.registry import Action, ConfirmPolicy, ResourceDefinition, SubResourceLink
from tgcp.state import AppState, CommandInput, ConfirmRequest, DescribeView, Mode, Selector
from tgcp.transport import describe_error

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
SORT_KEYS = {"f1": 0, "f2": 1, "f3": 2, "f4": 3, "f5": 4, "f6": 5}

TAG_LIST = "list"
TAG_PAGE = "page"
TAG_PRELOAD = "preload"
TAG_DETAIL = "detail"
TAG_ACTION = "action"
TAG_POLL = "poll"
TAG_PROJECTS = "catalog:projects"
TAG_ZONES = "catalog:zones"


def _printable(key: str) -> bool:
    return len(key) == 1 and key.isprintable()


# --- background requests ----------------------------------------------------


def request_list(state: AppState, frame: NavigationFrame, page_token: Optional[str] = None, tag: str = TAG_LIST):
    """Ask for one page of ``frame``'s list, honouring the in-flight gate.

    A rejected list request marks the frame as awaiting a refresh; it is
    re-issued when the outstanding fetch for that resource type drains.
    """
    cid = new_correlation_id()
    try:
        state.in_flight.claim(frame.resource_key, cid)
    except AlreadyInFlight:
        logger.debug("fetch for %s already in flight; deferring", frame.resource_key)
        if tag == TAG_LIST:
            state.stack.replace(frame.updated(awaiting_refresh=True))
        return []

    state.pending[cid] = PendingOperation(
        correlation_id=cid,
        kind=FETCH,
        origin=Origin(frame.resource_key),
        tag=tag,
        frame_id=frame.frame_id,
    )
    if frame.awaiting_refresh and tag == TAG_LIST:
        state.stack.replace(frame.updated(awaiting_refresh=False))
    return [FetchEffect(cid, frame.request(page_token))]


def _request_catalog(state: AppState, catalog: str) -> list:
    cid = new_correlation_id()
    tag = TAG_PROJECTS if catalog == "projects" else TAG_ZONES
    state.pending[cid] = PendingOperation(cid, FETCH, Origin(catalog), tag=tag)
    return [CatalogEffect(cid, catalog, state.scope)]


def _request_preload(state: AppState, keys: list[str]) -> list:
    cid = new_correlation_id()
    claimed = []
    for key in keys:
        if state.registry.lookup(key) is None or state.in_flight.is_busy(key):
            continue
        state.in_flight.claim(key, cid)
        claimed.append(key)
    if not claimed:
        return []
    state.pending[cid] = PendingOperation(cid, FETCH, Origin(TAG_PRELOAD), tag=TAG_PRELOAD, resource_keys=tuple(claimed))
    return [PreloadEffect(cid, tuple(claimed), state.scope)]


def start(state: AppState, config: Config) -> list:
    """Initial background work: the root list, scope catalogs and preloads."""
    effects = request_list(state, state.top)
    effects += _request_catalog(state, "projects")
    effects += _request_catalog(state, "zones")
    effects += _request_preload(state, [key for key in config.preload if key != state.top.resource_key])
    return effects


def _quit(state: AppState) -> list:
    state.running = False
    return [QuitEffect()]


# --- navigation -------------------------------------------------------------


def _item_scope_params(item: dict[str, Any]) -> dict[str, str]:
    params = {}
    for field, param in (("zone_short", "zone"), ("region_short", "region"), ("location", "location")):
        value = item.get(field)
        if isinstance(value, str) and value and value != "-":
            params[param] = value
    return params


def _root_frame(state: AppState, resource_key: str, scope: Scope) -> NavigationFrame:
    definition = state.registry.lookup(resource_key)
    label = definition.display_name if definition else resource_key
    cached = state.preloaded.pop(resource_key, None)
    if cached is not None:
        items, fetched_at, token = cached
        return NavigationFrame(resource_key, scope, label=label, items=items, fetched_at=fetched_at, page_token=token)
    return NavigationFrame(resource_key, scope, label=label)


def _enter_frame(state: AppState, stale_after: float) -> list:
    state.restore_cursor()
    frame = state.top
    if frame.awaiting_refresh or frame.is_stale(stale_after):
        return request_list(state, frame)
    return []


def navigate_root(state: AppState, config: Config, resource_key: str) -> list:
    state.stack.reset(_root_frame(state, resource_key, state.scope))
    state.mode = Mode.NORMAL
    config.last_resource = resource_key
    return _enter_frame(state, config.stale_after_seconds) + [SaveConfigEffect()]


def drill_down(state: AppState, link: SubResourceLink) -> list:
    item = state.selected_item()
    if item is None:
        return []
    child = state.registry.lookup(link.resource_key)
    parent_id = extract_json_value(item, link.parent_id_field)
    if child is None or parent_id == "-":
        state.set_error(f"Cannot open {link.display_name}: missing {link.parent_id_field}")
        return []

    context = []
    for param, path in link.context_params:
        value = extract_json_value(item, path)
        if value != "-":
            context.append((param, value))

    parent_name = extract_json_value(item, state.definition.name_field) if state.definition else parent_id
    frame = NavigationFrame(
        resource_key=child.key,
        scope=state.scope,
        filter=(link.filter_param, link.filter_value(parent_id)),
        context=tuple(context),
        label=f"{child.display_name} ({parent_name})",
    )
    state.save_cursor()
    try:
        state.stack.push(frame)
    except NavigationError as exc:
        state.set_error(str(exc))
        return []
    state.restore_cursor()
    state.clear_messages()
    return request_list(state, frame)


def go_back(state: AppState, config: Config) -> list:
    if state.stack.pop() is None:
        return []
    state.clear_messages()
    return _enter_frame(state, config.stale_after_seconds)


def switch_scope(state: AppState, config: Config, project: Optional[str] = None, zone: Optional[str] = None) -> list:
    new_scope = Scope(project=project or state.scope.project, zone=zone or state.scope.zone)
    project_changed = new_scope.project != state.scope.project
    state.scope = new_scope
    config.project = new_scope.project
    config.zone = new_scope.zone
    state.preloaded.clear()
    state.mode = Mode.NORMAL
    state.selector = None

    root_key = state.stack.root.resource_key
    state.stack.reset(_root_frame(state, root_key, new_scope))
    state.restore_cursor()
    state.set_status(f"Switched to {new_scope.project} / {new_scope.label()}")
    effects = request_list(state, state.top)
    if project_changed:
        effects += _request_catalog(state, "zones")
    return effects + [SaveConfigEffect()]


# --- actions ----------------------------------------------------------------


def _target_pairs(state: AppState, definition: ResourceDefinition) -> list[tuple[str, dict[str, Any]]]:
    pairs = []
    for item in state.target_items():
        target_id = extract_json_value(item, definition.id_field)
        if target_id != "-":
            pairs.append((target_id, item))
    return pairs


def start_action(state: AppState, action: Action) -> list:
    definition = state.definition
    if definition is None:
        return []

    if action.shell_action:
        item = state.selected_item()
        if item is None:
            return []
        target_id = extract_json_value(item, definition.id_field)
        return [ShellEffect(action.sdk_method, target_id, item, definition.key, state.top.scope)]

    if state.readonly:
        state.set_error(f"Read-only mode: {action.display_name} is disabled")
        return []
    if not dispatch.is_known(definition.service, action.sdk_method):
        state.set_error(str(dispatch.UnknownMethod(definition.service, action.sdk_method)))
        return []

    targets = _target_pairs(state, definition)
    if not targets:
        return []

    if len(targets) > 1 or action.requires_confirm:
        policy = action.confirm or ConfirmPolicy()
        if len(targets) > 1:
            message = f"{action.display_name} {len(targets)} resources?"
        else:
            message = f"{policy.message or action.display_name} '{targets[0][0]}'?"
        state.confirm = ConfirmRequest(
            action=action,
            resource_key=definition.key,
            targets=targets,
            message=message,
            destructive=policy.destructive,
            selected_yes=policy.default_yes,
        )
        state.mode = Mode.CONFIRM
        return []
    return submit_action(state, definition, action, targets)


def submit_action(
    state: AppState,
    definition: ResourceDefinition,
    action: Action,
    targets: list[tuple[str, dict[str, Any]]],
) -> list:
    frame = state.top
    base_params: dict[str, Any] = dict(frame.context)
    if frame.filter is not None:
        base_params[frame.filter[0]] = frame.filter[1]

    effects = []
    for target_id, item in targets:
        cid = new_correlation_id()
        params = dict(base_params)
        params.update(_item_scope_params(item))
        params["resource"] = target_id
        notification_id = state.notifications.create(action.sdk_method, definition.key, target_id)
        state.pending[cid] = PendingOperation(
            correlation_id=cid,
            kind=MUTATE,
            origin=Origin(definition.key, action.key, target_id),
            tag=TAG_ACTION,
            frame_id=frame.frame_id,
            notification_id=notification_id,
        )
        logger.info("submitting %s.%s on %s", definition.service, action.sdk_method, target_id)
        effects.append(MutateEffect(cid, definition.service, action.sdk_method, params, frame.scope))

    _, _, progressive = operation_labels(action.sdk_method)
    subject = targets[0][0] if len(targets) == 1 else f"{len(targets)} resources"
    state.selected_rows.clear()
    state.set_status(f"{progressive} {subject}...")
    return effects


def open_describe(state: AppState) -> list:
    definition = state.definition
    item = state.selected_item()
    if definition is None or item is None:
        return []
    target_id = extract_json_value(item, definition.id_field)
    state.describe = DescribeView(resource_key=definition.key, target_id=target_id, data=item)
    state.mode = Mode.DESCRIBE
    if not definition.detail_sdk_method:
        return []

    cid = new_correlation_id()
    params = dict(state.top.context)
    params.update(_item_scope_params(item))
    params["resource"] = target_id
    state.pending[cid] = PendingOperation(cid, FETCH, Origin(definition.key, target_id=target_id), tag=TAG_DETAIL)
    state.describe.correlation_id = cid
    state.describe.loading = True
    return [DetailEffect(cid, definition.key, params, state.top.scope)]


def _refresh_origin(state: AppState, frame_id: Optional[int]) -> list:
    frame = state.stack.find(frame_id)
    if frame is None:
        return []
    if frame.frame_id == state.top.frame_id:
        return request_list(state, frame)
    # Not visible: force a refetch when the user returns to it.
    state.stack.replace(frame.updated(fetched_at=None))
    return []


# --- key handling -----------------------------------------------------------


def handle_key(state: AppState, key: str, config: Config) -> list:
    if key == "ctrl-c":
        return _quit(state)

    handler = {
        Mode.NORMAL: _normal_key,
        Mode.FILTER: _filter_key,
        Mode.COMMAND: _command_key,
        Mode.CONFIRM: _confirm_key,
        Mode.DESCRIBE: _describe_key,
        Mode.HELP: _help_key,
        Mode.PROJECT_SELECT: _selector_key,
        Mode.ZONE_SELECT: _selector_key,
        Mode.NOTIFICATIONS: _notifications_key,
    }[state.mode]
    previous = state.last_key
    effects = handler(state, key, config)
    # "gg" consumes both presses.
    state.last_key = None if key == "g" and previous == "g" else key
    return effects


def _normal_key(state: AppState, key: str, config: Config) -> list:
    definition = state.definition

    if key == "q":
        return _quit(state)
    if key in ("j", "down"):
        state.move(1)
    elif key in ("k", "up"):
        state.move(-1)
    elif key == "g":
        if state.last_key == "g":
            state.move_to(0)
    elif key in ("G", "end"):
        state.move_to(len(state.filtered) - 1)
    elif key == "home":
        state.move_to(0)
    elif key in ("pgdn", "ctrl-d"):
        state.move(PAGE_SIZE)
    elif key in ("pgup", "ctrl-u"):
        state.move(-PAGE_SIZE)
    elif len(key) == 1 and key in "123456789":
        state.move_to(int(key) - 1)
    elif key in SORT_KEYS:
        state.toggle_sort(SORT_KEYS[key])
    elif key == "f12":
        state.clear_sort()
    elif key == "]":
        if state.top.page_token:
            return request_list(state, state.top, state.top.page_token, tag=TAG_PAGE)
        state.set_status("No more pages")
    elif key == "R":
        state.clear_messages()
        return request_list(state, state.top)
    elif key in ("enter", "d"):
        return open_describe(state)
    elif key == "/":
        state.mode = Mode.FILTER
    elif key == ":":
        state.mode = Mode.COMMAND
        state.command = CommandInput(suggestions=commands.suggestions("", state.registry, config.all_aliases()))
    elif key == "?":
        state.mode = Mode.HELP
    elif key in ("backspace", "left", "b"):
        return go_back(state, config)
    elif key == "p":
        _open_selector(state, "project")
    elif key == "z":
        _open_selector(state, "zone")
    elif key == "n":
        state.mode = Mode.NOTIFICATIONS
    elif key == " ":
        state.toggle_row()
        state.move(1)
    elif key == "V":
        state.select_all()
    elif key == "esc":
        if state.selected_rows:
            state.selected_rows.clear()
        elif state.filter_text:
            state.set_filter("")
        else:
            state.clear_messages()
    elif key == "delete" and definition is not None:
        for action in definition.actions:
            if "delete" in action.sdk_method:
                return start_action(state, action)
    elif _printable(key) and definition is not None:
        link = definition.sub_resource_for_key(key)
        if link is not None:
            return drill_down(state, link)
        action = definition.action_for_key(key)
        if action is not None:
            return start_action(state, action)
    return []


def _filter_key(state: AppState, key: str, config: Config) -> list:
    if key == "esc":
        state.set_filter("")
        state.mode = Mode.NORMAL
    elif key == "enter":
        state.mode = Mode.NORMAL
    elif key == "backspace":
        state.set_filter(state.filter_text[:-1])
    elif key in ("up", "down"):
        state.move(-1 if key == "up" else 1)
    elif _printable(key):
        state.set_filter(state.filter_text + key)
    return []


def _command_key(state: AppState, key: str, config: Config) -> list:
    command = state.command
    aliases = config.all_aliases()
    if key == "esc":
        state.mode = Mode.NORMAL
        return []
    if key == "enter":
        state.mode = Mode.NORMAL
        text = command.text
        if command.suggestion_index is not None and command.suggestions:
            text = command.suggestions[command.suggestion_index]
        return run_command(state, config, text)
    if key == "tab":
        if command.suggestions:
            index = command.suggestion_index or 0
            command.text = command.suggestions[index]
            command.suggestion_index = None
            command.suggestions = commands.suggestions(command.text, state.registry, aliases)
        return []
    if key in ("up", "down"):
        if command.suggestions:
            step = -1 if key == "up" else 1
            index = -1 if command.suggestion_index is None else command.suggestion_index
            command.suggestion_index = (index + step) % len(command.suggestions)
        return []
    if key == "backspace":
        if not command.text:
            state.mode = Mode.NORMAL
            return []
        command.text = command.text[:-1]
    elif _printable(key):
        command.text += key
    else:
        return []
    command.suggestion_index = None
    command.suggestions = commands.suggestions(command.text, state.registry, aliases)
    return []


def run_command(state: AppState, config: Config, text: str) -> list:
    parsed = commands.parse(text, state.registry, config.all_aliases())
    if parsed is None:
        return []
    name = parsed.name

    if name == "quit":
        return _quit(state)
    if name == "back":
        return go_back(state, config)
    if name == "help":
        state.mode = Mode.HELP
    elif name == "refresh":
        return request_list(state, state.top)
    elif name == "projects":
        _open_selector(state, "project")
    elif name == "zones":
        _open_selector(state, "zone")
    elif name == "project":
        return switch_scope(state, config, project=parsed.arg)
    elif name == "zone":
        return switch_scope(state, config, zone=parsed.arg)
    elif name == "notifications":
        state.mode = Mode.NOTIFICATIONS
    elif name == "clear_notifications":
        state.notifications.clear()
        state.set_status("Notifications cleared")
    elif name == "alias":
        alias, target = parsed.args
        resolved = commands.resolve_resource(target, state.registry, config.all_aliases())
        if resolved is None:
            state.set_error(f"Unknown resource: {target}")
            return []
        config.aliases[alias] = resolved
        state.set_status(f"Alias {alias} -> {resolved}")
        return [SaveConfigEffect()]
    elif name == "navigate":
        key = parsed.arg
        definition = state.definition
        link = definition.sub_resource(key) if definition else None
        if link is not None and state.selected_item() is not None:
            return drill_down(state, link)
        return navigate_root(state, config, key)
    elif name == "invalid":
        state.set_error(parsed.arg or "invalid command")
    else:
        state.set_error(f"Unknown command: {parsed.arg}")
    return []


def _confirm_key(state: AppState, key: str, config: Config) -> list:
    confirm = state.confirm
    if confirm is None:
        state.mode = Mode.NORMAL
        return []

    if key in ("esc", "n", "N"):
        return _close_confirm(state, submit=False)
    if key in ("left", "h"):
        confirm.selected_yes = True
    elif key in ("right", "l"):
        confirm.selected_yes = False
    elif key == "tab":
        confirm.selected_yes = not confirm.selected_yes
    elif key == "enter":
        return _close_confirm(state, submit=confirm.selected_yes)
    elif key in ("y", "Y"):
        return _close_confirm(state, submit=True)
    return []


def _close_confirm(state: AppState, submit: bool) -> list:
    confirm = state.confirm
    state.confirm = None
    state.mode = Mode.NORMAL
    if not submit or confirm is None:
        state.set_status("Cancelled")
        return []
    definition = state.registry.lookup(confirm.resource_key)
    if definition is None:
        return []
    return submit_action(state, definition, confirm.action, confirm.targets)


def describe_line_count(view: DescribeView) -> int:
    return pretty_json(view.data).count("\n") + 1


def _describe_key(state: AppState, key: str, config: Config) -> list:
    view = state.describe
    if view is None or key in ("esc", "q", "backspace"):
        state.describe = None
        state.mode = Mode.NORMAL
        return []

    last = max(0, describe_line_count(view) - 1)
    if key in ("j", "down"):
        view.scroll += 1
    elif key in ("k", "up"):
        view.scroll -= 1
    elif key in ("pgdn", "ctrl-d"):
        view.scroll += PAGE_SIZE
    elif key in ("pgup", "ctrl-u"):
        view.scroll -= PAGE_SIZE
    elif key in ("g", "home"):
        view.scroll = 0
    elif key in ("G", "end"):
        view.scroll = last
    view.scroll = max(0, min(view.scroll, last))
    return []


def _help_key(state: AppState, key: str, config: Config) -> list:
    if key in ("esc", "q", "?", "enter"):
        state.mode = Mode.NORMAL
    return []


def _notifications_key(state: AppState, key: str, config: Config) -> list:
    if key in ("esc", "q", "n"):
        state.mode = Mode.NORMAL
    elif key == "c":
        state.notifications.clear()
    return []


def _open_selector(state: AppState, kind: str) -> None:
    if kind == "project":
        options = state.projects or [state.scope.project]
        current = state.scope.project
        state.mode = Mode.PROJECT_SELECT
    else:
        options = state.zones or [ALL_ZONES, *FALLBACK_ZONES]
        current = state.scope.zone
        state.mode = Mode.ZONE_SELECT
    state.selector = Selector(kind=kind, options=list(options))
    if current in options:
        state.selector.selected = options.index(current)


def _selector_key(state: AppState, key: str, config: Config) -> list:
    selector = state.selector
    if selector is None or key == "esc":
        state.selector = None
        state.mode = Mode.NORMAL
        return []

    if key in ("up", "ctrl-p"):
        selector.move(-1)
    elif key in ("down", "ctrl-n"):
        selector.move(1)
    elif key == "pgup":
        selector.move(-PAGE_SIZE)
    elif key == "pgdn":
        selector.move(PAGE_SIZE)
    elif key == "backspace":
        selector.query = selector.query[:-1]
        selector.selected = 0
    elif key == "enter":
        choice = selector.current()
        state.selector = None
        state.mode = Mode.NORMAL
        if choice is None:
            return []
        if selector.kind == "project":
            if choice == state.scope.project:
                return []
            return switch_scope(state, config, project=choice)
        if choice == state.scope.zone:
            return []
        return switch_scope(state, config, zone=choice)
    elif _printable(key):
        selector.query += key
        selector.selected = 0
    return []


# --- completions ------------------------------------------------------------


def handle_completion(state: AppState, completion: Completion, config: Config) -> list:
    op = state.pending.pop(completion.correlation_id, None)
    if op is None:
        logger.debug("dropping completion for unknown operation %s", completion.correlation_id)
        return []
    op.complete()

    if op.kind == FETCH:
        if op.tag in (TAG_LIST, TAG_PAGE):
            return _list_completed(state, op, completion)
        if op.tag == TAG_PRELOAD:
            return _preload_completed(state, op, completion)
        if op.tag == TAG_DETAIL:
            return _detail_completed(state, op, completion)
        if op.tag in (TAG_PROJECTS, TAG_ZONES):
            return _catalog_completed(state, op, completion)
    if op.kind == MUTATE:
        return _mutate_completed(state, op, completion)
    if op.kind == POLL:
        return _poll_completed(state, op, completion)
    return []


def _fetch_result(op: PendingOperation, completion: Completion) -> FetchResult:
    if completion.error is not None:
        return FetchResult.failure(op.origin.resource_key, completion.error)
    return completion.value


def _drain_deferred(state: AppState, resource_key: str) -> list:
    top = state.top
    if top.awaiting_refresh and top.resource_key == resource_key:
        return request_list(state, top)
    return []


def _list_completed(state: AppState, op: PendingOperation, completion: Completion) -> list:
    key = op.origin.resource_key
    state.in_flight.release(key, op.correlation_id)
    result = _fetch_result(op, completion)

    frame = state.stack.find(op.frame_id)
    if frame is None:
        logger.debug("discarding %s result for closed frame %s", key, op.frame_id)
        return _drain_deferred(state, key)

    is_top = frame.frame_id == state.top.frame_id
    if not result.ok:
        if is_top:
            state.set_error(f"{frame.label or key}: {describe_error(result.error)}")
        return _drain_deferred(state, key)

    items = tuple(result.items)
    if op.tag == TAG_PAGE:
        items = frame.items + items
    updated = frame.updated(items=items, page_token=result.next_page_token, fetched_at=time.monotonic())
    state.stack.replace(updated)
    if is_top:
        # Row positions refer to the old item list; appended pages keep them.
        if op.tag == TAG_LIST:
            state.selected_rows.clear()
        state.recompute()
    return _drain_deferred(state, key)


def _preload_completed(state: AppState, op: PendingOperation, completion: Completion) -> list:
    effects = []
    for key in op.resource_keys:
        state.in_flight.release(key, op.correlation_id)
    if completion.error is not None:
        logger.warning("preload failed: %s", completion.error)
        return [e for key in op.resource_keys for e in _drain_deferred(state, key)]

    now = time.monotonic()
    failed = []
    for result in completion.value:
        if result.ok:
            state.preloaded[result.resource_key] = (tuple(result.items), now, result.next_page_token)
        else:
            failed.append(result.resource_key)
    if failed:
        logger.warning("preload failed for %s", ", ".join(failed))
    for key in op.resource_keys:
        effects += _drain_deferred(state, key)
    return effects


def _detail_completed(state: AppState, op: PendingOperation, completion: Completion) -> list:
    view = state.describe
    if state.mode != Mode.DESCRIBE or view is None or view.correlation_id != op.correlation_id:
        return []
    view.loading = False
    if completion.error is not None:
        state.set_error(describe_error(completion.error))
    elif isinstance(completion.value, dict):
        view.data = completion.value
    return []


def _catalog_completed(state: AppState, op: PendingOperation, completion: Completion) -> list:
    values = completion.value if completion.error is None else None
    if completion.error is not None:
        logger.warning("%s catalog unavailable: %s", op.origin.resource_key, completion.error)

    if op.tag == TAG_PROJECTS:
        projects = list(values or [])
        if state.scope.project not in projects:
            projects.insert(0, state.scope.project)
        state.projects = projects
    else:
        zones = sorted(values) if values else list(FALLBACK_ZONES)
        state.zones = [ALL_ZONES, *[zone for zone in zones if zone != ALL_ZONES]]

    selector = state.selector
    if selector is not None:
        expected = "project" if op.tag == TAG_PROJECTS else "zone"
        if selector.kind == expected:
            selector.options = list(state.projects if expected == "project" else state.zones)
            selector.move(0)
    return []


def _mutate_completed(state: AppState, op: PendingOperation, completion: Completion) -> list:
    target = op.origin.target_id or op.origin.resource_key
    if completion.error is not None:
        message = describe_error(completion.error)
        if op.notification_id:
            state.notifications.mark_error(op.notification_id, message)
        state.set_error(f"{op.origin.action_key} {target} failed: {message}")
        return []

    handle = completion.value
    if handle is None:
        if op.notification_id:
            state.notifications.mark_success(op.notification_id)
        return _refresh_origin(state, op.frame_id)

    if op.notification_id:
        state.notifications.mark_in_progress(op.notification_id, handle.self_link)
    cid = new_correlation_id()
    state.pending[cid] = PendingOperation(
        correlation_id=cid,
        kind=POLL,
        origin=op.origin,
        tag=TAG_POLL,
        frame_id=op.frame_id,
        notification_id=op.notification_id,
    )
    return [PollEffect(cid, handle)]


def _poll_completed(state: AppState, op: PendingOperation, completion: Completion) -> list:
    target = op.origin.target_id or op.origin.resource_key
    if completion.error is not None:
        message = describe_error(completion.error)
        if op.notification_id:
            state.notifications.mark_error(op.notification_id, message)
        state.set_error(f"{target}: {message}")
        return []

    status = completion.value
    if status.value == CANCELLED:
        return []
    if status.succeeded:
        if op.notification_id:
            state.notifications.mark_success(op.notification_id)
    else:
        message = status.error or status.value
        if op.notification_id:
            state.notifications.mark_error(op.notification_id, message)
        state.set_error(f"{op.origin.action_key} {target} failed: {message}")
    return _refresh_origin(state, op.frame_id)
