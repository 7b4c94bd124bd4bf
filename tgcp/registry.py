"""Resource definition registry.

Resource kinds are described declaratively (columns, identifiers, actions,
sub-resource links and the API method names used to list and act on them).
``load`` validates a set of raw schema documents once at startup; the result
is immutable and safe to read from any thread without locking.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from importlib import resources as importlib_resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

SCHEMA_FILES = ("common.json", "compute.json", "storage.json", "gke.json", "billing.json")
SCOPES = ("global", "regional", "zonal")

REQUIRED_RESOURCE_FIELDS = (
    "display_name",
    "service",
    "sdk_method",
    "response_path",
    "id_field",
    "name_field",
    "columns",
)


class SchemaError(ValueError):
    """Malformed resource definitions; aborts startup."""


@dataclass(frozen=True)
class Column:
    header: str
    json_path: str
    width: int = 16
    color_map: Optional[str] = None


@dataclass(frozen=True)
class ConfirmPolicy:
    message: Optional[str] = None
    destructive: bool = False
    default_yes: bool = False


@dataclass(frozen=True)
class Action:
    key: str
    display_name: str
    sdk_method: str
    shortcut: Optional[str] = None
    confirm: Optional[ConfirmPolicy] = None
    shell_action: bool = False

    @property
    def requires_confirm(self) -> bool:
        return self.confirm is not None


@dataclass(frozen=True)
class SubResourceLink:
    resource_key: str
    display_name: str
    shortcut: str
    parent_id_field: str
    filter_param: str
    filter_template: Optional[str] = None
    # Extra request params copied from the parent row: param -> parent path.
    context_params: tuple[tuple[str, str], ...] = ()

    def filter_value(self, parent_id: str) -> str:
        if self.filter_template:
            return self.filter_template.format(value=parent_id)
        return parent_id


@dataclass(frozen=True)
class ResourceDefinition:
    key: str
    display_name: str
    service: str
    sdk_method: str
    response_path: str
    id_field: str
    name_field: str
    columns: tuple[Column, ...]
    scope: str = "zonal"
    detail_sdk_method: Optional[str] = None
    sdk_method_params: Mapping[str, Any] = field(default_factory=dict)
    actions: tuple[Action, ...] = ()
    sub_resources: tuple[SubResourceLink, ...] = ()

    def action_for_key(self, key: str) -> Optional[Action]:
        for action in self.actions:
            if action.shortcut == key:
                return action
        return None

    def sub_resource_for_key(self, key: str) -> Optional[SubResourceLink]:
        for link in self.sub_resources:
            if link.shortcut == key:
                return link
        return None

    def sub_resource(self, resource_key: str) -> Optional[SubResourceLink]:
        for link in self.sub_resources:
            if link.resource_key == resource_key:
                return link
        return None


@dataclass(frozen=True)
class ColorEntry:
    value: str
    color: tuple[int, int, int]


class Registry:
    """Immutable index of resource definitions and color maps."""

    def __init__(
        self,
        definitions: Mapping[str, ResourceDefinition],
        color_maps: Mapping[str, tuple[ColorEntry, ...]],
    ):
        self._definitions = MappingProxyType(dict(definitions))
        self._color_maps = MappingProxyType(dict(color_maps))

    def lookup(self, key: str) -> Optional[ResourceDefinition]:
        return self._definitions.get(key)

    def keys(self) -> list[str]:
        return sorted(self._definitions)

    def __contains__(self, key: object) -> bool:
        return key in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def color_for(self, color_map: Optional[str], value: str) -> Optional[tuple[int, int, int]]:
        if not color_map:
            return None
        for entry in self._color_maps.get(color_map, ()):
            if entry.value == value:
                return entry.color
        return None


def _require(raw: Mapping[str, Any], name: str, where: str) -> Any:
    if name not in raw or raw[name] in (None, ""):
        raise SchemaError(f"{where}: missing required field '{name}'")
    return raw[name]


def _parse_confirm(raw: Mapping[str, Any]) -> Optional[ConfirmPolicy]:
    confirm = raw.get("confirm")
    if isinstance(confirm, Mapping):
        return ConfirmPolicy(
            message=confirm.get("message"),
            destructive=bool(confirm.get("destructive", False)),
            default_yes=bool(confirm.get("default_yes", False)),
        )
    if raw.get("needs_confirm"):
        return ConfirmPolicy(message=raw.get("display_name"))
    return None


def _parse_action(raw: Mapping[str, Any], where: str) -> Action:
    key = str(_require(raw, "key", where))
    where = f"{where}.actions[{key}]"
    return Action(
        key=key,
        display_name=str(_require(raw, "display_name", where)),
        sdk_method=str(_require(raw, "sdk_method", where)),
        shortcut=raw.get("shortcut"),
        confirm=_parse_confirm(raw),
        shell_action=bool(raw.get("shell_action", False)),
    )


def _parse_column(raw: Mapping[str, Any], where: str) -> Column:
    return Column(
        header=str(_require(raw, "header", where)),
        json_path=str(_require(raw, "json_path", where)),
        width=int(raw.get("width", 16)),
        color_map=raw.get("color_map"),
    )


def _parse_sub_resource(raw: Mapping[str, Any], where: str) -> SubResourceLink:
    context = raw.get("context_params") or {}
    return SubResourceLink(
        resource_key=str(_require(raw, "resource_key", where)),
        display_name=str(raw.get("display_name") or raw["resource_key"]),
        shortcut=str(_require(raw, "shortcut", where)),
        parent_id_field=str(_require(raw, "parent_id_field", where)),
        filter_param=str(_require(raw, "filter_param", where)),
        filter_template=raw.get("filter_template"),
        context_params=tuple(sorted((str(k), str(v)) for k, v in context.items())),
    )


def _parse_definition(key: str, raw: Mapping[str, Any]) -> ResourceDefinition:
    where = f"resource '{key}'"
    if not isinstance(raw, Mapping):
        raise SchemaError(f"{where}: definition must be an object")
    for name in REQUIRED_RESOURCE_FIELDS:
        _require(raw, name, where)

    scope = raw.get("scope", "zonal")
    if scope not in SCOPES:
        raise SchemaError(f"{where}: scope must be one of {', '.join(SCOPES)}")

    columns = raw["columns"]
    if not isinstance(columns, list) or not columns:
        raise SchemaError(f"{where}: columns must be a non-empty list")

    params = raw.get("sdk_method_params") or {}
    if not isinstance(params, Mapping):
        raise SchemaError(f"{where}: sdk_method_params must be an object")

    return ResourceDefinition(
        key=key,
        display_name=str(raw["display_name"]),
        service=str(raw["service"]),
        sdk_method=str(raw["sdk_method"]),
        response_path=str(raw["response_path"]),
        id_field=str(raw["id_field"]),
        name_field=str(raw["name_field"]),
        columns=tuple(_parse_column(col, f"{where}.columns[{i}]") for i, col in enumerate(columns)),
        scope=scope,
        detail_sdk_method=raw.get("detail_sdk_method"),
        sdk_method_params=MappingProxyType(dict(params)),
        actions=tuple(_parse_action(a, where) for a in raw.get("actions") or []),
        sub_resources=tuple(_parse_sub_resource(s, where) for s in raw.get("sub_resources") or []),
    )


def load(raw_schemas: Iterable[Mapping[str, Any]]) -> Registry:
    """Validate and index raw schema documents.

    Each document may carry ``resources`` (key -> definition) and
    ``color_maps`` (name -> list of value/color pairs). Raises ``SchemaError``
    on duplicate keys, missing fields, or references to unknown resources or
    color maps. Action method names are not checked here; they are resolved
    against the dispatch table when the action is used.
    """
    definitions: dict[str, ResourceDefinition] = {}
    color_maps: dict[str, tuple[ColorEntry, ...]] = {}

    for document in raw_schemas:
        if not isinstance(document, Mapping):
            raise SchemaError("schema document must be an object")
        for name, entries in (document.get("color_maps") or {}).items():
            if name in color_maps:
                raise SchemaError(f"duplicate color map '{name}'")
            try:
                color_maps[name] = tuple(
                    ColorEntry(value=str(e["value"]), color=tuple(int(c) for c in e["color"]))
                    for e in entries
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise SchemaError(f"color map '{name}': invalid entry ({exc})") from exc
        for key, raw in (document.get("resources") or {}).items():
            if key in definitions:
                raise SchemaError(f"duplicate resource key '{key}'")
            definitions[key] = _parse_definition(key, raw)

    for definition in definitions.values():
        for link in definition.sub_resources:
            if link.resource_key not in definitions:
                raise SchemaError(
                    f"resource '{definition.key}': sub-resource '{link.resource_key}' is not defined"
                )
        for column in definition.columns:
            if column.color_map and column.color_map not in color_maps:
                raise SchemaError(
                    f"resource '{definition.key}': column '{column.header}' uses unknown color map '{column.color_map}'"
                )

    logger.debug("loaded %d resource definitions, %d color maps", len(definitions), len(color_maps))
    return Registry(definitions, color_maps)


def read_builtin_schemas() -> list[dict[str, Any]]:
    package = importlib_resources.files("tgcp.resources")
    documents = []
    for name in SCHEMA_FILES:
        text = package.joinpath(name).read_text(encoding="utf-8")
        try:
            documents.append(json.loads(text))
        except json.JSONDecodeError as exc:
            raise SchemaError(f"{name}: invalid JSON ({exc})") from exc
    return documents


def read_schema_dir(path: Path) -> list[dict[str, Any]]:
    documents = []
    for schema_path in sorted(path.glob("*.json")):
        try:
            documents.append(json.loads(schema_path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError) as exc:
            raise SchemaError(f"{schema_path}: unreadable schema ({exc})") from exc
    return documents


def load_builtin(extra_dirs: Iterable[Path] = ()) -> Registry:
    documents = read_builtin_schemas()
    for path in extra_dirs:
        documents.extend(read_schema_dir(Path(path)))
    return load(documents)
