"""User configuration: loading, merging with defaults, saving."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from tgcp import auth
from tgcp.commands import DEFAULT_ALIASES
from tgcp.models import Scope

logger = logging.getLogger(__name__)

DEFAULT_ZONE = "us-central1-a"
DEFAULT_RESOURCE = "compute-instances"
CONFIG_FILE = "config.json"
LOG_FILE = "tgcp.log"


def config_dir() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "tgcp"


def default_config_path() -> Path:
    return config_dir() / CONFIG_FILE


def default_log_path() -> Path:
    return config_dir() / LOG_FILE


@dataclass
class SshConfig:
    use_iap: bool = False
    extra_args: list[str] = field(default_factory=list)


@dataclass
class Config:
    project: Optional[str] = None
    zone: Optional[str] = None
    last_resource: str = DEFAULT_RESOURCE
    aliases: dict[str, str] = field(default_factory=dict)
    ssh: SshConfig = field(default_factory=SshConfig)
    preload: list[str] = field(default_factory=list)
    stale_after_seconds: int = 60
    poll_interval_seconds: float = 2.0
    notification_detail: str = "detailed"
    readonly: bool = False
    path: Optional[Path] = None

    def all_aliases(self) -> dict[str, str]:
        merged = dict(DEFAULT_ALIASES)
        merged.update(self.aliases)
        return merged

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "zone": self.zone,
            "last_resource": self.last_resource,
            "aliases": self.aliases,
            "ssh": {"use_iap": self.ssh.use_iap, "extra_args": self.ssh.extra_args},
            "preload": self.preload,
            "stale_after_seconds": self.stale_after_seconds,
            "poll_interval_seconds": self.poll_interval_seconds,
            "notification_detail": self.notification_detail,
            "readonly": self.readonly,
        }


def load_user_config(path: str | None) -> dict:
    """Explicit config must exist and parse; the default location is optional."""
    if path:
        config_path = Path(path)
        if not config_path.exists():
            raise ValueError(f"config path not found: {config_path}")
        try:
            data = json.loads(config_path.read_text())
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON config: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"config must be a JSON object: {config_path}")
        return data

    config_path = default_config_path()
    try:
        data = json.loads(config_path.read_text())
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("ignoring unreadable config %s: %s", config_path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def resolve_config(config_path: str | None = None) -> Config:
    user_config = load_user_config(config_path)
    resolved = Config(path=Path(config_path) if config_path else default_config_path())

    if isinstance(user_config.get("project"), str) and user_config["project"]:
        resolved.project = user_config["project"]
    if isinstance(user_config.get("zone"), str) and user_config["zone"]:
        resolved.zone = user_config["zone"]
    if isinstance(user_config.get("last_resource"), str) and user_config["last_resource"]:
        resolved.last_resource = user_config["last_resource"]

    aliases = user_config.get("aliases")
    if isinstance(aliases, dict):
        resolved.aliases = {str(k): str(v) for k, v in aliases.items()}

    ssh = user_config.get("ssh")
    if isinstance(ssh, dict):
        extra = ssh.get("extra_args")
        resolved.ssh = SshConfig(
            use_iap=bool(ssh.get("use_iap", False)),
            extra_args=[str(arg) for arg in extra] if isinstance(extra, list) else [],
        )

    preload = user_config.get("preload")
    if isinstance(preload, list):
        resolved.preload = [str(key) for key in preload]

    if "stale_after_seconds" in user_config:
        resolved.stale_after_seconds = max(0, int(user_config["stale_after_seconds"]))
    if "poll_interval_seconds" in user_config:
        resolved.poll_interval_seconds = max(0.5, float(user_config["poll_interval_seconds"]))
    if isinstance(user_config.get("notification_detail"), str):
        resolved.notification_detail = user_config["notification_detail"]
    resolved.readonly = bool(user_config.get("readonly", False))
    return resolved


def save_config(config: Config, path: Optional[Path] = None) -> Path:
    target = Path(path or config.path or default_config_path())
    target.parent.mkdir(parents=True, exist_ok=True)
    os.chmod(target.parent, 0o700)
    tmp = target.with_suffix(target.suffix + ".tmp")
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        json.dump(config.to_dict(), handle, indent=2)
        handle.write("\n")
    os.replace(tmp, target)
    os.chmod(target, 0o600)
    return target


def resolve_scope(config: Config, project: Optional[str] = None, zone: Optional[str] = None) -> Scope:
    """Effective scope: CLI > config > environment/gcloud > built-in zone."""
    effective_project = project or config.project or auth.default_project()
    if not effective_project:
        raise ValueError(
            "no GCP project configured; pass --project, set CLOUDSDK_CORE_PROJECT, or run 'gcloud config set project'"
        )
    if not auth.validate_project_id(effective_project):
        raise ValueError(f"invalid project id: {effective_project}")
    effective_zone = zone or config.zone or auth.default_zone() or DEFAULT_ZONE
    return Scope(project=effective_project, zone=effective_zone)
