"""Access tokens and default project/zone discovery via the gcloud CLI."""

from __future__ import annotations

import configparser
import logging
import os
import re
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TOKEN_TTL_SECONDS = 30 * 60
TOKEN_EXPIRY_BUFFER_SECONDS = 60
GCLOUD_TIMEOUT_SECONDS = 15
TOKEN_ENV = "TGCP_ACCESS_TOKEN"

PROJECT_ENV_VARS = ("CLOUDSDK_CORE_PROJECT", "GOOGLE_CLOUD_PROJECT", "GCLOUD_PROJECT")
PROJECT_ID_RE = re.compile(r"^[a-z][a-z0-9-]{4,28}[a-z0-9]$")
CONFIG_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")

FALLBACK_ZONES = [
    "us-central1-a", "us-central1-b", "us-central1-c", "us-central1-f",
    "us-east1-b", "us-east1-c", "us-east1-d",
    "us-east4-a", "us-east4-b", "us-east4-c",
    "us-west1-a", "us-west1-b", "us-west1-c",
    "us-west2-a", "us-west2-b", "us-west2-c",
    "europe-west1-b", "europe-west1-c", "europe-west1-d",
    "europe-west2-a", "europe-west2-b", "europe-west2-c",
    "europe-west3-a", "europe-west3-b", "europe-west3-c",
    "europe-west4-a", "europe-west4-b", "europe-west4-c",
    "asia-east1-a", "asia-east1-b", "asia-east1-c",
    "asia-northeast1-a", "asia-northeast1-b", "asia-northeast1-c",
    "asia-southeast1-a", "asia-southeast1-b", "asia-southeast1-c",
    "australia-southeast1-a", "australia-southeast1-b", "australia-southeast1-c",
    "southamerica-east1-a", "southamerica-east1-b", "southamerica-east1-c",
]


class AuthError(Exception):
    """No usable credentials."""


def validate_project_id(project: str) -> bool:
    return bool(project) and PROJECT_ID_RE.match(project) is not None


def _run_gcloud_token() -> str:
    cmd = ["gcloud", "auth", "print-access-token"]
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, timeout=GCLOUD_TIMEOUT_SECONDS, check=False)
    except FileNotFoundError as exc:
        raise AuthError("gcloud CLI not installed; set TGCP_ACCESS_TOKEN or install the Cloud SDK") from exc
    except subprocess.TimeoutExpired as exc:
        raise AuthError("gcloud auth print-access-token timed out") from exc

    if proc.returncode != 0:
        detail = (proc.stderr or proc.stdout or "").strip().splitlines()
        reason = detail[0] if detail else "gcloud exited with an error"
        raise AuthError(f"{reason}. Run 'gcloud auth login'.")
    token = proc.stdout.strip()
    if not token:
        raise AuthError("gcloud returned an empty access token. Run 'gcloud auth login'.")
    return token


class Credentials:
    """Caches a bearer token for a fixed lifetime; safe to share across threads."""

    def __init__(
        self,
        token_source: Optional[Callable[[], str]] = None,
        ttl_seconds: float = TOKEN_TTL_SECONDS - TOKEN_EXPIRY_BUFFER_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._token_source = token_source or self._default_source
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._expires_at = 0.0

    @staticmethod
    def _default_source() -> str:
        token = os.environ.get(TOKEN_ENV, "").strip()
        if token:
            return token
        return _run_gcloud_token()

    def get_token(self) -> str:
        with self._lock:
            if self._token and self._clock() < self._expires_at:
                return self._token
            token = self._token_source()
            self._token = token
            self._expires_at = self._clock() + self._ttl
            logger.info("access token refreshed; valid for %d minutes", int(self._ttl // 60))
            return token

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = 0.0


def gcloud_config_dir() -> Optional[Path]:
    override = os.environ.get("CLOUDSDK_CONFIG")
    if override:
        return Path(override)
    base = os.environ.get("XDG_CONFIG_HOME")
    if base:
        return Path(base) / "gcloud"
    home = Path.home()
    return home / ".config" / "gcloud"


def _read_ini(path: Path) -> Optional[configparser.ConfigParser]:
    parser = configparser.ConfigParser(interpolation=None)
    try:
        with path.open(encoding="utf-8") as handle:
            parser.read_file(handle)
    except (OSError, configparser.Error):
        return None
    return parser


def _active_configuration(config_dir: Path) -> Optional[configparser.ConfigParser]:
    try:
        name = (config_dir / "active_config").read_text(encoding="utf-8").strip()
    except OSError:
        return None
    if not CONFIG_NAME_RE.match(name):
        logger.warning("ignoring gcloud active_config with invalid name")
        return None
    return _read_ini(config_dir / "configurations" / f"config_{name}")


def _ini_value(parser: Optional[configparser.ConfigParser], section: str, key: str) -> Optional[str]:
    if parser is None or not parser.has_option(section, key):
        return None
    value = parser.get(section, key).strip()
    return value or None


def default_project(config_dir: Optional[Path] = None) -> Optional[str]:
    for name in PROJECT_ENV_VARS:
        value = os.environ.get(name, "").strip()
        if not value:
            continue
        if validate_project_id(value):
            return value
        logger.warning("invalid project id format in %s", name)

    config_dir = config_dir or gcloud_config_dir()
    if config_dir is None:
        return None

    project = _ini_value(_read_ini(config_dir / "properties"), "core", "project")
    if project and validate_project_id(project):
        return project

    project = _ini_value(_active_configuration(config_dir), "core", "project")
    if project and validate_project_id(project):
        return project
    return None


def default_zone(config_dir: Optional[Path] = None) -> Optional[str]:
    value = os.environ.get("CLOUDSDK_COMPUTE_ZONE", "").strip()
    if value:
        return value
    config_dir = config_dir or gcloud_config_dir()
    if config_dir is None:
        return None
    return _ini_value(_read_ini(config_dir / "properties"), "compute", "zone") or _ini_value(
        _active_configuration(config_dir), "compute", "zone"
    )
