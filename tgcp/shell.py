"""External takeover actions: interactive ssh and Cloud Console links."""

from __future__ import annotations

import logging
import subprocess
import webbrowser
from typing import Any, Optional, Sequence
from urllib.parse import quote

from tgcp.formatting import short_name
from tgcp.models import Scope

logger = logging.getLogger(__name__)

CONSOLE_BASE = "https://console.cloud.google.com"

SSH = "ssh_instance"
SSH_IAP = "ssh_instance_iap"
OPEN_CONSOLE = "open_console"
SHELL_METHODS = frozenset({SSH, SSH_IAP, OPEN_CONSOLE})

# Only these need the terminal handed over.
TAKEOVER_METHODS = frozenset({SSH, SSH_IAP})


def item_zone(item: dict[str, Any], scope: Scope) -> Optional[str]:
    zone = item.get("zone_short") or short_name(item.get("zone"))
    if zone and zone != "-":
        return zone
    if scope.zone and not scope.all_zones:
        return scope.zone
    return None


def build_ssh_command(
    name: str,
    zone: str,
    project: str,
    use_iap: bool = False,
    extra_args: Sequence[str] = (),
) -> list[str]:
    cmd = ["gcloud", "compute", "ssh", name, "--zone", zone, "--project", project]
    if use_iap:
        cmd.append("--tunnel-through-iap")
    cmd.extend(extra_args)
    return cmd


def console_url(resource_key: str, item: dict[str, Any], scope: Scope) -> str:
    project = quote(scope.project, safe="")
    name = quote(str(item.get("name", "")), safe="")
    zone = item_zone(item, scope) or ""

    if resource_key == "compute-instances":
        return f"{CONSOLE_BASE}/compute/instancesDetail/zones/{zone}/instances/{name}?project={project}"
    if resource_key == "compute-disks":
        return f"{CONSOLE_BASE}/compute/disksDetail/zones/{zone}/disks/{name}?project={project}"
    if resource_key == "storage-buckets":
        return f"{CONSOLE_BASE}/storage/browser/{name}?project={project}"
    if resource_key == "gke-clusters":
        location = quote(str(item.get("location") or zone), safe="")
        return f"{CONSOLE_BASE}/kubernetes/clusters/details/{location}/{name}?project={project}"
    return f"{CONSOLE_BASE}/home/dashboard?project={project}"


def run_ssh(cmd: Sequence[str]) -> int:
    """Run ssh attached to the terminal; returns the exit status."""
    logger.info("running %s", " ".join(cmd))
    try:
        completed = subprocess.run(list(cmd), check=False)
    except FileNotFoundError:
        logger.error("gcloud CLI not installed")
        return 127
    return completed.returncode


def open_in_browser(url: str) -> bool:
    logger.info("opening %s", url)
    try:
        return webbrowser.open(url)
    except webbrowser.Error as exc:
        logger.warning("could not open browser: %s", exc)
        return False


def run_shell_action(method: str, item: dict[str, Any], resource_key: str, scope: Scope, ssh_config) -> str:
    """Perform a shell action and return a status line for the user."""
    name = str(item.get("name", ""))
    if method == OPEN_CONSOLE:
        url = console_url(resource_key, item, scope)
        if open_in_browser(url):
            return f"Opened {url}"
        return f"Open in browser: {url}"

    if method not in TAKEOVER_METHODS:
        return f"Unsupported shell action: {method}"

    zone = item_zone(item, scope)
    if not zone:
        return f"Cannot ssh to {name}: zone unknown"
    use_iap = method == SSH_IAP or bool(getattr(ssh_config, "use_iap", False))
    extra = list(getattr(ssh_config, "extra_args", []) or [])
    code = run_ssh(build_ssh_command(name, zone, scope.project, use_iap, extra))
    if code == 0:
        return f"SSH session to {name} ended"
    return f"SSH to {name} exited with status {code}"
