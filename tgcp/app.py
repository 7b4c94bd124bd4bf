"""Terminal dashboard entrypoint for tgcp."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone

from rich.console import Console

from tgcp import __version__
from tgcp.auth import Credentials
from tgcp.client import CloudClient
from tgcp.commands import resolve_resource
from tgcp.config import DEFAULT_RESOURCE, Config, config_dir, default_log_path, resolve_config, resolve_scope
from tgcp.fetcher import fetch_all
from tgcp.loop import Loop
from tgcp.models import FetchRequest, Scope
from tgcp.notifications import NotificationCenter
from tgcp.registry import Registry, SchemaError, load_builtin
from tgcp.state import AppState
from tgcp.transport import Transport, describe_error

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def configure_logging(level: str) -> None:
    """Log to the config directory; the terminal belongs to the dashboard."""
    if level == "off":
        logging.disable(logging.CRITICAL)
        return
    config_dir().mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(default_log_path()),
        level=LOG_LEVELS[level],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _resource_key(requested: str | None, config: Config, registry: Registry) -> str:
    aliases = config.all_aliases()
    if requested:
        key = resolve_resource(requested, registry, aliases)
        if key is None:
            raise ValueError(f"unknown resource: {requested}")
        return key
    key = resolve_resource(config.last_resource, registry, aliases)
    return key or DEFAULT_RESOURCE


def _json_output(registry: Registry, client: CloudClient, resource_key: str, scope: Scope) -> int:
    definition = registry.lookup(resource_key)
    result = fetch_all(client, definition, FetchRequest(resource_key, scope))
    if not result.ok:
        print(f"tgcp: {resource_key}: {describe_error(result.error)}", file=sys.stderr)
        return 1
    payload = {
        "project": scope.project,
        "zone": scope.zone,
        "collected_at": datetime.now(timezone.utc).isoformat(),
        "resource": resource_key,
        "count": len(result.items),
        "items": result.items,
    }
    print(json.dumps(payload, indent=2, default=str))
    return 0


def _run_interactive(state: AppState, config: Config, client: CloudClient) -> int:
    import termios

    if not sys.stdin.isatty():
        print("tgcp: interactive mode needs a terminal (use --json for a snapshot)", file=sys.stderr)
        return 1

    loop = Loop(state, config, client, console=Console())
    try:
        code = loop.run()
    except termios.error as exc:
        print(f"tgcp: terminal setup failed: {exc}", file=sys.stderr)
        return 1

    if not loop.clean_shutdown:
        # Background calls that ignore cancellation must not keep the process alive.
        logger.warning("forcing exit with background work still running")
        client.close()
        sys.stdout.flush()
        os._exit(code)
    return code


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="tgcp", description="Keyboard-driven terminal dashboard for Google Cloud")
    parser.add_argument("--project", help="GCP project id (default: config, then gcloud)")
    parser.add_argument("--zone", help="Compute zone, or 'all' for every zone")
    parser.add_argument("--config", help="JSON config file (default: $XDG_CONFIG_HOME/tgcp/config.json)")
    parser.add_argument("--resource", help="Resource type or alias to open, e.g. compute-instances or gcs")
    parser.add_argument("--json", action="store_true", help="Print one resource list as JSON and exit")
    parser.add_argument("--readonly", action="store_true", help="Disable mutating actions")
    parser.add_argument(
        "--log-level",
        choices=["off", *LOG_LEVELS],
        default=os.environ.get("TGCP_LOG_LEVEL", "off"),
        help="Log to the tgcp config directory at this level",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    try:
        registry = load_builtin()
    except SchemaError as exc:
        print(f"tgcp: invalid resource schema: {exc}", file=sys.stderr)
        return 1

    try:
        config = resolve_config(args.config)
        scope = resolve_scope(config, args.project, args.zone)
        resource_key = _resource_key(args.resource, config, registry)
    except ValueError as exc:
        print(f"tgcp: {exc}", file=sys.stderr)
        return 1

    config.project = scope.project
    config.zone = scope.zone
    client = CloudClient(Transport(), Credentials())
    try:
        if args.json:
            return _json_output(registry, client, resource_key, scope)

        state = AppState.initial(
            registry,
            scope,
            resource_key,
            readonly=args.readonly or config.readonly,
            notifications=NotificationCenter(detail=config.notification_detail),
        )
        logger.info("starting in %s/%s on %s", scope.project, scope.label(), resource_key)
        return _run_interactive(state, config, client)
    finally:
        client.close()


if __name__ == "__main__":
    raise SystemExit(main())
