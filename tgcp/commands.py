"""Command-mode parsing and suggestions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from tgcp.registry import Registry

BUILTIN_COMMANDS = (
    "back",
    "help",
    "projects",
    "project",
    "zones",
    "zone",
    "alias",
    "notifications",
    "refresh",
    "quit",
)

QUIT_WORDS = frozenset({"q", "quit", "exit", "q!"})

DEFAULT_ALIASES = {
    "vm": "compute-instances",
    "vms": "compute-instances",
    "instances": "compute-instances",
    "disks": "compute-disks",
    "networks": "vpc-networks",
    "vpc": "vpc-networks",
    "subnets": "vpc-subnetworks",
    "fw": "vpc-firewalls",
    "firewalls": "vpc-firewalls",
    "buckets": "storage-buckets",
    "gcs": "storage-buckets",
    "gke": "gke-clusters",
    "clusters": "gke-clusters",
    "billing": "billing-accounts",
    "budgets": "billing-accounts",
    "lb": "lb-forwarding-rules",
    "backends": "lb-backend-services",
    "armor": "armor-security-policies",
    "negs": "compute-negs",
}


@dataclass(frozen=True)
class Command:
    name: str
    args: tuple[str, ...] = ()

    @property
    def arg(self) -> Optional[str]:
        return self.args[0] if self.args else None


def resolve_resource(word: str, registry: Registry, aliases: Mapping[str, str]) -> Optional[str]:
    if word in registry:
        return word
    target = aliases.get(word)
    if target and target in registry:
        return target
    matches = [key for key in registry.keys() if key.startswith(word)]
    if len(matches) == 1:
        return matches[0]
    return None


def parse(text: str, registry: Registry, aliases: Mapping[str, str]) -> Optional[Command]:
    words = text.strip().lstrip(":").split()
    if not words:
        return None
    head, rest = words[0], tuple(words[1:])
    lowered = head.lower()

    if lowered in QUIT_WORDS:
        return Command("quit")
    if lowered in ("back", "help", "refresh"):
        return Command(lowered)
    if lowered in ("projects", "zones"):
        return Command(lowered)
    if lowered in ("project", "zone"):
        return Command(lowered, rest[:1]) if rest else Command(f"{lowered}s")
    if lowered in ("notifications", "notif"):
        if rest and rest[0].lower() == "clear":
            return Command("clear_notifications")
        return Command("notifications")
    if lowered == "alias":
        if len(rest) != 2:
            return Command("invalid", ("usage: alias NAME RESOURCE",))
        return Command("alias", rest)

    key = resolve_resource(head, registry, aliases)
    if key is None:
        return Command("unknown", (head,))
    return Command("navigate", (key,))


def suggestions(text: str, registry: Registry, aliases: Mapping[str, str], limit: int = 8) -> list[str]:
    needle = text.strip().lstrip(":").lower()
    if " " in needle:
        return []
    candidates = list(dict.fromkeys([*registry.keys(), *sorted(aliases), *BUILTIN_COMMANDS]))
    if not needle:
        return candidates[:limit]
    prefixed = [c for c in candidates if c.startswith(needle)]
    contained = [c for c in candidates if needle in c and not c.startswith(needle)]
    return (prefixed + contained)[:limit]
