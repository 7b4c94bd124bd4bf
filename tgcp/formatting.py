"""Shared value extraction and formatting helpers for resource rows."""

from __future__ import annotations

import json
from typing import Any

MISSING = "-"
SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def extract_json_value(item: Any, path: str) -> str:
    """Resolve a dotted path (numeric parts index lists) to display text."""
    current = item
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            return MISSING
        if current is None:
            return MISSING

    if isinstance(current, bool):
        return "true" if current else "false"
    if isinstance(current, list):
        return f"[{len(current)} items]"
    if isinstance(current, dict):
        return "[object]"
    if isinstance(current, str):
        return current
    return str(current)


def lookup_path(data: Any, path: str) -> Any:
    """Raw value at a dotted path, or None; an empty path returns ``data``."""
    if not path:
        return data
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return None
        if current is None:
            return None
    return current


def short_name(value: Any) -> str:
    if not isinstance(value, str) or not value:
        return MISSING
    return value.rstrip("/").rsplit("/", 1)[-1]


def strip_prefix(value: Any, prefix: str) -> str:
    if not isinstance(value, str) or not value:
        return MISSING
    return value[len(prefix):] if value.startswith(prefix) else value


def format_size(num_bytes: Any) -> str:
    try:
        size = float(num_bytes)
    except (TypeError, ValueError):
        return MISSING
    unit = 0
    while size >= 1024 and unit < len(SIZE_UNITS) - 1:
        size /= 1024
        unit += 1
    if unit == 0:
        return f"{int(size)} B"
    return f"{size:.1f} {SIZE_UNITS[unit]}"


def parse_money(money: Any) -> float:
    if not isinstance(money, dict):
        return 0.0
    try:
        units = float(money.get("units") or 0)
    except (TypeError, ValueError):
        units = 0.0
    nanos = money.get("nanos") or 0
    try:
        return units + float(nanos) / 1_000_000_000
    except (TypeError, ValueError):
        return units


def format_currency(amount: float) -> str:
    if amount < 0:
        return "Last Period"
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"${amount / 1_000:.1f}K"
    return f"${amount:.2f}"


def format_unit_price(amount: float) -> str:
    if amount == 0:
        return "Free"
    if amount < 0.0001:
        return f"${amount:.6f}"
    return f"${amount:.4f}"


def truncate(text: str, width: int) -> str:
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if width == 1:
        return text[:1]
    return text[: width - 1] + "…"


def compact_relative_age(age_seconds: float | int | None) -> str:
    if age_seconds is None:
        return "n/a"

    seconds = max(0, int(age_seconds))
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def pretty_json(data: Any) -> str:
    return json.dumps(data, indent=2, sort_keys=True, default=str)


def post_process(item: dict[str, Any]) -> dict[str, Any]:
    """Add derived ``*_short`` / ``*_display`` fields used by columns."""
    for field in ("zone", "region", "machineType", "type", "network"):
        value = item.get(field)
        if isinstance(value, str) and value:
            item[f"{field}_short"] = short_name(value)

    users = item.get("users")
    if isinstance(users, list):
        item["users_count"] = str(len(users))
    subnetworks = item.get("subnetworks")
    if isinstance(subnetworks, list):
        item["subnetworks_count"] = str(len(subnetworks))

    auto_subnets = item.get("autoCreateSubnetworks")
    if isinstance(auto_subnets, bool):
        item["autoCreateSubnetworks_display"] = "Auto" if auto_subnets else "Custom"

    if "allowed" in item or "denied" in item:
        item["action_display"] = "ALLOW" if item.get("allowed") else "DENY"

    for field in ("timeCreated", "updated", "creationTimestamp", "expireTime"):
        value = item.get(field)
        if isinstance(value, str) and value:
            item[f"{field}_short"] = value[:10]

    if "size" in item and isinstance(item.get("size"), str):
        item["size_display"] = format_size(item["size"])

    autopilot = item.get("autopilot")
    if isinstance(autopilot, dict):
        item["autopilot_display"] = "Autopilot" if autopilot.get("enabled") else "Standard"
    elif "currentMasterVersion" in item:
        item["autopilot_display"] = "Standard"

    autoscaling = item.get("autoscaling")
    if isinstance(autoscaling, dict):
        item["autoscaling_display"] = "Yes" if autoscaling.get("enabled") else "No"
    elif "initialNodeCount" in item:
        item["autoscaling_display"] = "No"
    return item


# Billing responses carry no location data; their display fields are derived
# per response rather than per item.


def _each(response: Any, key: str):
    if not isinstance(response, dict):
        return []
    items = response.get(key)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def enrich_billing_accounts(response: Any) -> Any:
    for account in _each(response, "billingAccounts"):
        if account.get("name"):
            account["name_short"] = strip_prefix(account["name"], "billingAccounts/")
        if isinstance(account.get("open"), bool):
            account["open_display"] = "OPEN" if account["open"] else "CLOSED"
        account["masterBillingAccount_short"] = strip_prefix(account.get("masterBillingAccount"), "billingAccounts/")
    return response


def _budget_amount(amount: Any) -> float:
    if not isinstance(amount, dict):
        return 0.0
    if "specifiedAmount" in amount:
        return parse_money(amount["specifiedAmount"])
    if "lastPeriodAmount" in amount:
        return -1.0
    return 0.0


def enrich_budgets(response: Any) -> Any:
    for budget in _each(response, "budgets"):
        budget["amount_display"] = format_currency(_budget_amount(budget.get("amount")))
        budget["budget_status"] = "OK"
        rules = budget.get("thresholdRules")
        budget["thresholdRules_count"] = str(len(rules) if isinstance(rules, list) else 0)
    return response


def enrich_project_billing_info(response: Any) -> dict[str, Any]:
    info = dict(response) if isinstance(response, dict) else {}
    info["billingAccountName_short"] = strip_prefix(info.get("billingAccountName"), "billingAccounts/")
    return {"_self": [info]}


def enrich_services(response: Any) -> Any:
    for service in _each(response, "services"):
        if service.get("businessEntityName"):
            service["businessEntityName_short"] = strip_prefix(service["businessEntityName"], "businessEntities/")
    return response


def sku_price(sku: dict[str, Any]) -> tuple[str, str]:
    pricing = sku.get("pricingInfo")
    if not isinstance(pricing, list) or not pricing:
        return MISSING, MISSING
    expression = pricing[0].get("pricingExpression") if isinstance(pricing[0], dict) else None
    if not isinstance(expression, dict):
        return MISSING, MISSING

    unit = expression.get("usageUnit") or MISSING
    rates = expression.get("tieredRates")
    if not isinstance(rates, list) or not rates or not isinstance(rates[0], dict):
        return MISSING, unit
    unit_price = rates[0].get("unitPrice")
    if unit_price is None:
        return MISSING, unit
    return format_unit_price(parse_money(unit_price)), unit


def enrich_skus(response: Any) -> Any:
    for sku in _each(response, "skus"):
        sku["price_display"], sku["usage_unit"] = sku_price(sku)
    return response
