"""Dispatch table: (service, method) -> concrete HTTP call."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional
from urllib.parse import quote, urlencode

from tgcp import formatting
from tgcp.models import ALL_ZONES, Scope

logger = logging.getLogger(__name__)

COMPUTE_BASE = "https://compute.googleapis.com/compute/v1"
STORAGE_BASE = "https://storage.googleapis.com/storage/v1"
CONTAINER_BASE = "https://container.googleapis.com/v1"
BILLING_BASE = "https://cloudbilling.googleapis.com/v1"
BUDGETS_BASE = "https://billingbudgets.googleapis.com/v1"
RESOURCE_MANAGER_BASE = "https://cloudresourcemanager.googleapis.com/v1"

OPERATION_URL_PREFIXES = (
    "https://compute.googleapis.com/",
    "https://container.googleapis.com/",
)

# Params consumed by URL paths or by the caller; never forwarded as query.
INTERNAL_PARAMS = frozenset(
    {"bucket", "cluster", "location", "name", "resource", "zone", "region", "billingAccount", "parent", "self_link"}
)


class DispatchError(Exception):
    """A method could not be turned into an HTTP call."""


class UnknownMethod(DispatchError):
    def __init__(self, service: str, method: str):
        super().__init__(f"unknown method: {service}.{method}")
        self.service = service
        self.method = method


class MissingScope(DispatchError):
    def __init__(self, component: str, method: str = ""):
        where = f" for {method}" if method else ""
        super().__init__(f"missing {component}{where}")
        self.component = component


class MissingParameter(DispatchError):
    def __init__(self, name: str):
        super().__init__(f"missing required parameter: {name}")
        self.name = name


@dataclass(frozen=True)
class HttpCallSpec:
    verb: str
    url: str
    body: Optional[dict] = None
    # Applied to the decoded response before extraction.
    transform: Optional[Callable[[Any], Any]] = None


Builder = Callable[[Mapping[str, Any], Scope], HttpCallSpec]


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def param_value(params: Mapping[str, Any], key: str) -> Optional[str]:
    value = params.get(key)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None or value == "":
        return None
    return str(value)


def _required(params: Mapping[str, Any], key: str) -> str:
    value = param_value(params, key)
    if value is None:
        raise MissingParameter(key)
    return value


def _target(params: Mapping[str, Any]) -> str:
    value = param_value(params, "resource") or param_value(params, "name")
    if value is None:
        raise MissingParameter("resource")
    return value


def _project(scope: Scope) -> str:
    if not scope.project:
        raise MissingScope("project")
    return scope.project


def _zone(params: Mapping[str, Any], scope: Scope) -> str:
    zone = param_value(params, "zone") or scope.zone
    if not zone or zone == ALL_ZONES:
        raise MissingScope("zone")
    return zone


def _region(params: Mapping[str, Any], scope: Scope) -> str:
    region = param_value(params, "region")
    if region:
        return region
    zone = param_value(params, "zone")
    if zone and zone != ALL_ZONES:
        return Scope(project=scope.project, zone=zone).effective_region or zone
    region = scope.effective_region
    if not region:
        raise MissingScope("region")
    return region


def with_query(url: str, params: Mapping[str, Any]) -> str:
    """Append non-internal params; list values become repeated keys."""
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        if key in INTERNAL_PARAMS or value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, str(v)) for v in value if v is not None)
        elif isinstance(value, bool):
            pairs.append((key, "true" if value else "false"))
        else:
            pairs.append((key, str(value)))
    if not pairs:
        return url
    joiner = "&" if "?" in url else "?"
    return f"{url}{joiner}{urlencode(pairs, quote_via=quote)}"


def flatten_aggregated(response: Any) -> dict[str, Any]:
    """Collapse ``{"items": {"zones/x": {"instances": [...]}}}`` into one list."""
    items = response.get("items") if isinstance(response, dict) else None
    out: dict[str, Any] = {"items": []}
    if isinstance(response, dict) and response.get("nextPageToken"):
        out["nextPageToken"] = response["nextPageToken"]
    if not isinstance(items, dict):
        return out
    for section in items.values():
        if not isinstance(section, dict):
            continue
        for key, value in section.items():
            if key == "warning":
                continue
            if isinstance(value, list):
                out["items"].extend(value)
    return out


# --- compute --------------------------------------------------------------


def _compute_zonal_list(collection: str) -> Builder:
    def build(params, scope):
        project = _project(scope)
        zone = param_value(params, "zone") or scope.zone
        if not zone:
            raise MissingScope("zone", f"list {collection}")
        if zone == ALL_ZONES:
            url = f"{COMPUTE_BASE}/projects/{project}/aggregated/{collection}"
            return HttpCallSpec("GET", with_query(url, params), transform=flatten_aggregated)
        url = f"{COMPUTE_BASE}/projects/{project}/zones/{_segment(zone)}/{collection}"
        return HttpCallSpec("GET", with_query(url, params))

    return build


def _compute_regional_list(collection: str) -> Builder:
    def build(params, scope):
        project = _project(scope)
        if scope.all_zones and not param_value(params, "region"):
            url = f"{COMPUTE_BASE}/projects/{project}/aggregated/{collection}"
            return HttpCallSpec("GET", with_query(url, params), transform=flatten_aggregated)
        region = _region(params, scope)
        url = f"{COMPUTE_BASE}/projects/{project}/regions/{_segment(region)}/{collection}"
        return HttpCallSpec("GET", with_query(url, params))

    return build


def _compute_global_list(collection: str) -> Builder:
    def build(params, scope):
        url = f"{COMPUTE_BASE}/projects/{_project(scope)}/global/{collection}"
        return HttpCallSpec("GET", with_query(url, params))

    return build


def _compute_zonal_item(collection: str, verb: str = "GET", suffix: str = "") -> Builder:
    def build(params, scope):
        project = _project(scope)
        zone = _zone(params, scope)
        url = f"{COMPUTE_BASE}/projects/{project}/zones/{_segment(zone)}/{collection}/{_segment(_target(params))}{suffix}"
        return HttpCallSpec(verb, url)

    return build


def _compute_regional_item(collection: str, verb: str = "GET") -> Builder:
    def build(params, scope):
        project = _project(scope)
        region = _region(params, scope)
        url = f"{COMPUTE_BASE}/projects/{project}/regions/{_segment(region)}/{collection}/{_segment(_target(params))}"
        return HttpCallSpec(verb, url)

    return build


def _compute_global_item(collection: str, verb: str = "GET") -> Builder:
    def build(params, scope):
        url = f"{COMPUTE_BASE}/projects/{_project(scope)}/global/{collection}/{_segment(_target(params))}"
        return HttpCallSpec(verb, url)

    return build


def _compute_zones(params, scope):
    url = f"{COMPUTE_BASE}/projects/{_project(scope)}/zones"
    return HttpCallSpec("GET", with_query(url, params))


# --- storage --------------------------------------------------------------


def _list_buckets(params, scope):
    url = f"{STORAGE_BASE}/b?project={_segment(_project(scope))}"
    return HttpCallSpec("GET", with_query(url, params))


def _list_objects(params, scope):
    url = f"{STORAGE_BASE}/b/{_segment(_required(params, 'bucket'))}/o"
    return HttpCallSpec("GET", with_query(url, params))


def _bucket_item(verb: str) -> Builder:
    def build(params, scope):
        return HttpCallSpec(verb, f"{STORAGE_BASE}/b/{_segment(_target(params))}")

    return build


def _delete_object(params, scope):
    bucket = _required(params, "bucket")
    return HttpCallSpec("DELETE", f"{STORAGE_BASE}/b/{_segment(bucket)}/o/{_segment(_target(params))}")


# --- container ------------------------------------------------------------


def _location(params: Mapping[str, Any], scope: Scope) -> str:
    location = param_value(params, "location") or scope.zone
    if not location or location == ALL_ZONES:
        raise MissingScope("location")
    return location


def _list_clusters(params, scope):
    url = f"{CONTAINER_BASE}/projects/{_project(scope)}/locations/-/clusters"
    return HttpCallSpec("GET", with_query(url, params))


def _get_cluster(params, scope):
    project = _project(scope)
    location = _location(params, scope)
    url = f"{CONTAINER_BASE}/projects/{project}/locations/{_segment(location)}/clusters/{_segment(_target(params))}"
    return HttpCallSpec("GET", url)


def _list_nodepools(params, scope):
    project = _project(scope)
    location = _location(params, scope)
    cluster = _required(params, "cluster")
    url = f"{CONTAINER_BASE}/projects/{project}/locations/{_segment(location)}/clusters/{_segment(cluster)}/nodePools"
    return HttpCallSpec("GET", with_query(url, params))


# --- billing --------------------------------------------------------------


def _list_billing_accounts(params, scope):
    return HttpCallSpec(
        "GET", with_query(f"{BILLING_BASE}/billingAccounts", params), transform=formatting.enrich_billing_accounts
    )


def _list_budgets(params, scope):
    account = _required(params, "billingAccount")
    if not account.startswith("billingAccounts/"):
        account = f"billingAccounts/{account}"
    return HttpCallSpec(
        "GET", with_query(f"{BUDGETS_BASE}/{account}/budgets", params), transform=formatting.enrich_budgets
    )


def _get_project_billing_info(params, scope):
    url = f"{BILLING_BASE}/projects/{_segment(_project(scope))}/billingInfo"
    return HttpCallSpec("GET", url, transform=formatting.enrich_project_billing_info)


def _list_services(params, scope):
    return HttpCallSpec("GET", with_query(f"{BILLING_BASE}/services", params), transform=formatting.enrich_services)


def _list_skus(params, scope):
    parent = _required(params, "parent")
    return HttpCallSpec("GET", with_query(f"{BILLING_BASE}/{parent}/skus", params), transform=formatting.enrich_skus)


# --- misc -----------------------------------------------------------------


def _list_projects(params, scope):
    return HttpCallSpec("GET", with_query(f"{RESOURCE_MANAGER_BASE}/projects", params))


def _get_operation(params, scope):
    link = _required(params, "self_link")
    if not link.startswith(OPERATION_URL_PREFIXES):
        raise DispatchError(f"refusing to poll operation outside Google APIs: {link}")
    return HttpCallSpec("GET", link)


DISPATCH_TABLE: dict[tuple[str, str], Builder] = {
    # compute lists
    ("compute", "list_instances"): _compute_zonal_list("instances"),
    ("compute", "list_disks"): _compute_zonal_list("disks"),
    ("compute", "list_network_endpoint_groups"): _compute_zonal_list("networkEndpointGroups"),
    ("compute", "list_subnetworks"): _compute_regional_list("subnetworks"),
    ("compute", "list_target_pools"): _compute_regional_list("targetPools"),
    ("compute", "list_networks"): _compute_global_list("networks"),
    ("compute", "list_firewalls"): _compute_global_list("firewalls"),
    ("compute", "list_backend_services"): _compute_global_list("backendServices"),
    ("compute", "list_backend_buckets"): _compute_global_list("backendBuckets"),
    ("compute", "list_url_maps"): _compute_global_list("urlMaps"),
    ("compute", "list_target_http_proxies"): _compute_global_list("targetHttpProxies"),
    ("compute", "list_target_https_proxies"): _compute_global_list("targetHttpsProxies"),
    ("compute", "list_target_tcp_proxies"): _compute_global_list("targetTcpProxies"),
    ("compute", "list_target_ssl_proxies"): _compute_global_list("targetSslProxies"),
    ("compute", "list_target_grpc_proxies"): _compute_global_list("targetGrpcProxies"),
    ("compute", "list_global_forwarding_rules"): _compute_global_list("globalForwardingRules"),
    ("compute", "list_ssl_certificates"): _compute_global_list("sslCertificates"),
    ("compute", "list_ssl_policies"): _compute_global_list("sslPolicies"),
    ("compute", "list_health_checks"): _compute_global_list("healthChecks"),
    ("compute", "list_security_policies"): _compute_global_list("securityPolicies"),
    ("compute", "list_zones"): _compute_zones,
    # compute details
    ("compute", "get_instance"): _compute_zonal_item("instances"),
    ("compute", "get_disk"): _compute_zonal_item("disks"),
    ("compute", "get_network"): _compute_global_item("networks"),
    ("compute", "get_firewall"): _compute_global_item("firewalls"),
    # compute actions
    ("compute", "start_instance"): _compute_zonal_item("instances", "POST", "/start"),
    ("compute", "stop_instance"): _compute_zonal_item("instances", "POST", "/stop"),
    ("compute", "reset_instance"): _compute_zonal_item("instances", "POST", "/reset"),
    ("compute", "delete_instance"): _compute_zonal_item("instances", "DELETE"),
    ("compute", "delete_disk"): _compute_zonal_item("disks", "DELETE"),
    ("compute", "delete_network_endpoint_group"): _compute_zonal_item("networkEndpointGroups", "DELETE"),
    ("compute", "delete_target_pool"): _compute_regional_item("targetPools", "DELETE"),
    ("compute", "delete_firewall"): _compute_global_item("firewalls", "DELETE"),
    ("compute", "delete_backend_service"): _compute_global_item("backendServices", "DELETE"),
    ("compute", "delete_backend_bucket"): _compute_global_item("backendBuckets", "DELETE"),
    ("compute", "delete_url_map"): _compute_global_item("urlMaps", "DELETE"),
    ("compute", "delete_target_http_proxy"): _compute_global_item("targetHttpProxies", "DELETE"),
    ("compute", "delete_target_https_proxy"): _compute_global_item("targetHttpsProxies", "DELETE"),
    ("compute", "delete_target_tcp_proxy"): _compute_global_item("targetTcpProxies", "DELETE"),
    ("compute", "delete_target_ssl_proxy"): _compute_global_item("targetSslProxies", "DELETE"),
    ("compute", "delete_target_grpc_proxy"): _compute_global_item("targetGrpcProxies", "DELETE"),
    ("compute", "delete_global_forwarding_rule"): _compute_global_item("globalForwardingRules", "DELETE"),
    ("compute", "delete_ssl_certificate"): _compute_global_item("sslCertificates", "DELETE"),
    ("compute", "delete_ssl_policy"): _compute_global_item("sslPolicies", "DELETE"),
    ("compute", "delete_health_check"): _compute_global_item("healthChecks", "DELETE"),
    ("compute", "delete_security_policy"): _compute_global_item("securityPolicies", "DELETE"),
    # storage
    ("storage", "list_buckets"): _list_buckets,
    ("storage", "list_objects"): _list_objects,
    ("storage", "get_bucket"): _bucket_item("GET"),
    ("storage", "delete_bucket"): _bucket_item("DELETE"),
    ("storage", "delete_object"): _delete_object,
    # container
    ("container", "list_clusters"): _list_clusters,
    ("container", "get_cluster"): _get_cluster,
    ("container", "list_nodepools"): _list_nodepools,
    # billing
    ("billing", "list_billing_accounts"): _list_billing_accounts,
    ("billing", "list_budgets"): _list_budgets,
    ("billing", "get_project_billing_info"): _get_project_billing_info,
    ("billing", "list_services"): _list_services,
    ("billing", "list_skus"): _list_skus,
    # support
    ("resourcemanager", "list_projects"): _list_projects,
    ("operations", "get"): _get_operation,
}


def resolve(
    service: str,
    method: str,
    params: Optional[Mapping[str, Any]],
    scope: Scope,
    table: Mapping[tuple[str, str], Builder] = DISPATCH_TABLE,
) -> HttpCallSpec:
    builder = table.get((service, method))
    if builder is None:
        raise UnknownMethod(service, method)
    spec = builder(params or {}, scope)
    logger.debug("resolved %s.%s -> %s %s", service, method, spec.verb, spec.url)
    return spec


def is_known(service: str, method: str, table: Mapping[tuple[str, str], Builder] = DISPATCH_TABLE) -> bool:
    return (service, method) in table
