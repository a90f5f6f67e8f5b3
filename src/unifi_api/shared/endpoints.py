"""
UniFi API Client - Endpoint Path Builders
"""

import posixpath

from .constants import API_V1_BASE, API_V2_BASE, DEFAULT_SITE, NETWORK_BASE_PATH


def build_api_path(site: str, endpoint: str) -> str:
    """v1 site path, e.g. ``/proxy/network/api/s/default/stat/device``."""
    return posixpath.join(NETWORK_BASE_PATH + API_V1_BASE, "s", site or DEFAULT_SITE, endpoint.lstrip("/"))


def build_v2_api_path(endpoint: str) -> str:
    """v2 path; the site is part of ``endpoint``, e.g. ``site/default/trafficrules``."""
    return posixpath.join(NETWORK_BASE_PATH + API_V2_BASE, endpoint.lstrip("/"))


def build_rest_path(site: str, resource: str, resource_id: str = "") -> str:
    """REST collection or item path, e.g. ``/proxy/network/api/s/default/rest/networkconf/abc``."""
    path = posixpath.join(NETWORK_BASE_PATH + API_V1_BASE, "s", site or DEFAULT_SITE, "rest", resource)
    if resource_id:
        return posixpath.join(path, resource_id)
    return path


def build_cmd_path(site: str, manager: str) -> str:
    """Command path; ``device`` is expanded to ``devmgr``."""
    if manager and not manager.endswith("mgr"):
        manager = f"{manager}mgr"
    return posixpath.join(NETWORK_BASE_PATH + API_V1_BASE, "s", site or DEFAULT_SITE, "cmd", manager)


def build_auth_path(endpoint: str) -> str:
    return f"/api/auth/{endpoint.lstrip('/')}"


def build_system_path(endpoint: str) -> str:
    """Site-less network application path, e.g. ``/proxy/network/api/self``."""
    return f"{NETWORK_BASE_PATH}{API_V1_BASE}/{endpoint.lstrip('/')}"
