"""
UniFi API Client - API Constants

Endpoint paths, header names and cookie names used by UniFi OS controllers.
Site-scoped paths are built by the helpers in ``endpoints``.
"""

# Network application prefix on UniFi OS consoles (UDM, UDM Pro, UCG)
NETWORK_BASE_PATH = "/proxy/network"
API_V1_BASE = "/api"
API_V2_BASE = "/v2/api"

DEFAULT_SITE = "default"

# Authentication
LOGIN_PATH = "/api/auth/login"
LOGOUT_PATH = "/api/auth/logout"
SELF_PATH = "/api/users/self"

# Anti-forgery headers; login responses carry the token in either one
CSRF_HEADER = "X-CSRF-Token"
CSRF_HEADER_UPDATED = "X-Updated-CSRF-Token"

# Session cookies, in order of preference: UniFi OS JWT, then legacy controller
SESSION_COOKIE_NAMES = ("TOKEN", "unifises")

# Common REST resources (append to build_rest_path)
REST_NETWORKCONF = "networkconf"
REST_WLANCONF = "wlanconf"
REST_FIREWALLRULE = "firewallrule"
REST_FIREWALLGROUP = "firewallgroup"
REST_PORTFORWARD = "portforward"
REST_PORTCONF = "portconf"
REST_ROUTING = "routing"
REST_USER = "user"
REST_SETTING = "setting"

# Command managers (append to build_cmd_path)
CMD_DEVICE_MANAGER = "devmgr"
CMD_STATION_MANAGER = "stamgr"
CMD_SITE_MANAGER = "sitemgr"
