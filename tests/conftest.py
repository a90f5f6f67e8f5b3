"""
Shared pytest configuration and fixtures for UniFi API Client tests.

This module provides common fixtures used across all test modules including:
- Client configurations
- An in-memory fake controller served through httpx.MockTransport
- Transport, auth manager and client instances wired to the fake
"""

import asyncio
import base64
import inspect
import json
import time
from http.cookies import SimpleCookie
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from unifi_api.core.auth import AuthManager
from unifi_api.core.client import UniFiClient
from unifi_api.core.models import ClientConfig, TransportConfig
from unifi_api.core.transport import HTTPTransport
from unifi_api.shared.constants import LOGIN_PATH, LOGOUT_PATH

BASE_URL = "https://192.168.1.1"
SAFE_METHODS = ("GET", "HEAD", "OPTIONS")


def envelope(data: Optional[List[Any]] = None, rc: str = "ok", msg: Optional[str] = None) -> Dict[str, Any]:
    """Build a ``{meta, data}`` body as the network application returns it."""
    meta: Dict[str, Any] = {"rc": rc}
    if msg:
        meta["msg"] = msg
    return {"meta": meta, "data": data or []}


def make_jwt(claims: Dict[str, Any]) -> str:
    """Unsigned JWT with the given claims, shaped like a UniFi OS TOKEN cookie."""
    def part(value: Dict[str, Any]) -> str:
        return base64.urlsafe_b64encode(json.dumps(value).encode()).decode().rstrip("=")
    return f"{part({'alg': 'HS256', 'typ': 'JWT'})}.{part(claims)}.signature"


class FakeController:
    """In-memory UniFi OS console.

    Issues a session cookie and CSRF token on login, rejects unknown cookies
    with 401 and mismatched CSRF tokens on state-changing requests with 403,
    and dispatches everything else to registered routes.
    """

    def __init__(self, username: str = "admin", password: str = "secret", cookie_name: str = "TOKEN"):
        self.username = username
        self.password = password
        self.cookie_name = cookie_name

        self.sessions: Dict[str, str] = {}
        self.routes: Dict[Tuple[str, str], Callable[[httpx.Request], Any]] = {}
        self.requests: List[httpx.Request] = []

        self.login_attempts = 0
        self.login_count = 0
        self.logout_count = 0
        self.login_delay = 0.0

        self.use_jwt = False
        self.send_csrf_header = True
        self.set_cookie = True
        self.reject_csrf = False
        self.reject_sessions = False
        self.fail_logout = False

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def route(self, method: str, path: str, handler=None, status: int = 200, json: Any = None) -> None:
        if handler is None:
            def handler(request, status=status, body=json):
                return httpx.Response(status, json=body if body is not None else envelope())
        self.routes[(method.upper(), path)] = handler

    def expire_sessions(self) -> None:
        self.sessions.clear()

    def rotate_csrf(self) -> None:
        for token in self.sessions:
            self.sessions[token] = f"{self.sessions[token]}-rotated"

    def requests_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def _session_token(self, request: httpx.Request) -> Optional[str]:
        raw = request.headers.get("cookie")
        if not raw:
            return None
        parsed = SimpleCookie()
        parsed.load(raw)
        morsel = parsed.get(self.cookie_name)
        return morsel.value if morsel else None

    async def _login(self, request: httpx.Request) -> httpx.Response:
        self.login_attempts += 1
        if self.login_delay:
            await asyncio.sleep(self.login_delay)

        credentials = json.loads(request.content or b"{}")
        if credentials != {"username": self.username, "password": self.password}:
            return httpx.Response(401, json={
                "code": "AUTHENTICATION_FAILED_INVALID_CREDENTIALS",
                "message": "Invalid username or password",
            })

        self.login_count += 1
        csrf = f"csrf-{self.login_count}"
        if self.use_jwt:
            token = make_jwt({"csrfToken": csrf, "exp": int(time.time()) + 7200, "n": self.login_count})
        else:
            token = f"session-{self.login_count}"
        self.sessions[token] = csrf

        headers = []
        if self.set_cookie:
            headers.append(("Set-Cookie", f"{self.cookie_name}={token}; Path=/; Secure; HttpOnly"))
        if self.send_csrf_header:
            headers.append(("X-CSRF-Token", csrf))
        return httpx.Response(200, json={"username": self.username}, headers=headers)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == LOGIN_PATH:
            return await self._login(request)

        token = self._session_token(request)
        if path == LOGOUT_PATH:
            if self.fail_logout:
                raise httpx.ConnectError("connection reset", request=request)
            self.logout_count += 1
            self.sessions.pop(token, None)
            return httpx.Response(200, json={})

        if self.reject_sessions or token not in self.sessions:
            return httpx.Response(401, json=envelope(rc="error", msg="api.err.LoginRequired"))
        if request.method not in SAFE_METHODS:
            if self.reject_csrf or request.headers.get("x-csrf-token") != self.sessions[token]:
                return httpx.Response(403, json=envelope(rc="error", msg="api.err.InvalidCSRFToken"))

        handler = self.routes.get((request.method, path))
        if handler is None:
            return httpx.Response(404, json=envelope(rc="error", msg="api.err.NotFound"))
        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result


# ========== Configuration Fixtures ==========


@pytest.fixture
def client_config() -> ClientConfig:
    """Provide a client configuration for testing."""
    return ClientConfig(
        host="192.168.1.1",
        username="admin",
        password="secret",
        verify_ssl=False,  # Disable SSL verification for tests
    )


@pytest.fixture
def transport_config() -> TransportConfig:
    return TransportConfig(base_url=BASE_URL, verify_ssl=False)


# ========== Fake Controller Fixtures ==========


@pytest.fixture
def controller() -> FakeController:
    """Provide a fresh fake controller."""
    return FakeController()


@pytest_asyncio.fixture
async def transport(transport_config, controller):
    """Provide an HTTPTransport bound to the fake controller."""
    http_transport = HTTPTransport(transport_config, controller.transport())
    yield http_transport
    await http_transport.close()


@pytest_asyncio.fixture
async def auth_manager(transport):
    """Provide an AuthManager over the fake controller."""
    return AuthManager(transport, "admin", "secret")


@pytest_asyncio.fixture
async def client(client_config, controller):
    """Provide a UniFiClient over the fake controller, without retries."""
    unifi_client = UniFiClient(client_config, http_transport=controller.transport())
    yield unifi_client
    await unifi_client.disconnect()


# ========== Pytest Configuration ==========


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
