"""
UniFi API Client - Client Facade

This module wires the transport, the session manager and the retry decorator
together for one controller, and exposes the connection lifecycle.
"""

import logging
from typing import Any, Dict, Optional, Type

import httpx
from pydantic import BaseModel

from .auth import AuthManager
from .cancellation import CancelToken
from .exceptions import AlreadyConnectedError, ConfigurationError
from .messages import Request, Response
from .models import APIResponse, ClientConfig
from .resources import RestResource
from .retry import RetryingTransport, RetryPolicy
from .transport import HTTPTransport

logger = logging.getLogger("unifi-api")


class UniFiClient:
    """Client for one UniFi controller.

    Requests flow through Retry -> Auth -> Transport. Each client owns its own
    connection pool and session; clients share no state with each other.
    """

    def __init__(
        self,
        config: ClientConfig,
        retry_policy: Optional[RetryPolicy] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            config: Validated client configuration
            retry_policy: Overrides ``config.retry``; None with no ``config.retry`` disables retries
            http_transport: Optional low-level httpx transport, used by tests

        Raises:
            ConfigurationError: If ``config`` is not a ClientConfig
        """
        if not isinstance(config, ClientConfig):
            raise ConfigurationError("UniFiClient requires a ClientConfig",
                                     context={"config_type": type(config).__name__})
        self.config = config

        if retry_policy is None and config.retry is not None:
            retry_policy = RetryPolicy.from_settings(config.retry)
        self.retry_policy = retry_policy

        self.transport = HTTPTransport(config.transport_config(), http_transport)
        self.auth = AuthManager(self.transport, config.username, config.password)
        self.executor = RetryingTransport(self.auth, retry_policy) if retry_policy else self.auth
        self._connected = False

        logger.info(f"Initialized UniFi client for {config.base_url} (site: {config.site}, "
                    f"retries: {retry_policy.max_retries if retry_policy else 0})")

    @property
    def is_connected(self) -> bool:
        return self._connected and self.auth.is_authenticated()

    async def connect(self, cancel: Optional[CancelToken] = None) -> None:
        """Log in to the controller.

        Raises:
            AlreadyConnectedError: If connect() already succeeded
            AuthenticationError: Credentials rejected
        """
        if self._connected:
            raise AlreadyConnectedError("Already connected to UniFi controller",
                                        context={"host": self.config.host})
        await self.auth.login(cancel)
        self._connected = True
        logger.info(f"Connected to UniFi controller at {self.config.host}")

    async def disconnect(self, cancel: Optional[CancelToken] = None) -> None:
        """Log out (best effort) and release the connection pool. Never raises for logout failures."""
        await self.auth.logout(cancel)
        self._connected = False
        await self.transport.close()
        logger.info("Disconnected from UniFi controller")

    async def execute(self, request: Request, cancel: Optional[CancelToken] = None) -> Response:
        """Run one request through the full chain and return the raw 2xx response."""
        return await self.executor.execute(request, cancel)

    async def request(self, request: Request, cancel: Optional[CancelToken] = None) -> APIResponse:
        """Run one request and decode its ``{meta, data}`` envelope, raising on ``meta.rc`` errors."""
        response = await self.execute(request, cancel)
        return response.envelope().raise_for_rc(request.path)

    async def call(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> APIResponse:
        return await self.request(Request(method, path, body=body, params=params or {}), cancel)

    def resource(self, name: str, site: Optional[str] = None,
                 model: Optional[Type[BaseModel]] = None) -> RestResource:
        """REST adapter for ``rest/<name>`` on ``site`` (default: the configured site)."""
        return RestResource(self, name, site=site, model=model)

    async def __aenter__(self) -> "UniFiClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()
