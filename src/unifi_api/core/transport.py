"""
UniFi API Client - HTTP Transport

This module executes one request/response exchange over a pooled httpx
connection, with TLS hardening, timeouts, optional rate limiting and
request/response logging.
"""

import json
import logging
import ssl
from datetime import datetime
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Dict, Optional, Protocol

import certifi
import httpx
from aiolimiter import AsyncLimiter

from .cancellation import CancelToken, run_cancellable
from .exceptions import ConnectionError, TimeoutError as UniFiTimeoutError, TransportClosedError
from .messages import Request, Response
from .models import TransportConfig

logger = logging.getLogger("unifi-api")

SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "set-cookie", "x-csrf-token", "x-api-key"})


class RequestExecutor(Protocol):
    """Anything that can run a Request: the transport and its decorators."""

    async def execute(self, request: Request, cancel: Optional[CancelToken] = None) -> Response:
        ...

    async def close(self) -> None:
        ...


class RequestResponseLogger:
    """Framework for logging API requests and responses with sensitive data protection."""

    def __init__(self, logger: logging.Logger):
        """Initialize request/response logger.

        Args:
            logger: Logger instance to use for logging
        """
        self.logger = logger

    def log_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict] = None,
        has_body: bool = False,
    ):
        """Log API request details with credential headers redacted."""
        safe_headers = {}
        if headers:
            for key, value in headers.items():
                if key.lower() in SENSITIVE_HEADERS:
                    safe_headers[key] = '[REDACTED]'
                else:
                    safe_headers[key] = value

        log_data = {
            "request": {
                "method": method,
                "url": url,
                "headers": safe_headers,
                "has_data": has_body
            }
        }

        self.logger.info(f"API Request: {json.dumps(log_data)}")

    def log_response(
        self,
        status_code: int,
        response_size: Optional[int] = None,
        duration_ms: Optional[float] = None,
        error: Optional[BaseException] = None
    ):
        """Log API response details with performance metrics.

        Args:
            status_code: HTTP status code, 0 when no response arrived
            response_size: Size of response in bytes
            duration_ms: Request duration in milliseconds
            error: Exception if request failed
        """
        log_data = {
            "response": {
                "status_code": status_code,
                "response_size": response_size,
                "duration_ms": duration_ms,
                "success": 200 <= status_code < 300,
                "has_error": bool(error)
            }
        }

        if error:
            log_data["error"] = str(error)

        level = logging.INFO if log_data["response"]["success"] else logging.WARNING
        self.logger.log(level, f"API Response: {json.dumps(log_data)}")


request_logger = RequestResponseLogger(logger)


def create_ssl_context(verify_ssl: bool, ca_bundle: Optional[str] = None) -> ssl.SSLContext:
    """
    Create SSL context with security hardening.

    Args:
        verify_ssl: Whether to verify SSL certificates
        ca_bundle: Optional CA bundle, e.g. the controller's self-signed root

    Returns:
        Configured SSL context

    Notes:
        - When verify_ssl=False, logs prominent security warning
        - When verify_ssl=True, enforces TLS 1.2+ and certificate validation
        - Uses certifi for up-to-date CA bundle unless ca_bundle is given
    """
    if not verify_ssl:
        logger.warning(
            "SSL CERTIFICATE VERIFICATION IS DISABLED!\n"
            "Connection is vulnerable to Man-in-the-Middle (MITM) attacks.\n"
            "Only use this against controllers with self-signed certificates on trusted networks."
        )
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    context = ssl.create_default_context(cafile=ca_bundle or certifi.where())
    context.check_hostname = True
    context.verify_mode = ssl.CERT_REQUIRED
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    logger.debug("SSL verification enabled with TLS 1.2+ enforcement")
    return context


class HTTPTransport:
    """Executes requests against the controller over a shared connection pool."""

    def __init__(
        self,
        config: TransportConfig,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the transport.

        Args:
            config: Transport configuration
            http_transport: Optional low-level httpx transport, used by tests
        """
        self.config = config
        self.base_url = config.base_url
        self._closed = False

        ssl_context = config.ssl_context or create_ssl_context(config.verify_ssl, config.ca_bundle)

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            verify=ssl_context,
            timeout=httpx.Timeout(config.timeout, pool=min(config.timeout, 5.0)),
            limits=httpx.Limits(
                max_keepalive_connections=config.max_idle_connections,
                max_connections=config.max_connections,
                keepalive_expiry=config.keepalive_expiry,
            ),
            follow_redirects=False,
            # Session cookies belong to the auth layer, never to the pool
            cookies=CookieJar(policy=DefaultCookiePolicy(allowed_domains=[])),
            transport=http_transport,
        )
        self._limiter = AsyncLimiter(max_rate=config.rate_limit, time_period=1.0) if config.rate_limit else None

        logger.info(
            f"Initialized transport for {self.base_url} "
            f"(SSL verification: {'enabled' if config.verify_ssl else 'DISABLED'})"
        )

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Release the connection pool. Later calls fail with TransportClosedError."""
        if self._closed:
            return
        self._closed = True
        await self._client.aclose()
        logger.debug(f"Transport for {self.base_url} closed")

    def _build(self, request: Request) -> httpx.Request:
        headers = {
            "Accept": "application/json",
            "User-Agent": self.config.user_agent,
        }
        content = request.encoded_body()
        if content is not None:
            headers["Content-Type"] = "application/json"
        headers.update(request.headers)

        return self._client.build_request(
            request.method,
            request.path,
            params=dict(request.params) or None,
            headers=headers,
            content=content,
        )

    async def _send(self, http_request: httpx.Request) -> httpx.Response:
        if self._limiter is not None:
            await self._limiter.acquire()
        return await self._client.send(http_request)

    async def execute(self, request: Request, cancel: Optional[CancelToken] = None) -> Response:
        """Send ``request`` and return the raw response, whatever its status.

        Raises:
            ValidationError: For an empty method or path
            TransportClosedError: After close()
            OperationCancelledError: If ``cancel`` fires before the response arrives
            TimeoutError: When the request exceeds the configured timeout
            ConnectionError: For any other network failure
        """
        request.validate()
        if self._closed:
            raise TransportClosedError("Transport is closed", context={"base_url": self.base_url})
        if cancel is not None:
            cancel.raise_if_cancelled()

        http_request = self._build(request)
        request_logger.log_request(request.method, str(http_request.url), dict(http_request.headers),
                                   request.body is not None)
        start_time = datetime.now()

        try:
            http_response = await run_cancellable(self._send(http_request), cancel)
            body = http_response.content
        except httpx.TimeoutException as e:
            duration_ms = (datetime.now() - start_time).total_seconds() * 1000
            request_logger.log_response(0, 0, duration_ms, e)
            raise UniFiTimeoutError(f"Request timed out after {self.config.timeout}s",
                                    context={"timeout": self.config.timeout, "path": request.path})
        except httpx.ConnectError as e:
            duration_ms = (datetime.now() - start_time).total_seconds() * 1000
            request_logger.log_response(0, 0, duration_ms, e)
            raise ConnectionError(f"Cannot connect to controller at {self.base_url}",
                                  context={"base_url": self.base_url, "path": request.path, "error": str(e)})
        except httpx.RequestError as e:
            duration_ms = (datetime.now() - start_time).total_seconds() * 1000
            request_logger.log_response(0, 0, duration_ms, e)
            if self._closed:
                raise TransportClosedError("Transport closed during request",
                                           context={"path": request.path})
            raise ConnectionError(f"Network error: {str(e)}",
                                  context={"path": request.path, "error": str(e)})

        duration_ms = (datetime.now() - start_time).total_seconds() * 1000
        request_logger.log_response(http_response.status_code, len(body), duration_ms)

        return Response(
            status_code=http_response.status_code,
            body=body,
            headers=http_response.headers,
        )
