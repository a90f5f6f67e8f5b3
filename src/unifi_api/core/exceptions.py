"""
UniFi API Client - Exception Hierarchy

This module contains all custom exceptions used throughout the client, and the
single function that maps an HTTP response onto them.
"""

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .messages import Response

# Response code the controller uses to flag an anti-forgery token mismatch.
RC_INVALID_CSRF_TOKEN = "error_invalid_csrf_token"
MSG_INVALID_CSRF_TOKEN = "api.err.InvalidCSRFToken"


class UniFiError(Exception):
    """Base exception for all UniFi client errors with enhanced context."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class ValidationError(UniFiError):
    """Input or request validation failed before anything was sent."""


class ConfigurationError(ValidationError):
    """Client not configured or invalid configuration."""


class ConnectionError(UniFiError):
    """Network communication error."""


class TimeoutError(ConnectionError):
    """Request timed out."""


class TransportClosedError(UniFiError):
    """The transport was closed and can no longer send requests."""


class OperationCancelledError(UniFiError):
    """The caller's cancellation token fired before the operation finished."""


class NotConnectedError(UniFiError):
    """Operation requires a connected client."""


class AlreadyConnectedError(UniFiError):
    """connect() was called on a client that is already connected."""


class APIError(UniFiError):
    """API call failed with a non-success HTTP status or response code."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rc: str | None = None,
        endpoint: str | None = None,
        response_text: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        ctx = {"status_code": status_code, "rc": rc, "endpoint": endpoint}
        ctx.update(context or {})
        super().__init__(message, context=ctx)
        self.status_code = status_code
        self.rc = rc
        self.endpoint = endpoint
        self.response_text = response_text


class AuthenticationError(APIError):
    """Authentication failed - invalid credentials."""


class SessionExpiredError(APIError):
    """The session credential was rejected by the controller."""


class InvalidCSRFTokenError(APIError):
    """The anti-forgery token was missing or did not match the session."""


class AuthorizationError(APIError):
    """User doesn't have permission for the requested operation."""


class ResourceNotFoundError(APIError):
    """Requested resource not found."""


class AlreadyExistsError(APIError):
    """Resource already exists."""


class RateLimitError(APIError):
    """Rate limit exceeded."""

    def __init__(self, *args, retry_after: float | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.retry_after = retry_after


class ServerError(APIError):
    """The controller failed with a 5xx status."""


class InvalidRequestError(APIError):
    """The controller rejected the request as malformed."""


def _error_meta(body: bytes) -> tuple[str | None, str | None]:
    """Pull ``meta.rc`` and ``meta.msg`` (or ``code``/``message``) from a body."""
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None, None
    if not isinstance(payload, dict):
        return None, None

    meta = payload.get("meta")
    if isinstance(meta, dict):
        return meta.get("rc"), meta.get("msg") or meta.get("message")

    # Newer UniFi OS builds answer auth failures with a flat envelope
    return payload.get("code"), payload.get("message")


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def is_csrf_rejection(status_code: int, rc: str | None, message: str | None) -> bool:
    """Return True when a 403 carries the anti-forgery mismatch signal."""
    if status_code != 403:
        return False
    return rc == RC_INVALID_CSRF_TOKEN or message == MSG_INVALID_CSRF_TOKEN


def error_for_response(response: "Response", endpoint: str = "") -> APIError | None:
    """Translate a response into its typed error, or None for a success.

    Args:
        response: Response returned by the transport
        endpoint: Path of the request, for error context

    Returns:
        An ``APIError`` subclass instance describing the failure, or None
        when the status is 2xx. ``meta.rc`` on a 2xx is left to the envelope.
    """
    if response.is_success:
        return None

    status = response.status_code
    rc, message = _error_meta(response.body)
    text = response.text[:200]
    kwargs = {"status_code": status, "rc": rc, "endpoint": endpoint, "response_text": text}

    if status == 401:
        return SessionExpiredError(f"Session rejected: {message or 'unauthorized'}", **kwargs)
    if status == 403:
        if is_csrf_rejection(status, rc, message):
            return InvalidCSRFTokenError("Invalid or missing CSRF token", **kwargs)
        return AuthorizationError(f"Access denied: {message or 'permission denied'}", **kwargs)
    if status == 404:
        return ResourceNotFoundError(f"Resource not found: {endpoint}", **kwargs)
    if status == 409:
        return AlreadyExistsError(f"Resource already exists: {message or endpoint}", **kwargs)
    if status == 429:
        return RateLimitError(
            "API rate limit exceeded",
            retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            **kwargs,
        )
    if status >= 500:
        return ServerError(f"Server error: {status}", **kwargs)
    return InvalidRequestError(f"API error: {status} {message or ''}".rstrip(), **kwargs)
