"""
UniFi API Client

Authenticated transport core for the UniFi Network application API: session
management with CSRF handling, retry with backoff, and concurrent batch
operations over one shared connection pool.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .core.batch import BatchResult, batch_create, batch_delete, batch_get, batch_update
from .core.cancellation import CancelToken
from .core.client import UniFiClient
from .core.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ConnectionError,
    InvalidCSRFTokenError,
    OperationCancelledError,
    RateLimitError,
    ResourceNotFoundError,
    ServerError,
    SessionExpiredError,
    TimeoutError,
    UniFiError,
    ValidationError,
)
from .core.messages import Request, Response
from .core.models import ClientConfig, Session
from .core.retry import RetryPolicy

__all__ = [
    # Exceptions
    "UniFiError",
    "ValidationError",
    "ConfigurationError",
    "ConnectionError",
    "TimeoutError",
    "OperationCancelledError",
    "APIError",
    "AuthenticationError",
    "SessionExpiredError",
    "InvalidCSRFTokenError",
    "AuthorizationError",
    "ResourceNotFoundError",
    "RateLimitError",
    "ServerError",
    # Models
    "ClientConfig",
    "Session",
    "Request",
    "Response",
    # Client
    "UniFiClient",
    "CancelToken",
    "RetryPolicy",
    # Batch
    "BatchResult",
    "batch_get",
    "batch_create",
    "batch_update",
    "batch_delete",
]
