"""
UniFi API Client - Core Infrastructure

This package contains the transport, session and retry layers and the batch
executor built on top of them.
"""

from .auth import AuthManager, AuthState
from .batch import BatchResult, batch_create, batch_delete, batch_get, batch_update, raise_first_error
from .cancellation import CancelToken
from .client import UniFiClient
from .exceptions import (
    AlreadyExistsError,
    APIError,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ConnectionError,
    InvalidCSRFTokenError,
    InvalidRequestError,
    OperationCancelledError,
    RateLimitError,
    ResourceNotFoundError,
    ServerError,
    SessionExpiredError,
    TimeoutError,
    TransportClosedError,
    UniFiError,
    ValidationError,
)
from .messages import Request, Response
from .models import APIResponse, ClientConfig, RetrySettings, Session, TransportConfig
from .resources import RestResource
from .retry import RetryingTransport, RetryPolicy, retry_with_backoff
from .transport import HTTPTransport, RequestResponseLogger

__all__ = [
    # Exceptions
    "UniFiError",
    "ValidationError",
    "ConfigurationError",
    "ConnectionError",
    "TimeoutError",
    "TransportClosedError",
    "OperationCancelledError",
    "APIError",
    "AuthenticationError",
    "SessionExpiredError",
    "InvalidCSRFTokenError",
    "AuthorizationError",
    "ResourceNotFoundError",
    "AlreadyExistsError",
    "RateLimitError",
    "ServerError",
    "InvalidRequestError",
    # Models
    "TransportConfig",
    "RetrySettings",
    "ClientConfig",
    "Session",
    "APIResponse",
    "Request",
    "Response",
    # Layers
    "HTTPTransport",
    "RequestResponseLogger",
    "AuthManager",
    "AuthState",
    "RetryPolicy",
    "RetryingTransport",
    "retry_with_backoff",
    "CancelToken",
    # Client
    "UniFiClient",
    "RestResource",
    # Batch
    "BatchResult",
    "batch_get",
    "batch_create",
    "batch_update",
    "batch_delete",
    "raise_first_error",
]
