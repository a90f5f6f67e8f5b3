"""
UniFi API Client - Error Handling Helpers

This module provides user-friendly error messages and structured technical
details for failures surfaced to people (the CLI) rather than to code.
"""

import json
import logging
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from ..core.exceptions import (
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

logger = logging.getLogger("unifi-api")

_SITE_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')


class ErrorSeverity(str, Enum):
    """Enumeration for error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorResponse:
    """Structured error response with user-friendly messaging."""

    def __init__(self, error: Exception, operation: str, severity: ErrorSeverity = ErrorSeverity.MEDIUM):
        """Initialize error response.

        Args:
            error: The exception that occurred
            operation: Name of the operation that failed
            severity: Severity level of the error
        """
        self.error = error
        self.operation = operation
        self.severity = severity
        self.timestamp = datetime.now(timezone.utc)
        self.error_id = f"{operation}_{int(self.timestamp.timestamp())}"

    def get_user_message(self) -> str:
        """Get user-friendly error message.

        Returns:
            Human-readable error message
        """
        error = self.error
        # Most specific classes first; several derive from APIError or ConnectionError
        if isinstance(error, AuthenticationError):
            return "Authentication failed. Please check your username and password."
        elif isinstance(error, SessionExpiredError):
            return "The controller session expired and could not be renewed."
        elif isinstance(error, InvalidCSRFTokenError):
            return "The controller rejected the request's CSRF token, even after logging in again."
        elif isinstance(error, AuthorizationError):
            return "Access denied. This account does not have permission for this operation."
        elif isinstance(error, TimeoutError):
            return "Request timed out. The controller may be overloaded or unreachable."
        elif isinstance(error, ConnectionError):
            return "Cannot connect to the UniFi controller. Please check the host and network connectivity."
        elif isinstance(error, ConfigurationError):
            return f"Invalid configuration: {error.message}"
        elif isinstance(error, ValidationError):
            return f"Invalid input: {error.message}"
        elif isinstance(error, OperationCancelledError):
            return f"Operation cancelled: {error.message}"
        elif isinstance(error, ResourceNotFoundError):
            return "The requested resource was not found."
        elif isinstance(error, RateLimitError):
            return "API rate limit exceeded. Please wait before trying again."
        elif isinstance(error, ServerError):
            return "The controller reported an internal error. Try again later."
        elif isinstance(error, APIError):
            return f"API error: {error.message}"
        else:
            return f"An unexpected error occurred during {self.operation}."

    def get_technical_details(self) -> Dict[str, Any]:
        """Get technical error details for logging.

        Returns:
            Dictionary containing technical error information
        """
        details = {
            "error_id": self.error_id,
            "operation": self.operation,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "error_type": type(self.error).__name__,
            "message": str(self.error)
        }

        if isinstance(self.error, UniFiError):
            details.update(self.error.to_dict())

        if isinstance(self.error, APIError):
            details["status_code"] = self.error.status_code
            details["rc"] = self.error.rc
            details["response_text"] = self.error.response_text

        return details

    def log(self) -> str:
        """Log the technical details and return the user message."""
        logger.error(f"Error in {self.operation}: {json.dumps(self.get_technical_details(), indent=2, default=str)}")
        return self.get_user_message()


def validate_site(site: str, operation: str) -> None:
    """Validate a site name as used in ``/api/s/<site>`` paths.

    Raises:
        ValidationError: If the site name is empty or contains path characters
    """
    if not site or not _SITE_PATTERN.match(site):
        raise ValidationError(
            f"Invalid site name: {site!r}",
            context={"site": site, "operation": operation}
        )
