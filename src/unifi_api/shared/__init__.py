"""
UniFi API Client - Shared Utilities

This package contains constants, path builders and error-reporting helpers
used across the client and the CLI.
"""

from . import constants
from .error_handlers import ErrorResponse, ErrorSeverity, validate_site

__all__ = [
    "ErrorResponse",
    "ErrorSeverity",
    "constants",
    "validate_site",
]
