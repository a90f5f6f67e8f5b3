"""
UniFi API Client - Retry Mechanism

This module provides retry functionality with capped exponential backoff for
transient failures, and the transport decorator that applies it to every call.
"""

import logging
from typing import Any, Callable, List, Optional

from .cancellation import CancelToken, ensure_token
from .exceptions import (
    ConfigurationError,
    ConnectionError,
    OperationCancelledError,
    RateLimitError,
    ServerError,
)
from .messages import Request, Response
from .models import RetrySettings

logger = logging.getLogger("unifi-api")

DEFAULT_RETRYABLE_ERRORS = [ConnectionError, RateLimitError, ServerError]


class RetryPolicy:
    """Configuration for retry mechanism with capped exponential backoff."""

    def __init__(
        self,
        max_retries: int = 3,
        initial_backoff: float = 0.1,
        max_backoff: float = 5.0,
        retryable_errors: Optional[List[type]] = None,
        retry_if: Optional[Callable[[BaseException], bool]] = None,
    ):
        """Initialize retry configuration.

        Args:
            max_retries: Retries after the original attempt (total attempts = max_retries + 1)
            initial_backoff: Delay in seconds before the first retry
            max_backoff: Maximum delay in seconds between retries
            retryable_errors: Error types that should trigger a retry
            retry_if: Optional predicate overriding ``retryable_errors``

        Raises:
            ConfigurationError: If the bounds are inconsistent
        """
        if max_retries < 0:
            raise ConfigurationError("max_retries must be >= 0", context={"max_retries": max_retries})
        if initial_backoff < 0 or max_backoff < 0:
            raise ConfigurationError("Backoff durations must be >= 0",
                                     context={"initial_backoff": initial_backoff, "max_backoff": max_backoff})
        if max_backoff < initial_backoff:
            raise ConfigurationError("max_backoff must be >= initial_backoff",
                                     context={"initial_backoff": initial_backoff, "max_backoff": max_backoff})

        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.retryable_errors = retryable_errors or list(DEFAULT_RETRYABLE_ERRORS)
        self.retry_if = retry_if

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryPolicy":
        return cls(
            max_retries=settings.max_retries,
            initial_backoff=settings.initial_backoff,
            max_backoff=settings.max_backoff,
        )

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based).

        backoff(1) = initial_backoff, backoff(n) = min(backoff(n - 1) * 2, max_backoff)
        """
        delay = self.initial_backoff
        for _ in range(1, attempt):
            delay = min(delay * 2, self.max_backoff)
        return min(delay, self.max_backoff)

    def is_retryable(self, error: BaseException) -> bool:
        if isinstance(error, OperationCancelledError):
            return False
        if self.retry_if is not None:
            return self.retry_if(error)
        return any(isinstance(error, err_type) for err_type in self.retryable_errors)

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_retries={self.max_retries}, initial_backoff={self.initial_backoff}, "
            f"max_backoff={self.max_backoff})"
        )


async def retry_with_backoff(
    func: Callable,
    *args,
    retry_policy: Optional[RetryPolicy] = None,
    cancel: Optional[CancelToken] = None,
    **kwargs
) -> Any:
    """Retry an async function with exponential backoff for transient failures.

    Attempts are strictly sequential. The backoff sleep observes ``cancel``.

    Args:
        func: Async function to retry
        *args: Positional arguments to pass to the function
        retry_policy: Retry policy, defaults to ``RetryPolicy()``
        cancel: Cancellation token checked before each attempt and during sleeps
        **kwargs: Keyword arguments to pass to the function

    Returns:
        Result from the function call

    Raises:
        OperationCancelledError: If ``cancel`` fires, even mid-backoff
        Exception: The last underlying error once retries are exhausted
    """
    if retry_policy is None:
        retry_policy = RetryPolicy()
    token = ensure_token(cancel)

    attempt = 0
    while True:
        token.raise_if_cancelled()
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not retry_policy.is_retryable(e):
                raise

            if attempt >= retry_policy.max_retries:
                logger.warning(f"Giving up after {attempt + 1} attempts: {str(e)}")
                raise

            attempt += 1
            delay = retry_policy.backoff(attempt)
            logger.info(f"Attempt {attempt} failed, retrying in {delay}s: {str(e)}")
            await token.sleep(delay)


class RetryingTransport:
    """Decorates any executor with the retry policy."""

    def __init__(self, inner, policy: Optional[RetryPolicy] = None):
        self.inner = inner
        self.policy = policy or RetryPolicy()

    async def execute(self, request: Request, cancel: Optional[CancelToken] = None) -> Response:
        request.validate()
        return await retry_with_backoff(
            self.inner.execute, request, cancel,
            retry_policy=self.policy, cancel=cancel,
        )

    async def close(self) -> None:
        await self.inner.close()
