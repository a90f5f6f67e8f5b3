"""
UniFi API Client - Cancellation Tokens

This module provides the cancellation token threaded through every public
operation: network calls, retry backoff sleeps and batch joins all return
promptly once the token fires.
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional, TypeVar

from .exceptions import OperationCancelledError

logger = logging.getLogger("unifi-api")

T = TypeVar("T")


class CancelToken:
    """Caller-owned cancellation signal backed by an ``asyncio.Event``."""

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancelToken":
        """Create a token that fires by itself after ``seconds``.

        Must be called from inside a running event loop.
        """
        token = cls()
        loop = asyncio.get_running_loop()
        token._timer = loop.call_later(seconds, token.cancel, f"deadline of {seconds}s exceeded")
        return token

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Fire the token. Only the first reason is kept."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        logger.debug(f"Cancellation requested: {reason}")

    def _error(self) -> OperationCancelledError:
        return OperationCancelledError(
            f"Operation cancelled: {self._reason}",
            context={"reason": self._reason},
        )

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise self._error()

    async def wait(self) -> None:
        """Block until the token fires."""
        await self._event.wait()

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, aborting as soon as the token fires.

        Raises:
            OperationCancelledError: If the token fired before or during the sleep
        """
        self.raise_if_cancelled()
        if delay <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        The awaitable runs as its own task; when the token fires that task is
        cancelled and awaited so resources it holds are released before
        ``OperationCancelledError`` is raised.
        """
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        interrupted = False
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            # Token fired or the caller was cancelled; never leave the task behind
            if not task.done():
                interrupted = True
                task.cancel()
                await asyncio.wait({task})
                if not task.cancelled() and task.exception() is not None:
                    logger.debug(f"Cancelled operation finished with {task.exception()!r}")

        if not interrupted:
            return task.result()
        raise self._error()

    def __repr__(self) -> str:
        state = f"cancelled reason={self._reason!r}" if self.cancelled else "active"
        return f"<CancelToken {state}>"


def ensure_token(cancel: Optional[CancelToken]) -> CancelToken:
    """Return ``cancel``, or a fresh token that never fires."""
    return cancel if cancel is not None else CancelToken()


async def run_cancellable(awaitable: Awaitable[Any], cancel: Optional[CancelToken]) -> Any:
    """Await ``awaitable`` under ``cancel`` if one was supplied."""
    if cancel is None:
        return await awaitable
    return await cancel.run(awaitable)
