"""
UniFi API Client - Batch Execution

Concurrent fan-out of independent per-key operations. Each item's failure is
captured in its own result; results always come back in input order.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from .cancellation import CancelToken, ensure_token
from .exceptions import OperationCancelledError

logger = logging.getLogger("unifi-api")

K = TypeVar("K")
T = TypeVar("T")

DEFAULT_CANCEL_GRACE = 0.1


@dataclass(frozen=True)
class BatchResult(Generic[T]):
    """Outcome of one batch item; exactly one of ``item``/``error`` is meaningful.

    ``error`` decides which: an operation may succeed with ``None``, so test
    ``ok`` (or ``error is None``) rather than ``item``.
    """

    index: int
    item: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


Outcome = Tuple[Any, Optional[BaseException]]


async def _fan_out(
    values: Sequence[Any],
    operation: Callable[[Any, CancelToken], Awaitable[Any]],
    cancel: Optional[CancelToken],
    max_concurrency: Optional[int],
    cancel_grace: float,
) -> List[Outcome]:
    count = len(values)
    if count == 0:
        return []

    token = ensure_token(cancel)
    outcomes: List[Optional[Outcome]] = [None] * count
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def run_one(index: int, value: Any) -> None:
        try:
            if semaphore is not None:
                async with semaphore:
                    token.raise_if_cancelled()
                    result = await operation(value, token)
            else:
                result = await operation(value, token)
        except Exception as e:
            outcomes[index] = (None, e)
        else:
            outcomes[index] = (result, None)

    tasks = [asyncio.ensure_future(run_one(i, value)) for i, value in enumerate(values)]
    joined = asyncio.ensure_future(asyncio.wait(tasks))
    waiter = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({joined, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not joined.done():
            joined.cancel()
            for task in tasks:
                task.cancel()

    unfinished = [task for task in tasks if not task.done()]
    if unfinished:
        # Give cancelled items a brief chance to unwind, without waiting on stragglers
        await asyncio.wait(unfinished, timeout=cancel_grace)
        logger.info(f"Batch cancelled with {len(unfinished)} of {count} items outstanding")

    results: List[Outcome] = []
    for outcome in outcomes:
        if outcome is None:
            outcome = (None, OperationCancelledError(
                f"Batch item cancelled: {token.reason}", context={"reason": token.reason}))
        results.append(outcome)

    failed = sum(1 for _, error in results if error is not None)
    logger.debug(f"Batch of {count} finished with {failed} failures")
    return results


async def batch_get(
    keys: Sequence[K],
    getter: Callable[[K, CancelToken], Awaitable[T]],
    cancel: Optional[CancelToken] = None,
    max_concurrency: Optional[int] = None,
    cancel_grace: float = DEFAULT_CANCEL_GRACE,
) -> List[BatchResult[T]]:
    """Fetch every key concurrently.

    Args:
        keys: Keys to fetch
        getter: ``async getter(key, cancel)`` returning the item
        cancel: Shared cancellation token, passed through to every getter
        max_concurrency: Optional bound on items in flight
        cancel_grace: Seconds cancelled items get to unwind before being reported

    Returns:
        One BatchResult per key with ``result[i].index == i``
    """
    outcomes = await _fan_out(keys, getter, cancel, max_concurrency, cancel_grace)
    return [BatchResult(index=i, item=item, error=error) for i, (item, error) in enumerate(outcomes)]


async def batch_create(
    items: Sequence[T],
    creator: Callable[[T, CancelToken], Awaitable[T]],
    cancel: Optional[CancelToken] = None,
    max_concurrency: Optional[int] = None,
    cancel_grace: float = DEFAULT_CANCEL_GRACE,
) -> List[BatchResult[T]]:
    """Create every item concurrently; results hold the created items."""
    outcomes = await _fan_out(items, creator, cancel, max_concurrency, cancel_grace)
    return [BatchResult(index=i, item=item, error=error) for i, (item, error) in enumerate(outcomes)]


async def batch_update(
    items: Sequence[T],
    updater: Callable[[T, CancelToken], Awaitable[T]],
    cancel: Optional[CancelToken] = None,
    max_concurrency: Optional[int] = None,
    cancel_grace: float = DEFAULT_CANCEL_GRACE,
) -> List[BatchResult[T]]:
    """Update every item concurrently; results hold the updated items."""
    outcomes = await _fan_out(items, updater, cancel, max_concurrency, cancel_grace)
    return [BatchResult(index=i, item=item, error=error) for i, (item, error) in enumerate(outcomes)]


async def batch_delete(
    keys: Sequence[K],
    deleter: Callable[[K, CancelToken], Awaitable[Any]],
    cancel: Optional[CancelToken] = None,
    max_concurrency: Optional[int] = None,
    cancel_grace: float = DEFAULT_CANCEL_GRACE,
) -> List[Optional[BaseException]]:
    """Delete every key concurrently; returns one error-or-None per key, in order."""
    outcomes = await _fan_out(keys, deleter, cancel, max_concurrency, cancel_grace)
    return [error for _, error in outcomes]


def raise_first_error(results: Sequence[Any]) -> None:
    """Raise the first captured error of a batch, for all-or-nothing callers."""
    for result in results:
        error = result.error if isinstance(result, BatchResult) else result
        if error is not None:
            raise error
