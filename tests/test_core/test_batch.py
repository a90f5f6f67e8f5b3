"""
Tests for UniFi API Client batch execution.

This module tests per-item error isolation, input ordering, bounded
concurrency and cancellation of in-flight batches.
"""

import asyncio
import time

import pytest

from unifi_api.core.batch import (
    BatchResult,
    batch_create,
    batch_delete,
    batch_get,
    batch_update,
    raise_first_error,
)
from unifi_api.core.cancellation import CancelToken
from unifi_api.core.exceptions import OperationCancelledError, ResourceNotFoundError


async def fetch(key, cancel):
    if key == "bad":
        raise ResourceNotFoundError(f"{key} not found", status_code=404)
    # Finish in reverse order to prove results are not completion-ordered
    await asyncio.sleep(0.001 * (10 - len(key)))
    return {"id": key}


@pytest.mark.asyncio
class TestBatchGet:
    """Test batch_get."""

    async def test_partial_failure(self):
        keys = ["a", "bb", "bad", "dddd", "eeeee"]

        results = await batch_get(keys, fetch)

        assert len(results) == 5
        assert [r.index for r in results] == [0, 1, 2, 3, 4]
        for key, result in zip(keys, results):
            if key == "bad":
                assert not result.ok
                assert isinstance(result.error, ResourceNotFoundError)
                assert result.item is None
            else:
                assert result.ok
                assert result.item == {"id": key}

    async def test_empty_input(self):
        calls = []

        async def getter(key, cancel):
            calls.append(key)

        assert await batch_get([], getter) == []
        assert calls == []

    async def test_runs_concurrently(self):
        async def slow(key, cancel):
            await asyncio.sleep(0.1)
            return key

        start = time.monotonic()
        results = await batch_get(list(range(20)), slow)

        assert time.monotonic() - start < 1
        assert [r.item for r in results] == list(range(20))

    async def test_max_concurrency(self):
        in_flight = 0
        peak = 0

        async def tracked(key, cancel):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return key

        results = await batch_get(list(range(12)), tracked, max_concurrency=3)

        assert peak <= 3
        assert all(r.ok for r in results)

    async def test_token_passed_to_operation(self):
        token = CancelToken()
        seen = []

        async def getter(key, cancel):
            seen.append(cancel)
            return key

        await batch_get(["a", "b"], getter, cancel=token)

        assert seen == [token, token]

    async def test_cancellation_returns_promptly(self):
        async def slow(key, cancel):
            await asyncio.sleep(10)
            return key

        token = CancelToken.with_timeout(0.05)
        start = time.monotonic()
        results = await batch_get(list(range(100)), slow, cancel=token)

        assert time.monotonic() - start < 1
        assert len(results) == 100
        assert all(isinstance(r.error, OperationCancelledError) for r in results)

    async def test_cancellation_keeps_finished_results(self):
        async def mixed(key, cancel):
            if key % 2 == 0:
                return key
            await cancel.sleep(10)

        token = CancelToken.with_timeout(0.05)
        results = await batch_get(list(range(10)), mixed, cancel=token)

        for result in results:
            if result.index % 2 == 0:
                assert result.item == result.index
            else:
                assert isinstance(result.error, OperationCancelledError)

    async def test_none_result_is_success(self):
        async def empty(key, cancel):
            if key == "bad":
                raise ResourceNotFoundError("missing", status_code=404)
            return None

        results = await batch_get(["a", "bad"], empty)

        assert results[0].ok
        assert results[0].item is None and results[0].error is None
        assert not results[1].ok
        assert results[1].item is None

    async def test_unexpected_errors_captured(self):
        async def broken(key, cancel):
            raise RuntimeError("bug")

        results = await batch_get(["a"], broken)

        assert isinstance(results[0].error, RuntimeError)


@pytest.mark.asyncio
class TestBatchWrites:
    """Test batch_create, batch_update and batch_delete."""

    async def test_create(self):
        async def create(item, cancel):
            return {**item, "_id": f"id-{item['name']}"}

        results = await batch_create([{"name": "lan"}, {"name": "iot"}], create)

        assert [r.item["_id"] for r in results] == ["id-lan", "id-iot"]

    async def test_update(self):
        async def update(item, cancel):
            if item["_id"] == "missing":
                raise ResourceNotFoundError("missing", status_code=404)
            return item

        results = await batch_update([{"_id": "1"}, {"_id": "missing"}], update)

        assert results[0].ok
        assert isinstance(results[1].error, ResourceNotFoundError)

    async def test_delete_returns_errors_only(self):
        async def delete(key, cancel):
            if key == "bad":
                raise ResourceNotFoundError("missing", status_code=404)

        errors = await batch_delete(["a", "bad", "c"], delete)

        assert errors[0] is None
        assert isinstance(errors[1], ResourceNotFoundError)
        assert errors[2] is None


class TestRaiseFirstError:
    """Test the all-or-nothing helper."""

    def test_no_errors(self):
        raise_first_error([BatchResult(index=0, item=1), None])

    def test_raises_first(self):
        first = ResourceNotFoundError("first")
        second = ResourceNotFoundError("second")

        with pytest.raises(ResourceNotFoundError) as exc_info:
            raise_first_error([BatchResult(index=0, item=1), BatchResult(index=1, error=first), second])

        assert exc_info.value is first
