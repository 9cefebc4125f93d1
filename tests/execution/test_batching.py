"""Tests for batched async fan-out."""

from __future__ import annotations

import asyncio

import pytest

from ucd_spine.core.errors import StorageError
from ucd_spine.execution.batching import chunked, run_in_batches


class TestChunked:
    def test_even_and_remainder(self):
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_empty(self):
        assert chunked([], 3) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            chunked([1], 0)


class TestRunInBatches:
    @pytest.mark.asyncio
    async def test_results_in_input_order(self):
        async def handler(n: int) -> int:
            await asyncio.sleep(0.001 * (5 - n))
            return n * 10

        assert await run_in_batches([1, 2, 3, 4], 3, handler) == [10, 20, 30, 40]

    @pytest.mark.asyncio
    async def test_concurrency_bounded_by_batch_size(self):
        active = 0
        peak = 0

        async def handler(_):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.001)
            active -= 1

        await run_in_batches(range(10), 3, handler)
        assert peak == 3

    @pytest.mark.asyncio
    async def test_failure_propagates_original_error(self):
        started = []

        async def handler(n: int) -> int:
            started.append(n)
            if n == 2:
                raise StorageError("put failed")
            return n

        with pytest.raises(StorageError, match="put failed"):
            await run_in_batches([1, 2, 3, 4, 5], 2, handler)
        assert 5 not in started

    @pytest.mark.asyncio
    async def test_delay_between_batches(self, monkeypatch):
        delays = []
        real_sleep = asyncio.sleep

        async def fake_sleep(seconds):
            delays.append(seconds)
            await real_sleep(0)

        monkeypatch.setattr("ucd_spine.execution.batching.asyncio.sleep", fake_sleep)

        async def handler(n):
            return n

        await run_in_batches([1, 2, 3], 1, handler, delay_seconds=0.25)
        assert delays == [0.25, 0.25]
