"""Batched async fan-out.

Work is split into fixed-size batches. Items inside one batch run
concurrently; batches run one after another, optionally separated by a
politeness delay.

Example::

    results = await run_in_batches(files, 20, upload_one)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from ucd_spine.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def chunked(items: Sequence[T], size: int) -> list[Sequence[T]]:
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    return [items[i : i + size] for i in range(0, len(items), size)]


async def _gather_all_or_nothing(coros: list[Awaitable[Any]]) -> list[Any]:
    """Run ``coros`` together; the first failure cancels the rest and is re-raised."""
    tasks: list[asyncio.Task] = []
    try:
        async with asyncio.TaskGroup() as group:
            for coro in coros:
                tasks.append(group.create_task(coro))
    except BaseExceptionGroup as eg:
        first = eg.exceptions[0]
        while isinstance(first, BaseExceptionGroup):
            first = first.exceptions[0]
        raise first from None
    return [task.result() for task in tasks]


async def run_in_batches(
    items: Sequence[T],
    batch_size: int,
    handler: Callable[[T], Awaitable[R]],
    *,
    delay_seconds: float = 0.0,
    label: str = "batch",
) -> list[R]:
    """Apply ``handler`` to every item, ``batch_size`` at a time.

    All-or-nothing: a handler exception aborts the remaining work and
    propagates. Handlers that must tolerate failures should catch and
    return them instead.

    Returns:
        Handler results in input order.
    """
    batches = chunked(items, batch_size)
    results: list[R] = []
    logger.debug(f"{label}.start", items=len(items), batches=len(batches), batch_size=batch_size)

    for index, batch in enumerate(batches):
        if index > 0 and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        results.extend(await _gather_all_or_nothing([handler(item) for item in batch]))
        logger.debug(f"{label}.progress", batch=index + 1, batches=len(batches))

    return results


__all__ = ["chunked", "run_in_batches"]
