"""Wall-clock limits for async operations."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import Any


class TimeoutExpired(TimeoutError):
    """Raised when an operation exceeds its deadline.

    Attributes:
        timeout: The timeout value that was exceeded
        elapsed: How long the operation ran before being interrupted
        operation: Name/description of the operation
    """

    retryable = True

    def __init__(
        self,
        timeout: float,
        elapsed: float | None = None,
        operation: str = "operation",
    ):
        self.timeout = timeout
        self.elapsed = elapsed
        self.operation = operation
        msg = f"Operation '{operation}' timed out after {timeout}s"
        if elapsed is not None:
            msg += f" (ran for {elapsed:.2f}s)"
        super().__init__(msg)


async def run_with_timeout_async(
    awaitable: Awaitable[Any],
    timeout_seconds: float | None,
    operation: str = "operation",
) -> Any:
    """Await ``awaitable``, cancelling it after ``timeout_seconds``.

    ``None`` means no limit.

    Raises:
        TimeoutExpired: If execution exceeds timeout
    """
    if timeout_seconds is None:
        return await awaitable
    if timeout_seconds <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout_seconds}")

    start = time.monotonic()
    try:
        async with asyncio.timeout(timeout_seconds):
            return await awaitable
    except TimeoutError:
        raise TimeoutExpired(
            timeout=timeout_seconds,
            elapsed=time.monotonic() - start,
            operation=operation,
        ) from None


__all__ = ["TimeoutExpired", "run_with_timeout_async"]
