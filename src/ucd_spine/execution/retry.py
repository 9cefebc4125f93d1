"""Step retry policy with exponential backoff.

Example:
    >>> policy = RetryPolicy(max_attempts=3, base_delay_seconds=5.0)
    >>> [policy.next_delay(a) for a in range(2)]
    [5.0, 10.0]
"""

from __future__ import annotations

import random
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a step may run and how long to wait in between.

    Delay before retry ``n`` (zero-based) is
    ``min(base_delay_seconds * multiplier ** n, max_delay_seconds)``.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay_seconds: Delay before the first retry
        multiplier: Exponential growth factor
        max_delay_seconds: Cap on a single delay
        jitter: Spread each delay by +/- ``jitter_range`` of itself
    """

    max_attempts: int = 1
    base_delay_seconds: float = 0.0
    multiplier: float = 2.0
    max_delay_seconds: float = 300.0
    jitter: bool = False
    jitter_range: float = 0.25

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    def next_delay(self, attempt: int) -> float:
        delay = min(self.base_delay_seconds * (self.multiplier**attempt), self.max_delay_seconds)
        if self.jitter and delay > 0:
            spread = delay * self.jitter_range
            delay = max(0.0, delay + random.uniform(-spread, spread))
        return delay

    def should_retry(self, attempts_made: int, error: BaseException | None = None) -> bool:
        """True if another attempt is allowed after ``attempts_made`` failures.

        Errors that carry ``retryable = False`` are never retried.
        """
        if attempts_made >= self.max_attempts:
            return False
        if error is not None and getattr(error, "retryable", True) is False:
            return False
        return True


NO_RETRY = RetryPolicy(max_attempts=1)


def exponential(
    max_attempts: int, base_delay_seconds: float, max_delay_seconds: float = 300.0
) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max_attempts,
        base_delay_seconds=base_delay_seconds,
        max_delay_seconds=max_delay_seconds,
    )


__all__ = ["RetryPolicy", "NO_RETRY", "exponential"]
