"""Execution primitives: retry policies, timeouts and batched fan-out."""

from ucd_spine.execution.batching import chunked, run_in_batches
from ucd_spine.execution.retry import NO_RETRY, RetryPolicy, exponential
from ucd_spine.execution.timeout import TimeoutExpired, run_with_timeout_async

__all__ = [
    "chunked",
    "run_in_batches",
    "NO_RETRY",
    "RetryPolicy",
    "exponential",
    "TimeoutExpired",
    "run_with_timeout_async",
]
