"""
Durable step engine.

A workflow is an async function ``(instance, step) -> output``. Inside it,
every unit of work goes through ``step.do(name, fn, ...)``, which records
the result in the state store before returning it. Running an instance a
second time replays recorded steps from the store instead of calling
their functions, so a crash mid-run resumes at the first unrecorded step.

Architecture:
    .. code-block:: text

        WorkflowEngine.run(id)
          │  terminal?  ── yes ──> return stored instance
          ▼
        definition(instance, StepRunner)
          │
          ├── step.do("extract-tar", fn)    recorded? ─ yes ─> replay
          │        │ no
          │        ▼
          │   attempt 1..N (per-attempt timeout, exponential backoff,
          │   non-retryable errors stop at once)
          │        │
          │        ├── ok    ─> record_step ─> return result
          │        └── spent ─> StepFailedError
          │
          ├── ...
          ▼
        Complete (output) | Errored (error, error_step)

Example:
    >>> engine = WorkflowEngine(InMemoryWorkflowStateStore())
    >>> engine.register("manifest-upload", manifest_upload)
    >>> engine.create("manifest-upload", "wf-1", {"version": "16.0.0"})
    >>> instance = await engine.run("wf-1")
    >>> instance.state
    <WorkflowState.COMPLETE: 'Complete'>
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

from ucd_spine.core.errors import StepFailedError, WorkflowError, WorkflowNotFoundError
from ucd_spine.core.logging import LogContext, get_logger
from ucd_spine.execution.retry import NO_RETRY, RetryPolicy
from ucd_spine.execution.timeout import run_with_timeout_async
from ucd_spine.orchestration.models import (
    WorkflowInstance,
    WorkflowState,
    validate_workflow_id,
)
from ucd_spine.orchestration.state_store import WorkflowStateStore

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]
WorkflowDefinition = Callable[[WorkflowInstance, "StepRunner"], Awaitable[dict[str, Any]]]


class StepRunner:
    """Runs and checkpoints the steps of one workflow instance."""

    def __init__(
        self,
        instance: WorkflowInstance,
        store: WorkflowStateStore,
        *,
        default_retry: RetryPolicy = NO_RETRY,
        sleep: Sleep = asyncio.sleep,
    ):
        self.instance = instance
        self.store = store
        self.default_retry = default_retry
        self._sleep = sleep

    async def do(
        self,
        name: str,
        fn: Callable[[], Awaitable[Any]],
        *,
        retry: RetryPolicy | None = None,
        timeout: float | None = None,
        state: WorkflowState | None = None,
    ) -> Any:
        """Run ``fn`` once per instance and return its JSON-serializable result.

        Args:
            name: Step name, unique within the workflow
            fn: Zero-argument coroutine factory; called once per attempt
            retry: Attempts and backoff (default: the runner's default policy)
            timeout: Per-attempt wall-clock limit in seconds; expiry counts as a failed attempt
            state: Instance state to report while the step runs

        Raises:
            StepFailedError: If the step's retry budget is exhausted or the
                error is not retryable
        """
        recorded = self.store.get_step(self.instance.id, name)
        if recorded is not None:
            logger.info("workflow.step.replayed", workflow_id=self.instance.id, step=name)
            return recorded.result

        if state is not None:
            self.instance = self.store.update_state(self.instance.id, state)

        policy = retry or self.default_retry
        attempts = 0
        async with LogContext(workflow_id=self.instance.id, step=name):
            while True:
                attempts += 1
                try:
                    result = await run_with_timeout_async(fn(), timeout, operation=name)
                    break
                except Exception as e:
                    if not policy.should_retry(attempts, e):
                        logger.error(
                            "workflow.step.failed", attempts=attempts, error=str(e)
                        )
                        raise StepFailedError(name, attempts, e) from e
                    delay = policy.next_delay(attempts - 1)
                    logger.warning(
                        "workflow.step.retry",
                        attempt=attempts,
                        max_attempts=policy.max_attempts,
                        delay_seconds=delay,
                        error=str(e),
                    )
                    await self._sleep(delay)

            # Normalise to what a replay would return
            result = json.loads(json.dumps(result))
            if not self.store.record_step(self.instance.id, name, result, attempts):
                # Another run recorded this step first; its result is authoritative
                stored = self.store.get_step(self.instance.id, name)
                assert stored is not None
                logger.warning("workflow.step.already_recorded", attempts=stored.attempts)
                return stored.result
            logger.info("workflow.step.complete", attempts=attempts)
        return result


class WorkflowEngine:
    """Creates, runs and reports on durable workflow instances."""

    def __init__(
        self,
        store: WorkflowStateStore,
        *,
        default_retry: RetryPolicy = NO_RETRY,
        sleep: Sleep = asyncio.sleep,
    ):
        self.store = store
        self.default_retry = default_retry
        self._sleep = sleep
        self._definitions: dict[str, WorkflowDefinition] = {}

    def register(self, workflow: str, definition: WorkflowDefinition) -> None:
        self._definitions[workflow] = definition

    def create(
        self, workflow: str, instance_id: str, params: dict[str, Any] | None = None
    ) -> tuple[WorkflowInstance, bool]:
        """Create an instance, or address the existing one with the same id.

        Returns:
            ``(instance, created)``; ``created`` is False when the id already existed
        """
        validate_workflow_id(instance_id)
        if workflow not in self._definitions:
            raise WorkflowError(f"Unknown workflow: {workflow}")
        instance, created = self.store.create_instance(
            WorkflowInstance(id=instance_id, workflow=workflow, params=dict(params or {}))
        )
        if created:
            logger.info("workflow.created", workflow=workflow, workflow_id=instance_id)
        else:
            logger.info(
                "workflow.create_existing",
                workflow=instance.workflow,
                workflow_id=instance_id,
                state=instance.state.value,
            )
        return instance, created

    def status(self, instance_id: str) -> WorkflowInstance:
        validate_workflow_id(instance_id)
        instance = self.store.get_instance(instance_id)
        if instance is None:
            raise WorkflowNotFoundError(instance_id)
        return instance

    async def run(self, instance_id: str) -> WorkflowInstance:
        """Start or resume an instance and drive it to a terminal state."""
        instance = self.status(instance_id)
        if instance.is_terminal:
            logger.info(
                "workflow.already_terminal", workflow_id=instance_id, state=instance.state.value
            )
            return instance

        definition = self._definitions.get(instance.workflow)
        if definition is None:
            raise WorkflowError(f"Unknown workflow: {instance.workflow}")

        resumed = instance.state is not WorkflowState.PENDING
        logger.info(
            "workflow.start",
            workflow=instance.workflow,
            workflow_id=instance_id,
            resumed=resumed,
            state=instance.state.value,
        )
        runner = StepRunner(
            instance, self.store, default_retry=self.default_retry, sleep=self._sleep
        )

        try:
            output = await definition(instance, runner)
        except StepFailedError as e:
            final = self.store.update_state(
                instance_id, WorkflowState.ERRORED, error=e.message, error_step=e.step
            )
            logger.error(
                "workflow.errored",
                workflow=instance.workflow,
                workflow_id=instance_id,
                step=e.step,
                attempts=e.attempts,
                error=e.message,
            )
            return final
        except Exception as e:
            logger.exception("workflow.crashed", workflow_id=instance_id)
            final = self.store.update_state(
                instance_id, WorkflowState.ERRORED, error=str(e) or type(e).__name__
            )
            return final

        final = self.store.update_state(instance_id, WorkflowState.COMPLETE, output=output)
        logger.info(
            "workflow.complete",
            workflow=instance.workflow,
            workflow_id=instance_id,
            state=final.state.value,
        )
        return final


__all__ = ["StepRunner", "WorkflowEngine", "WorkflowDefinition"]
