"""Durable workflow orchestration: instance models, state store and step engine."""

from ucd_spine.orchestration.engine import StepRunner, WorkflowEngine
from ucd_spine.orchestration.models import (
    StepRecord,
    WorkflowInstance,
    WorkflowState,
    validate_workflow_id,
)
from ucd_spine.orchestration.state_store import (
    InMemoryWorkflowStateStore,
    SQLiteWorkflowStateStore,
    WorkflowStateStore,
)

__all__ = [
    "StepRunner",
    "WorkflowEngine",
    "StepRecord",
    "WorkflowInstance",
    "WorkflowState",
    "validate_workflow_id",
    "InMemoryWorkflowStateStore",
    "SQLiteWorkflowStateStore",
    "WorkflowStateStore",
]
