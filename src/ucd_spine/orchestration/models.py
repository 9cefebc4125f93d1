"""Workflow instance and step record models."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ucd_spine.core.errors import InvalidWorkflowIdError

WORKFLOW_ID_PATTERN = re.compile(r"^\w[\w-]*$")
WORKFLOW_ID_MAX_LENGTH = 100


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class WorkflowState(str, Enum):
    """Where a workflow instance is.

    ``COMPLETE`` and ``ERRORED`` are terminal; a terminal instance is never
    run again.
    """

    PENDING = "Pending"
    EXTRACTING_TAR = "ExtractingTar"
    UPLOADING_FILES = "UploadingFiles"
    VALIDATING_UPLOAD = "ValidatingUpload"
    PURGING_CACHES = "PurgingCaches"
    CLEANING_UP = "CleaningUp"
    COMPLETE = "Complete"
    ERRORED = "Errored"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowState.COMPLETE, WorkflowState.ERRORED)

    @property
    def status(self) -> str:
        """Coarse status reported to pollers: queued, running, complete or errored."""
        if self is WorkflowState.PENDING:
            return "queued"
        if self is WorkflowState.COMPLETE:
            return "complete"
        if self is WorkflowState.ERRORED:
            return "errored"
        return "running"


def validate_workflow_id(workflow_id: str) -> str:
    if (
        not isinstance(workflow_id, str)
        or len(workflow_id) > WORKFLOW_ID_MAX_LENGTH
        or WORKFLOW_ID_PATTERN.match(workflow_id) is None
    ):
        raise InvalidWorkflowIdError(workflow_id)
    return workflow_id


@dataclass
class WorkflowInstance:
    """One durable execution of a named workflow.

    ``id`` is the idempotency key: creating an instance with an existing id
    addresses the stored instance instead of making a second one.
    """

    id: str
    workflow: str
    params: dict[str, Any] = field(default_factory=dict)
    state: WorkflowState = WorkflowState.PENDING
    created_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    output: dict[str, Any] | None = None
    error: str | None = None
    error_step: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "workflow": self.workflow,
            "params": self.params,
            "state": self.state.value,
            "status": self.state.status,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "output": self.output,
            "error": self.error,
            "error_step": self.error_step,
        }


@dataclass(frozen=True)
class StepRecord:
    """The durable result of one completed step."""

    instance_id: str
    step_name: str
    result: Any
    attempts: int = 1
    recorded_at: datetime = field(default_factory=utcnow)
