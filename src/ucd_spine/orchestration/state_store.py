"""
Durable workflow state.

The store is the only state that crosses a crash/restart boundary. Step
records are append-only and keyed by ``(instance_id, step_name)``: once a
step's result is recorded it is never replaced, which is what lets a
resumed run skip work that already happened.

Architecture:
    .. code-block:: text

        ┌──────────────────────────┐     ┌──────────────────────────┐
        │ ucd_workflow_instances   │────>│ ucd_workflow_steps       │
        │ (current state, output,  │     │ (append-only results,    │
        │  error, timestamps)      │     │  UNIQUE(instance, step)) │
        └──────────────────────────┘     └──────────────────────────┘

Example:
    >>> store = SQLiteWorkflowStateStore.connect("workflows.db")
    >>> instance, created = store.create_instance(WorkflowInstance(id="wf-1", workflow="manifest-upload"))
    >>> store.record_step("wf-1", "extract-tar", {"files": []})
    True
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from ucd_spine.core.errors import StorageError, WorkflowNotFoundError
from ucd_spine.orchestration.models import StepRecord, WorkflowInstance, WorkflowState, utcnow

SCHEMA = """
CREATE TABLE IF NOT EXISTS ucd_workflow_instances (
    id TEXT PRIMARY KEY,
    workflow TEXT NOT NULL,
    params TEXT NOT NULL,
    state TEXT NOT NULL,
    created_at TEXT NOT NULL,
    started_at TEXT,
    completed_at TEXT,
    output TEXT,
    error TEXT,
    error_step TEXT
);

CREATE TABLE IF NOT EXISTS ucd_workflow_steps (
    instance_id TEXT NOT NULL REFERENCES ucd_workflow_instances(id),
    step_name TEXT NOT NULL,
    result TEXT NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 1,
    recorded_at TEXT NOT NULL,
    UNIQUE (instance_id, step_name)
);
"""


class WorkflowStateStore(Protocol):
    def create_instance(self, instance: WorkflowInstance) -> tuple[WorkflowInstance, bool]: ...

    def get_instance(self, instance_id: str) -> WorkflowInstance | None: ...

    def list_instances(self, limit: int = 50) -> list[WorkflowInstance]: ...

    def update_state(
        self,
        instance_id: str,
        state: WorkflowState,
        *,
        output: dict[str, Any] | None = None,
        error: str | None = None,
        error_step: str | None = None,
    ) -> WorkflowInstance: ...

    def get_step(self, instance_id: str, step_name: str) -> StepRecord | None: ...

    def record_step(
        self, instance_id: str, step_name: str, result: Any, attempts: int = 1
    ) -> bool: ...

    def list_steps(self, instance_id: str) -> list[StepRecord]: ...


def _apply_state(
    instance: WorkflowInstance,
    state: WorkflowState,
    output: dict[str, Any] | None,
    error: str | None,
    error_step: str | None,
) -> WorkflowInstance:
    now = utcnow()
    return replace(
        instance,
        state=state,
        started_at=instance.started_at or (now if state is not WorkflowState.PENDING else None),
        completed_at=now if state.is_terminal else instance.completed_at,
        output=output if output is not None else instance.output,
        error=error if error is not None else instance.error,
        error_step=error_step if error_step is not None else instance.error_step,
    )


class InMemoryWorkflowStateStore:
    """Process-local store for tests and one-shot CLI runs."""

    def __init__(self) -> None:
        self._instances: dict[str, WorkflowInstance] = {}
        self._steps: dict[tuple[str, str], StepRecord] = {}

    def create_instance(self, instance: WorkflowInstance) -> tuple[WorkflowInstance, bool]:
        existing = self._instances.get(instance.id)
        if existing is not None:
            return existing, False
        self._instances[instance.id] = instance
        return instance, True

    def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        return self._instances.get(instance_id)

    def list_instances(self, limit: int = 50) -> list[WorkflowInstance]:
        ordered = sorted(self._instances.values(), key=lambda i: i.created_at, reverse=True)
        return ordered[:limit]

    def update_state(self, instance_id, state, *, output=None, error=None, error_step=None):
        instance = self._instances.get(instance_id)
        if instance is None:
            raise WorkflowNotFoundError(instance_id)
        updated = _apply_state(instance, state, output, error, error_step)
        self._instances[instance_id] = updated
        return updated

    def get_step(self, instance_id: str, step_name: str) -> StepRecord | None:
        return self._steps.get((instance_id, step_name))

    def record_step(self, instance_id, step_name, result, attempts=1) -> bool:
        key = (instance_id, step_name)
        if key in self._steps:
            return False
        # Round-trip through JSON so replayed results match what SQLite would return
        stored = json.loads(json.dumps(result))
        self._steps[key] = StepRecord(instance_id, step_name, stored, attempts)
        return True

    def list_steps(self, instance_id: str) -> list[StepRecord]:
        return [r for (iid, _), r in self._steps.items() if iid == instance_id]


class SQLiteWorkflowStateStore:
    """SQLite-backed store.

    Works on a plain ``sqlite3`` connection. JSON columns hold params, output and step results.
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self.initialize()

    @classmethod
    def connect(cls, path: str | Path) -> SQLiteWorkflowStateStore:
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        return cls(sqlite3.connect(str(path)))

    def initialize(self) -> None:
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(f"Workflow state store error: {e}", cause=e) from e

    # =========================================================================
    # INSTANCES
    # =========================================================================

    def create_instance(self, instance: WorkflowInstance) -> tuple[WorkflowInstance, bool]:
        cursor = self._execute(
            """
            INSERT OR IGNORE INTO ucd_workflow_instances (
                id, workflow, params, state, created_at
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                instance.id,
                instance.workflow,
                json.dumps(instance.params),
                instance.state.value,
                instance.created_at.isoformat(),
            ),
        )
        self._conn.commit()
        created = cursor.rowcount == 1
        stored = self.get_instance(instance.id)
        assert stored is not None
        return stored, created

    def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        row = self._execute(
            """
            SELECT id, workflow, params, state, created_at, started_at,
                   completed_at, output, error, error_step
            FROM ucd_workflow_instances
            WHERE id = ?
            """,
            (instance_id,),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_instance(row)

    def list_instances(self, limit: int = 50) -> list[WorkflowInstance]:
        rows = self._execute(
            """
            SELECT id, workflow, params, state, created_at, started_at,
                   completed_at, output, error, error_step
            FROM ucd_workflow_instances
            ORDER BY created_at DESC
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
        return [self._row_to_instance(row) for row in rows]

    def update_state(
        self,
        instance_id: str,
        state: WorkflowState,
        *,
        output: dict[str, Any] | None = None,
        error: str | None = None,
        error_step: str | None = None,
    ) -> WorkflowInstance:
        instance = self.get_instance(instance_id)
        if instance is None:
            raise WorkflowNotFoundError(instance_id)
        updated = _apply_state(instance, state, output, error, error_step)
        self._execute(
            """
            UPDATE ucd_workflow_instances
            SET state = ?, started_at = ?, completed_at = ?, output = ?,
                error = ?, error_step = ?
            WHERE id = ?
            """,
            (
                updated.state.value,
                updated.started_at.isoformat() if updated.started_at else None,
                updated.completed_at.isoformat() if updated.completed_at else None,
                json.dumps(updated.output) if updated.output is not None else None,
                updated.error,
                updated.error_step,
                instance_id,
            ),
        )
        self._conn.commit()
        return updated

    # =========================================================================
    # STEPS
    # =========================================================================

    def get_step(self, instance_id: str, step_name: str) -> StepRecord | None:
        row = self._execute(
            """
            SELECT instance_id, step_name, result, attempts, recorded_at
            FROM ucd_workflow_steps
            WHERE instance_id = ? AND step_name = ?
            """,
            (instance_id, step_name),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_step(row)

    def record_step(
        self, instance_id: str, step_name: str, result: Any, attempts: int = 1
    ) -> bool:
        cursor = self._execute(
            """
            INSERT OR IGNORE INTO ucd_workflow_steps (
                instance_id, step_name, result, attempts, recorded_at
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (instance_id, step_name, json.dumps(result), attempts, utcnow().isoformat()),
        )
        self._conn.commit()
        return cursor.rowcount == 1

    def list_steps(self, instance_id: str) -> list[StepRecord]:
        rows = self._execute(
            """
            SELECT instance_id, step_name, result, attempts, recorded_at
            FROM ucd_workflow_steps
            WHERE instance_id = ?
            ORDER BY rowid
            """,
            (instance_id,),
        ).fetchall()
        return [self._row_to_step(row) for row in rows]

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _parse_dt(value: str | None) -> datetime | None:
        return datetime.fromisoformat(value) if value else None

    def _row_to_instance(self, row: tuple) -> WorkflowInstance:
        return WorkflowInstance(
            id=row[0],
            workflow=row[1],
            params=json.loads(row[2]) if row[2] else {},
            state=WorkflowState(row[3]),
            created_at=datetime.fromisoformat(row[4]),
            started_at=self._parse_dt(row[5]),
            completed_at=self._parse_dt(row[6]),
            output=json.loads(row[7]) if row[7] else None,
            error=row[8],
            error_step=row[9],
        )

    def _row_to_step(self, row: tuple) -> StepRecord:
        return StepRecord(
            instance_id=row[0],
            step_name=row[1],
            result=json.loads(row[2]),
            attempts=row[3],
            recorded_at=datetime.fromisoformat(row[4]),
        )


__all__ = [
    "SCHEMA",
    "WorkflowStateStore",
    "InMemoryWorkflowStateStore",
    "SQLiteWorkflowStateStore",
]
