"""Tests for the in-memory and SQLite workflow state stores."""

from __future__ import annotations

import sqlite3

import pytest

from ucd_spine.core.errors import InvalidWorkflowIdError, StorageError, WorkflowNotFoundError
from ucd_spine.orchestration.models import (
    WorkflowInstance,
    WorkflowState,
    validate_workflow_id,
)
from ucd_spine.orchestration.state_store import (
    InMemoryWorkflowStateStore,
    SQLiteWorkflowStateStore,
)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryWorkflowStateStore()
        return
    sqlite_store = SQLiteWorkflowStateStore.connect(tmp_path / "state" / "workflows.db")
    yield sqlite_store
    sqlite_store.close()


def _instance(instance_id: str = "wf-1", **params) -> WorkflowInstance:
    return WorkflowInstance(id=instance_id, workflow="manifest-upload", params=params)


# ── Models ───────────────────────────────────────────────────────────────


class TestWorkflowState:
    @pytest.mark.parametrize(
        ("state", "status"),
        [
            (WorkflowState.PENDING, "queued"),
            (WorkflowState.EXTRACTING_TAR, "running"),
            (WorkflowState.CLEANING_UP, "running"),
            (WorkflowState.COMPLETE, "complete"),
            (WorkflowState.ERRORED, "errored"),
        ],
    )
    def test_status(self, state, status):
        assert state.status == status

    def test_terminal(self):
        assert WorkflowState.COMPLETE.is_terminal
        assert WorkflowState.ERRORED.is_terminal
        assert not WorkflowState.VALIDATING_UPLOAD.is_terminal


class TestValidateWorkflowId:
    @pytest.mark.parametrize("wid", ["wf", "manifest-upload-16_0_0-1718000000000", "a" * 100])
    def test_valid(self, wid):
        assert validate_workflow_id(wid) == wid

    @pytest.mark.parametrize("wid", ["", "-lead", "has space", "16.0.0", "a" * 101, "x/y"])
    def test_invalid(self, wid):
        with pytest.raises(InvalidWorkflowIdError):
            validate_workflow_id(wid)


# ── Instances ────────────────────────────────────────────────────────────


class TestInstances:
    def test_create_and_get(self, store):
        created, is_new = store.create_instance(_instance(version="16.0.0"))
        assert is_new
        assert created.state == WorkflowState.PENDING

        loaded = store.get_instance("wf-1")
        assert loaded.params == {"version": "16.0.0"}
        assert loaded.workflow == "manifest-upload"

    def test_create_is_idempotent(self, store):
        store.create_instance(_instance(version="16.0.0"))
        store.update_state("wf-1", WorkflowState.UPLOADING_FILES)

        existing, is_new = store.create_instance(_instance(version="15.1.0"))

        assert not is_new
        assert existing.params == {"version": "16.0.0"}
        assert existing.state == WorkflowState.UPLOADING_FILES

    def test_get_missing(self, store):
        assert store.get_instance("nope") is None

    def test_update_state_timestamps(self, store):
        store.create_instance(_instance())
        running = store.update_state("wf-1", WorkflowState.EXTRACTING_TAR)
        assert running.started_at is not None
        assert running.completed_at is None

        done = store.update_state("wf-1", WorkflowState.COMPLETE, output={"success": True})
        assert done.started_at == running.started_at
        assert done.completed_at is not None
        assert store.get_instance("wf-1").output == {"success": True}

    def test_errored_keeps_error_and_step(self, store):
        store.create_instance(_instance())
        store.update_state(
            "wf-1", WorkflowState.ERRORED, error="No valid files", error_step="extract-tar"
        )
        loaded = store.get_instance("wf-1")
        assert loaded.state == WorkflowState.ERRORED
        assert loaded.error == "No valid files"
        assert loaded.error_step == "extract-tar"

    def test_update_missing_raises(self, store):
        with pytest.raises(WorkflowNotFoundError):
            store.update_state("nope", WorkflowState.COMPLETE)

    def test_list_instances(self, store):
        for i in range(3):
            store.create_instance(_instance(f"wf-{i}"))
        assert len(store.list_instances()) == 3
        assert len(store.list_instances(limit=2)) == 2


# ── Steps ────────────────────────────────────────────────────────────────


class TestSteps:
    def test_record_and_get(self, store):
        store.create_instance(_instance())
        assert store.record_step("wf-1", "extract-tar", {"files": [{"name": "a"}]}, attempts=2)

        record = store.get_step("wf-1", "extract-tar")
        assert record.result == {"files": [{"name": "a"}]}
        assert record.attempts == 2

    def test_records_are_append_only(self, store):
        store.create_instance(_instance())
        store.record_step("wf-1", "upload-files", {"uploaded": 3})
        assert store.record_step("wf-1", "upload-files", {"uploaded": 99}) is False
        assert store.get_step("wf-1", "upload-files").result == {"uploaded": 3}

    def test_tuples_come_back_as_lists(self, store):
        store.create_instance(_instance())
        store.record_step("wf-1", "s", {"pair": (1, 2)})
        assert store.get_step("wf-1", "s").result == {"pair": [1, 2]}

    def test_list_steps_in_order(self, store):
        store.create_instance(_instance())
        for name in ["extract-tar", "upload-files", "validate-upload"]:
            store.record_step("wf-1", name, None)
        assert [r.step_name for r in store.list_steps("wf-1")] == [
            "extract-tar",
            "upload-files",
            "validate-upload",
        ]

    def test_missing_step(self, store):
        assert store.get_step("wf-1", "nope") is None


class TestSQLiteDurability:
    def test_state_survives_reconnect(self, tmp_path):
        path = tmp_path / "workflows.db"
        first = SQLiteWorkflowStateStore.connect(path)
        first.create_instance(_instance(version="16.0.0"))
        first.update_state("wf-1", WorkflowState.VALIDATING_UPLOAD)
        first.record_step("wf-1", "extract-tar", {"files": []})
        first.close()

        second = SQLiteWorkflowStateStore.connect(path)
        loaded = second.get_instance("wf-1")
        assert loaded.state == WorkflowState.VALIDATING_UPLOAD
        assert loaded.started_at is not None
        assert second.get_step("wf-1", "extract-tar").result == {"files": []}
        second.close()

    def test_sqlite_errors_wrapped(self, tmp_path):
        store = SQLiteWorkflowStateStore(sqlite3.connect(":memory:"))
        store.close()
        with pytest.raises(StorageError):
            store.get_instance("wf-1")
