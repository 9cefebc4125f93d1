"""Archive submission and workflow status.

The front door of the upload pipeline: validate the request, park the
archive in blob storage, then create the workflow instance that will
consume it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from ucd_spine.core.errors import (
    ArchiveTooLargeError,
    InvalidVersionError,
    PermanentInputError,
    StorageError,
)
from ucd_spine.core.logging import get_logger
from ucd_spine.core.versions import is_valid_upload_version, workflow_slug
from ucd_spine.orchestration.engine import WorkflowEngine
from ucd_spine.orchestration.models import WorkflowInstance, validate_workflow_id
from ucd_spine.storage.base import BlobStore
from ucd_spine.workflows.manifest_upload import MANIFEST_UPLOAD, archive_key

logger = get_logger(__name__)

ACCEPTED_CONTENT_TYPES = ("application/x-tar", "application/gzip")


def make_workflow_id(version: str, now_ms: int | None = None) -> str:
    """``manifest-upload-16_0_0-1718000000000`` (dots are not valid in ids)."""
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{MANIFEST_UPLOAD}-{workflow_slug(version)}-{millis}"


@dataclass(frozen=True)
class SubmissionReceipt:
    workflow_id: str
    archive_key: str
    status: str = "queued"
    created: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "workflowId": self.workflow_id,
            "archiveKey": self.archive_key,
            "status": self.status,
        }


@dataclass(frozen=True)
class WorkflowStatusView:
    workflow_id: str
    status: str
    state: str
    output: dict[str, Any] | None = None
    error: str | None = None

    @classmethod
    def from_instance(cls, instance: WorkflowInstance) -> WorkflowStatusView:
        return cls(
            workflow_id=instance.id,
            status=instance.state.status,
            state=instance.state.value,
            output=instance.output,
            error=instance.error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflowId": self.workflow_id,
            "status": self.status,
            "state": self.state,
            "output": self.output,
            "error": self.error,
        }


class ArchiveSubmitter:
    """Accepts archives for ingestion and reports on their workflows."""

    def __init__(self, blobs: BlobStore, engine: WorkflowEngine, max_archive_bytes: int):
        self.blobs = blobs
        self.engine = engine
        self.max_archive_bytes = max_archive_bytes

    async def submit(
        self,
        version: str,
        data: bytes,
        content_type: str,
        workflow_id: str | None = None,
    ) -> SubmissionReceipt:
        """Store the archive and create its workflow instance.

        Re-submitting with an existing ``workflow_id`` addresses the stored
        instance; the archive is not rewritten.

        Raises:
            InvalidVersionError: If ``version`` is not ``X.Y.Z``
            PermanentInputError: Unsupported content type
            ArchiveTooLargeError: Archive exceeds the size limit
            StorageError: Archive could not be stored or verified
        """
        if not is_valid_upload_version(version):
            raise InvalidVersionError(version)
        if content_type not in ACCEPTED_CONTENT_TYPES:
            raise PermanentInputError(
                "Content-Type must be application/x-tar or application/gzip"
            ).with_context(content_type=content_type)
        if len(data) > self.max_archive_bytes:
            raise ArchiveTooLargeError(len(data), self.max_archive_bytes)

        workflow_id = validate_workflow_id(workflow_id or make_workflow_id(version))
        existing = self.engine.store.get_instance(workflow_id)
        if existing is not None:
            logger.info("submission.existing", workflow_id=workflow_id, state=existing.state.value)
            return SubmissionReceipt(
                workflow_id=workflow_id,
                archive_key=existing.params.get("archive_key", archive_key(version, workflow_id)),
                status=existing.state.status,
                created=False,
            )

        key = archive_key(version, workflow_id)
        await self.blobs.put(key, data, content_type=content_type)
        if await self.blobs.head(key) is None:
            raise StorageError(
                "File upload verification failed: archive not found in blob storage"
            ).with_context(key=key, workflow_id=workflow_id)

        instance, created = self.engine.create(
            MANIFEST_UPLOAD, workflow_id, {"version": version, "archive_key": key}
        )
        logger.info(
            "submission.queued", workflow_id=workflow_id, version=version, key=key, size=len(data)
        )
        return SubmissionReceipt(
            workflow_id=instance.id,
            archive_key=key,
            status=instance.state.status,
            created=created,
        )

    def status(self, workflow_id: str) -> WorkflowStatusView:
        return WorkflowStatusView.from_instance(self.engine.status(workflow_id))


__all__ = [
    "ACCEPTED_CONTENT_TYPES",
    "ArchiveSubmitter",
    "SubmissionReceipt",
    "WorkflowStatusView",
    "make_workflow_id",
]
