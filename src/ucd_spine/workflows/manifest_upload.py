"""
Manifest upload workflow.

Takes an archive that was already written to blob storage for one version
and publishes its files under ``manifest/{version}/``.

Steps (each checkpointed by the engine):

    extract-tar      ExtractingTar     size check, tar parse, permanent errors fail at once
    upload-files     UploadingFiles    batched concurrent PUTs, retried, per-attempt timeout
    validate-upload  ValidatingUpload  HEAD every file, error names the missing ones
    purge-caches     PurgingCaches     best effort, never fails the instance
    cleanup          CleaningUp        delete the archive (success path only)

The archive is only deleted on the success path; an ``Errored`` instance
leaves it in place for inspection or resubmission.
"""

from __future__ import annotations

import mimetypes
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ucd_spine.cache.invalidator import CacheInvalidator
from ucd_spine.core.errors import (
    ArchiveNotFoundError,
    ArchiveTooLargeError,
    StorageError,
    UploadValidationError,
)
from ucd_spine.core.logging import LogContext, get_logger
from ucd_spine.core.settings import MIB, UcdSpineSettings
from ucd_spine.execution.batching import run_in_batches
from ucd_spine.execution.retry import RetryPolicy, exponential
from ucd_spine.manifests.store import version_prefix
from ucd_spine.orchestration.engine import StepRunner
from ucd_spine.orchestration.models import WorkflowInstance, WorkflowState
from ucd_spine.storage.base import BlobStore
from ucd_spine.workflows.archive import ExtractedFile, extract_archive

logger = get_logger(__name__)

MANIFEST_UPLOAD = "manifest-upload"


def archive_key(version: str, workflow_id: str) -> str:
    return f"manifest-tars/{version}/{workflow_id}.tar"


@dataclass(frozen=True)
class UploadConfig:
    batch_size: int = 20
    max_archive_bytes: int = 10 * MIB
    upload_timeout_seconds: float | None = 300.0
    retry: RetryPolicy = field(default_factory=lambda: exponential(3, 5.0))

    @classmethod
    def from_settings(cls, settings: UcdSpineSettings) -> UploadConfig:
        return cls(
            batch_size=settings.upload_batch_size,
            max_archive_bytes=settings.max_archive_bytes,
            upload_timeout_seconds=settings.upload_timeout_seconds,
            retry=exponential(
                settings.upload_max_attempts, settings.upload_retry_base_delay_seconds
            ),
        )


class ManifestUploadWorkflow:
    """Workflow definition; register an instance of it with the engine."""

    def __init__(
        self,
        blobs: BlobStore,
        invalidator: CacheInvalidator | None = None,
        config: UploadConfig | None = None,
    ):
        self.blobs = blobs
        self.invalidator = invalidator
        self.config = config or UploadConfig()

    async def __call__(self, instance: WorkflowInstance, step: StepRunner) -> dict[str, Any]:
        version = instance.params["version"]
        key = instance.params["archive_key"]
        started = time.monotonic()

        async with LogContext(version=version):
            extracted = await step.do(
                "extract-tar",
                lambda: self._extract(key),
                retry=self.config.retry,
                state=WorkflowState.EXTRACTING_TAR,
            )
            files = [ExtractedFile.from_json(f) for f in extracted["files"]]

            await step.do(
                "upload-files",
                lambda: self._upload(version, files),
                retry=self.config.retry,
                timeout=self.config.upload_timeout_seconds,
                state=WorkflowState.UPLOADING_FILES,
            )

            await step.do(
                "validate-upload",
                lambda: self._validate(version, files),
                retry=self.config.retry,
                state=WorkflowState.VALIDATING_UPLOAD,
            )

            await step.do(
                "purge-caches",
                lambda: self._purge(version),
                state=WorkflowState.PURGING_CACHES,
            )

            await step.do(
                "cleanup",
                lambda: self._cleanup(key),
                state=WorkflowState.CLEANING_UP,
            )

        first_started = step.instance.started_at
        if first_started is not None:
            duration = (datetime.now(UTC) - first_started).total_seconds()
        else:
            duration = time.monotonic() - started
        logger.info(
            "manifest_upload.complete", version=version, files=len(files), duration_seconds=duration
        )
        return {
            "success": True,
            "version": version,
            "filesUploaded": len(files),
            "duration": int(duration * 1000),
            "workflowId": instance.id,
        }

    # ── Steps ───────────────────────────────────────────────────────

    async def _extract(self, key: str) -> dict[str, Any]:
        limit = self.config.max_archive_bytes
        info = await self.blobs.head(key)
        if info is None:
            raise ArchiveNotFoundError(f"Archive not found: {key}").with_context(key=key)
        if info.size_bytes > limit:
            raise ArchiveTooLargeError(info.size_bytes, limit).with_context(key=key)

        data = await self.blobs.get(key)
        if data is None:
            raise ArchiveNotFoundError(f"Archive not found: {key}").with_context(key=key)
        if len(data) > limit:
            raise ArchiveTooLargeError(len(data), limit).with_context(key=key)

        files = extract_archive(data)
        return {"files": [f.to_json() for f in files]}

    async def _upload(self, version: str, files: list[ExtractedFile]) -> dict[str, Any]:
        prefix = version_prefix(version)

        async def put_one(file: ExtractedFile) -> str:
            storage_key = f"{prefix}{file.name}"
            content_type = mimetypes.guess_type(file.name)[0] or "text/plain"
            try:
                await self.blobs.put(storage_key, file.data, content_type=content_type)
            except StorageError as e:
                raise StorageError(
                    f"Failed to upload {file.name}: {e.message}", retryable=e.retryable, cause=e
                ).with_context(key=storage_key) from e
            logger.debug("manifest_upload.file_uploaded", key=storage_key)
            return file.name

        uploaded = await run_in_batches(
            files, self.config.batch_size, put_one, label="manifest_upload.upload"
        )
        return {"uploaded": len(uploaded)}

    async def _validate(self, version: str, files: list[ExtractedFile]) -> dict[str, Any]:
        prefix = version_prefix(version)

        async def exists(file: ExtractedFile) -> tuple[str, bool]:
            return file.name, await self.blobs.head(f"{prefix}{file.name}") is not None

        checks = await run_in_batches(
            files, self.config.batch_size, exists, label="manifest_upload.validate"
        )
        missing = [name for name, found in checks if not found]
        if missing:
            raise UploadValidationError(missing).with_context(version=version)

        logger.info("manifest_upload.validated", files=len(files))
        return {"validated": True, "fileCount": len(files)}

    async def _purge(self, version: str) -> dict[str, Any]:
        if self.invalidator is None:
            return {"version": version, "purged": [], "failures": [], "skipped": True}
        report = await self.invalidator.purge_version(version)
        return report.to_dict()

    async def _cleanup(self, key: str) -> dict[str, Any]:
        try:
            deleted = await self.blobs.delete(key)
        except StorageError as e:
            # Cleanup never fails the instance
            logger.warning("manifest_upload.cleanup_failed", key=key, error=e.message)
            return {"deleted": False, "error": e.message}
        return {"deleted": deleted}


__all__ = ["MANIFEST_UPLOAD", "ManifestUploadWorkflow", "UploadConfig", "archive_key"]
