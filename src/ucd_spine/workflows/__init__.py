"""Manifest upload workflow, archive handling and submission."""

from ucd_spine.workflows.archive import ExtractedFile, extract_archive
from ucd_spine.workflows.manifest_upload import (
    MANIFEST_UPLOAD,
    ManifestUploadWorkflow,
    UploadConfig,
    archive_key,
)
from ucd_spine.workflows.submission import (
    ArchiveSubmitter,
    SubmissionReceipt,
    WorkflowStatusView,
    make_workflow_id,
)

__all__ = [
    "ExtractedFile",
    "extract_archive",
    "MANIFEST_UPLOAD",
    "ManifestUploadWorkflow",
    "UploadConfig",
    "archive_key",
    "ArchiveSubmitter",
    "SubmissionReceipt",
    "WorkflowStatusView",
    "make_workflow_id",
]
