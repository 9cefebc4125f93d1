"""
Structured error types for ucd-spine.

Every failure the manifest pipeline can produce is a ``UcdSpineError``
carrying a category, an explicit ``retryable`` flag, structured context
and an optional chained cause. The workflow engine reads ``retryable`` to
decide whether a step's retry budget applies; the crawler and cache
invalidator record errors instead of raising them.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                        UcdSpineError                          │
        │        (category, retryable, context, cause)                  │
        ├──────────────────────────────────────────────────────────────┤
        │  TransientError (retryable)     PermanentInputError           │
        │    NetworkError                   ArchiveTooLargeError        │
        │    StorageError                   EmptyArchiveError           │
        │                                   InvalidArchiveError         │
        │  UploadValidationError (retryable, .missing)                  │
        │                                                               │
        │  UpstreamError                  WorkflowError                 │
        │    RootListingError               InvalidWorkflowIdError      │
        │    SubtreeFetchError              WorkflowNotFoundError       │
        │                                   StepFailedError             │
        │  BestEffortError                                              │
        │  InvalidVersionError            ConfigError                   │
        └──────────────────────────────────────────────────────────────┘

Retry semantics:
    - TransientError / UploadValidationError: retried under the owning
      step's policy, surfaced only after exhaustion.
    - PermanentInputError: drives the instance to ``Errored`` at once.
    - BestEffortError / SubtreeFetchError: recorded in reports, never raised
      to the caller of a purge or crawl.

Usage:
    from ucd_spine.core.errors import NetworkError, StorageError

    try:
        await client.get(url)
    except httpx.TransportError as e:
        raise NetworkError("Upstream unreachable", cause=e).with_context(url=url)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    NETWORK = "NETWORK"  # Upstream HTTP, DNS, connection resets
    STORAGE = "STORAGE"  # Blob store or state store I/O
    SOURCE = "SOURCE"  # Upstream returned something unusable
    PARSE = "PARSE"  # Archive / listing parsing
    VALIDATION = "VALIDATION"  # Input or post-upload validation
    CONFIG = "CONFIG"  # Missing/invalid settings
    ORCHESTRATION = "ORCHESTRATION"  # Workflow engine errors
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        workflow_id: Workflow instance the error belongs to
        version: Unicode version being processed
        step: Workflow step name
        url: Upstream URL being fetched
        http_status: HTTP status code if applicable
        key: Blob-store key involved
        metadata: Additional key-value pairs
    """

    workflow_id: str | None = None
    version: str | None = None
    step: str | None = None
    url: str | None = None
    http_status: int | None = None
    key: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging (None fields dropped)."""
        result = {}
        for name in ["workflow_id", "version", "step", "url", "http_status", "key"]:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class UcdSpineError(Exception):
    """
    Base exception for all ucd-spine errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override either per instance.

    Examples:
        >>> error = UcdSpineError("boom")
        >>> error.retryable
        False
        >>> StorageError("put failed").retryable
        True
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> UcdSpineError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (retryable)
# =============================================================================


class TransientError(UcdSpineError):
    """Temporary failure that may succeed on retry."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class NetworkError(TransientError):
    """Network-related transient error (upstream or cache origin)."""

    default_category = ErrorCategory.NETWORK


class StorageError(TransientError):
    """Blob-store or state-store call failed."""

    default_category = ErrorCategory.STORAGE


# =============================================================================
# PERMANENT INPUT ERRORS (never retried)
# =============================================================================


class PermanentInputError(UcdSpineError):
    """The submitted input can never succeed; retrying is pointless."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class ArchiveTooLargeError(PermanentInputError):
    """Archive exceeds the configured size limit."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"Archive size ({size} bytes) exceeds maximum of {limit} bytes "
            f"({limit // (1024 * 1024)}MB)"
        )


class EmptyArchiveError(PermanentInputError):
    """Archive contains no usable file entries."""

    def __init__(self, message: str = "No valid files found in TAR archive"):
        super().__init__(message)


class InvalidArchiveError(PermanentInputError):
    """Archive bytes are not a readable (optionally gzipped) tar."""

    default_category = ErrorCategory.PARSE


class ArchiveNotFoundError(PermanentInputError):
    """The archive object the workflow was pointed at does not exist."""

    default_category = ErrorCategory.STORAGE


# =============================================================================
# VALIDATION
# =============================================================================


class UploadValidationError(UcdSpineError):
    """
    Files are missing from blob storage after upload.

    Retryable: a missing object after an upload is treated like any other
    step failure and re-attempted under the step's policy.

    Attributes:
        missing: Exactly the file names that were not found
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = True

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(
            f"Validation failed: {len(self.missing)} files missing ({', '.join(self.missing)})"
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["missing"] = self.missing
        return result


class InvalidVersionError(UcdSpineError):
    """Version string does not match the accepted grammar."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, version: str, expected: str = "X.Y.Z (e.g., 16.0.0)"):
        self.version = version
        super().__init__(f"Invalid version format: {version}. Expected format: {expected}")


# =============================================================================
# UPSTREAM ERRORS
# =============================================================================


class UpstreamError(UcdSpineError):
    """Upstream directory index returned an error or unusable content."""

    default_category = ErrorCategory.SOURCE
    default_retryable = False


class RootListingError(UpstreamError):
    """The root listing could not be fetched; discovery cannot proceed."""


class SubtreeFetchError(UpstreamError):
    """One subdirectory listing failed. Recorded by the crawler, not raised."""


class BestEffortError(UcdSpineError):
    """A best-effort side effect failed. Recorded in reports, never raised."""

    default_category = ErrorCategory.NETWORK


# =============================================================================
# CONFIGURATION
# =============================================================================


class ConfigError(UcdSpineError):
    """Missing or invalid configuration."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# WORKFLOW ERRORS
# =============================================================================


class WorkflowError(UcdSpineError):
    """Base class for workflow engine errors."""

    default_category = ErrorCategory.ORCHESTRATION


class InvalidWorkflowIdError(WorkflowError):
    """Workflow id does not match ``^\\w[\\w-]*$`` or exceeds 100 chars."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Invalid workflow id: {workflow_id!r}")


class WorkflowNotFoundError(WorkflowError):
    """No instance exists for the given id."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class StepFailedError(WorkflowError):
    """A step exhausted its retry budget (or failed permanently)."""

    def __init__(self, step: str, attempts: int, error: BaseException):
        self.step = step
        self.attempts = attempts
        self.error = error
        message = error.message if isinstance(error, UcdSpineError) else str(error)
        super().__init__(
            message or type(error).__name__,
            cause=error if isinstance(error, Exception) else None,
        )
        self.context.step = step


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "UcdSpineError",
    "TransientError",
    "NetworkError",
    "StorageError",
    "PermanentInputError",
    "ArchiveTooLargeError",
    "EmptyArchiveError",
    "InvalidArchiveError",
    "ArchiveNotFoundError",
    "UploadValidationError",
    "InvalidVersionError",
    "UpstreamError",
    "RootListingError",
    "SubtreeFetchError",
    "BestEffortError",
    "ConfigError",
    "WorkflowError",
    "InvalidWorkflowIdError",
    "WorkflowNotFoundError",
    "StepFailedError",
]
