"""
Shared pytest fixtures and configuration for ucd-spine tests.

This module provides:
- Settings cache isolation between tests
- Blob stores, state stores and a no-wait workflow engine
- A fully wired manifest-upload workflow with an in-memory cache backend
"""

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

# Ensure ucd_spine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from _support.builders import API_ORIGIN
from ucd_spine.cache.invalidator import CacheInvalidator, InMemoryCacheBackend
from ucd_spine.core.logging import clear_context
from ucd_spine.core.settings import clear_settings_cache
from ucd_spine.execution.retry import RetryPolicy
from ucd_spine.orchestration.engine import WorkflowEngine
from ucd_spine.orchestration.state_store import InMemoryWorkflowStateStore
from ucd_spine.storage.memory import InMemoryBlobStore
from ucd_spine.workflows.manifest_upload import (
    MANIFEST_UPLOAD,
    ManifestUploadWorkflow,
    UploadConfig,
)
from ucd_spine.workflows.submission import ArchiveSubmitter


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests without an explicit marker as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_cache() -> Generator[None, None, None]:
    """Drop cached settings before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def clean_log_context() -> Generator[None, None, None]:
    clear_context()
    yield
    clear_context()


# =============================================================================
# Component Fixtures
# =============================================================================


class SleepRecorder:
    """Stands in for ``asyncio.sleep``; records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def blobs() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def state_store() -> InMemoryWorkflowStateStore:
    return InMemoryWorkflowStateStore()


@pytest.fixture
def cache_backend() -> InMemoryCacheBackend:
    backend = InMemoryCacheBackend()
    for cache in ("v1_versions", "v1_files", "ucd_store"):
        backend.add(cache, f"{API_ORIGIN}/api/v1/versions/16.0.0")
        backend.add(cache, f"{API_ORIGIN}/api/v1/files/16.0.0")
    return backend


@pytest.fixture
def upload_config() -> UploadConfig:
    return UploadConfig(
        batch_size=2,
        max_archive_bytes=1024 * 1024,
        upload_timeout_seconds=5.0,
        retry=RetryPolicy(max_attempts=3, base_delay_seconds=5.0),
    )


@pytest.fixture
def engine(state_store, sleeps) -> WorkflowEngine:
    return WorkflowEngine(state_store, sleep=sleeps)


@pytest.fixture
def upload_workflow(blobs, cache_backend, upload_config) -> ManifestUploadWorkflow:
    return ManifestUploadWorkflow(
        blobs, CacheInvalidator(cache_backend, API_ORIGIN), upload_config
    )


@pytest.fixture
def upload_engine(engine, upload_workflow) -> WorkflowEngine:
    engine.register(MANIFEST_UPLOAD, upload_workflow)
    return engine


@pytest.fixture
def submitter(blobs, upload_engine, upload_config) -> ArchiveSubmitter:
    return ArchiveSubmitter(blobs, upload_engine, upload_config.max_archive_bytes)
