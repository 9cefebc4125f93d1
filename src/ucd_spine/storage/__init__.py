"""Blob storage for archives, uploaded files and manifests."""

from ucd_spine.core.errors import ConfigError
from ucd_spine.core.settings import BlobBackend, UcdSpineSettings
from ucd_spine.storage.base import BlobStore, ObjectInfo
from ucd_spine.storage.local import LocalBlobStore
from ucd_spine.storage.memory import InMemoryBlobStore

__all__ = [
    "BlobStore",
    "ObjectInfo",
    "InMemoryBlobStore",
    "LocalBlobStore",
    "create_blob_store",
]


def create_blob_store(settings: UcdSpineSettings) -> BlobStore:
    """Create the blob store selected by ``settings.blob_backend``."""
    if settings.blob_backend == BlobBackend.MEMORY:
        return InMemoryBlobStore()
    if settings.blob_backend == BlobBackend.S3:
        if not settings.s3_bucket:
            raise ConfigError("UCD_SPINE_S3_BUCKET is required for the s3 blob backend")
        from ucd_spine.storage.s3 import S3BlobStore

        return S3BlobStore(
            bucket=settings.s3_bucket,
            endpoint_url=settings.s3_endpoint_url,
            region=settings.s3_region,
        )
    return LocalBlobStore(base_path=settings.resolved_blob_root)
