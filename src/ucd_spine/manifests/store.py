"""Durable per-version manifest documents on top of a blob store."""

from __future__ import annotations

from pydantic import ValidationError

from ucd_spine.core.errors import ErrorCategory, UcdSpineError
from ucd_spine.core.logging import get_logger
from ucd_spine.core.versions import is_valid_version, version_sort_key
from ucd_spine.manifests.models import Manifest
from ucd_spine.storage.base import BlobStore

logger = get_logger(__name__)

MANIFEST_PREFIX = "manifest/"
MANIFEST_FILENAME = "manifest.json"


def manifest_key(version: str) -> str:
    return f"{MANIFEST_PREFIX}{version}/{MANIFEST_FILENAME}"


def version_prefix(version: str) -> str:
    """Prefix under which a version's manifest and uploaded files live."""
    return f"{MANIFEST_PREFIX}{version}/"


class ManifestStore:
    """
    Maps a version to its manifest document.

    ``put`` is a single blob write, so readers see either the previous
    manifest or the new one, never a partial list. No locking: concurrent
    puts to the same version are last-write-wins.
    """

    def __init__(self, blobs: BlobStore):
        self.blobs = blobs

    async def put(self, version: str, manifest: Manifest) -> None:
        key = manifest_key(version)
        await self.blobs.put(key, manifest.canonical_json(), content_type="application/json")
        logger.info("manifest.put", version=version, key=key, files=manifest.file_count)

    async def get(self, version: str) -> Manifest | None:
        data = await self.blobs.get(manifest_key(version))
        if data is None:
            return None
        try:
            return Manifest.from_bytes(data)
        except ValidationError as e:
            raise UcdSpineError(
                f"Stored manifest for {version} is not valid: {e.error_count()} errors",
                category=ErrorCategory.PARSE,
                cause=e,
            ).with_context(version=version, key=manifest_key(version)) from e

    async def list(self) -> list[str]:
        """Versions with anything stored under ``manifest/{version}/``, oldest first."""
        versions: set[str] = set()
        for info in await self.blobs.list(MANIFEST_PREFIX):
            segment = info.key[len(MANIFEST_PREFIX):].split("/", 1)[0]
            if segment and is_valid_version(segment):
                versions.add(segment)
        return sorted(versions, key=version_sort_key)
