"""In-process blob store for tests and dry runs."""

from __future__ import annotations

import hashlib
from datetime import UTC, datetime

from ucd_spine.storage.base import BlobStore, ObjectInfo


class InMemoryBlobStore(BlobStore):
    """Dict-backed store. Each put swaps in a new bytes object, so writes are atomic."""

    def __init__(self) -> None:
        self._objects: dict[str, tuple[bytes, ObjectInfo]] = {}

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> ObjectInfo:
        info = ObjectInfo(
            key=key,
            size_bytes=len(data),
            content_type=content_type,
            last_modified=datetime.now(UTC),
            checksum=hashlib.sha256(data).hexdigest(),
        )
        self._objects[key] = (bytes(data), info)
        return info

    async def get(self, key: str) -> bytes | None:
        entry = self._objects.get(key)
        return entry[0] if entry else None

    async def head(self, key: str) -> ObjectInfo | None:
        entry = self._objects.get(key)
        return entry[1] if entry else None

    async def delete(self, key: str) -> bool:
        return self._objects.pop(key, None) is not None

    async def list(self, prefix: str = "") -> list[ObjectInfo]:
        return [info for key, (_, info) in sorted(self._objects.items()) if key.startswith(prefix)]

    def keys(self) -> list[str]:
        return sorted(self._objects)

    def __len__(self) -> int:
        return len(self._objects)
