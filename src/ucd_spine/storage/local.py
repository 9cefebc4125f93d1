"""Local filesystem blob store."""

import asyncio
import hashlib
import mimetypes
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

import structlog

from ucd_spine.core.errors import StorageError
from ucd_spine.storage.base import BlobStore, ObjectInfo

logger = structlog.get_logger()


class LocalBlobStore(BlobStore):
    """
    Filesystem blob store.

    Keys map to paths under ``base_path``. Writes go to a temporary file in
    the target directory and are moved into place with ``os.replace``.
    Blocking filesystem calls run in a worker thread.
    """

    def __init__(self, base_path: str | Path = "./data/blobs"):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info("local_blob_store.initialized", base_path=str(self.base_path))

    def _resolve_path(self, key: str) -> Path:
        """Resolve a key to an absolute path inside ``base_path``."""
        clean_key = Path(key).as_posix().lstrip("/")
        full_path = self.base_path / clean_key

        try:
            full_path.resolve().relative_to(self.base_path)
        except ValueError:
            raise StorageError(
                f"Invalid key: {key} (outside base directory)", retryable=False
            ).with_context(key=key)

        return full_path

    def _info(self, key: str, path: Path) -> ObjectInfo:
        stat = path.stat()
        content_type, _ = mimetypes.guess_type(path.name)
        return ObjectInfo(
            key=key,
            size_bytes=stat.st_size,
            content_type=content_type,
            last_modified=datetime.fromtimestamp(stat.st_mtime, UTC),
        )

    def _write(self, key: str, data: bytes, content_type: str | None) -> ObjectInfo:
        full_path = self._resolve_path(key)
        full_path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=full_path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, full_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        return ObjectInfo(
            key=key,
            size_bytes=len(data),
            content_type=content_type or mimetypes.guess_type(full_path.name)[0],
            last_modified=datetime.now(UTC),
            checksum=hashlib.sha256(data).hexdigest(),
        )

    def _read(self, key: str) -> bytes | None:
        full_path = self._resolve_path(key)
        if not full_path.is_file():
            return None
        return full_path.read_bytes()

    def _head(self, key: str) -> ObjectInfo | None:
        full_path = self._resolve_path(key)
        if not full_path.is_file():
            return None
        return self._info(key, full_path)

    def _delete(self, key: str) -> bool:
        full_path = self._resolve_path(key)
        if not full_path.is_file():
            return False
        full_path.unlink()
        return True

    def _list(self, prefix: str) -> list[ObjectInfo]:
        results = []
        for file_path in self.base_path.rglob("*"):
            if not file_path.is_file() or file_path.name.startswith(".tmp-"):
                continue
            key = file_path.relative_to(self.base_path).as_posix()
            if key.startswith(prefix):
                results.append(self._info(key, file_path))
        return sorted(results, key=lambda info: info.key)

    async def _call(self, op: str, key: str, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except StorageError:
            raise
        except OSError as e:
            raise StorageError(f"Local {op} failed for {key}: {e}", cause=e).with_context(key=key)

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> ObjectInfo:
        info = await self._call("put", key, self._write, key, data, content_type)
        logger.debug("local_blob_store.put", key=key, size=len(data))
        return info

    async def get(self, key: str) -> bytes | None:
        return await self._call("get", key, self._read, key)

    async def head(self, key: str) -> ObjectInfo | None:
        return await self._call("head", key, self._head, key)

    async def delete(self, key: str) -> bool:
        deleted = await self._call("delete", key, self._delete, key)
        if deleted:
            logger.debug("local_blob_store.deleted", key=key)
        return deleted

    async def list(self, prefix: str = "") -> list[ObjectInfo]:
        return await self._call("list", prefix, self._list, prefix.lstrip("/"))
