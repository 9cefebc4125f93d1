"""
Archive handling for manifest uploads.

``extract_archive`` turns an uploaded (optionally gzip-wrapped) tar into
``ExtractedFile`` entries, one per distinct file name.
"""

from __future__ import annotations

import base64
import gzip as gzip_module
import io
import posixpath
import tarfile
import zlib
from dataclasses import dataclass
from typing import Any

from ucd_spine.core.errors import EmptyArchiveError, InvalidArchiveError
from ucd_spine.core.logging import get_logger

logger = get_logger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


@dataclass(frozen=True)
class ExtractedFile:
    """One file taken out of an archive. Lives only for one workflow run."""

    name: str
    data: bytes

    def to_json(self) -> dict[str, Any]:
        return {"name": self.name, "data": base64.b64encode(self.data).decode("ascii")}

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> ExtractedFile:
        return cls(name=payload["name"], data=base64.b64decode(payload["data"]))


def is_gzip(data: bytes) -> bool:
    return data[:2] == GZIP_MAGIC


def _normalize_name(name: str) -> str | None:
    """Strip a leading ``./``; reject names that would leave the version prefix."""
    while name.startswith("./"):
        name = name[2:]
    if not name or name.startswith("/"):
        return None
    if ".." in name.split("/"):
        return None
    return posixpath.normpath(name)


def extract_archive(data: bytes) -> list[ExtractedFile]:
    """Extract regular, non-empty files from a tar (gzip detected by magic bytes).

    Raises:
        InvalidArchiveError: If the bytes are not a readable archive
        EmptyArchiveError: If no usable file entries remain
    """
    payload = data
    if is_gzip(data):
        try:
            payload = gzip_module.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise InvalidArchiveError(f"Invalid gzip data: {e}", cause=e) from e

    # Keyed by name: a later entry with the same path replaces an earlier one
    files: dict[str, ExtractedFile] = {}
    try:
        with tarfile.open(fileobj=io.BytesIO(payload), mode="r:") as tf:
            for member in tf:
                if not member.isreg() or member.size == 0:
                    continue
                name = _normalize_name(member.name)
                if name is None:
                    logger.warning("archive.entry_skipped", entry=member.name, reason="unsafe_path")
                    continue
                fh = tf.extractfile(member)
                if fh is None:
                    continue
                content = fh.read()
                if not content:
                    continue
                files[name] = ExtractedFile(name=name, data=content)
    except tarfile.TarError as e:
        raise InvalidArchiveError(f"Invalid TAR archive: {e}", cause=e) from e

    if not files:
        raise EmptyArchiveError()

    logger.info("archive.extracted", files=len(files), size=len(data))
    return list(files.values())


__all__ = [
    "ExtractedFile",
    "extract_archive",
    "is_gzip",
]
