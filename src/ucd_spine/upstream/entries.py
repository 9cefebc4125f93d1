"""Directory entries produced by the upstream listing parser.

A strict tagged union: every entry is either a ``FileEntry`` or a
``FolderEntry``, discriminated by ``type``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


@dataclass(frozen=True)
class FileEntry:
    name: str
    path: str
    last_modified: datetime | None = None
    type: Literal["file"] = "file"


@dataclass(frozen=True)
class FolderEntry:
    name: str
    path: str
    last_modified: datetime | None = None
    type: Literal["directory"] = "directory"


DirectoryEntry = FileEntry | FolderEntry

__all__ = ["FileEntry", "FolderEntry", "DirectoryEntry"]
