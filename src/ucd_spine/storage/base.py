"""Base blob store interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass
class ObjectInfo:
    """Information about a stored object."""

    key: str
    size_bytes: int
    content_type: str | None = None
    last_modified: datetime | None = None
    checksum: str | None = None


class BlobStore(ABC):
    """
    Abstract base class for key-addressable object storage.

    Holds submitted archives, uploaded UCD files and manifest documents.
    Implementations must be safe under concurrent writes to disjoint keys;
    no cross-key locking is expected.
    """

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str | None = None) -> ObjectInfo:
        """
        Write an object, replacing any previous object at ``key``.

        Readers never observe a partially written object.

        Raises:
            StorageError: If the backend call fails
        """
        ...

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Read an object; ``None`` when it does not exist."""
        ...

    @abstractmethod
    async def head(self, key: str) -> ObjectInfo | None:
        """Existence check without reading the body."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete an object.

        Returns:
            True if deleted, False if it didn't exist (not an error)
        """
        ...

    @abstractmethod
    async def list(self, prefix: str = "") -> list[ObjectInfo]:
        """List objects whose key starts with ``prefix``, sorted by key."""
        ...
