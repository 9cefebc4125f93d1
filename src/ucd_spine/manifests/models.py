"""Manifest document model."""

from __future__ import annotations

import hashlib
import json

from pydantic import BaseModel, ConfigDict, Field


class Manifest(BaseModel):
    """Files expected to exist for one Unicode version.

    Serialized as ``{"expectedFiles": [...]}``. Paths are relative to the
    version's data folder, without a leading slash.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    expected_files: list[str] = Field(default_factory=list, alias="expectedFiles")

    @property
    def file_count(self) -> int:
        return len(self.expected_files)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)

    def canonical_json(self) -> bytes:
        return json.dumps(self.to_document(), sort_keys=True, separators=(",", ":")).encode("utf-8")

    def etag(self) -> str:
        """Content hash used to skip republishing unchanged manifests."""
        return hashlib.sha256(self.canonical_json()).hexdigest()

    @classmethod
    def from_bytes(cls, data: bytes) -> Manifest:
        return cls.model_validate_json(data)
