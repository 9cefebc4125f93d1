"""Unicode version names as they appear upstream.

Upstream directory names are irregular (``16.0.0``, ``4.1.0``,
``3.2-Update1``), so versions stay validated strings rather than a
structured type. Helpers here cover validation, ordering and the
``ucd/`` sub-folder that newer versions keep their data under.
"""

from __future__ import annotations

import re

VERSION_PATTERN = re.compile(r"^(\d+)\.(\d+)(?:\.(\d+))?(?:-Update\d*)?$")
UPLOAD_VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")

# 4.1.0 is the first release with the data under /{version}/ucd/
_UCD_FOLDER_SINCE = (4, 1, 0)


def is_valid_version(name: str) -> bool:
    return VERSION_PATTERN.match(name) is not None


def is_valid_upload_version(version: str) -> bool:
    """Archive submission only accepts strict ``X.Y.Z``."""
    return UPLOAD_VERSION_PATTERN.match(version) is not None


def version_tuple(version: str) -> tuple[int, int, int]:
    match = VERSION_PATTERN.match(version)
    if match is None:
        raise ValueError(f"not a Unicode version: {version!r}")
    major, minor, patch = match.groups()
    return int(major), int(minor), int(patch or 0)


def version_sort_key(version: str) -> tuple[int, int, int, str]:
    """Sort key; legacy ``-UpdateN`` suffixes order after the base release."""
    return (*version_tuple(version), version)


def has_ucd_folder(version: str) -> bool:
    return version_tuple(version) >= _UCD_FOLDER_SINCE


def version_root_path(version: str) -> str:
    """Upstream path of a version's data folder, e.g. ``/16.0.0/ucd``."""
    if has_ucd_folder(version):
        return f"/{version}/ucd"
    return f"/{version}"


def version_root_url(base_url: str, version: str) -> str:
    return f"{base_url.rstrip('/')}{version_root_path(version)}"


def workflow_slug(version: str) -> str:
    """Version rendered safe for workflow ids (dots become underscores)."""
    return version.replace(".", "_")


__all__ = [
    "VERSION_PATTERN",
    "UPLOAD_VERSION_PATTERN",
    "is_valid_version",
    "is_valid_upload_version",
    "version_tuple",
    "version_sort_key",
    "has_ucd_folder",
    "version_root_path",
    "version_root_url",
    "workflow_slug",
]
