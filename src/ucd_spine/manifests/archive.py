"""Pack a manifest into an upload archive for the manifest-upload workflow."""

from __future__ import annotations

import gzip as gzip_module
import io
import tarfile

from ucd_spine.manifests.models import Manifest
from ucd_spine.manifests.store import MANIFEST_FILENAME


def build_manifest_archive(manifest: Manifest, gzip: bool = False) -> bytes:
    """Tar containing a single ``manifest.json``."""
    content = manifest.canonical_json()
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tf:
        info = tarfile.TarInfo(name=MANIFEST_FILENAME)
        info.size = len(content)
        info.mode = 0o644
        tf.addfile(info, io.BytesIO(content))
    archive = buffer.getvalue()
    return gzip_module.compress(archive) if gzip else archive


__all__ = ["build_manifest_archive"]
