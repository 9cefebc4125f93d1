"""Per-version manifests: model, durable store and upstream refresh."""

from ucd_spine.manifests.models import Manifest
from ucd_spine.manifests.store import ManifestStore, manifest_key, version_prefix
from ucd_spine.manifests.refresh import ManifestRefresher, RefreshReport

__all__ = [
    "Manifest",
    "ManifestStore",
    "manifest_key",
    "version_prefix",
    "ManifestRefresher",
    "RefreshReport",
]
