"""Version discovery from the upstream root listing."""

from __future__ import annotations

from ucd_spine.core.errors import RootListingError, UcdSpineError
from ucd_spine.core.logging import get_logger
from ucd_spine.core.versions import is_valid_version
from ucd_spine.upstream.entries import FolderEntry
from ucd_spine.upstream.listing import DirectoryLister

logger = get_logger(__name__)


class VersionDiscoverer:
    """Lists the upstream root and keeps entries named like Unicode versions.

    Upstream listing order is preserved. A failed root fetch is fatal to the
    run and surfaces as ``RootListingError``; callers decide whether to retry.
    """

    def __init__(self, lister: DirectoryLister, base_url: str):
        self.lister = lister
        self.base_url = base_url.rstrip("/")

    async def discover(self) -> list[str]:
        url = f"{self.base_url}/"
        try:
            entries = await self.lister.list(url)
        except UcdSpineError as e:
            logger.error("discovery.root_failed", url=url, error=str(e))
            raise RootListingError(
                f"Failed to fetch upstream root listing: {e.message}", cause=e
            ).with_context(url=url, http_status=e.context.http_status) from e

        versions = [
            entry.name
            for entry in entries
            if isinstance(entry, FolderEntry) and is_valid_version(entry.name)
        ]
        logger.info("discovery.complete", url=url, entries=len(entries), versions=len(versions))
        return versions
