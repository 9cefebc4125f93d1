"""
Per-version file tree crawl.

Traversal uses an explicit worklist of pending directory URLs, so depth is
not bounded by the call stack and the crawl can be inspected between
directory visits. A subdirectory that cannot be listed is recorded as a
``SubtreeFetchError`` and skipped; its siblings are still crawled. Only a
failure of the version root itself fails the crawl.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from ucd_spine.core.errors import SubtreeFetchError, UcdSpineError, UpstreamError
from ucd_spine.core.logging import get_logger
from ucd_spine.core.versions import version_root_url
from ucd_spine.upstream.entries import FileEntry
from ucd_spine.upstream.listing import DirectoryLister

logger = get_logger(__name__)


@dataclass
class CrawlResult:
    """Files found under one version root (relative, no leading slash)."""

    version: str
    root_url: str
    files: list[str] = field(default_factory=list)
    failures: list[SubtreeFetchError] = field(default_factory=list)
    directories_visited: int = 0

    @property
    def complete(self) -> bool:
        return not self.failures


class FileTreeCrawler:
    """Enumerates every file under a version's upstream directory."""

    def __init__(self, lister: DirectoryLister, base_url: str):
        self.lister = lister
        self.base_url = base_url.rstrip("/")

    def root_url(self, version: str) -> str:
        return version_root_url(self.base_url, version)

    async def crawl(self, version: str, root_url: str | None = None) -> CrawlResult:
        """Crawl ``root_url`` (default: the version's data folder).

        Raises:
            UpstreamError: If the root directory itself cannot be listed
        """
        root = (root_url or self.root_url(version)).rstrip("/") + "/"
        result = CrawlResult(version=version, root_url=root)

        # (directory url, path prefix relative to the version root)
        worklist: deque[tuple[str, str]] = deque([(root, "")])
        while worklist:
            url, prefix = worklist.popleft()
            try:
                entries = await self.lister.list(url)
            except Exception as e:
                reason = e.message if isinstance(e, UcdSpineError) else f"{type(e).__name__}: {e}"
                if url == root:
                    raise UpstreamError(
                        f"Failed to list version root {url}: {reason}", cause=e
                    ).with_context(version=version, url=url) from e
                failure = SubtreeFetchError(
                    f"Skipped {prefix or url}: {reason}", cause=e
                ).with_context(version=version, url=url)
                result.failures.append(failure)
                logger.warning("crawl.subtree_failed", version=version, url=url, error=reason)
                continue

            result.directories_visited += 1
            for entry in entries:
                relative = f"{prefix}{entry.name}"
                if isinstance(entry, FileEntry):
                    result.files.append(relative)
                else:
                    worklist.append((f"{url}{entry.name}/", f"{relative}/"))

        logger.info(
            "crawl.complete",
            version=version,
            files=len(result.files),
            directories=result.directories_visited,
            failed_subtrees=len(result.failures),
        )
        return result
