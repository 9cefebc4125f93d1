"""
Upstream-driven manifest refresh.

Discovers versions (unless given), crawls them in polite batches, builds
one manifest per version and publishes the ones whose content changed.
A version that fails is reported and the rest carry on.

Publishing goes either straight to the ``ManifestStore`` or, with
``via_workflow``, through the upload workflow as a one-file archive so the
refreshed manifest gets the same validation and cache purge as any other
upload.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ucd_spine.core.errors import UcdSpineError
from ucd_spine.core.logging import get_logger
from ucd_spine.core.versions import version_root_url, version_sort_key
from ucd_spine.execution.batching import chunked
from ucd_spine.manifests.models import Manifest
from ucd_spine.manifests.store import ManifestStore
from ucd_spine.upstream.crawler import CrawlResult, FileTreeCrawler
from ucd_spine.upstream.discovery import VersionDiscoverer
from ucd_spine.manifests.archive import build_manifest_archive

if TYPE_CHECKING:
    from ucd_spine.workflows.submission import ArchiveSubmitter

logger = get_logger(__name__)


@dataclass
class RefreshReport:
    """Outcome of one refresh run."""

    dry_run: bool = False
    uploaded: int = 0
    skipped: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)
    versions: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def add_error(self, version: str, reason: str) -> None:
        self.errors.append({"version": version, "reason": reason})

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "dry_run": self.dry_run,
            "uploaded": self.uploaded,
            "skipped": self.skipped,
            "errors": self.errors,
            "versions": self.versions,
        }


class ManifestRefresher:
    """Rebuilds manifests from the upstream file tree.

    Args:
        discoverer: Source of version names when none are given
        crawler: Per-version file tree crawler
        store: Where manifests are read (for change detection) and written
        batch_size: Versions crawled concurrently
        batch_delay_seconds: Pause between crawl batches
        excluded_extensions: File suffixes left out of manifests
        folder_aliases: Versions whose data lives in another version's folder
        submitter: Required for ``via_workflow`` publishing
    """

    def __init__(
        self,
        discoverer: VersionDiscoverer,
        crawler: FileTreeCrawler,
        store: ManifestStore,
        *,
        batch_size: int = 5,
        batch_delay_seconds: float = 0.5,
        excluded_extensions: Sequence[str] = (".zip", ".pdf"),
        folder_aliases: dict[str, str] | None = None,
        submitter: ArchiveSubmitter | None = None,
    ):
        self.discoverer = discoverer
        self.crawler = crawler
        self.store = store
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self.excluded_extensions = tuple(ext.lower() for ext in excluded_extensions)
        self.folder_aliases = dict(folder_aliases or {})
        self.submitter = submitter

    def _is_excluded(self, path: str) -> bool:
        return path.lower().endswith(self.excluded_extensions)

    async def build_manifest(
        self,
        version: str,
        crawls: dict[str, asyncio.Task[CrawlResult]] | None = None,
    ) -> Manifest:
        """Crawl one version and turn the file list into a manifest.

        ``crawls`` is shared across a run so versions that resolve to the
        same upstream folder are crawled once.
        """
        crawls = {} if crawls is None else crawls
        folder = self.folder_aliases.get(version, version)
        root_url = version_root_url(self.crawler.base_url, folder)

        task = crawls.get(root_url)
        if task is None:
            task = asyncio.ensure_future(self.crawler.crawl(folder, root_url))
            crawls[root_url] = task
        else:
            logger.debug("refresh.crawl_reused", version=version, folder=folder)
        result = await task

        files = sorted(path for path in result.files if not self._is_excluded(path))
        return Manifest(expected_files=files)

    async def refresh(
        self,
        versions: Sequence[str] | None = None,
        dry_run: bool = False,
        via_workflow: bool = False,
    ) -> RefreshReport:
        """Rebuild and publish manifests.

        Raises:
            RootListingError: If versions must be discovered and the root listing fails
        """
        if via_workflow and self.submitter is None:
            raise ValueError("via_workflow requires an ArchiveSubmitter")

        targets = list(versions) if versions else await self.discoverer.discover()
        report = RefreshReport(dry_run=dry_run)
        crawls: dict[str, asyncio.Task[CrawlResult]] = {}
        logger.info(
            "refresh.start", versions=len(targets), dry_run=dry_run, via_workflow=via_workflow
        )

        for index, batch in enumerate(chunked(targets, self.batch_size)):
            if index > 0 and self.batch_delay_seconds > 0:
                await asyncio.sleep(self.batch_delay_seconds)
            await asyncio.gather(
                *(self._refresh_one(v, crawls, report, dry_run, via_workflow) for v in batch)
            )

        report.versions.sort(key=lambda v: version_sort_key(v["version"]), reverse=True)
        logger.info(
            "refresh.complete",
            uploaded=report.uploaded,
            skipped=report.skipped,
            errors=len(report.errors),
        )
        return report

    async def _refresh_one(
        self,
        version: str,
        crawls: dict[str, asyncio.Task[CrawlResult]],
        report: RefreshReport,
        dry_run: bool,
        via_workflow: bool,
    ) -> None:
        try:
            manifest = await self.build_manifest(version, crawls)
            if dry_run:
                report.skipped += 1
                report.versions.append({"version": version, "file_count": manifest.file_count})
                return

            current = await self.store.get(version)
            if current is not None and current.etag() == manifest.etag():
                logger.info("refresh.unchanged", version=version, etag=manifest.etag())
                report.skipped += 1
                return

            await self._publish(version, manifest, via_workflow)
        except Exception as e:
            reason = e.message if isinstance(e, UcdSpineError) else f"{type(e).__name__}: {e}"
            logger.warning("refresh.version_failed", version=version, error=reason)
            report.add_error(version, reason)
            return

        report.uploaded += 1
        report.versions.append({"version": version, "file_count": manifest.file_count})

    async def _publish(self, version: str, manifest: Manifest, via_workflow: bool) -> None:
        if not via_workflow or self.submitter is None:
            await self.store.put(version, manifest)
            return

        archive = build_manifest_archive(manifest)
        receipt = await self.submitter.submit(version, archive, "application/x-tar")
        instance = await self.submitter.engine.run(receipt.workflow_id)
        if instance.error:
            raise UcdSpineError(
                f"Upload workflow {instance.id} ended {instance.state.value}: {instance.error}"
            ).with_context(workflow_id=instance.id, version=version)


__all__ = ["ManifestRefresher", "RefreshReport"]
