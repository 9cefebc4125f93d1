"""Tests for ManifestRefresher."""

from __future__ import annotations

import pytest
from _support.builders import BASE_URL, FakeLister, files, folders

from ucd_spine.core.errors import NetworkError
from ucd_spine.manifests.models import Manifest
from ucd_spine.manifests.refresh import ManifestRefresher
from ucd_spine.manifests.store import ManifestStore
from ucd_spine.storage.memory import InMemoryBlobStore
from ucd_spine.upstream.crawler import FileTreeCrawler
from ucd_spine.upstream.discovery import VersionDiscoverer


def _upstream() -> dict:
    return {
        f"{BASE_URL}/": folders("16.0.0", "15.1.0", "emoji"),
        f"{BASE_URL}/16.0.0/ucd/": files("UnicodeData.txt", "Unihan.zip", "Docs.PDF")
        + folders("auxiliary"),
        f"{BASE_URL}/16.0.0/ucd/auxiliary/": files("WordBreakProperty.txt"),
        f"{BASE_URL}/15.1.0/ucd/": files("UnicodeData.txt", "Blocks.txt"),
    }


def _refresher(lister, blobs=None, **kwargs) -> ManifestRefresher:
    blobs = blobs if blobs is not None else InMemoryBlobStore()
    kwargs.setdefault("batch_delay_seconds", 0)
    return ManifestRefresher(
        VersionDiscoverer(lister, BASE_URL),
        FileTreeCrawler(lister, BASE_URL),
        ManifestStore(blobs),
        **kwargs,
    )


# ── build_manifest ───────────────────────────────────────────────────────


class TestBuildManifest:
    @pytest.mark.asyncio
    async def test_excludes_archives_and_pdfs(self):
        manifest = await _refresher(FakeLister(_upstream())).build_manifest("16.0.0")
        assert manifest.expected_files == ["UnicodeData.txt", "auxiliary/WordBreakProperty.txt"]

    @pytest.mark.asyncio
    async def test_custom_exclusions(self):
        refresher = _refresher(FakeLister(_upstream()), excluded_extensions=[".txt"])
        manifest = await refresher.build_manifest("16.0.0")
        assert manifest.expected_files == ["Docs.PDF", "Unihan.zip"]

    @pytest.mark.asyncio
    async def test_aliased_versions_share_one_crawl(self):
        pages = _upstream()
        pages[f"{BASE_URL}/"] = folders("15.1.0", "15.1.1")
        lister = FakeLister(pages)
        refresher = _refresher(lister, folder_aliases={"15.1.1": "15.1.0"})

        report = await refresher.refresh()

        assert report.uploaded == 2
        assert lister.calls[f"{BASE_URL}/15.1.0/ucd/"] == 1
        stored = ManifestStore(refresher.store.blobs)
        assert (await stored.get("15.1.1")).expected_files == ["Blocks.txt", "UnicodeData.txt"]


# ── refresh ──────────────────────────────────────────────────────────────


class TestRefresh:
    @pytest.mark.asyncio
    async def test_discovers_and_uploads(self):
        blobs = InMemoryBlobStore()
        report = await _refresher(FakeLister(_upstream()), blobs).refresh()

        assert report.success
        assert report.uploaded == 2
        assert report.skipped == 0
        assert [v["version"] for v in report.versions] == ["16.0.0", "15.1.0"]
        assert await ManifestStore(blobs).list() == ["15.1.0", "16.0.0"]

    @pytest.mark.asyncio
    async def test_unchanged_manifest_is_skipped(self):
        blobs = InMemoryBlobStore()
        await ManifestStore(blobs).put(
            "15.1.0", Manifest(expected_files=["Blocks.txt", "UnicodeData.txt"])
        )
        before = await blobs.head("manifest/15.1.0/manifest.json")

        report = await _refresher(FakeLister(_upstream()), blobs).refresh()

        assert report.uploaded == 1
        assert report.skipped == 1
        assert await blobs.head("manifest/15.1.0/manifest.json") is before

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self):
        blobs = InMemoryBlobStore()
        report = await _refresher(FakeLister(_upstream()), blobs).refresh(dry_run=True)

        assert report.dry_run
        assert report.uploaded == 0
        assert report.skipped == 2
        assert {v["version"]: v["file_count"] for v in report.versions} == {
            "16.0.0": 2,
            "15.1.0": 2,
        }
        assert len(blobs) == 0

    @pytest.mark.asyncio
    async def test_explicit_versions_skip_discovery(self):
        lister = FakeLister(_upstream())
        report = await _refresher(lister).refresh(versions=["15.1.0"])
        assert report.uploaded == 1
        assert lister.calls[f"{BASE_URL}/"] == 0

    @pytest.mark.asyncio
    async def test_failed_version_recorded_and_others_continue(self):
        pages = _upstream()
        pages[f"{BASE_URL}/16.0.0/ucd/"] = NetworkError("connection reset")
        blobs = InMemoryBlobStore()

        report = await _refresher(FakeLister(pages), blobs).refresh()

        assert not report.success
        assert report.uploaded == 1
        (error,) = report.errors
        assert error["version"] == "16.0.0"
        assert "connection reset" in error["reason"]
        assert await ManifestStore(blobs).list() == ["15.1.0"]

    @pytest.mark.asyncio
    async def test_unexpected_error_recorded_per_version(self):
        class BrokenForOneVersion(InMemoryBlobStore):
            async def put(self, key, data, content_type=None):
                if key.startswith("manifest/16.0.0/"):
                    raise RuntimeError("boom")
                return await super().put(key, data, content_type)

        blobs = BrokenForOneVersion()

        report = await _refresher(FakeLister(_upstream()), blobs).refresh()

        assert report.uploaded == 1
        (error,) = report.errors
        assert error["version"] == "16.0.0"
        assert error["reason"] == "RuntimeError: boom"
        assert await ManifestStore(blobs).list() == ["15.1.0"]

    @pytest.mark.asyncio
    async def test_batches_are_spaced(self, monkeypatch):
        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)

        monkeypatch.setattr("ucd_spine.manifests.refresh.asyncio.sleep", fake_sleep)
        pages = _upstream()
        pages[f"{BASE_URL}/"] = folders("16.0.0", "15.1.0", "14.0.0")
        pages[f"{BASE_URL}/14.0.0/ucd/"] = files("a.txt")

        refresher = _refresher(FakeLister(pages), batch_size=2, batch_delay_seconds=0.5)
        report = await refresher.refresh()

        assert report.uploaded == 3
        assert delays == [0.5]

    @pytest.mark.asyncio
    async def test_via_workflow_requires_submitter(self):
        with pytest.raises(ValueError):
            await _refresher(FakeLister(_upstream())).refresh(via_workflow=True)

    def test_report_to_dict(self):
        from ucd_spine.manifests.refresh import RefreshReport

        report = RefreshReport(dry_run=True)
        report.add_error("1.1.0", "boom")
        assert report.to_dict() == {
            "success": False,
            "dry_run": True,
            "uploaded": 0,
            "skipped": 0,
            "errors": [{"version": "1.1.0", "reason": "boom"}],
            "versions": [],
        }


class TestRefreshViaWorkflow:
    """Publishing through the upload workflow."""

    @pytest.mark.asyncio
    async def test_publishes_through_workflow(self, blobs, submitter, cache_backend):
        refresher = _refresher(FakeLister(_upstream()), blobs, submitter=submitter)

        report = await refresher.refresh(versions=["15.1.0"], via_workflow=True)

        assert report.uploaded == 1
        assert (await ManifestStore(blobs).get("15.1.0")).expected_files == [
            "Blocks.txt",
            "UnicodeData.txt",
        ]
        assert not [k for k in blobs.keys() if k.startswith("manifest-tars/")]
        instances = submitter.engine.store.list_instances()
        assert [i.state.value for i in instances] == ["Complete"]
