"""Upstream UCD directory index: listing, version discovery and crawling."""

from ucd_spine.upstream.crawler import CrawlResult, FileTreeCrawler
from ucd_spine.upstream.discovery import VersionDiscoverer
from ucd_spine.upstream.entries import DirectoryEntry, FileEntry, FolderEntry
from ucd_spine.upstream.listing import DirectoryLister, HttpDirectoryLister, parse_listing

__all__ = [
    "CrawlResult",
    "FileTreeCrawler",
    "VersionDiscoverer",
    "DirectoryEntry",
    "FileEntry",
    "FolderEntry",
    "DirectoryLister",
    "HttpDirectoryLister",
    "parse_listing",
]
