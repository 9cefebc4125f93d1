"""
Upstream directory listings.

unicode.org serves Apache autoindex pages. ``parse_listing`` turns one page
into typed entries; ``HttpDirectoryLister`` fetches pages with httpx and is
the production implementation of the ``DirectoryLister`` protocol that
discovery and crawling depend on.

Examples:
    >>> html = '<a href="16.0.0/">16.0.0/</a> 2024-09-10 17:00  -'
    >>> parse_listing(html, "/Public")
    [FolderEntry(name='16.0.0', path='/Public/16.0.0', ...)]
"""

from __future__ import annotations

import re
from datetime import datetime
from html.parser import HTMLParser
from typing import Protocol
from urllib.parse import unquote, urlparse

import httpx

from ucd_spine.core.errors import NetworkError, UpstreamError
from ucd_spine.core.logging import get_logger
from ucd_spine.upstream.entries import DirectoryEntry, FileEntry, FolderEntry

logger = get_logger(__name__)

# F=2 selects the fancy (table) autoindex format with modification dates
LISTING_QUERY = {"F": "2"}

_DATE_PATTERNS = [
    (re.compile(r"(\d{4}-\d{2}-\d{2} \d{2}:\d{2})"), "%Y-%m-%d %H:%M"),
    (re.compile(r"(\d{2}-[A-Za-z]{3}-\d{4} \d{2}:\d{2})"), "%d-%b-%Y %H:%M"),
]


class DirectoryLister(Protocol):
    """Anything that can list one upstream directory."""

    async def list(self, url: str) -> list[DirectoryEntry]: ...


class _AutoindexParser(HTMLParser):
    """Collects ``(href, trailing text)`` pairs from an autoindex page."""

    def __init__(self):
        super().__init__()
        self.links: list[list[str]] = []
        self._in_link = False

    def handle_starttag(self, tag, attrs):
        if tag != "a":
            return
        href = dict(attrs).get("href") or ""
        if self._is_navigation(href):
            return
        self.links.append([href, ""])
        self._in_link = True

    def handle_endtag(self, tag):
        if tag == "a":
            self._in_link = False

    def handle_data(self, data):
        if self.links and not self._in_link:
            self.links[-1][1] += data

    @staticmethod
    def _is_navigation(href: str) -> bool:
        # Sort links (?C=N;O=D), parent directory, absolute or external links
        if not href or href.startswith(("?", "#", "/", "../")):
            return True
        return "://" in href or href.startswith("mailto:")


def _parse_date(text: str) -> datetime | None:
    for pattern, fmt in _DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            try:
                return datetime.strptime(match.group(1), fmt)
            except ValueError:
                return None
    return None


def parse_listing(html: str, base_path: str = "") -> list[DirectoryEntry]:
    """Parse an Apache autoindex page into directory entries.

    Args:
        html: Raw listing HTML
        base_path: Path of the listed directory; entry paths are built on it

    Returns:
        Entries in page order. Names carry no leading or trailing slash.
    """
    parser = _AutoindexParser()
    parser.feed(html)
    parser.close()

    base = base_path.rstrip("/")
    entries: list[DirectoryEntry] = []
    seen: set[str] = set()
    for href, trailing in parser.links:
        href = href.split("?", 1)[0].split("#", 1)[0]
        is_dir = href.endswith("/")
        name = unquote(href.strip("/"))
        if not name or name in seen:
            continue
        seen.add(name)
        path = f"{base}/{name}"
        modified = _parse_date(trailing)
        if is_dir:
            entries.append(FolderEntry(name=name, path=path, last_modified=modified))
        else:
            entries.append(FileEntry(name=name, path=path, last_modified=modified))
    return entries


class HttpDirectoryLister:
    """Fetch and parse upstream listings over HTTP.

    Pass an ``httpx.AsyncClient`` to share connections (and to plug in a
    ``MockTransport`` in tests); otherwise one is created and owned here.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        user_agent: str = "ucd-spine",
        timeout: float = 30.0,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent},
            follow_redirects=True,
        )

    async def list(self, url: str) -> list[DirectoryEntry]:
        try:
            response = await self._client.get(url, params=LISTING_QUERY)
        except httpx.HTTPError as e:
            raise NetworkError(f"Failed to fetch listing {url}: {e}", cause=e).with_context(url=url)

        if response.status_code >= 400:
            raise UpstreamError(
                f"Listing {url} returned HTTP {response.status_code}"
            ).with_context(url=url, http_status=response.status_code)

        entries = parse_listing(response.text, urlparse(url).path)
        logger.debug("upstream.listing.fetched", url=url, entries=len(entries))
        return entries

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpDirectoryLister:
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()


__all__ = ["DirectoryLister", "HttpDirectoryLister", "parse_listing", "LISTING_QUERY"]
