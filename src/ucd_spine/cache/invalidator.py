"""
Best-effort invalidation of version-scoped HTTP cache entries.

After an upload, the API's cached responses for that version are stale.
``CacheInvalidator.purge_version`` deletes them from every named cache.
It is a fire-and-record task: each failure becomes a ``BestEffortError``
in the returned ``PurgeReport`` and is logged, and the call itself never
raises.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import urlparse

import httpx

from ucd_spine.core.errors import BestEffortError, NetworkError
from ucd_spine.core.logging import get_logger

logger = get_logger(__name__)

CACHE_NAMES = ("v1_versions", "v1_files", "ucd_store")
VERSION_ROUTES = ("/api/v1/versions/{version}", "/api/v1/files/{version}")
TASK_KEY_HEADER = "X-UCDJS-Task-Key"


class CacheBackend(Protocol):
    """A named-cache API that can drop one entry by URL."""

    async def delete(self, cache_name: str, url: str) -> bool: ...


class InMemoryCacheBackend:
    """Dict-of-sets cache for tests and local runs."""

    def __init__(self) -> None:
        self.entries: dict[str, set[str]] = {}

    def add(self, cache_name: str, url: str) -> None:
        self.entries.setdefault(cache_name, set()).add(url)

    async def delete(self, cache_name: str, url: str) -> bool:
        cache = self.entries.get(cache_name, set())
        if url in cache:
            cache.discard(url)
            return True
        return False


class HttpPurgeBackend:
    """Purges through the API's ``/_tasks/purge-cache`` endpoint."""

    def __init__(
        self,
        origin: str,
        task_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.origin = origin.rstrip("/")
        self._headers = {TASK_KEY_HEADER: task_key} if task_key else {}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def delete(self, cache_name: str, url: str) -> bool:
        endpoint = f"{self.origin}/_tasks/purge-cache"
        try:
            response = await self._client.get(
                endpoint,
                params={"cacheName": cache_name, "path": urlparse(url).path},
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Purge request failed: {e}", cause=e).with_context(url=endpoint) from e
        if response.status_code >= 400:
            raise NetworkError(
                f"Purge of {cache_name} returned HTTP {response.status_code}"
            ).with_context(url=endpoint, http_status=response.status_code)
        return True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


@dataclass
class PurgeReport:
    version: str
    purged: list[dict[str, str]] = field(default_factory=list)
    failures: list[BestEffortError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "purged": self.purged,
            "failures": [f.to_dict() for f in self.failures],
        }


class CacheInvalidator:
    """Purges every version-scoped route from every named cache."""

    def __init__(
        self,
        backend: CacheBackend,
        origin: str,
        cache_names: tuple[str, ...] = CACHE_NAMES,
        routes: tuple[str, ...] = VERSION_ROUTES,
    ):
        self.backend = backend
        self.origin = origin.rstrip("/")
        self.cache_names = cache_names
        self.routes = routes

    def urls_for(self, version: str) -> list[str]:
        return [f"{self.origin}{route.format(version=version)}" for route in self.routes]

    async def _purge_cache(self, cache_name: str, version: str, report: PurgeReport) -> None:
        for url in self.urls_for(version):
            try:
                await self.backend.delete(cache_name, url)
            except Exception as e:
                failure = BestEffortError(
                    f"Failed to purge {cache_name} cache: {e}", cause=e
                ).with_context(version=version, url=url, cache=cache_name)
                report.failures.append(failure)
                logger.warning(
                    "cache.purge_failed", cache=cache_name, version=version, url=url, error=str(e)
                )
                return
            report.purged.append({"cache": cache_name, "url": url})
        logger.info("cache.purged", cache=cache_name, version=version)

    async def purge_version(self, version: str) -> PurgeReport:
        """Purge all caches concurrently. Never raises."""
        report = PurgeReport(version=version)
        await asyncio.gather(
            *(self._purge_cache(name, version, report) for name in self.cache_names)
        )
        return report


__all__ = [
    "CACHE_NAMES",
    "VERSION_ROUTES",
    "CacheBackend",
    "InMemoryCacheBackend",
    "HttpPurgeBackend",
    "PurgeReport",
    "CacheInvalidator",
]
