"""HTTP cache invalidation triggered after uploads."""

from ucd_spine.cache.invalidator import (
    CacheBackend,
    CacheInvalidator,
    HttpPurgeBackend,
    InMemoryCacheBackend,
    PurgeReport,
)

__all__ = [
    "CacheBackend",
    "CacheInvalidator",
    "HttpPurgeBackend",
    "InMemoryCacheBackend",
    "PurgeReport",
]
