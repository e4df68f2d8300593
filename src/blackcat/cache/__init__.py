"""In-memory response caching for blackcat.

This package provides :class:`ResponseCache`, a bounded, thread-safe memo of
API responses partitioned by cache type (``MSGraph``, ``AzBatch``,
``RoleAssignment``) with per-entry TTL, optional gzip compression, LRU
eviction under a byte ceiling, and an analytics report.

The cache is consumed by :class:`~blackcat.client.AzureClient` and is
controlled by the ``cache`` section of :class:`~blackcat.models.GlobalConfig`.
"""

from blackcat.cache.cache import CacheEntry, CacheType, ResponseCache
from blackcat.cache.fingerprint import make_key

__all__ = ["CacheEntry", "CacheType", "ResponseCache", "make_key"]
