"""Bounded in-memory response cache with TTL, compression and LRU eviction.

Entries live in a single :class:`collections.OrderedDict` keyed by
``(cache_type, key)``. Insertion order doubles as recency order: a hit moves
the entry to the end, so eviction pops from the front (least recently used).

One :class:`threading.Lock` guards the table, the byte total and the lookup
counters. Serialisation, compression and report computation all happen
outside the lock so enumeration workers are never blocked behind them.

Ordinary outcomes never raise: a miss is ``(None, False)``, an entry too large
for the ceiling makes :meth:`ResponseCache.set` return ``False``. Only invalid
arguments raise :class:`~blackcat.exceptions.InvalidArgumentError`, and they
do so before any state changes.

See Also:
    :class:`~blackcat.models.CacheConfig` -- TTL, ceiling and compression
    defaults.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from blackcat.cache import codec
from blackcat.cache.stats import build_report
from blackcat.exceptions import InvalidArgumentError
from blackcat.models import (
    CacheConfig,
    CacheEntryInfo,
    CacheReport,
    LookupCounters,
    StatsQuery,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class CacheType:
    """Partition names used by the built-in API wrappers.

    Any non-empty string is accepted as a partition; these are the ones
    blackcat itself writes to.
    """

    MSGRAPH = "MSGraph"
    AZ_BATCH = "AzBatch"
    ROLE_ASSIGNMENT = "RoleAssignment"


@dataclass(frozen=True)
class CacheEntry:
    """A stored payload. Replaced whole, never mutated."""

    cache_type: str
    key: str
    payload: bytes
    compressed: bool
    created_at: datetime
    expires_at: datetime
    size_bytes: int

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def info(self) -> CacheEntryInfo:
        return CacheEntryInfo(
            cache_type=self.cache_type,
            key=self.key,
            compressed=self.compressed,
            created_at=self.created_at,
            expires_at=self.expires_at,
            size_bytes=self.size_bytes,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_name(value: Any, what: str) -> None:
    if not isinstance(value, str) or not value:
        raise InvalidArgumentError(f"{what} must be a non-empty string, got {value!r}")


class ResponseCache:
    """Process-wide memo of API responses keyed by request fingerprint.

    Args:
        config: TTL, size ceiling and compression defaults. A default
            :class:`~blackcat.models.CacheConfig` is used when omitted.
        clock: Returns the current time as an aware ``datetime``. Tests
            inject a fake clock to step past expirations.

    Example::

        from blackcat.cache import CacheType, ResponseCache
        from blackcat.cache.fingerprint import make_key

        cache = ResponseCache()
        key = make_key("GET", "https://graph.microsoft.com/v1.0/users")
        value, found = cache.get(CacheType.MSGRAPH, key)
        if not found:
            value = fetch_users()
            cache.set(CacheType.MSGRAPH, key, value, ttl_minutes=30)
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config or CacheConfig()
        self._clock = clock or _utcnow
        self._lock = threading.Lock()
        self._entries: OrderedDict[tuple[str, str], CacheEntry] = OrderedDict()
        self._total_bytes = 0
        self._counters = LookupCounters()

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def total_bytes(self) -> int:
        """Accounted bytes across every stored entry, expired ones included."""
        with self._lock:
            return self._total_bytes

    @property
    def counters(self) -> LookupCounters:
        """A copy of the hit / miss / eviction counters."""
        with self._lock:
            return self._counters.model_copy()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------ #
    # Core operations
    # ------------------------------------------------------------------ #

    def get(self, cache_type: str, key: str) -> tuple[Any, bool]:
        """Look up an entry.

        Expired entries are removed as a side effect and reported as a miss.
        Compressed payloads are decompressed transparently.

        Args:
            cache_type: Partition name.
            key: Request fingerprint.

        Returns:
            ``(value, True)`` on a hit, ``(None, False)`` otherwise. A
            disabled cache always misses.

        Raises:
            InvalidArgumentError: If *cache_type* or *key* is empty.
        """
        _require_name(cache_type, "cache_type")
        _require_name(key, "key")
        if not self._config.enabled:
            return None, False

        slot = (cache_type, key)
        with self._lock:
            entry = self._entries.get(slot)
            if entry is None:
                self._counters.misses += 1
                return None, False
            if entry.is_expired(self._clock()):
                self._remove(slot)
                self._counters.misses += 1
                logger.debug("Expired %s entry %s removed on lookup", cache_type, key[:12])
                return None, False
            self._entries.move_to_end(slot)
            self._counters.hits += 1

        try:
            return codec.decode(entry.payload, entry.compressed), True
        except codec.DECODE_ERRORS as exc:
            logger.warning("Dropping unreadable %s entry %s: %s", cache_type, key[:12], exc)
            with self._lock:
                if self._entries.get(slot) is entry:
                    self._remove(slot)
            return None, False

    def set(
        self,
        cache_type: str,
        key: str,
        value: Any,
        ttl_minutes: Optional[float] = None,
        compress: Optional[bool] = None,
    ) -> bool:
        """Insert or replace an entry.

        Least-recently-used entries from any partition are evicted until the
        new entry fits under ``max_size_bytes``.

        Args:
            cache_type: Partition name.
            key: Request fingerprint.
            value: JSON-serialisable payload.
            ttl_minutes: Lifetime of the entry. Defaults to
                ``config.expiration_minutes``.
            compress: Gzip the payload when it is larger than
                ``config.compression_threshold_bytes``. Defaults to
                ``config.compression_enabled``.

        Returns:
            ``True`` if the entry was stored. ``False`` when caching is
            disabled, the value cannot be serialised, or the entry alone is
            larger than the ceiling; existing entries are left untouched in
            those cases.

        Raises:
            InvalidArgumentError: On an empty name, or a TTL that is not
                positive or does not give a representable expiry time.
        """
        _require_name(cache_type, "cache_type")
        _require_name(key, "key")
        if ttl_minutes is None:
            ttl_minutes = self._config.expiration_minutes
        if (
            isinstance(ttl_minutes, bool)
            or not isinstance(ttl_minutes, (int, float))
            or not math.isfinite(ttl_minutes)
            or ttl_minutes <= 0
        ):
            raise InvalidArgumentError(f"ttl_minutes must be a positive number, got {ttl_minutes!r}")
        now = self._clock()
        try:
            expires_at = now + timedelta(minutes=ttl_minutes)
        except OverflowError:
            raise InvalidArgumentError(
                f"ttl_minutes={ttl_minutes!r} puts the expiry past the end of the calendar"
            ) from None
        if not self._config.enabled:
            return False

        if compress is None:
            compress = self._config.compression_enabled
        try:
            payload, compressed = codec.encode(
                value, compress, self._config.compression_threshold_bytes
            )
        except (TypeError, ValueError) as exc:
            logger.warning("Not caching %s entry %s: %s", cache_type, key[:12], exc)
            return False

        size = len(payload)
        slot = (cache_type, key)
        with self._lock:
            ceiling = self._config.max_size_bytes
            if size > ceiling:
                self._counters.rejected += 1
                logger.warning(
                    "Entry %s/%s is %d bytes, larger than the %d byte cache; skipped",
                    cache_type, key[:12], size, ceiling,
                )
                return False

            if slot in self._entries:
                self._remove(slot)
            self._evict_until(ceiling - size)

            self._entries[slot] = CacheEntry(
                cache_type=cache_type,
                key=key,
                payload=payload,
                compressed=compressed,
                created_at=now,
                expires_at=expires_at,
                size_bytes=size,
            )
            self._total_bytes += size
        return True

    def invalidate(self, cache_type: str, key: Optional[str] = None) -> int:
        """Remove one entry, or a whole partition when *key* is omitted.

        Returns:
            Number of entries removed; ``0`` when nothing matched.

        Raises:
            InvalidArgumentError: If *cache_type* is empty or *key* is an
                empty string.
        """
        _require_name(cache_type, "cache_type")
        if key is not None:
            _require_name(key, "key")

        with self._lock:
            if key is not None:
                slot = (cache_type, key)
                if slot not in self._entries:
                    return 0
                self._remove(slot)
                return 1
            doomed = [slot for slot in self._entries if slot[0] == cache_type]
            for slot in doomed:
                self._remove(slot)
            return len(doomed)

    def clear(self) -> int:
        """Remove every entry. Counters are kept."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._total_bytes = 0
            return count

    def purge_expired(self) -> int:
        """Physically remove every expired entry and return how many went."""
        with self._lock:
            now = self._clock()
            doomed = [slot for slot, entry in self._entries.items() if entry.is_expired(now)]
            for slot in doomed:
                self._remove(slot)
            return len(doomed)

    def configure(self, config: CacheConfig) -> None:
        """Swap in new settings on a live cache.

        Lowering ``max_size_bytes`` evicts immediately. Existing entries keep
        the TTL and compression they were stored with.
        """
        with self._lock:
            self._config = config
            self._evict_until(config.max_size_bytes)

    def reset_counters(self) -> None:
        with self._lock:
            self._counters = LookupCounters()

    def close(self) -> None:
        """Drop all entries. Safe to call more than once."""
        self.clear()

    # ------------------------------------------------------------------ #
    # Reporting
    # ------------------------------------------------------------------ #

    def snapshot(self) -> list[CacheEntryInfo]:
        """Copy metadata for every entry, expired ones included."""
        with self._lock:
            return [entry.info() for entry in self._entries.values()]

    def stats(self, query: Optional[StatsQuery] = None) -> CacheReport:
        """Build an analytics report without mutating the cache.

        The entry table is copied under the lock; filtering, sorting and
        aggregation run on the copy.

        Args:
            query: Filters, ordering and optional sections. Defaults to an
                unfiltered report sorted by size.

        Raises:
            InvalidArgumentError: If *query* is malformed.
        """
        with self._lock:
            infos = [entry.info() for entry in self._entries.values()]
            counters = self._counters.model_copy()
            config = self._config
            now = self._clock()
        return build_report(infos, query, now=now, config=config, lookups=counters)

    # ------------------------------------------------------------------ #
    # Private helpers (caller holds the lock)
    # ------------------------------------------------------------------ #

    def _remove(self, slot: tuple[str, str]) -> None:
        entry = self._entries.pop(slot)
        self._total_bytes -= entry.size_bytes

    def _evict_until(self, budget: int) -> None:
        """Evict least-recently-used entries until ``total_bytes <= budget``."""
        while self._entries and self._total_bytes > budget:
            slot, entry = self._entries.popitem(last=False)
            self._total_bytes -= entry.size_bytes
            self._counters.evictions += 1
            logger.debug(
                "Evicted %s entry %s (%d bytes)", entry.cache_type, entry.key[:12], entry.size_bytes
            )
