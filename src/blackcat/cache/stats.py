"""Analytics over a snapshot of cache entry metadata.

:func:`build_report` is a pure function: it takes the list of
:class:`~blackcat.models.CacheEntryInfo` copied out of the cache and a
reference time, and returns a :class:`~blackcat.models.CacheReport`. Keeping
it free of the cache itself is what lets
:meth:`~blackcat.cache.ResponseCache.stats` release the lock before any of
this runs.

Recommendations are fixed threshold rules and purely advisory.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Optional

from blackcat.exceptions import InvalidArgumentError
from blackcat.models import (
    MIB,
    CacheConfig,
    CacheEntryInfo,
    CacheEntryRecord,
    CacheReport,
    GrowthRate,
    LookupCounters,
    PartitionStats,
    SizeBucket,
    SortKey,
    StatsQuery,
)

EXPIRATION_RATE_THRESHOLD = 0.4
"""Expired / total above which a longer TTL is suggested."""

LARGE_ENTRY_BYTES = 100 * 1024
"""Average uncompressed entry size above which compression is suggested."""

HISTOGRAM_EDGES_MB = (0.0, 0.2, 0.5, 1.0, 2.0)
"""Lower edges of the size histogram buckets; the last bucket is open-ended."""


def _minutes(delta_seconds: float) -> float:
    return round(delta_seconds / 60.0, 2)


def _check_query(query: StatsQuery) -> None:
    for name in ("min_size_bytes", "max_size_bytes"):
        value = getattr(query, name)
        if value is not None and value < 0:
            raise InvalidArgumentError(f"{name} must not be negative, got {value}")
    if (
        query.min_size_bytes is not None
        and query.max_size_bytes is not None
        and query.min_size_bytes > query.max_size_bytes
    ):
        raise InvalidArgumentError(
            f"min_size_bytes ({query.min_size_bytes}) is larger than "
            f"max_size_bytes ({query.max_size_bytes})"
        )
    if query.max_age_minutes is not None and query.max_age_minutes < 0:
        raise InvalidArgumentError(f"max_age_minutes must not be negative, got {query.max_age_minutes}")
    if query.top is not None and query.top <= 0:
        raise InvalidArgumentError(f"top must be positive, got {query.top}")
    if query.trend_window_minutes is not None and query.trend_window_minutes <= 0:
        raise InvalidArgumentError(
            f"trend_window_minutes must be positive, got {query.trend_window_minutes}"
        )


def _matches(info: CacheEntryInfo, query: StatsQuery, now: datetime) -> bool:
    if query.cache_type is not None and info.cache_type != query.cache_type:
        return False
    if query.compressed is not None and info.compressed != query.compressed:
        return False
    if query.min_size_bytes is not None and info.size_bytes < query.min_size_bytes:
        return False
    if query.max_size_bytes is not None and info.size_bytes > query.max_size_bytes:
        return False
    if query.max_age_minutes is not None:
        age = (now - info.created_at).total_seconds() / 60.0
        if age > query.max_age_minutes:
            return False
    return True


def _to_record(info: CacheEntryInfo, now: datetime) -> CacheEntryRecord:
    return CacheEntryRecord(
        cache_type=info.cache_type,
        key=info.key,
        compressed=info.compressed,
        created_at=info.created_at,
        expires_at=info.expires_at,
        size_bytes=info.size_bytes,
        size_mb=round(info.size_bytes / MIB, 4),
        age_minutes=_minutes((now - info.created_at).total_seconds()),
        expires_in_minutes=_minutes((info.expires_at - now).total_seconds()),
        is_expired=now >= info.expires_at,
    )


def size_histogram(sizes_bytes: Sequence[int]) -> list[SizeBucket]:
    """Bucket entry sizes into the fixed MB ranges of :data:`HISTOGRAM_EDGES_MB`.

    A size equal to a bucket's upper edge falls into the next bucket.
    """
    buckets: list[SizeBucket] = []
    for i, lower in enumerate(HISTOGRAM_EDGES_MB):
        upper: Optional[float] = (
            HISTOGRAM_EDGES_MB[i + 1] if i + 1 < len(HISTOGRAM_EDGES_MB) else None
        )
        label = f"{lower:g}-{upper:g} MB" if upper is not None else f"{lower:g}+ MB"
        buckets.append(SizeBucket(label=label, lower_mb=lower, upper_mb=upper))

    for size in sizes_bytes:
        size_mb = size / MIB
        for bucket in reversed(buckets):
            if size_mb >= bucket.lower_mb:
                bucket.count += 1
                break

    total = len(sizes_bytes)
    for bucket in buckets:
        bucket.percentage = round(bucket.count * 100.0 / total, 2) if total else 0.0
    return buckets


def _growth(
    infos: Sequence[CacheEntryInfo], now: datetime, window_minutes: float
) -> GrowthRate:
    recent = [
        info for info in infos
        if 0 <= (now - info.created_at).total_seconds() <= window_minutes * 60
    ]
    entries = len(recent)
    total = sum(info.size_bytes for info in recent)
    per_hour = 60.0 / window_minutes
    return GrowthRate(
        window_minutes=window_minutes,
        entries=entries,
        total_bytes=total,
        entries_per_hour=round(entries * per_hour, 2),
        bytes_per_hour=round(total * per_hour, 2),
    )


def recommendations(
    report: CacheReport,
    config: CacheConfig,
    uncompressed_sizes: Sequence[int] = (),
) -> list[str]:
    """Advisory tuning hints derived from a finished report.

    Args:
        report: Report with its aggregate fields filled in.
        config: Supplies the TTL and memory warning level quoted in hints.
        uncompressed_sizes: Sizes of every uncompressed entry in scope.
    """
    hints: list[str] = []
    if report.total_entries == 0:
        return hints

    if report.expiration_rate > EXPIRATION_RATE_THRESHOLD:
        hints.append(
            f"{report.expiration_rate:.0%} of entries are expired; consider a longer "
            f"TTL (currently {config.expiration_minutes:g} minutes)."
        )

    uncompressed_count = len(uncompressed_sizes)
    uncompressed_avg = sum(uncompressed_sizes) / uncompressed_count if uncompressed_count else 0.0
    if uncompressed_count > 0 and uncompressed_avg > LARGE_ENTRY_BYTES:
        hints.append(
            f"{uncompressed_count} uncompressed entries average "
            f"{uncompressed_avg / 1024:.0f} KB; consider enabling compression."
        )

    if report.total_bytes > config.memory_warning_bytes:
        hints.append(
            f"Cache holds {report.total_bytes / MIB:.1f} MB, above the "
            f"{config.memory_warning_bytes / MIB:.0f} MB warning level; consider a lower "
            f"max size or shorter TTLs so eviction kicks in earlier."
        )
    return hints


def build_report(
    entries: Sequence[CacheEntryInfo],
    query: Optional[StatsQuery] = None,
    *,
    now: datetime,
    config: Optional[CacheConfig] = None,
    lookups: Optional[LookupCounters] = None,
) -> CacheReport:
    """Compute a :class:`~blackcat.models.CacheReport` from entry metadata.

    Args:
        entries: Snapshot of the cache, expired entries included.
        query: Filters, ordering, top-N cap and optional sections. ``top``
            caps only the ``entries`` rows; aggregates cover every entry
            that passed the filters.
        now: Reference time for expiry and age calculations.
        config: Thresholds for recommendations. Defaults to
            :class:`~blackcat.models.CacheConfig`.
        lookups: Observed hit/miss counters to attach.

    Returns:
        The report. An empty or fully filtered-out cache yields a report
        with ``total_entries == 0`` and no rows.

    Raises:
        InvalidArgumentError: If *query* is malformed.
    """
    query = query or StatsQuery()
    config = config or CacheConfig()
    _check_query(query)

    selected = [info for info in entries if _matches(info, query, now)]
    records = [_to_record(info, now) for info in selected]

    report = CacheReport(
        generated_at=now,
        max_size_bytes=config.max_size_bytes,
        lookups=lookups or LookupCounters(),
    )
    total = len(records)
    report.total_entries = total
    report.valid_entries = sum(1 for r in records if not r.is_expired)
    report.expired_entries = total - report.valid_entries
    report.total_bytes = sum(r.size_bytes for r in records)
    report.compressed_entries = sum(1 for r in records if r.compressed)
    if total:
        report.hit_rate = round(report.valid_entries / total, 4)
        report.expiration_rate = round(report.expired_entries / total, 4)
        report.average_entry_bytes = round(report.total_bytes / total, 2)
        report.compression_ratio = round(report.compressed_entries / total, 4)
        report.oldest_entry = min(r.created_at for r in records)
        report.newest_entry = max(r.created_at for r in records)
        report.age_span_minutes = _minutes(
            (report.newest_entry - report.oldest_entry).total_seconds()
        )

    partitions: dict[str, PartitionStats] = {}
    for r in records:
        part = partitions.setdefault(r.cache_type, PartitionStats(cache_type=r.cache_type))
        part.total += 1
        part.expired += int(r.is_expired)
        part.valid += int(not r.is_expired)
        part.compressed += int(r.compressed)
        part.total_bytes += r.size_bytes
    report.partitions = [partitions[name] for name in sorted(partitions)]

    if query.include_histogram:
        report.histogram = size_histogram([r.size_bytes for r in records])
    if query.trend_window_minutes is not None:
        report.growth = _growth(selected, now, query.trend_window_minutes)

    sort_field = {
        SortKey.SIZE: lambda r: r.size_bytes,
        SortKey.AGE: lambda r: r.age_minutes,
        SortKey.EXPIRATION: lambda r: r.expires_in_minutes,
    }[query.sort_by]
    records.sort(key=sort_field, reverse=query.descending)
    report.entries = records[: query.top] if query.top is not None else records

    report.recommendations = recommendations(
        report, config, [r.size_bytes for r in records if not r.compressed]
    )
    return report
