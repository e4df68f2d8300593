"""Canonical Pydantic models shared across all blackcat modules.

This is the single source of truth for data shapes in the project. The models
fall into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`EnumerationConfig`, :class:`RequestConfig`,
    :class:`OutputConfig`, :class:`CredentialsConfig`, :class:`GlobalConfig`.

**Resource models** -- one typed shape per Azure resource kind a command
returns: :class:`ResolvedHost`, :class:`PublicBlob`, :class:`PublicContainer`,
:class:`RoleAssignment`, plus the fan-out envelopes :class:`UnitResult` and
:class:`BatchSummary`.

**Cache report models** -- produced by :mod:`blackcat.cache.stats`:
    :class:`CacheEntryInfo`, :class:`CacheEntryRecord`, :class:`StatsQuery`,
    :class:`PartitionStats`, :class:`SizeBucket`, :class:`GrowthRate`,
    :class:`LookupCounters`, :class:`CacheReport`.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

MIB = 1024 * 1024
MAX_TTL_MINUTES = 10 * 365 * 24 * 60


# --- Configuration ---


class CacheConfig(BaseModel):
    """Response cache settings stored in :class:`GlobalConfig`.

    All fields can be changed on a live cache through
    :meth:`~blackcat.cache.ResponseCache.configure`; nothing requires a
    restart.
    """

    enabled: bool = Field(default=True, description="Enable response caching")
    expiration_minutes: float = Field(
        default=60,
        gt=0,
        le=MAX_TTL_MINUTES,
        description="Default TTL for new entries, in minutes (at most ten years)",
    )
    max_size_bytes: int = Field(
        default=100 * MIB, gt=0, description="Eviction ceiling for all entries"
    )
    compression_enabled: bool = Field(
        default=False, description="Compress entries unless the caller says otherwise"
    )
    compression_threshold_bytes: int = Field(
        default=1024, ge=0, description="Only compress payloads larger than this"
    )
    memory_warning_bytes: int = Field(
        default=50 * MIB, gt=0, description="Total size that triggers a tuning hint"
    )


class EnumerationConfig(BaseModel):
    """Fan-out settings for DNS and blob enumeration."""

    throttle_limit: int = Field(
        default=100, ge=1, description="Maximum concurrent work units"
    )
    timeout: float = Field(default=10.0, gt=0, description="Per-unit timeout in seconds")


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every API call."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(default=3, ge=0, description="Max retry attempts")


class OutputConfig(BaseModel):
    """Default output format preferences."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class CredentialsConfig(BaseModel):
    """Where access tokens come from.

    Sources use the descriptor syntax understood by
    :func:`~blackcat.config.resolve_credential` (``env:VAR``,
    ``file:/path``, ``prompt``).
    """

    arm_source: str = Field(default="env:AZURE_ACCESS_TOKEN")
    graph_source: str = Field(default="env:AZURE_GRAPH_TOKEN")


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/blackcat/config.json``.

    See :func:`~blackcat.config.resolve_config` for how environment variables
    and CLI flags layer on top.
    """

    cache: CacheConfig = Field(default_factory=CacheConfig)
    enumeration: EnumerationConfig = Field(default_factory=EnumerationConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)


# --- Resource models ---


class ResolvedHost(BaseModel):
    """A candidate hostname that resolved in DNS."""

    hostname: str
    category: str
    addresses: list[str] = Field(default_factory=list)


class PublicBlob(BaseModel):
    """A blob listed anonymously from a public container."""

    account: str
    container: str
    name: str
    url: str
    size: Optional[int] = None
    content_type: Optional[str] = None
    last_modified: Optional[str] = None


class PublicContainer(BaseModel):
    """A storage container that allows anonymous ``List Blobs``."""

    account: str
    container: str
    url: str
    blob_count: int = 0
    blobs: list[PublicBlob] = Field(default_factory=list)


class RoleAssignment(BaseModel):
    """An Azure RBAC role assignment as returned by ARM."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: Optional[str] = None
    principal_id: Optional[str] = None
    principal_type: Optional[str] = None
    role_definition_id: Optional[str] = None
    scope: Optional[str] = None


class UnitResult(BaseModel):
    """Outcome of one unit of fan-out work.

    Exactly one of ``value`` / ``error`` is meaningful, selected by ``ok``.
    """

    target: str
    ok: bool
    value: Any = None
    error: Optional[str] = None


class BatchSummary(BaseModel):
    """Aggregate outcome of a fan-out run."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    results: list[UnitResult] = Field(default_factory=list)

    @property
    def values(self) -> list[Any]:
        """Values of the successful units, in completion order."""
        return [r.value for r in self.results if r.ok]

    @property
    def errors(self) -> list[UnitResult]:
        """The failed units."""
        return [r for r in self.results if not r.ok]


# --- Cache reporting ---


class SortKey(str, enum.Enum):
    """Orderings accepted by the cache report."""

    SIZE = "size"
    AGE = "age"
    EXPIRATION = "expiration"


class CacheEntryInfo(BaseModel):
    """Metadata for one cache entry, copied out of the cache under its lock."""

    model_config = ConfigDict(frozen=True)

    cache_type: str
    key: str
    compressed: bool
    created_at: datetime
    expires_at: datetime
    size_bytes: int


class CacheEntryRecord(BaseModel):
    """One row of the cache report, with values derived at report time."""

    cache_type: str
    key: str
    compressed: bool
    created_at: datetime
    expires_at: datetime
    size_bytes: int
    size_mb: float
    age_minutes: float
    expires_in_minutes: float
    is_expired: bool


class StatsQuery(BaseModel):
    """Filters and options for :func:`~blackcat.cache.stats.build_report`."""

    cache_type: Optional[str] = None
    compressed: Optional[bool] = None
    min_size_bytes: Optional[int] = None
    max_size_bytes: Optional[int] = None
    max_age_minutes: Optional[float] = None
    sort_by: SortKey = SortKey.SIZE
    descending: bool = True
    top: Optional[int] = None
    include_histogram: bool = False
    trend_window_minutes: Optional[float] = None


class PartitionStats(BaseModel):
    """Per-``cacheType`` counters."""

    cache_type: str
    total: int = 0
    valid: int = 0
    expired: int = 0
    compressed: int = 0
    total_bytes: int = 0


class SizeBucket(BaseModel):
    """One bar of the size histogram. ``upper_mb`` is ``None`` for the open bucket."""

    label: str
    lower_mb: float
    upper_mb: Optional[float] = None
    count: int = 0
    percentage: float = 0.0


class GrowthRate(BaseModel):
    """Entries created within the trailing window, extrapolated per hour."""

    window_minutes: float
    entries: int
    total_bytes: int
    entries_per_hour: float
    bytes_per_hour: float


class LookupCounters(BaseModel):
    """Observed ``get`` outcomes since the cache was created or last reset."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    rejected: int = 0

    @property
    def observed_hit_rate(self) -> Optional[float]:
        """``hits / (hits + misses)``, or ``None`` before the first lookup."""
        lookups = self.hits + self.misses
        if lookups == 0:
            return None
        return self.hits / lookups


class CacheReport(BaseModel):
    """Aggregate analytics over a cache snapshot.

    ``hit_rate`` is the valid-entry ratio (``valid / total``); observed
    lookup hits and misses are reported separately under ``lookups``.
    """

    generated_at: datetime
    total_entries: int = 0
    valid_entries: int = 0
    expired_entries: int = 0
    hit_rate: float = 0.0
    expiration_rate: float = 0.0
    total_bytes: int = 0
    average_entry_bytes: float = 0.0
    compressed_entries: int = 0
    compression_ratio: float = 0.0
    max_size_bytes: Optional[int] = None
    oldest_entry: Optional[datetime] = None
    newest_entry: Optional[datetime] = None
    age_span_minutes: float = 0.0
    partitions: list[PartitionStats] = Field(default_factory=list)
    histogram: Optional[list[SizeBucket]] = None
    growth: Optional[GrowthRate] = None
    lookups: LookupCounters = Field(default_factory=LookupCounters)
    recommendations: list[str] = Field(default_factory=list)
    entries: list[CacheEntryRecord] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.total_entries == 0
