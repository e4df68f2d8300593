"""Cache commands -- analytics report, export and invalidation.

Provides the ``blackcat cache`` sub-command group over the invocation's
:class:`~blackcat.cache.ResponseCache`.
"""

from __future__ import annotations

from typing import Optional

import typer

from blackcat.cache.export import ExportFormat, export_report
from blackcat.commands import app_context
from blackcat.models import MIB, CacheReport, SortKey, StatsQuery
from blackcat.output import (
    OutputFormat,
    error,
    format_response,
    get_output,
    info,
    print_table,
    success,
    suggest,
)

cache_app = typer.Typer(no_args_is_help=True)


def _print_report(report: CacheReport) -> None:
    """Summary, partitions, histogram, growth and entry rows as tables."""
    lookups = report.lookups
    observed = lookups.observed_hit_rate
    summary = [
        ["Total entries", str(report.total_entries)],
        ["Valid entries", str(report.valid_entries)],
        ["Expired entries", str(report.expired_entries)],
        ["Hit rate (valid/total)", f"{report.hit_rate:.1%}"],
        ["Observed hit rate", f"{observed:.1%}" if observed is not None else "n/a"],
        ["Hits / misses", f"{lookups.hits} / {lookups.misses}"],
        ["Evictions", str(lookups.evictions)],
        ["Total size (MB)", f"{report.total_bytes / MIB:.3f}"],
        ["Average entry (KB)", f"{report.average_entry_bytes / 1024:.1f}"],
        ["Compressed", f"{report.compressed_entries} ({report.compression_ratio:.0%})"],
        ["Age span (min)", f"{report.age_span_minutes:g}"],
    ]
    print_table(["Metric", "Value"], summary, title="Cache summary")

    if report.partitions:
        print_table(
            ["Type", "Total", "Valid", "Expired", "Compressed", "Size (KB)"],
            [
                [p.cache_type, str(p.total), str(p.valid), str(p.expired),
                 str(p.compressed), f"{p.total_bytes / 1024:.1f}"]
                for p in report.partitions
            ],
            title="By cache type",
        )
    if report.histogram is not None:
        print_table(
            ["Size", "Entries", "Percent"],
            [[b.label, str(b.count), f"{b.percentage:g}%"] for b in report.histogram],
            title="Size distribution",
        )
    if report.growth is not None:
        g = report.growth
        print_table(
            ["Window (min)", "New entries", "Entries/hour", "KB/hour"],
            [[f"{g.window_minutes:g}", str(g.entries), f"{g.entries_per_hour:g}",
              f"{g.bytes_per_hour / 1024:.1f}"]],
            title="Growth",
        )
    if report.entries:
        print_table(
            ["Type", "Key", "Size (KB)", "Compressed", "Age (min)", "Expires in (min)"],
            [
                [r.cache_type, r.key[:16], f"{r.size_bytes / 1024:.1f}",
                 "yes" if r.compressed else "no", f"{r.age_minutes:g}",
                 "expired" if r.is_expired else f"{r.expires_in_minutes:g}"]
                for r in report.entries
            ],
            title="Entries",
        )


@cache_app.command("stats")
def cache_stats(
    ctx: typer.Context,
    cache_type: Optional[str] = typer.Option(
        None, "--type", "-t", help="Only entries of this cache type (e.g. MSGraph)."
    ),
    compressed: Optional[bool] = typer.Option(
        None, "--compressed/--uncompressed", help="Only compressed or uncompressed entries."
    ),
    min_size: Optional[int] = typer.Option(None, "--min-size", help="Minimum entry size in bytes."),
    max_size: Optional[int] = typer.Option(None, "--max-size", help="Maximum entry size in bytes."),
    max_age: Optional[float] = typer.Option(None, "--max-age", help="Only entries younger than this, in minutes."),
    sort_by: SortKey = typer.Option(SortKey.SIZE, "--sort", help="Order entry rows by size, age or expiration."),
    ascending: bool = typer.Option(False, "--ascending", help="Sort ascending instead of descending."),
    top: Optional[int] = typer.Option(None, "--top", help="Show at most this many entry rows."),
    histogram: bool = typer.Option(False, "--histogram", help="Include the size distribution."),
    trend: Optional[float] = typer.Option(None, "--trend", help="Growth over the trailing N minutes."),
    export: Optional[str] = typer.Option(None, "--export", help="Write entry rows to this file."),
    export_format: ExportFormat = typer.Option(ExportFormat.JSON, "--format", help="Export format."),
) -> None:
    """Show cache analytics.

    Aggregates cover every entry that passes the filters; ``--top`` limits
    only the listed rows. Expired entries are counted, not purged.

    Example::

        blackcat cache stats --type MSGraph --histogram
        blackcat cache stats --top 10 --export entries.csv --format csv
    """
    context = app_context(ctx)
    query = StatsQuery(
        cache_type=cache_type,
        compressed=compressed,
        min_size_bytes=min_size,
        max_size_bytes=max_size,
        max_age_minutes=max_age,
        sort_by=sort_by,
        descending=not ascending,
        top=top,
        include_histogram=histogram,
        trend_window_minutes=trend,
    )
    report = context.cache.stats(query)

    if export:
        path = export_report(report, export, export_format)
        success(f"Exported {len(report.entries)} entries to {path}")

    if report.is_empty:
        filtered = any(
            v is not None for v in (cache_type, compressed, min_size, max_size, max_age)
        )
        info("No cache entries match the filters." if filtered else "Cache is empty.")

    if get_output().format == OutputFormat.JSON:
        format_response(report.model_dump(mode="json"))
    elif not report.is_empty:
        _print_report(report)

    for hint in report.recommendations:
        suggest(hint)


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    cache_type: Optional[str] = typer.Option(
        None, "--type", "-t", help="Only clear this cache type."
    ),
    key: Optional[str] = typer.Option(
        None, "--key", "-k", help="Only clear this fingerprint (requires --type)."
    ),
    expired_only: bool = typer.Option(
        False, "--expired-only", help="Only remove expired entries."
    ),
) -> None:
    """Remove cache entries.

    Example::

        blackcat cache clear
        blackcat cache clear --type AzBatch
        blackcat cache clear --expired-only
    """
    context = app_context(ctx)
    if key is not None and cache_type is None:
        error("--key requires --type")
        raise typer.Exit(code=2)

    if expired_only:
        removed = context.cache.purge_expired()
    elif cache_type is not None:
        removed = context.cache.invalidate(cache_type, key)
    else:
        removed = context.cache.clear()
    success(f"Removed {removed} cache entr{'y' if removed == 1 else 'ies'}.")
