"""Report sinks: render a :class:`~blackcat.models.CacheReport` as JSON, CSV or a table.

Every format renders the report's entry rows. JSON output is always a valid
array, ``[]`` for an empty cache, so downstream tooling never has to special
case the empty state. Nothing here runs unless a caller asks for an export.
"""

from __future__ import annotations

import csv
import io
import json
from enum import Enum
from pathlib import Path

from rich.console import Console
from rich.table import Table

from blackcat.config import atomic_write
from blackcat.models import CacheEntryRecord, CacheReport

_FIELDS = list(CacheEntryRecord.model_fields)


class ExportFormat(str, Enum):
    """Formats accepted by :func:`export_report`."""

    JSON = "json"
    CSV = "csv"
    TABLE = "table"


def report_rows(report: CacheReport) -> list[dict]:
    """Entry rows as JSON-ready dicts."""
    return [record.model_dump(mode="json") for record in report.entries]


def to_json(report: CacheReport) -> str:
    return json.dumps(report_rows(report), indent=2, ensure_ascii=False)


def to_csv(report: CacheReport) -> str:
    """CSV with a header row; an empty report yields just the header."""
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_FIELDS, lineterminator="\n")
    writer.writeheader()
    for row in report_rows(report):
        writer.writerow(row)
    return buf.getvalue()


def to_table(report: CacheReport, width: int = 160) -> str:
    """Plain-text table rendered through Rich without colour codes."""
    if not report.entries:
        return "No cache entries.\n"
    table = Table(title="Cache entries", show_header=True)
    for header in ("Type", "Key", "Size (KB)", "Compressed", "Age (min)", "Expires in (min)", "Expired"):
        table.add_column(header)
    for r in report.entries:
        table.add_row(
            r.cache_type,
            r.key[:16],
            f"{r.size_bytes / 1024:.1f}",
            "yes" if r.compressed else "no",
            f"{r.age_minutes:g}",
            f"{r.expires_in_minutes:g}",
            "yes" if r.is_expired else "no",
        )
    buf = io.StringIO()
    Console(file=buf, width=width, no_color=True, force_terminal=False).print(table)
    return buf.getvalue()


def render(report: CacheReport, fmt: ExportFormat) -> str:
    if fmt == ExportFormat.JSON:
        return to_json(report) + "\n"
    if fmt == ExportFormat.CSV:
        return to_csv(report)
    return to_table(report)


def export_report(report: CacheReport, path: str | Path, fmt: ExportFormat = ExportFormat.JSON) -> Path:
    """Write *report* to *path* atomically.

    Returns:
        The resolved path that was written.
    """
    target = Path(path).expanduser()
    atomic_write(target, render(report, ExportFormat(fmt)))
    return target
