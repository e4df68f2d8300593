"""Tests for report export sinks."""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from pathlib import Path

from blackcat.cache import CacheType, ResponseCache
from blackcat.cache.export import ExportFormat, export_report, to_csv, to_json, to_table
from blackcat.cache.stats import build_report
from blackcat.models import CacheEntryRecord

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestEmptyState:
    def test_json_is_empty_array(self) -> None:
        assert json.loads(to_json(build_report([], now=NOW))) == []

    def test_csv_is_header_only(self) -> None:
        lines = to_csv(build_report([], now=NOW)).splitlines()
        assert lines == [",".join(CacheEntryRecord.model_fields)]

    def test_table_says_empty(self) -> None:
        assert to_table(build_report([], now=NOW)) == "No cache entries.\n"

    def test_export_empty_json_file(self, tmp_path: Path) -> None:
        path = export_report(build_report([], now=NOW), tmp_path / "out" / "report.json")
        assert json.loads(path.read_text()) == []


class TestPopulated:
    def _report(self, cache: ResponseCache):
        cache.set(CacheType.MSGRAPH, "graph-key", {"value": [1, 2, 3]})
        cache.set(CacheType.AZ_BATCH, "batch-key", {"responses": []})
        return cache.stats()

    def test_json_rows(self, cache: ResponseCache) -> None:
        rows = json.loads(to_json(self._report(cache)))
        assert {row["key"] for row in rows} == {"graph-key", "batch-key"}
        assert set(rows[0]) == set(CacheEntryRecord.model_fields)

    def test_csv_rows(self, cache: ResponseCache) -> None:
        reader = csv.DictReader(io.StringIO(to_csv(self._report(cache))))
        rows = list(reader)
        assert len(rows) == 2
        assert {row["cache_type"] for row in rows} == {CacheType.MSGRAPH, CacheType.AZ_BATCH}

    def test_table_lists_types(self, cache: ResponseCache) -> None:
        text = to_table(self._report(cache))
        assert CacheType.MSGRAPH in text
        assert CacheType.AZ_BATCH in text

    def test_export_csv_file(self, cache: ResponseCache, tmp_path: Path) -> None:
        path = export_report(self._report(cache), tmp_path / "report.csv", ExportFormat.CSV)
        assert path.read_text().startswith("cache_type,key,")
        assert not list(tmp_path.glob(".report.csv.*.tmp"))
