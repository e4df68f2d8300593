"""CLI tests for ``blackcat cache stats`` and ``blackcat cache clear``.

The cache lives in process memory, so each test hands the CLI a prepared
:class:`~blackcat.context.AppContext` through ``obj``.
"""

from __future__ import annotations

import csv
import io
import json
from pathlib import Path

from blackcat.app import app
from blackcat.cache import CacheType


def _invoke(cli_runner, context, *args: str):
    return cli_runner.invoke(app, ["--no-color", *args], obj={"app": context})


def _fill(context) -> None:
    context.cache.set(CacheType.MSGRAPH, "users", {"value": [{"id": "1"}]})
    context.cache.set(CacheType.MSGRAPH, "groups", {"value": []}, ttl_minutes=1)
    context.cache.set(CacheType.AZ_BATCH, "subs", {"responses": []})


# ---------------------------------------------------------------------------
# cache stats
# ---------------------------------------------------------------------------


class TestCacheStats:
    def test_empty_cache(self, cli_runner, make_context) -> None:
        result = _invoke(cli_runner, make_context(), "cache", "stats")
        assert result.exit_code == 0, result.output
        assert "Cache is empty." in result.output

    def test_empty_cache_json_is_report_object(self, cli_runner, make_context) -> None:
        result = _invoke(cli_runner, make_context(), "--json", "-q", "cache", "stats")
        assert result.exit_code == 0, result.output
        report = json.loads(result.stdout)
        assert report["total_entries"] == 0
        assert report["entries"] == []

    def test_json_shape_same_when_empty_and_filled(self, cli_runner, make_context) -> None:
        context = make_context()
        empty = _invoke(cli_runner, context, "--json", "-q", "cache", "stats")
        _fill(context)
        filled = _invoke(cli_runner, context, "--json", "-q", "cache", "stats")
        assert isinstance(json.loads(empty.stdout), dict)
        assert isinstance(json.loads(filled.stdout), dict)
        assert json.loads(filled.stdout)["total_entries"] == 3

    def test_no_match_message(self, cli_runner, make_context) -> None:
        context = make_context()
        _fill(context)
        result = _invoke(cli_runner, context, "cache", "stats", "--type", "RoleAssignment")
        assert result.exit_code == 0, result.output
        assert "No cache entries match the filters." in result.output

    def test_summary_tables(self, cli_runner, make_context, clock) -> None:
        context = make_context()
        _fill(context)
        clock.advance(minutes=5)
        result = _invoke(cli_runner, context, "cache", "stats", "--histogram")
        assert result.exit_code == 0, result.output
        assert "Total entries\t3" in result.output
        assert "Expired entries\t1" in result.output
        assert "0-0.2 MB\t3\t100%" in result.output
        assert len(context.cache) == 3

    def test_json_report(self, cli_runner, make_context) -> None:
        context = make_context()
        _fill(context)
        result = _invoke(cli_runner, context, "--json", "-q", "cache", "stats", "--top", "1")
        assert result.exit_code == 0, result.output
        report = json.loads(result.stdout)
        assert report["total_entries"] == 3
        assert len(report["entries"]) == 1
        assert {p["cache_type"] for p in report["partitions"]} == {
            CacheType.MSGRAPH, CacheType.AZ_BATCH,
        }

    def test_export_csv(self, cli_runner, make_context, tmp_path: Path) -> None:
        context = make_context()
        _fill(context)
        target = tmp_path / "entries.csv"
        result = _invoke(
            cli_runner, context,
            "cache", "stats", "--type", CacheType.MSGRAPH,
            "--export", str(target), "--format", "csv",
        )
        assert result.exit_code == 0, result.output
        assert "Exported 2 entries" in result.output
        rows = list(csv.DictReader(io.StringIO(target.read_text(encoding="utf-8"))))
        assert {row["cache_type"] for row in rows} == {CacheType.MSGRAPH}
        assert len(rows) == 2

    def test_export_empty_json(self, cli_runner, make_context, tmp_path: Path) -> None:
        target = tmp_path / "entries.json"
        result = _invoke(cli_runner, make_context(), "cache", "stats", "--export", str(target))
        assert result.exit_code == 0, result.output
        assert json.loads(target.read_text(encoding="utf-8")) == []


# ---------------------------------------------------------------------------
# cache clear
# ---------------------------------------------------------------------------


class TestCacheClear:
    def test_clear_all(self, cli_runner, make_context) -> None:
        context = make_context()
        _fill(context)
        result = _invoke(cli_runner, context, "cache", "clear")
        assert result.exit_code == 0, result.output
        assert "Removed 3 cache entries." in result.output
        assert len(context.cache) == 0

    def test_clear_one_type(self, cli_runner, make_context) -> None:
        context = make_context()
        _fill(context)
        result = _invoke(cli_runner, context, "cache", "clear", "--type", CacheType.MSGRAPH)
        assert "Removed 2 cache entries." in result.output
        assert len(context.cache) == 1

    def test_clear_single_key(self, cli_runner, make_context) -> None:
        context = make_context()
        _fill(context)
        result = _invoke(
            cli_runner, context, "cache", "clear", "--type", CacheType.AZ_BATCH, "--key", "subs"
        )
        assert "Removed 1 cache entry." in result.output
        assert len(context.cache) == 2

    def test_key_requires_type(self, cli_runner, make_context) -> None:
        context = make_context()
        _fill(context)
        result = _invoke(cli_runner, context, "cache", "clear", "--key", "subs")
        assert result.exit_code == 2
        assert len(context.cache) == 3

    def test_expired_only(self, cli_runner, make_context, clock) -> None:
        context = make_context()
        _fill(context)
        clock.advance(minutes=2)
        result = _invoke(cli_runner, context, "cache", "clear", "--expired-only")
        assert "Removed 1 cache entry." in result.output
        assert len(context.cache) == 2
