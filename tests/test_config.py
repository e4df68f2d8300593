"""Tests for configuration paths, persistence, precedence and credentials."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from blackcat.config import (
    atomic_write,
    get_config_dir,
    get_data_dir,
    load_global_config,
    resolve_config,
    resolve_credential,
    save_global_config,
)
from blackcat.exceptions import ConfigError
from blackcat.models import MIB, CacheConfig, GlobalConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("blackcat.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "blackcat"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("blackcat.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        assert get_config_dir() == custom / "blackcat"

    def test_data_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("blackcat.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_data_dir() == tmp_path / ".local" / "share" / "blackcat"

    def test_fallback_dirs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("blackcat.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".blackcat"
        assert get_data_dir() == tmp_path / ".blackcat" / "data"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "test.txt"
        atomic_write(target, "hello world")
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        target.write_text("old content", encoding="utf-8")
        atomic_write(target, "new content")
        assert target.read_text(encoding="utf-8") == "new content"
        assert list(tmp_path.iterdir()) == [target]

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("blackcat.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        cfg = load_global_config()
        assert cfg == GlobalConfig()
        assert cfg.cache.expiration_minutes == 60
        assert cfg.cache.max_size_bytes == 100 * MIB
        assert cfg.cache.compression_enabled is False
        assert cfg.enumeration.throttle_limit == 100

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        original = GlobalConfig(cache=CacheConfig(expiration_minutes=15, compression_enabled=True))
        save_global_config(original)
        assert load_global_config() == original

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        path = isolated_config / "config" / "blackcat" / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{invalid json!!!", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid config"):
            load_global_config()

    def test_load_invalid_schema_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(
            isolated_config / "config" / "blackcat" / "config.json",
            {"cache": {"expiration_minutes": -5}},
        )
        with pytest.raises(ConfigError, match="Invalid config"):
            load_global_config()


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveConfig:
    def test_defaults(self, isolated_config: Path) -> None:
        assert resolve_config() == GlobalConfig()

    def test_file_over_defaults(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(cache=CacheConfig(expiration_minutes=30)))
        assert resolve_config().cache.expiration_minutes == 30

    def test_env_over_file(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        save_global_config(GlobalConfig(cache=CacheConfig(expiration_minutes=30)))
        monkeypatch.setenv("BLACKCAT_CACHE_EXPIRATION_MINUTES", "45")
        monkeypatch.setenv("BLACKCAT_MAX_CACHE_SIZE_BYTES", "2048")
        monkeypatch.setenv("BLACKCAT_COMPRESSION_ENABLED", "true")
        monkeypatch.setenv("BLACKCAT_THROTTLE_LIMIT", "25")

        cfg = resolve_config()
        assert cfg.cache.expiration_minutes == 45
        assert cfg.cache.max_size_bytes == 2048
        assert cfg.cache.compression_enabled is True
        assert cfg.enumeration.throttle_limit == 25

    def test_cli_over_env(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BLACKCAT_THROTTLE_LIMIT", "25")
        cfg = resolve_config({("enumeration", "throttle_limit"): 5})
        assert cfg.enumeration.throttle_limit == 5

    def test_none_cli_value_ignored(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BLACKCAT_THROTTLE_LIMIT", "25")
        cfg = resolve_config({("enumeration", "throttle_limit"): None})
        assert cfg.enumeration.throttle_limit == 25

    @pytest.mark.parametrize(
        "var,value",
        [
            ("BLACKCAT_THROTTLE_LIMIT", "0"),
            ("BLACKCAT_CACHE_EXPIRATION_MINUTES", "soon"),
            ("BLACKCAT_CACHE_EXPIRATION_MINUTES", "1e10"),
            ("BLACKCAT_MAX_CACHE_SIZE_BYTES", "-1"),
        ],
    )
    def test_invalid_env_raises(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch, var: str, value: str
    ) -> None:
        monkeypatch.setenv(var, value)
        with pytest.raises(ConfigError, match="environment"):
            resolve_config()


# ---------------------------------------------------------------------------
# Credential resolution
# ---------------------------------------------------------------------------


class TestResolveCredential:
    def test_env_source(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_TOKEN", "  eyJ0eXAi  ")
        assert resolve_credential("env:MY_TOKEN") == "eyJ0eXAi"

    def test_env_source_missing_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NONEXISTENT_VAR", raising=False)
        with pytest.raises(ConfigError, match="not set"):
            resolve_credential("env:NONEXISTENT_VAR")

    def test_file_source(self, tmp_path: Path) -> None:
        cred_file = tmp_path / "token.txt"
        cred_file.write_text("  my-secret-token  \n", encoding="utf-8")
        assert resolve_credential(f"file:{cred_file}") == "my-secret-token"

    def test_file_source_missing_raises(self) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_credential("file:/nonexistent/path/token.txt")

    def test_prompt_source_with_tty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: True)
        monkeypatch.setattr("getpass.getpass", lambda prompt: "user-typed-secret")
        assert resolve_credential("prompt") == "user-typed-secret"

    def test_prompt_source_non_tty_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: False)
        with pytest.raises(ConfigError, match="not a TTY"):
            resolve_credential("prompt")

    def test_unknown_source_raises(self) -> None:
        with pytest.raises(ConfigError, match="Unknown credential source"):
            resolve_credential("magic:wand")
