"""Where BlackCat keeps its settings, and how a run's settings are decided.

The settings file is ``config.json`` in the config directory
(``$XDG_CONFIG_HOME/blackcat`` on Linux and BSD, ``~/.blackcat`` elsewhere);
crash logs and cache exports default to the data directory. A run's
effective :class:`~blackcat.models.GlobalConfig` is built by
:func:`resolve_config`: root CLI flags beat ``BLACKCAT_*`` variables, which
beat the file, which beats the model defaults. Bearer tokens are looked up
on demand by :func:`resolve_credential`.

Writes go through :func:`atomic_write` so an interrupted ``config set``
never leaves a half-written file.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from blackcat.exceptions import ConfigError
from blackcat.models import GlobalConfig

_APP_NAME = "blackcat"
_CONFIG_FILENAME = "config.json"

ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "BLACKCAT_CACHE_EXPIRATION_MINUTES": ("cache", "expiration_minutes"),
    "BLACKCAT_MAX_CACHE_SIZE_BYTES": ("cache", "max_size_bytes"),
    "BLACKCAT_COMPRESSION_ENABLED": ("cache", "compression_enabled"),
    "BLACKCAT_CACHE_ENABLED": ("cache", "enabled"),
    "BLACKCAT_THROTTLE_LIMIT": ("enumeration", "throttle_limit"),
}
"""Environment variable -> ``(section, field)`` in :class:`GlobalConfig`."""


# ------------------------------------------------------------------ #
# Directories
# ------------------------------------------------------------------ #


def _is_xdg_platform() -> bool:
    """Return True on Linux/BSD, where XDG base directories are used."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/blackcat/`` (default ``~/.config/blackcat/``).
    On macOS/Windows: ``~/.blackcat/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs, exports), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/blackcat/`` (default ``~/.local/share/blackcat/``).
    On macOS/Windows: ``~/.blackcat/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# ------------------------------------------------------------------ #
# Writing
# ------------------------------------------------------------------ #


def atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* atomically using a temp file + rename.

    The temp file is created next to *path* so ``os.replace`` is a same-
    filesystem rename. On any failure the temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# ------------------------------------------------------------------ #
# The settings file
# ------------------------------------------------------------------ #


def config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration file.

    Returns:
        The stored :class:`~blackcat.models.GlobalConfig`, or defaults when
        no file exists yet.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    data = config.model_dump(mode="json")
    atomic_write(config_path(), json.dumps(data, indent=2) + "\n")


# ------------------------------------------------------------------ #
# Layered settings
# ------------------------------------------------------------------ #


def apply_overrides(
    config: GlobalConfig, overrides: dict[tuple[str, str], Any], origin: str = "command-line"
) -> GlobalConfig:
    """Return *config* with each ``(section, field)`` replaced, revalidated.

    Raises:
        ConfigError: If a value fails validation; *origin* names the layer.
    """
    if not overrides:
        return config
    data = config.model_dump(mode="json")
    for (section, field), value in overrides.items():
        data[section][field] = value
    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid {origin} override: {exc}") from exc


def resolve_config(
    cli_overrides: Optional[dict[tuple[str, str], Any]] = None,
) -> GlobalConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. CLI flags (``cli_overrides``, keyed by ``(section, field)``)
        2. Environment variables (see :data:`ENV_OVERRIDES`)
        3. User config (``~/.config/blackcat/config.json``)
        4. Defaults

    Raises:
        ConfigError: If the file or an override fails validation.
    """
    config = load_global_config()

    env: dict[tuple[str, str], Any] = {}
    for var, target in ENV_OVERRIDES.items():
        raw = os.environ.get(var)
        if raw:
            env[target] = raw
    config = apply_overrides(config, env, "environment")

    cli = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return apply_overrides(config, cli)


# ------------------------------------------------------------------ #
# Tokens
# ------------------------------------------------------------------ #


def resolve_credential(source: str) -> str:
    """Look up a bearer token from a ``credentials.*_source`` descriptor.

    ``env:AZURE_GRAPH_TOKEN`` reads a variable, ``file:~/arm.jwt`` reads a
    file and ``prompt`` asks on the terminal. Surrounding whitespace is
    stripped in every case.

    Raises:
        ConfigError: If the token cannot be obtained.
    """
    kind, _, target = source.partition(":")

    if kind == "env" and target:
        value = os.environ.get(target, "").strip()
        if not value:
            raise ConfigError(f"Environment variable '{target}' is not set (source: {source})")
        return value

    if kind == "file" and target:
        path = Path(target).expanduser()
        if not path.is_file():
            raise ConfigError(f"Token file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read token file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError("Cannot prompt for an access token: stdin is not a TTY")
        return getpass.getpass("Access token: ").strip()

    raise ConfigError(f"Unknown credential source: {source!r} (use env:, file: or prompt)")
