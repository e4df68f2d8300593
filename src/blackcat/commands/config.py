"""Config commands -- the persistent settings file.

Provides the ``blackcat config`` sub-command group. Keys use dot notation
over :class:`~blackcat.models.GlobalConfig`: ``cache.expiration_minutes``,
``cache.max_size_bytes``, ``cache.compression_enabled``,
``enumeration.throttle_limit``, ``credentials.graph_source`` and so on.
"""

from __future__ import annotations

from typing import Any, Optional

import typer
from pydantic import ValidationError

from blackcat.config import (
    config_path,
    load_global_config,
    resolve_config,
    save_global_config,
)
from blackcat.models import GlobalConfig
from blackcat.output import error, format_response, info, print_data, success

config_app = typer.Typer(no_args_is_help=True)

_TRUE = ("true", "1", "yes", "on")
_FALSE = ("false", "0", "no", "off")


class _BadKey(Exception):
    pass


def _locate(data: dict[str, Any], key: str) -> tuple[dict[str, Any], str]:
    """Return the section dict holding *key* and the final field name."""
    *sections, field = key.split(".")
    target = data
    for section in sections:
        if not isinstance(target.get(section), dict):
            raise _BadKey(f"Invalid config key: {key}")
        target = target[section]
    if field not in target or isinstance(target[field], dict):
        raise _BadKey(f"Unknown config key: {key}")
    return target, field


def _coerce(current: Any, raw: str, key: str) -> Any:
    """Parse *raw* into the type of the value it replaces."""
    if isinstance(current, bool):
        lowered = raw.lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ValueError(f"Expected true/false for {key}, got: {raw}")
    if isinstance(current, (int, float)):
        try:
            return int(raw)
        except ValueError:
            pass
        try:
            return float(raw)
        except ValueError:
            raise ValueError(f"Expected a number for {key}, got: {raw}") from None
    return raw


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    key: Optional[str] = typer.Argument(None, help="Only this key, e.g. cache.expiration_minutes."),
    effective: bool = typer.Option(
        False, "--effective",
        help="Apply BLACKCAT_* variables and root flags on top of the file.",
    ),
) -> None:
    """Show the stored (or effective) configuration.

    Example::

        blackcat config show
        blackcat --throttle-limit 20 config show --effective --json
        blackcat config show cache.max_size_bytes
    """
    if effective:
        overrides = ctx.obj.get("overrides") if ctx.obj else None
        config = resolve_config(overrides)
    else:
        config = load_global_config()
    data = config.model_dump(mode="json")

    if key is None:
        info(f"Config file: {config_path()}")
        format_response(data)
        return
    try:
        section, field = _locate(data, key)
    except _BadKey as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None
    print_data(str(section[field]))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Dot-notation key, e.g. cache.expiration_minutes."),
    value: str = typer.Argument(help="New value."),
) -> None:
    """Change one stored setting.

    The value is parsed as the type of the setting it replaces and the whole
    file is validated before it is written, so an out-of-range value (a
    throttle limit of 0, a negative TTL) leaves the file untouched.

    Example::

        blackcat config set cache.compression_enabled true
        blackcat config set enumeration.throttle_limit 50
        blackcat config set credentials.arm_source file:~/.azure/arm.jwt
    """
    data = load_global_config().model_dump(mode="json")
    try:
        section, field = _locate(data, key)
        section[field] = _coerce(section[field], value, key)
        config = GlobalConfig.model_validate(data)
    except (_BadKey, ValueError) as exc:
        # ValidationError is a ValueError; its text lists every failing field.
        message = f"Validation error: {exc}" if isinstance(exc, ValidationError) else str(exc)
        error(message)
        raise typer.Exit(code=2) from None

    save_global_config(config)
    success(f"Set {key} = {section[field]}")


@config_app.command("reset")
def config_reset(
    ctx: typer.Context,
    section: Optional[str] = typer.Option(
        None, "--section", "-s", help="Only reset this section (cache, enumeration, ...)."
    ),
) -> None:
    """Restore defaults, for everything or for one section.

    Works even when the stored file no longer parses. Asks for confirmation
    unless the root ``--force`` flag is given.

    Example::

        blackcat config reset --section cache
        blackcat --force config reset
    """
    defaults = GlobalConfig()
    if section is not None and section not in GlobalConfig.model_fields:
        error(f"Unknown config section: {section} (choose from {', '.join(GlobalConfig.model_fields)})")
        raise typer.Exit(code=2)

    force = bool(ctx.obj.get("force")) if ctx.obj else False
    what = f"the {section} settings" if section else "all settings"
    if not force and not typer.confirm(f"Reset {what} to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    if section is None:
        config = defaults
    else:
        config = load_global_config().model_copy(update={section: getattr(defaults, section)})
    save_global_config(config)
    success(f"Reset {what} to defaults.")
