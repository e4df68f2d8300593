"""Typer application and console-script entry point.

The root app carries the flags every command shares -- output format,
verbosity and the cache / throttling overrides -- and mounts the command
groups:

* ``cache`` -- analytics report, export and invalidation
* ``config`` -- the persistent settings file
* ``enum`` -- DNS and public blob enumeration
* ``graph`` / ``arm`` -- cached Microsoft Graph and ARM queries

:func:`main_callback` installs the :class:`~blackcat.output.OutputManager`
and stores the overrides on ``ctx.obj``; the
:class:`~blackcat.context.AppContext` itself is built lazily by
:func:`blackcat.commands.app_context` so ``config`` commands still work when
the settings file is broken.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from blackcat import __version__
from blackcat.exit_codes import EXIT_GENERIC_FAILURE
from blackcat.output import OutputFormat

app = typer.Typer(
    name="blackcat",
    help="Azure reconnaissance: cached Graph/ARM queries and parallel enumeration.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)

# ------------------------------------------------------------------ #
# Command groups
# ------------------------------------------------------------------ #

from blackcat.commands.arm import arm_app  # noqa: E402
from blackcat.commands.cache import cache_app  # noqa: E402
from blackcat.commands.config import config_app  # noqa: E402
from blackcat.commands.enum import enum_app  # noqa: E402
from blackcat.commands.graph import graph_app  # noqa: E402

app.add_typer(cache_app, name="cache", help="Inspect and clear the response cache.")
app.add_typer(config_app, name="config", help="View and change persistent settings.")
app.add_typer(enum_app, name="enum", help="Parallel DNS and storage enumeration.")
app.add_typer(graph_app, name="graph", help="Microsoft Graph queries.")
app.add_typer(arm_app, name="arm", help="Azure Resource Manager queries.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"blackcat {__version__}")
        raise typer.Exit()


def _cli_overrides(
    no_cache: bool,
    cache_ttl: Optional[float],
    max_cache_size: Optional[int],
    compress: Optional[bool],
    throttle_limit: Optional[int],
) -> dict[tuple[str, str], Any]:
    """Flag values keyed by ``(section, field)``; unset flags are left out."""
    overrides: dict[tuple[str, str], Any] = {
        ("cache", "expiration_minutes"): cache_ttl,
        ("cache", "max_size_bytes"): max_cache_size,
        ("cache", "compression_enabled"): compress,
        ("enumeration", "throttle_limit"): throttle_limit,
    }
    if no_cache:
        overrides[("cache", "enabled")] = False
    return {k: v for k, v in overrides.items() if v is not None}


def _stored_format() -> OutputFormat:
    """The saved ``output.format``; AUTO when it is unknown or the file is unreadable."""
    from blackcat.config import load_global_config
    from blackcat.exceptions import ConfigError

    try:
        return OutputFormat(load_global_config().output.format)
    except (ConfigError, ValueError):
        return OutputFormat.AUTO


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="Findings as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Findings as tab-separated text."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only findings, warnings and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
    output_file: Optional[str] = typer.Option(
        None, "-o", "--output", help="Write findings to this file."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache."),
    cache_ttl: Optional[float] = typer.Option(
        None, "--cache-ttl", help="Cache lifetime for new entries, in minutes."
    ),
    max_cache_size: Optional[int] = typer.Option(
        None, "--max-cache-size", help="Cache ceiling in bytes."
    ),
    compress: Optional[bool] = typer.Option(
        None, "--compress/--no-compress", help="Gzip cached responses."
    ),
    throttle_limit: Optional[int] = typer.Option(
        None, "--throttle-limit", help="Maximum concurrent enumeration probes."
    ),
) -> None:
    """Azure reconnaissance toolkit.

    Settings come from, highest first: these flags, ``BLACKCAT_*``
    environment variables, ``blackcat config`` and built-in defaults.
    """
    from blackcat.output import OutputManager, configure_logging, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = _stored_format()

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
        output_file=output_file,
    )
    set_output(output)
    configure_logging(output)

    ctx.ensure_object(dict)
    ctx.obj["force"] = force
    ctx.obj["overrides"] = _cli_overrides(
        no_cache, cache_ttl, max_cache_size, compress, throttle_limit
    )


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Exit with 130 on Ctrl-C instead of dumping a traceback mid-scan."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log() -> str:
    """Save the current traceback under ``<data dir>/logs`` and return its path."""
    from blackcat.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_path.write_text(traceback.format_exc(), encoding="utf-8")
    return str(log_path)


def main() -> None:
    """Console-script entry point.

    A :class:`~blackcat.exceptions.BlackCatError` prints its message and
    exits with the error's ``exit_code``; any other exception is written to
    a crash log and exits with :data:`~blackcat.exit_codes.EXIT_GENERIC_FAILURE`.
    """
    from blackcat.exceptions import BlackCatError
    from blackcat.output import error

    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except BlackCatError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception:
        error(f"Unexpected error. Debug log: {_write_crash_log()}")
        sys.exit(EXIT_GENERIC_FAILURE)
