"""Console output for findings and diagnostics.

Findings (resolved hosts, public containers, Graph objects, cache reports)
are written to **stdout** so they can be piped into other tooling.
Everything else -- progress, warnings, errors, run summaries and log
records -- goes to **stderr**.

The active :class:`OutputFormat` decides how findings look: a Rich table or
highlighted JSON on an interactive terminal, tab-separated text when piped,
or strict JSON with ``--json``. ``NO_COLOR``, ``TERM=dumb`` and
``--no-color`` all strip styling.

:func:`~blackcat.app.main_callback` builds one :class:`OutputManager` per
invocation and installs it with :func:`set_output`. Commands call the
module-level helpers (:func:`info`, :func:`print_table`, ...), and
:func:`configure_logging` sends ``blackcat.*`` log records to the same
stderr console.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """How findings are rendered. ``AUTO`` resolves to ``RICH`` or ``PLAIN``."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


class OutputManager:
    """Writes findings to stdout and diagnostics to stderr.

    Args:
        format: Rendering for findings. ``AUTO`` picks ``RICH`` when stdout
            is a terminal and colour is allowed, otherwise ``PLAIN``.
        no_color: Strip colour and markup from both streams.
        quiet: Drop ``info``, ``success`` and ``suggest`` messages.
        verbose: Show ``debug`` messages.
        output_file: Send findings to this path instead of stdout.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
        output_file: Optional[str] = None,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._output_file = output_file

        if format != OutputFormat.AUTO:
            self._format = format
        elif _is_tty() and not self._no_color:
            self._format = OutputFormat.RICH
        else:
            self._format = OutputFormat.PLAIN

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=self._format == OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    @property
    def stderr_console(self) -> Console:
        """The console that log records and diagnostics share."""
        return self._stderr

    # ------------------------------------------------------------------ #
    # Findings (stdout)
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Render an API payload or report.

        With ``-o`` the payload is written to the file as JSON (strings
        verbatim), replacing any previous content.
        """
        if self._output_file:
            text = data if isinstance(data, str) else _to_json(data)
            with open(self._output_file, "w", encoding="utf-8") as f:
                f.write(text if text.endswith("\n") else text + "\n")
            return

        if self._format == OutputFormat.JSON:
            self.print_data(_to_json(data))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
        elif isinstance(data, (dict, list)):
            self._stdout.print(Syntax(_to_json(data), "json", theme="monokai", word_wrap=True))
        else:
            self._stdout.print(str(data), markup=False)

    def print_data(self, text: str) -> None:
        """Write one block of text to stdout, or append it to the output file."""
        if not self._output_file:
            print(text, file=sys.stdout, flush=True)
            return
        with open(self._output_file, "a", encoding="utf-8") as f:
            f.write(text if text.endswith("\n") else text + "\n")

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print findings as rows.

        JSON mode emits one object per row keyed by header; plain mode (and
        any ``-o`` target) emits TSV with a header line and no title.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json([dict(zip(headers, row)) for row in rows]))
            return
        if self._format == OutputFormat.PLAIN or self._output_file:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, style="green")

    def warning(self, message: str) -> None:
        """Always shown, even with ``--quiet``."""
        self._diagnostic(message, style="yellow", label="Warning")

    def error(self, message: str) -> None:
        """Always shown, even with ``--quiet``."""
        self._diagnostic(message, style="bold red", label="Error")

    def suggest(self, message: str) -> None:
        """A follow-up hint, e.g. a cache tuning recommendation."""
        if not self._quiet:
            self._diagnostic(f"→ {message}", style="dim")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._diagnostic(f"[debug] {message}", style="dim")

    def _diagnostic(self, message: str, style: str = "", label: str = "") -> None:
        if self._no_color:
            text = f"{label}: {message}" if label else message
            print(text, file=sys.stderr, flush=True)
        elif label:
            self._stderr.print(f"[{style}]{label}:[/{style}] ", end="")
            self._stderr.print(message, markup=False, highlight=False)
        else:
            self._stderr.print(message, style=style or None, markup=False, highlight=False)


def _plain_lines(data: Any) -> list[str]:
    """Tab-separated lines: ``key<TAB>value`` for dicts, one row per list item."""
    if isinstance(data, dict):
        return [f"{key}\t{value}" for key, value in data.items()]
    if isinstance(data, list):
        return [
            "\t".join(str(v) for v in item.values()) if isinstance(item, dict) else str(item)
            for item in data
        ]
    return [str(data)]


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """``NO_COLOR`` (any value, even empty) or ``TERM=dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def configure_logging(output: OutputManager) -> None:
    """Route ``blackcat.*`` log records to the stderr console through Rich.

    The level follows the CLI flags: DEBUG with ``--verbose``, WARNING with
    ``--quiet``, INFO otherwise. Calling it again replaces the handler.
    """
    if output.is_verbose:
        level = logging.DEBUG
    elif output.is_quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    logger = logging.getLogger("blackcat")
    for existing in [h for h in logger.handlers if isinstance(h, RichHandler)]:
        logger.removeHandler(existing)
    handler = RichHandler(
        console=output.stderr_console,
        show_path=output.is_verbose,
        rich_tracebacks=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


# ------------------------------------------------------------------ #
# Process-wide manager
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """The installed manager; a default one is created on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)
