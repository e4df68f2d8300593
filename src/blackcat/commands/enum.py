"""Enumeration commands -- DNS brute force and public blob discovery.

Provides the ``blackcat enum`` sub-command group. Findings go to stdout;
each run ends with an attempted / succeeded / failed summary on stderr.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from blackcat.commands import app_context
from blackcat.enumeration import find_public_containers, find_subdomains
from blackcat.enumeration.blobs import DEFAULT_CONTAINERS
from blackcat.enumeration.subdomains import AZURE_DOMAINS, DEFAULT_PERMUTATIONS
from blackcat.exceptions import InvalidArgumentError
from blackcat.models import BatchSummary, UnitResult
from blackcat.output import debug, info, print_table, success, warning

enum_app = typer.Typer(no_args_is_help=True)


def _read_lines(path: Path) -> list[str]:
    """Non-empty, non-comment lines of a wordlist file."""
    try:
        text = path.expanduser().read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidArgumentError(f"Cannot read wordlist {path}: {exc}") from exc
    return [
        line.strip() for line in text.splitlines()
        if line.strip() and not line.lstrip().startswith("#")
    ]


def _words(wordlist: Optional[Path], permutations: bool) -> list[str]:
    words = list(DEFAULT_PERMUTATIONS) if permutations else []
    if wordlist is not None:
        words.extend(_read_lines(wordlist))
    return words


def _log_failure(result: UnitResult) -> None:
    if not result.ok:
        debug(f"{result.target}: {result.error}")


def _report_summary(label: str, summary: BatchSummary) -> None:
    message = (
        f"{label}: attempted {summary.attempted}, "
        f"succeeded {summary.succeeded}, failed {summary.failed}"
    )
    if summary.succeeded:
        success(message)
    else:
        info(message)


@enum_app.command("subdomains")
def enum_subdomains(
    ctx: typer.Context,
    names: list[str] = typer.Argument(help="Base names, e.g. the tenant or company name."),
    category: Optional[list[str]] = typer.Option(
        None, "--category", "-c",
        help=f"Service categories to try ({', '.join(AZURE_DOMAINS)}). Default: all.",
    ),
    wordlist: Optional[Path] = typer.Option(
        None, "--wordlist", "-w", help="File of permutation words, one per line."
    ),
    permutations: bool = typer.Option(
        False, "--permutations", "-p", help="Add the built-in permutation words."
    ),
    throttle_limit: Optional[int] = typer.Option(
        None, "--throttle-limit", "-T", help="Maximum concurrent lookups."
    ),
) -> None:
    """Find Azure service hostnames that resolve for the given names.

    Example::

        blackcat enum subdomains contoso
        blackcat enum subdomains contoso -c storage -c keyvault -p
    """
    context = app_context(ctx)
    summary = find_subdomains(
        names,
        categories=category or None,
        words=_words(wordlist, permutations),
        throttle_limit=throttle_limit if throttle_limit is not None else context.throttle_limit,
        resolver=context.resolver,
        on_result=_log_failure,
    )

    hosts = sorted(summary.values, key=lambda h: (h.category, h.hostname))
    if hosts:
        print_table(
            ["Hostname", "Category", "Addresses"],
            [[h.hostname, h.category, ", ".join(h.addresses)] for h in hosts],
            title="Resolved Azure hostnames",
        )
    else:
        warning("No hostnames resolved.")
    _report_summary("DNS lookups", summary)


@enum_app.command("blobs")
def enum_blobs(
    ctx: typer.Context,
    names: list[str] = typer.Argument(help="Storage account base names."),
    container: Optional[list[str]] = typer.Option(
        None, "--container", "-c", help="Container name to probe (repeatable)."
    ),
    container_list: Optional[Path] = typer.Option(
        None, "--container-list", help="File of container names, one per line."
    ),
    wordlist: Optional[Path] = typer.Option(
        None, "--wordlist", "-w", help="File of account permutation words."
    ),
    permutations: bool = typer.Option(
        False, "--permutations", "-p", help="Add the built-in permutation words."
    ),
    throttle_limit: Optional[int] = typer.Option(
        None, "--throttle-limit", "-T", help="Maximum concurrent probes."
    ),
    list_blobs: bool = typer.Option(
        False, "--list-blobs", help="Print every blob URL found."
    ),
) -> None:
    """Find storage containers that allow anonymous blob listing.

    Without ``--container`` / ``--container-list`` a built-in list of common
    container names is used.

    Example::

        blackcat enum blobs contoso -p
        blackcat enum blobs contosodata -c backups --list-blobs
    """
    context = app_context(ctx)
    containers = list(container or [])
    if container_list is not None:
        containers.extend(_read_lines(container_list))
    if not containers:
        containers = list(DEFAULT_CONTAINERS)

    with context.anonymous_client() as client:
        accounts, found = find_public_containers(
            client,
            names,
            containers=containers,
            words=_words(wordlist, permutations),
            throttle_limit=throttle_limit if throttle_limit is not None else context.throttle_limit,
            resolver=context.resolver,
            on_result=_log_failure,
        )

    public = sorted(found.values, key=lambda c: (c.account, c.container))
    if public:
        print_table(
            ["Account", "Container", "Blobs", "URL"],
            [[c.account, c.container, str(c.blob_count), c.url] for c in public],
            title="Public containers",
        )
        if list_blobs:
            print_table(
                ["URL", "Size", "Content type"],
                [
                    [b.url, "" if b.size is None else str(b.size), b.content_type or ""]
                    for c in public for b in c.blobs
                ],
                title="Public blobs",
            )
    else:
        warning("No publicly listable containers found.")
    _report_summary("Storage accounts", accounts)
    _report_summary("Container probes", found)
