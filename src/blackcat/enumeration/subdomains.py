"""DNS brute force of Azure service hostnames.

Given one or more base names (``contoso``), candidates are built against the
Azure service domains of the selected categories, optionally with wordlist
permutations (``contoso-dev``, ``devcontoso``, ...), and each candidate is
resolved in parallel. A hostname that resolves means the tenant owns that
service instance.
"""

from __future__ import annotations

import re
import socket
from collections.abc import Iterable, Sequence
from typing import Callable, Optional

from blackcat.enumeration.pool import run_bounded
from blackcat.exceptions import InvalidArgumentError
from blackcat.models import BatchSummary, ResolvedHost, UnitResult

Resolver = Callable[[str], list[str]]

AZURE_DOMAINS: dict[str, tuple[str, ...]] = {
    "app": (
        "azurewebsites.net",
        "scm.azurewebsites.net",
        "azure-api.net",
        "azurestaticapps.net",
        "cloudapp.net",
        "trafficmanager.net",
        "azurefd.net",
        "azureedge.net",
    ),
    "storage": (
        "blob.core.windows.net",
        "file.core.windows.net",
        "queue.core.windows.net",
        "table.core.windows.net",
        "dfs.core.windows.net",
    ),
    "database": (
        "database.windows.net",
        "documents.azure.com",
        "redis.cache.windows.net",
        "postgres.database.azure.com",
        "mysql.database.azure.com",
    ),
    "keyvault": ("vault.azure.net",),
    "ai": (
        "cognitiveservices.azure.com",
        "openai.azure.com",
        "search.windows.net",
    ),
    "messaging": (
        "servicebus.windows.net",
        "azure-devices.net",
        "signalr.net",
    ),
    "devops": (
        "azurecr.io",
        "visualstudio.com",
        "azuredatabricks.net",
        "azurehdinsight.net",
    ),
    "identity": (
        "onmicrosoft.com",
        "sharepoint.com",
        "mail.protection.outlook.com",
    ),
}
"""Azure service domains grouped by category."""

DEFAULT_PERMUTATIONS = (
    "dev", "test", "qa", "uat", "stage", "staging", "prod", "api",
    "app", "web", "data", "backup", "internal", "admin",
)

_LABEL = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


def resolve_host(hostname: str) -> list[str]:
    """Resolve *hostname* through the OS resolver.

    Returns:
        Sorted unique addresses.

    Raises:
        socket.gaierror: If the name does not resolve.
    """
    infos = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    return sorted({str(info[4][0]) for info in infos})


def name_variants(name: str, words: Iterable[str] = ()) -> list[str]:
    """Base name plus ``name+word``, ``name-word``, ``word+name`` and ``word-name``.

    Variants that are not valid DNS labels are dropped.
    """
    base = name.strip().lower()
    variants = [base]
    for word in words:
        word = word.strip().lower()
        if not word:
            continue
        variants.extend((f"{base}{word}", f"{base}-{word}", f"{word}{base}", f"{word}-{base}"))
    return [v for v in dict.fromkeys(variants) if _LABEL.match(v)]


def build_candidates(
    names: Sequence[str],
    categories: Optional[Sequence[str]] = None,
    words: Iterable[str] = (),
) -> dict[str, str]:
    """Map every candidate hostname to the category it was built from.

    Raises:
        InvalidArgumentError: On an unknown category or no usable names.
    """
    selected = list(categories) if categories else list(AZURE_DOMAINS)
    unknown = [c for c in selected if c not in AZURE_DOMAINS]
    if unknown:
        raise InvalidArgumentError(
            f"Unknown categories: {', '.join(unknown)} (choose from {', '.join(AZURE_DOMAINS)})"
        )

    words = list(words)
    candidates: dict[str, str] = {}
    for name in names:
        for variant in name_variants(name, words):
            for category in selected:
                for domain in AZURE_DOMAINS[category]:
                    candidates.setdefault(f"{variant}.{domain}", category)
    if not candidates:
        raise InvalidArgumentError("No valid base names to enumerate")
    return candidates


def find_subdomains(
    names: Sequence[str],
    categories: Optional[Sequence[str]] = None,
    words: Iterable[str] = (),
    throttle_limit: int = 100,
    resolver: Resolver = resolve_host,
    on_result: Optional[Callable[[UnitResult], None]] = None,
) -> BatchSummary:
    """Resolve every candidate hostname in parallel.

    Names that do not resolve are failed units; they never stop the batch.

    Returns:
        Summary whose successful values are :class:`~blackcat.models.ResolvedHost`.
    """
    candidates = build_candidates(names, categories, words)

    def _probe(hostname: str) -> ResolvedHost:
        addresses = resolver(hostname)
        if not addresses:
            raise LookupError(f"{hostname} has no addresses")
        return ResolvedHost(hostname=hostname, category=candidates[hostname], addresses=addresses)

    return run_bounded(candidates, _probe, throttle_limit, on_result=on_result)
