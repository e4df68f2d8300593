"""Discovery of storage containers that allow anonymous blob listing.

Two fan-out phases:

1. Resolve ``<account>.blob.core.windows.net`` for every candidate account
   name; only accounts that exist move on.
2. For every live account and candidate container, request
   ``?restype=container&comp=list`` without credentials. A 200 with an
   ``EnumerationResults`` document means the container is public.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from collections.abc import Iterable, Sequence
from typing import Callable, Optional

from blackcat.client import AzureClient
from blackcat.enumeration.pool import run_bounded
from blackcat.enumeration.subdomains import Resolver, name_variants, resolve_host
from blackcat.exceptions import InvalidArgumentError
from blackcat.models import BatchSummary, PublicBlob, PublicContainer, UnitResult

BLOB_DOMAIN = "blob.core.windows.net"

DEFAULT_CONTAINERS = (
    "$web", "archive", "assets", "backup", "backups", "config", "content",
    "data", "documents", "downloads", "dev", "export", "files", "images",
    "logs", "media", "private", "prod", "public", "scripts", "static",
    "temp", "test", "uploads", "web",
)

_ACCOUNT = re.compile(r"^[a-z0-9]{3,24}$")
_CONTAINER = re.compile(r"^(\$web|\$root|[a-z0-9](?:[a-z0-9]|-(?=[a-z0-9])){2,62})$")

MAX_LISTED_BLOBS = 1000


def account_candidates(names: Sequence[str], words: Iterable[str] = ()) -> list[str]:
    """Storage account names derived from *names*.

    Account names are 3-24 lowercase alphanumerics, so hyphenated variants
    are dropped.
    """
    accounts = []
    for name in names:
        for variant in name_variants(name, words):
            if _ACCOUNT.match(variant):
                accounts.append(variant)
    return list(dict.fromkeys(accounts))


def container_url(account: str, container: str) -> str:
    return f"https://{account}.{BLOB_DOMAIN}/{container}"


def parse_listing(account: str, container: str, document: bytes | str) -> PublicContainer:
    """Parse a ``List Blobs`` XML response.

    Raises:
        ValueError: If the document is not an ``EnumerationResults`` listing.
    """
    try:
        root = ET.fromstring(document)
    except ET.ParseError as exc:
        raise ValueError(f"unparseable listing: {exc}") from exc
    if root.tag != "EnumerationResults":
        raise ValueError(f"unexpected document <{root.tag}>")

    base = container_url(account, container)
    blobs = []
    for node in root.iterfind("./Blobs/Blob"):
        name = node.findtext("Name") or ""
        size = node.findtext("Properties/Content-Length")
        blobs.append(
            PublicBlob(
                account=account,
                container=container,
                name=name,
                url=f"{base}/{name}",
                size=int(size) if size and size.isdigit() else None,
                content_type=node.findtext("Properties/Content-Type"),
                last_modified=node.findtext("Properties/Last-Modified"),
            )
        )
    return PublicContainer(
        account=account, container=container, url=base, blob_count=len(blobs), blobs=blobs
    )


def list_container(client: AzureClient, account: str, container: str) -> PublicContainer:
    """Anonymously list *container* in *account*.

    Raises:
        NotFoundError: The container does not exist.
        AuthError: The container exists but is private.
        ValueError: The response was not a blob listing.
    """
    response = client.request(
        "GET",
        container_url(account, container),
        params={"restype": "container", "comp": "list", "maxresults": str(MAX_LISTED_BLOBS)},
        headers={"Accept": "application/xml"},
    )
    return parse_listing(account, container, response.content)


def find_public_containers(
    client: AzureClient,
    names: Sequence[str],
    containers: Sequence[str] = DEFAULT_CONTAINERS,
    words: Iterable[str] = (),
    throttle_limit: int = 100,
    resolver: Resolver = resolve_host,
    on_result: Optional[Callable[[UnitResult], None]] = None,
) -> tuple[BatchSummary, BatchSummary]:
    """Find storage accounts, then probe their containers for anonymous listing.

    Args:
        client: Anonymous :class:`~blackcat.client.AzureClient`, already
            entered.
        names: Base names to derive account names from.
        containers: Container names to try on every live account.
        words: Permutation words for account names.
        throttle_limit: Maximum concurrent probes in each phase.
        resolver: Hostname resolver.
        on_result: Progress callback for both phases.

    Returns:
        ``(accounts, containers)`` summaries. Account values are the live
        account names; container values are
        :class:`~blackcat.models.PublicContainer`.

    Raises:
        InvalidArgumentError: If no valid account or container names remain.
    """
    accounts = account_candidates(names, words)
    if not accounts:
        raise InvalidArgumentError("No valid storage account names (3-24 lowercase alphanumerics)")
    wanted = [c.lower() for c in containers if _CONTAINER.match(c.lower())]
    if not wanted:
        raise InvalidArgumentError("No valid container names to probe")

    def _account_exists(account: str) -> str:
        if not resolver(f"{account}.{BLOB_DOMAIN}"):
            raise LookupError(f"{account} does not resolve")
        return account

    account_summary = run_bounded(accounts, _account_exists, throttle_limit, on_result=on_result)

    pairs = [(account, container) for account in account_summary.values for container in wanted]
    container_summary = run_bounded(
        pairs,
        lambda pair: list_container(client, *pair),
        throttle_limit,
        label=lambda pair: container_url(*pair),
        on_result=on_result,
    )
    return account_summary, container_summary
