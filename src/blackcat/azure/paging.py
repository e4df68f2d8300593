"""Follow ``nextLink`` continuation across Graph and ARM collection responses."""

from __future__ import annotations

from typing import Any, Optional

from blackcat.client import AzureClient
from blackcat.exceptions import ServerError

GRAPH_NEXT_LINK = "@odata.nextLink"
ARM_NEXT_LINK = "nextLink"

MAX_PAGES = 1000


def collect_pages(
    client: AzureClient,
    path: str,
    params: Optional[dict[str, Any]] = None,
    next_key: str = GRAPH_NEXT_LINK,
    cache_type: Optional[str] = None,
    ttl_minutes: Optional[float] = None,
    all_pages: bool = True,
) -> Any:
    """GET *path* and concatenate the ``value`` arrays of every page.

    Each page is fetched (and cached) on its own, keyed by its own URL. A
    response without a ``value`` array is returned as-is.

    Raises:
        ServerError: If the service keeps returning continuation links past
            :data:`MAX_PAGES`.
    """
    data = client.get_json(path, params, cache_type=cache_type, ttl_minutes=ttl_minutes)
    if not isinstance(data, dict) or not isinstance(data.get("value"), list):
        return data

    items = list(data["value"])
    next_link = data.get(next_key)
    pages = 1
    while all_pages and next_link:
        if pages >= MAX_PAGES:
            raise ServerError(f"Gave up paging {path} after {MAX_PAGES} pages")
        page = client.get_json(next_link, cache_type=cache_type, ttl_minutes=ttl_minutes)
        if not isinstance(page, dict):
            break
        items.extend(page.get("value") or [])
        next_link = page.get(next_key)
        pages += 1
    return items
