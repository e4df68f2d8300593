"""Microsoft Graph queries."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from blackcat.azure.paging import GRAPH_NEXT_LINK, collect_pages
from blackcat.cache import CacheType
from blackcat.exceptions import InvalidArgumentError

if TYPE_CHECKING:
    from blackcat.context import AppContext


def invoke_msgraph(
    ctx: AppContext,
    path: str,
    params: Optional[dict[str, Any]] = None,
    use_cache: bool = True,
    ttl_minutes: Optional[float] = None,
    all_pages: bool = True,
) -> Any:
    """GET a Graph resource, following ``@odata.nextLink`` across pages.

    Args:
        ctx: Application context supplying the Graph token and cache.
        path: Path relative to ``https://graph.microsoft.com/v1.0``
            (``/users``) or an absolute Graph URL.
        params: OData query parameters (``$select``, ``$filter``, ...).
        use_cache: Read through the ``MSGraph`` cache partition.
        ttl_minutes: Lifetime of newly cached pages.
        all_pages: Follow continuation links; ``False`` returns page one.

    Returns:
        The concatenated ``value`` items for collections, otherwise the
        decoded response body.

    Raises:
        InvalidArgumentError: If *path* is empty.
        AuthError: If no Graph token is available or Graph rejects it.
    """
    if not path or not path.strip():
        raise InvalidArgumentError("Graph path must not be empty")
    if not path.startswith(("/", "http://", "https://")):
        path = f"/{path}"

    with ctx.graph_client() as client:
        return collect_pages(
            client,
            path,
            params,
            next_key=GRAPH_NEXT_LINK,
            cache_type=CacheType.MSGRAPH if use_cache else None,
            ttl_minutes=ttl_minutes,
            all_pages=all_pages,
        )
