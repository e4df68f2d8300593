"""HTTP client module for blackcat.

:class:`AzureClient` wraps :class:`httpx.Client` with bearer-token
injection, retry with exponential backoff, ``429 Retry-After`` handling, typed
error mapping, and read-through caching into a
:class:`~blackcat.cache.ResponseCache` partition.

Example::

    from blackcat.client import AzureClient

    with AzureClient(GRAPH_URL, token=token, cache=ctx.cache) as client:
        users = client.get_json("/users", cache_type=CacheType.MSGRAPH)
"""

from blackcat.client.azure_client import ARM_URL, GRAPH_URL, AzureClient

__all__ = ["ARM_URL", "GRAPH_URL", "AzureClient"]
