"""Synchronous HTTP client for Graph, ARM and storage endpoints.

:class:`AzureClient` wraps :class:`httpx.Client` and layers on:

- **Bearer auth** -- the access token is sent as ``Authorization: Bearer``;
  storage enumeration uses the client without a token.
- **Retry with backoff** -- 5xx responses and network errors are retried
  with exponential delay (1 s, 2 s, 4 s, ...).
- **Throttling** -- ``429`` responses wait for ``Retry-After`` and retry;
  when every retry is used up :class:`~blackcat.exceptions.ThrottledError`
  is raised.
- **Read-through caching** -- :meth:`AzureClient.get_json` and
  :meth:`AzureClient.post_json` consult a
  :class:`~blackcat.cache.ResponseCache` partition before the network and
  populate it afterwards. The cache lock is never held during I/O.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Optional

import httpx

from blackcat.cache.fingerprint import make_key
from blackcat.client.response import error_message, extract_response_data
from blackcat.exceptions import (
    AuthError,
    ConnectionError_,
    NotFoundError,
    ServerError,
    ThrottledError,
)
from blackcat.models import RequestConfig

if TYPE_CHECKING:
    from blackcat.cache import ResponseCache

logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.microsoft.com/v1.0"
ARM_URL = "https://management.azure.com"


def _retry_after(response: httpx.Response, default: int) -> int:
    """Seconds to wait before retrying a throttled response."""
    value = response.headers.get("Retry-After", "")
    try:
        return max(0, int(value))
    except ValueError:
        return default


class AzureClient:
    """HTTP client for Azure REST APIs.

    Must be used as a context manager so the underlying transport is opened
    and closed. A single instance may be shared by enumeration worker
    threads.

    Args:
        base_url: Prefix for relative paths, e.g. :data:`GRAPH_URL`.
            Absolute URLs (Graph ``@odata.nextLink``) bypass it.
        token: Bearer token. ``None`` sends anonymous requests.
        request_config: Timeout, SSL verification and retry count.
        cache: Optional response cache used by the ``*_json`` helpers.
        transport: Custom httpx transport; tests pass
            :class:`httpx.MockTransport`.
        sleep: Delay function used between retries.
    """

    def __init__(
        self,
        base_url: str = "",
        token: Optional[str] = None,
        request_config: Optional[RequestConfig] = None,
        cache: Optional[ResponseCache] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._config = request_config or RequestConfig()
        self._cache = cache
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> AzureClient:
        kwargs: dict[str, Any] = {
            "base_url": self._base_url,
            "timeout": self._config.timeout,
            "verify": self._config.verify_ssl,
            "follow_redirects": True,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        self._client = httpx.Client(**kwargs)
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Optional[Any] = None,
    ) -> httpx.Response:
        """Send a request with auth, retry and error mapping.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ThrottledError: When 429 persists after every retry.
            ServerError: On 5xx after all retries, or any other 4xx.
            ConnectionError_: On network / timeout errors after all retries.
        """
        merged_headers: dict[str, str] = {"Accept": "application/json"}
        if self._token:
            merged_headers["Authorization"] = f"Bearer {self._token}"
        merged_headers.update(headers or {})

        response = self._execute_with_retry(method, path, merged_headers, params, json_body)
        self._map_response_error(response)
        return response

    def get_json(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        cache_type: Optional[str] = None,
        ttl_minutes: Optional[float] = None,
        compress: Optional[bool] = None,
    ) -> Any:
        """GET *path* and return the decoded body, via the cache when *cache_type* is set."""
        return self._read_through(
            "GET", path, params, None, cache_type, ttl_minutes, compress
        )

    def post_json(
        self,
        path: str,
        json_body: Any,
        params: Optional[dict[str, Any]] = None,
        cache_type: Optional[str] = None,
        ttl_minutes: Optional[float] = None,
        compress: Optional[bool] = None,
    ) -> Any:
        """POST a read-only query (e.g. ARM batch) and return the decoded body.

        The fingerprint covers the body, so identical batches share a cache
        entry.
        """
        return self._read_through(
            "POST", path, params, json_body, cache_type, ttl_minutes, compress
        )

    def url_for(self, path: str) -> str:
        """Absolute URL for *path*, as used in cache fingerprints."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}{path}"

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _read_through(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]],
        json_body: Any,
        cache_type: Optional[str],
        ttl_minutes: Optional[float],
        compress: Optional[bool],
    ) -> Any:
        key: Optional[str] = None
        if self._cache is not None and cache_type:
            key = make_key(method, self.url_for(path), params, json_body)
            value, found = self._cache.get(cache_type, key)
            if found:
                logger.debug("Cache hit: %s %s", method, path)
                return value

        response = self.request(method, path, params=params, json_body=json_body)
        data = extract_response_data(response)

        if key is not None and cache_type and data is not None:
            self._cache.set(cache_type, key, data, ttl_minutes=ttl_minutes, compress=compress)
        return data

    def _execute_with_retry(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        params: Optional[dict[str, Any]],
        json_body: Any,
    ) -> httpx.Response:
        """Execute the request, retrying 429, 5xx and network errors.

        Backoff doubles each attempt (1 s, 2 s, 4 s, ...); a ``Retry-After``
        header on 429 takes precedence.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

        max_retries = self._config.max_retries
        for attempt in range(max_retries + 1):
            try:
                kwargs: dict[str, Any] = {
                    "method": method,
                    "url": path,
                    "headers": headers,
                    "params": params,
                }
                if json_body is not None:
                    kwargs["json"] = json_body
                response = self._client.request(**kwargs)
            except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    logger.debug(
                        "Connection error on %s %s: %s, retrying in %ss (attempt %d/%d)",
                        method, path, exc, delay, attempt + 1, max_retries,
                    )
                    self._sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}"
                ) from exc

            if response.status_code == 429:
                wait = _retry_after(response, 2 ** attempt)
                if attempt < max_retries:
                    logger.info(
                        "Throttled on %s %s, waiting %ss (attempt %d/%d)",
                        method, path, wait, attempt + 1, max_retries,
                    )
                    self._sleep(wait)
                    continue
                raise ThrottledError(
                    f"Still throttled after {max_retries + 1} attempts: {method} {path}",
                    retry_after=wait,
                )

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2 ** attempt
                logger.debug(
                    "Server error %d on %s %s, retrying in %ss (attempt %d/%d)",
                    response.status_code, method, path, delay, attempt + 1, max_retries,
                )
                self._sleep(delay)
                continue

            return response

        raise ServerError("Request failed after all retries")  # pragma: no cover

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        msg = error_message(response)
        full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"

        if status in (401, 403):
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg)
        raise ServerError(full_msg)
