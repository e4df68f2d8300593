"""Explicit application context shared by commands and API wrappers.

An :class:`AppContext` owns the resolved configuration, the process-wide
:class:`~blackcat.cache.ResponseCache`, and lazily resolved access tokens.
It is created once per invocation in :func:`~blackcat.app.main_callback` and
stored on ``ctx.obj``; library callers construct their own.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import httpx

from blackcat.cache import ResponseCache
from blackcat.client import ARM_URL, GRAPH_URL, AzureClient
from blackcat.config import resolve_config, resolve_credential
from blackcat.enumeration.subdomains import Resolver, resolve_host
from blackcat.exceptions import AuthError, ConfigError
from blackcat.models import GlobalConfig, RequestConfig

logger = logging.getLogger(__name__)

ARM = "arm"
GRAPH = "graph"


class AppContext:
    """Configuration, cache and credentials for one session.

    Args:
        config: Effective configuration. Defaults to :func:`resolve_config`.
        cache: Response cache. Defaults to a new cache built from
            ``config.cache``.
        tokens: Pre-resolved tokens keyed by audience (``"arm"`` /
            ``"graph"``); anything missing is resolved from
            ``config.credentials`` on first use.
        transport: httpx transport handed to every client (tests).
        resolver: Hostname resolver used by DNS enumeration.
        sleep: Delay function used by client retries.
    """

    def __init__(
        self,
        config: Optional[GlobalConfig] = None,
        cache: Optional[ResponseCache] = None,
        tokens: Optional[dict[str, str]] = None,
        transport: Optional[httpx.BaseTransport] = None,
        resolver: Resolver = resolve_host,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config if config is not None else resolve_config()
        self.cache = cache if cache is not None else ResponseCache(self.config.cache)
        self.transport = transport
        self.resolver = resolver
        self.sleep = sleep
        self._tokens: dict[str, str] = dict(tokens or {})

    @classmethod
    def from_overrides(cls, cli_overrides: Optional[dict[tuple[str, str], Any]] = None) -> AppContext:
        """Build a context from config file, environment and CLI flags."""
        return cls(resolve_config(cli_overrides))

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    @property
    def throttle_limit(self) -> int:
        return self.config.enumeration.throttle_limit

    def reconfigure(self, config: GlobalConfig) -> None:
        """Swap in *config* and apply its cache section to the live cache."""
        self.config = config
        self.cache.configure(config.cache)

    # ------------------------------------------------------------------ #
    # Credentials
    # ------------------------------------------------------------------ #

    def token(self, audience: str) -> str:
        """Access token for *audience* (``"arm"`` or ``"graph"``).

        Raises:
            AuthError: If the configured source yields nothing.
        """
        if audience not in (ARM, GRAPH):
            raise ValueError(f"Unknown token audience: {audience}")
        if audience not in self._tokens:
            creds = self.config.credentials
            source = creds.arm_source if audience == ARM else creds.graph_source
            try:
                value = resolve_credential(source)
            except ConfigError as exc:
                raise AuthError(f"No {audience.upper()} access token: {exc}") from exc
            if not value:
                raise AuthError(f"Empty {audience.upper()} access token from {source}")
            logger.debug("Resolved %s token from %s", audience, source)
            self._tokens[audience] = value
        return self._tokens[audience]

    # ------------------------------------------------------------------ #
    # Clients
    # ------------------------------------------------------------------ #

    def graph_client(self) -> AzureClient:
        return self._client(GRAPH_URL, self.token(GRAPH))

    def arm_client(self) -> AzureClient:
        return self._client(ARM_URL, self.token(ARM))

    def anonymous_client(self) -> AzureClient:
        """Unauthenticated client for storage probing, with the enumeration timeout."""
        request = RequestConfig(
            timeout=int(self.config.enumeration.timeout) or 1,
            verify_ssl=self.config.request.verify_ssl,
            max_retries=0,
        )
        return AzureClient(
            request_config=request, transport=self.transport, sleep=self.sleep
        )

    def _client(self, base_url: str, token: str) -> AzureClient:
        return AzureClient(
            base_url=base_url,
            token=token,
            request_config=self.config.request,
            cache=self.cache,
            transport=self.transport,
            sleep=self.sleep,
        )

    def close(self) -> None:
        self.cache.close()
