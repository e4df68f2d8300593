"""Shared test fixtures for blackcat.

Provides a controllable clock for time-based cache tests, isolated config
environments, output state management, application contexts wired to fake
transports and resolvers, and a CLI runner. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import httpx
import pytest

from blackcat.cache import ResponseCache
from blackcat.context import AppContext
from blackcat.models import CacheConfig, GlobalConfig
from blackcat.output import OutputFormat, OutputManager, reset_output, set_output


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> None:
        self.now += timedelta(minutes=minutes, seconds=seconds)


def fake_resolver(live: dict[str, list[str]]) -> Callable[[str], list[str]]:
    """Resolver answering from *live*; anything else raises like getaddrinfo."""
    import socket

    def _resolve(hostname: str) -> list[str]:
        if hostname in live:
            return live[hostname]
        raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

    return _resolve


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Clock and cache fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ResponseCache:
    """An enabled cache with defaults, driven by the fake clock."""
    c = ResponseCache(CacheConfig(), clock=clock)
    yield c
    c.close()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_CONFIG_HOME and XDG_DATA_HOME into tmp_path, clears every
    BLACKCAT_* and Azure token variable, and changes the working directory
    to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "BLACKCAT_CACHE_EXPIRATION_MINUTES",
        "BLACKCAT_MAX_CACHE_SIZE_BYTES",
        "BLACKCAT_COMPRESSION_ENABLED",
        "BLACKCAT_CACHE_ENABLED",
        "BLACKCAT_THROTTLE_LIMIT",
        "AZURE_ACCESS_TOKEN",
        "AZURE_GRAPH_TOKEN",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Application context fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_context(cache: ResponseCache) -> Callable[..., AppContext]:
    """Factory for an :class:`AppContext` that never touches the network.

    Tokens are pre-resolved, retries do not sleep, and the shared fake-clock
    cache is used. Pass ``handler`` to answer HTTP requests and ``live`` to
    answer DNS lookups.
    """

    def _make(
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
        live: Optional[dict[str, list[str]]] = None,
        config: Optional[GlobalConfig] = None,
    ) -> AppContext:
        return AppContext(
            config=config or GlobalConfig(),
            cache=cache,
            tokens={"arm": "arm-token", "graph": "graph-token"},
            transport=httpx.MockTransport(handler) if handler is not None else None,
            resolver=fake_resolver(live or {}),
            sleep=lambda _seconds: None,
        )

    return _make


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture
def make_resolver() -> Callable[[dict[str, list[str]]], Callable[[str], list[str]]]:
    """Factory for fake DNS resolvers; see :func:`fake_resolver`."""
    return fake_resolver
