"""Tests for the application context: tokens, clients and reconfiguration."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from blackcat.context import ARM, GRAPH, AppContext
from blackcat.exceptions import AuthError, ServerError
from blackcat.models import CacheConfig, CredentialsConfig, EnumerationConfig, GlobalConfig


class TestTokens:
    def test_preloaded_tokens_used(self, make_context) -> None:
        context = make_context()
        assert context.token(ARM) == "arm-token"
        assert context.token(GRAPH) == "graph-token"

    def test_resolved_from_env_once(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("AZURE_GRAPH_TOKEN", "from-env")
        context = AppContext(GlobalConfig())
        assert context.token(GRAPH) == "from-env"
        monkeypatch.setenv("AZURE_GRAPH_TOKEN", "changed")
        assert context.token(GRAPH) == "from-env"

    def test_custom_source(self, tmp_path: Path) -> None:
        token_file = tmp_path / "arm.jwt"
        token_file.write_text("file-token\n", encoding="utf-8")
        config = GlobalConfig(credentials=CredentialsConfig(arm_source=f"file:{token_file}"))
        assert AppContext(config).token(ARM) == "file-token"

    def test_missing_token_is_auth_error(
        self, isolated_config: Path
    ) -> None:
        context = AppContext(GlobalConfig())
        with pytest.raises(AuthError, match="No ARM access token"):
            context.token(ARM)

    def test_unknown_audience(self, make_context) -> None:
        with pytest.raises(ValueError, match="Unknown token audience"):
            make_context().token("vault")


class TestClients:
    def test_graph_client_sends_graph_token(self, make_context) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "me"})

        with make_context(handler).graph_client() as client:
            assert client.get_json("/me") == {"id": "me"}
        assert str(seen[0].url) == "https://graph.microsoft.com/v1.0/me"
        assert seen[0].headers["authorization"] == "Bearer graph-token"

    def test_anonymous_client_does_not_retry(self, make_context) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        with make_context(handler).anonymous_client() as client:
            with pytest.raises(ServerError):
                client.request("GET", "https://contoso.blob.core.windows.net/x")
        assert len(calls) == 1
        assert "authorization" not in calls[0].headers


class TestReconfigure:
    def test_throttle_limit_from_config(self, make_context) -> None:
        config = GlobalConfig(enumeration=EnumerationConfig(throttle_limit=7))
        assert make_context(config=config).throttle_limit == 7

    def test_reconfigure_applies_cache_section(self, make_context) -> None:
        context = make_context()
        context.cache.set("MSGraph", "k", {"v": 1})
        context.reconfigure(GlobalConfig(cache=CacheConfig(enabled=False)))
        assert context.config.cache.enabled is False
        assert context.cache.get("MSGraph", "k") == (None, False)
