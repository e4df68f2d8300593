"""CLI tests for ``blackcat graph`` and ``blackcat arm``."""

from __future__ import annotations

import json

import httpx
import pytest

from blackcat.app import app
from blackcat.commands.graph import parse_params
from blackcat.exceptions import InvalidArgumentError

SUB = "11111111-2222-3333-4444-555555555555"


def _users_handler(calls: list[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(
            200, json={"value": [{"id": "1", "displayName": "Alice"}, {"id": "2", "displayName": "Bob"}]}
        )

    return handler


class TestParseParams:
    def test_pairs(self) -> None:
        assert parse_params(["$count=true", "a=b=c"]) == {"$count": "true", "a": "b=c"}

    @pytest.mark.parametrize("pair", ["novalue", "=x"])
    def test_rejects_malformed(self, pair: str) -> None:
        with pytest.raises(InvalidArgumentError):
            parse_params([pair])


class TestGraphGet:
    def test_json_output_and_query(self, cli_runner, make_context) -> None:
        calls: list[httpx.Request] = []
        context = make_context(_users_handler(calls))
        result = cli_runner.invoke(
            app,
            ["--json", "-q", "graph", "get", "/users", "--select", "id,displayName", "--top", "5"],
            obj={"app": context},
        )
        assert result.exit_code == 0, result.output
        assert [u["displayName"] for u in json.loads(result.stdout)] == ["Alice", "Bob"]
        assert calls[0].url.params["$select"] == "id,displayName"
        assert calls[0].url.params["$top"] == "5"

    def test_second_call_served_from_cache(self, cli_runner, make_context) -> None:
        calls: list[httpx.Request] = []
        context = make_context(_users_handler(calls))
        for _ in range(2):
            result = cli_runner.invoke(
                app, ["--no-color", "graph", "get", "users"], obj={"app": context}
            )
            assert result.exit_code == 0, result.output
        assert len(calls) == 1
        assert "2 item(s)" in result.output
        assert context.cache.counters.hits == 1

    def test_no_cache_flag(self, cli_runner, make_context) -> None:
        calls: list[httpx.Request] = []
        context = make_context(_users_handler(calls))
        for _ in range(2):
            cli_runner.invoke(
                app, ["--no-color", "--no-cache", "graph", "get", "/users"], obj={"app": context}
            )
        assert len(calls) == 2
        assert len(context.cache) == 0


class TestArmCommands:
    def test_batch_warns_on_failures(self, cli_runner, make_context) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "responses": [
                        {"name": r["name"], "httpStatusCode": 404 if r["url"] == "/missing" else 200}
                        for r in body["requests"]
                    ]
                },
            )

        result = cli_runner.invoke(
            app,
            ["--no-color", "arm", "batch", "/subscriptions", "/missing"],
            obj={"app": make_context(handler)},
        )
        assert result.exit_code == 0, result.output
        assert "1 of 2 batch request(s) failed" in result.output

    def test_batch_requests_file(self, cli_runner, make_context, tmp_path) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            seen.extend(body["requests"])
            return httpx.Response(
                200,
                json={"responses": [{"name": r["name"], "httpStatusCode": 200} for r in body["requests"]]},
            )

        requests_file = tmp_path / "requests.json"
        requests_file.write_text(
            json.dumps({"requests": [{"url": "/tenants", "name": "tenants"}]}), encoding="utf-8"
        )
        result = cli_runner.invoke(
            app,
            ["--json", "-q", "arm", "batch", "--file", str(requests_file)],
            obj={"app": make_context(handler)},
        )
        assert result.exit_code == 0, result.output
        assert seen[0]["name"] == "tenants"
        assert json.loads(result.stdout)[0]["name"] == "tenants"

    def test_role_assignments_table(self, cli_runner, make_context) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "value": [
                        {
                            "id": "ra1",
                            "name": "ra1",
                            "properties": {
                                "principalId": "p-1",
                                "principalType": "User",
                                "roleDefinitionId": "/providers/Microsoft.Authorization/roleDefinitions/reader",
                                "scope": f"/subscriptions/{SUB}",
                            },
                        }
                    ]
                },
            )

        result = cli_runner.invoke(
            app,
            ["--no-color", "arm", "role-assignments", SUB],
            obj={"app": make_context(handler)},
        )
        assert result.exit_code == 0, result.output
        assert f"p-1\tUser\treader\t/subscriptions/{SUB}" in result.output

    def test_role_assignments_empty(self, cli_runner, make_context) -> None:
        result = cli_runner.invoke(
            app,
            ["--no-color", "arm", "role-assignments", SUB],
            obj={"app": make_context(lambda request: httpx.Response(200, json={"value": []}))},
        )
        assert result.exit_code == 0, result.output
        assert "No role assignments found." in result.output
