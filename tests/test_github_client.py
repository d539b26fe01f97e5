"""GitHub REST and GraphQL client tests."""

from __future__ import annotations

import json

import httpx
import pytest
from github_kanban_mcp.config import LimitsConfig
from github_kanban_mcp.errors import GatewayError
from github_kanban_mcp.github_client import GitHubClient, error_message_from_response
from github_kanban_mcp.github_graphql_client import GitHubGraphQLClient, graphql_url


@pytest.mark.asyncio
async def test_github_client_sends_bearer_auth_header_and_correct_url() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["accept"] = request.headers.get("Accept")
        return httpx.Response(200, json={"ok": True})

    client = GitHubClient(token="tok", limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    out = await client.request_json(method="GET", path="/repos/octo/repo", params={"state": "open"})

    assert out == {"ok": True}
    assert seen["url"] == "https://api.github.com/repos/octo/repo?state=open"
    assert seen["auth"] == "Bearer tok"
    assert seen["accept"] == "application/vnd.github+json"


@pytest.mark.asyncio
async def test_github_client_uses_enterprise_base_url() -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        return httpx.Response(204)

    client = GitHubClient(
        token="tok",
        limits=LimitsConfig(),
        api_base_url="https://ghe.example.com/api/v3/",
        transport=httpx.MockTransport(handler),
    )

    assert await client.request_json(method="DELETE", path="/x") is None
    assert seen["url"] == "https://ghe.example.com/api/v3/x"


@pytest.mark.asyncio
async def test_github_client_does_not_retry_and_keeps_message() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(502, json={"message": "Server Error"})

    client = GitHubClient(token="tok", limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    with pytest.raises(GatewayError) as exc:
        await client.request_json(method="GET", path="/repos/octo/repo/issues")

    assert calls["n"] == 1
    assert exc.value.message == "GitHub request failed: Server Error"
    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_github_client_wraps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = GitHubClient(token="tok", limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    with pytest.raises(GatewayError) as exc:
        await client.request_json(method="GET", path="/x")

    assert exc.value.message.startswith("Network request failed")


@pytest.mark.asyncio
async def test_github_client_rejects_invalid_json() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>")

    client = GitHubClient(token="tok", limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    with pytest.raises(GatewayError) as exc:
        await client.request_json(method="GET", path="/x")

    assert exc.value.message == "GitHub returned invalid JSON"


def test_error_message_includes_validation_codes() -> None:
    resp = httpx.Response(
        422,
        json={"message": "Validation Failed", "errors": [{"resource": "Label", "code": "already_exists"}]},
    )
    assert error_message_from_response(resp) == "Validation Failed (already_exists)"


def test_error_message_falls_back_to_reason_phrase() -> None:
    assert error_message_from_response(httpx.Response(404, content=b"")) == "Not Found"


def test_graphql_url() -> None:
    assert graphql_url("https://api.github.com") == "https://api.github.com/graphql"
    assert graphql_url("https://ghe.example.com/api/v3") == "https://ghe.example.com/api/graphql"


@pytest.mark.asyncio
async def test_graphql_client_posts_query_and_variables() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"deleteIssue": {"repository": {"nameWithOwner": "octo/repo"}}}})

    client = GitHubGraphQLClient(token="tok", limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    result = await client.execute(query="mutation { x }", variables={"issueId": "I_1"})

    assert seen["url"] == "https://api.github.com/graphql"
    assert seen["body"] == {"query": "mutation { x }", "variables": {"issueId": "I_1"}}
    assert result.data["deleteIssue"]["repository"]["nameWithOwner"] == "octo/repo"


@pytest.mark.asyncio
async def test_graphql_client_reports_first_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"errors": [{"message": "Could not resolve to a node"}], "data": None})

    client = GitHubGraphQLClient(token="tok", limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    with pytest.raises(GatewayError) as exc:
        await client.execute(query="mutation { x }")

    assert exc.value.message == "GitHub GraphQL request failed: Could not resolve to a node"


@pytest.mark.asyncio
async def test_graphql_client_requires_data() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    client = GitHubGraphQLClient(token="tok", limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    with pytest.raises(GatewayError):
        await client.execute(query="query { viewer { login } }")


@pytest.mark.asyncio
async def test_graphql_client_rejects_empty_query() -> None:
    client = GitHubGraphQLClient(token="tok", limits=LimitsConfig())
    with pytest.raises(GatewayError):
        await client.execute(query="  ")
