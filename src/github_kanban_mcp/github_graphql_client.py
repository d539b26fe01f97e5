"""GitHub GraphQL client wrapper.

Used for the operations the REST API does not offer (issue deletion).
Intended only for fixed query/mutation documents controlled by the server.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx

from .config import DEFAULT_API_URL, LimitsConfig
from .errors import GatewayError
from .github_client import build_timeout, error_message_from_response, github_headers


@dataclass(frozen=True, slots=True)
class GraphQLResult:
    """Parsed GraphQL response."""

    data: dict[str, Any]


def graphql_url(api_base_url: str) -> str:
    """Return the GraphQL endpoint for a REST API root.

    GitHub Enterprise serves REST under /api/v3 and GraphQL under /api/graphql.
    """
    base = api_base_url.rstrip("/")
    if base.endswith("/api/v3"):
        return base[: -len("/v3")] + "/graphql"
    return f"{base}/graphql"


class GitHubGraphQLClient:
    """Minimal GitHub GraphQL client (POST /graphql only)."""

    def __init__(
        self,
        *,
        token: str,
        limits: LimitsConfig,
        api_base_url: str = DEFAULT_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._limits = limits
        self._url = graphql_url(api_base_url)
        self._transport = transport

    async def execute(self, *, query: str, variables: dict[str, Any] | None = None) -> GraphQLResult:
        """Execute a fixed GraphQL query/mutation and return parsed data."""
        if not isinstance(query, str) or not query.strip():
            raise GatewayError("GraphQL query is missing")

        async with httpx.AsyncClient(
            follow_redirects=False,
            timeout=build_timeout(self._limits),
            transport=self._transport,
        ) as client:
            try:
                resp = await client.post(
                    self._url,
                    headers=github_headers(self._token),
                    json={"query": query, "variables": variables or {}},
                )
            except httpx.HTTPError as exc:
                raise GatewayError(f"Network request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise GatewayError(
                f"GitHub GraphQL request failed: {error_message_from_response(resp)}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except json.JSONDecodeError as exc:
            raise GatewayError("GitHub returned invalid JSON") from exc

        if not isinstance(payload, dict):
            raise GatewayError("GitHub returned invalid JSON")

        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            detail = first.get("message") if isinstance(first, dict) else None
            message = "GitHub GraphQL request failed"
            if isinstance(detail, str):
                message = f"{message}: {detail}"
            raise GatewayError(message)

        data = payload.get("data")
        if not isinstance(data, dict):
            raise GatewayError("GitHub GraphQL returned no data")

        return GraphQLResult(data=data)
