"""GitHub REST client wrapper.

Provides:
- no-redirect behavior
- finite timeouts
- error translation into GatewayError (tracker message kept verbatim)

There are no retries: one failed request is one reported failure.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from .config import DEFAULT_API_URL, LimitsConfig
from .errors import GatewayError


def github_headers(token: str) -> dict[str, str]:
    """Standard GitHub API request headers."""
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }


def build_timeout(limits: LimitsConfig) -> httpx.Timeout:
    return httpx.Timeout(
        timeout=limits.total_timeout_s,
        connect=limits.connect_timeout_s,
        read=limits.read_timeout_s,
    )


def error_message_from_response(resp: httpx.Response) -> str:
    """Return GitHub's error message, including validation error codes when present.

    e.g. "Validation Failed (already_exists)".
    """
    try:
        payload = resp.json()
    except ValueError:
        payload = None

    message = None
    details: list[str] = []
    if isinstance(payload, dict):
        if isinstance(payload.get("message"), str):
            message = payload["message"]
        errors = payload.get("errors")
        if isinstance(errors, list):
            for item in errors:
                if isinstance(item, dict):
                    detail = item.get("message") or item.get("code")
                    if isinstance(detail, str):
                        details.append(detail)
                elif isinstance(item, str):
                    details.append(item)

    text = message or resp.reason_phrase or "GitHub request failed"
    if details:
        text = f"{text} ({', '.join(details)})"
    return text


class GitHubClient:
    """Minimal GitHub REST client."""

    def __init__(
        self,
        *,
        token: str,
        limits: LimitsConfig,
        api_base_url: str = DEFAULT_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a GitHub REST client.

        Args:
            token: Token supplied by the host environment.
            limits: Timeouts.
            api_base_url: REST API root (GitHub Enterprise hosts use their own).
            transport: Optional httpx transport for tests.
        """
        self._token = token
        self._limits = limits
        self._api_base_url = api_base_url.rstrip("/")
        self._transport = transport

    async def request_json(
        self,
        *,
        method: str,
        path: str,
        json_body: dict | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """Make a request and return decoded JSON (None for empty responses).

        Raises:
            GatewayError: On transport failure, HTTP status >= 400 or invalid JSON.
        """
        url = f"{self._api_base_url}{path}"

        async with httpx.AsyncClient(
            follow_redirects=False,
            timeout=build_timeout(self._limits),
            transport=self._transport,
        ) as client:
            try:
                resp = await client.request(
                    method,
                    url,
                    headers=github_headers(self._token),
                    json=json_body,
                    params=params,
                )
            except httpx.HTTPError as exc:
                raise GatewayError(f"Network request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise GatewayError(
                f"GitHub request failed: {error_message_from_response(resp)}",
                status_code=resp.status_code,
            )

        if resp.status_code == 204 or not resp.content:
            return None

        try:
            return resp.json()
        except json.JSONDecodeError as exc:
            raise GatewayError("GitHub returned invalid JSON") from exc
