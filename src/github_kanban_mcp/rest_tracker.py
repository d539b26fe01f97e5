"""GitHub REST API backend.

Responses are projected onto the gh `--json` field names so both backends return the
same issue records.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from .errors import GatewayError
from .github_client import GitHubClient
from .github_graphql_client import GitHubGraphQLClient
from .payloads import TempPayload
from .repository import RepositoryRef
from .tracker import LIST_FIELDS

_MUTATION_DELETE_ISSUE = """
mutation($issueId: ID!) {
  deleteIssue(input: { issueId: $issueId }) {
    repository { nameWithOwner }
  }
}
""".strip()


def _state_to_gh(state: object) -> object:
    # REST uses "open"/"closed", gh uses "OPEN"/"CLOSED".
    return state.upper() if isinstance(state, str) else state


def to_gh_issue(data: dict[str, Any]) -> dict[str, Any]:
    """Project a REST issue object onto gh's JSON field names."""
    labels = []
    for label in data.get("labels") or []:
        if isinstance(label, str):
            labels.append({"name": label})
        elif isinstance(label, dict):
            labels.append({k: label.get(k) for k in ("name", "color", "description")})
    assignees = [
        {"login": a.get("login")} for a in data.get("assignees") or [] if isinstance(a, dict)
    ]
    return {
        "number": data.get("number"),
        "title": data.get("title"),
        "state": _state_to_gh(data.get("state")),
        "url": data.get("html_url"),
        "body": data.get("body"),
        "labels": labels,
        "assignees": assignees,
        "createdAt": data.get("created_at"),
        "updatedAt": data.get("updated_at"),
    }


class RestTracker:
    """Tracker implementation on top of the GitHub REST (and GraphQL) API."""

    def __init__(self, github: GitHubClient, graphql: GitHubGraphQLClient, *, page_size: int = 100) -> None:
        self._github = github
        self._graphql = graphql
        self._page_size = page_size

    @staticmethod
    def _repo_path(ref: RepositoryRef) -> str:
        return f"/repos/{ref.owner}/{ref.name}"

    async def _get_issue_raw(self, ref: RepositoryRef, number: int) -> dict[str, Any]:
        data = await self._github.request_json(method="GET", path=f"{self._repo_path(ref)}/issues/{number}")
        if not isinstance(data, dict):
            raise GatewayError("Unexpected issue response")
        return data

    async def list_issues(
        self, ref: RepositoryRef, *, state: str | None, labels: Sequence[str]
    ) -> list[dict[str, Any]]:
        params = {"state": state or "open", "per_page": str(self._page_size)}
        if labels:
            params["labels"] = ",".join(labels)
        data = await self._github.request_json(method="GET", path=f"{self._repo_path(ref)}/issues", params=params)
        if not isinstance(data, list):
            raise GatewayError("Unexpected issue list response")
        # The issues endpoint also returns pull requests.
        issues = [to_gh_issue(item) for item in data if isinstance(item, dict) and "pull_request" not in item]
        return [{k: issue[k] for k in LIST_FIELDS} for issue in issues]

    async def create_issue(
        self,
        ref: RepositoryRef,
        *,
        title: str,
        body: TempPayload | None,
        labels: Sequence[str],
        assignees: Sequence[str],
    ) -> str:
        payload: dict[str, Any] = {"title": title}
        if body is not None:
            payload["body"] = body.content
        if labels:
            payload["labels"] = list(labels)
        if assignees:
            payload["assignees"] = list(assignees)

        data = await self._github.request_json(
            method="POST", path=f"{self._repo_path(ref)}/issues", json_body=payload
        )
        url = data.get("html_url") if isinstance(data, dict) else None
        if not isinstance(url, str):
            raise GatewayError("Unexpected issue response")
        return url

    async def get_issue(self, ref: RepositoryRef, number: int, *, fields: Sequence[str]) -> dict[str, Any]:
        issue = to_gh_issue(await self._get_issue_raw(ref, number))
        return {k: issue.get(k) for k in fields}

    async def set_issue_state(self, ref: RepositoryRef, number: int, *, state: str) -> None:
        await self._github.request_json(
            method="PATCH", path=f"{self._repo_path(ref)}/issues/{number}", json_body={"state": state}
        )

    async def edit_issue(
        self,
        ref: RepositoryRef,
        number: int,
        *,
        title: str | None,
        body: TempPayload | None,
        add_labels: Sequence[str],
        add_assignees: Sequence[str],
    ) -> None:
        issue_path = f"{self._repo_path(ref)}/issues/{number}"
        patch: dict[str, Any] = {}
        if title is not None:
            patch["title"] = title
        if body is not None:
            patch["body"] = body.content
        if patch:
            await self._github.request_json(method="PATCH", path=issue_path, json_body=patch)
        # Additive, like gh's --add-label / --add-assignee.
        if add_labels:
            await self._github.request_json(
                method="POST", path=f"{issue_path}/labels", json_body={"labels": list(add_labels)}
            )
        if add_assignees:
            await self._github.request_json(
                method="POST", path=f"{issue_path}/assignees", json_body={"assignees": list(add_assignees)}
            )

    async def delete_issue(self, ref: RepositoryRef, number: int) -> str:
        raw = await self._get_issue_raw(ref, number)
        node_id = raw.get("node_id")
        if not isinstance(node_id, str):
            raise GatewayError("Unexpected issue response")
        await self._graphql.execute(query=_MUTATION_DELETE_ISSUE, variables={"issueId": node_id})
        return f"Deleted issue #{number} from {ref.full_name}"

    async def add_comment(self, ref: RepositoryRef, number: int, *, body: TempPayload) -> str:
        data = await self._github.request_json(
            method="POST",
            path=f"{self._repo_path(ref)}/issues/{number}/comments",
            json_body={"body": body.content},
        )
        url = data.get("html_url") if isinstance(data, dict) else None
        if not isinstance(url, str):
            raise GatewayError("Unexpected comment response")
        return url

    async def list_labels(self, ref: RepositoryRef) -> list[str]:
        names: list[str] = []
        page = 1
        while True:
            data = await self._github.request_json(
                method="GET",
                path=f"{self._repo_path(ref)}/labels",
                params={"per_page": str(self._page_size), "page": str(page)},
            )
            if not isinstance(data, list):
                raise GatewayError("Unexpected label list response")
            names.extend(item["name"] for item in data if isinstance(item, dict) and isinstance(item.get("name"), str))
            if len(data) < self._page_size:
                return names
            page += 1

    async def create_label(self, ref: RepositoryRef, *, name: str, color: str) -> None:
        await self._github.request_json(
            method="POST",
            path=f"{self._repo_path(ref)}/labels",
            json_body={"name": name, "color": color},
        )

