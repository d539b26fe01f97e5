"""Tracker interface shared by the gh CLI and REST backends.

Issue records use the field names of `gh issue ... --json` (number, title, state, url,
labels, assignees, createdAt, updatedAt) regardless of the backend.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from .errors import GatewayError
from .payloads import TempPayload
from .repository import RepositoryRef

LIST_FIELDS: tuple[str, ...] = ("number", "title", "state", "labels", "assignees", "createdAt", "updatedAt")
SUMMARY_FIELDS: tuple[str, ...] = ("number", "title", "state", "url")


class Tracker(Protocol):
    """Calls into the external issue tracker."""

    async def list_issues(
        self, ref: RepositoryRef, *, state: str | None, labels: Sequence[str]
    ) -> list[dict[str, Any]]: ...

    async def create_issue(
        self,
        ref: RepositoryRef,
        *,
        title: str,
        body: TempPayload | None,
        labels: Sequence[str],
        assignees: Sequence[str],
    ) -> str:
        """Create an issue and return its URL."""
        ...

    async def get_issue(self, ref: RepositoryRef, number: int, *, fields: Sequence[str]) -> dict[str, Any]: ...

    async def set_issue_state(self, ref: RepositoryRef, number: int, *, state: str) -> None: ...

    async def edit_issue(
        self,
        ref: RepositoryRef,
        number: int,
        *,
        title: str | None,
        body: TempPayload | None,
        add_labels: Sequence[str],
        add_assignees: Sequence[str],
    ) -> None: ...

    async def delete_issue(self, ref: RepositoryRef, number: int) -> str:
        """Delete an issue and return the tracker's confirmation text."""
        ...

    async def add_comment(self, ref: RepositoryRef, number: int, *, body: TempPayload) -> str:
        """Comment on an issue and return the comment URL."""
        ...

    async def list_labels(self, ref: RepositoryRef) -> list[str]: ...

    async def create_label(self, ref: RepositoryRef, *, name: str, color: str) -> None: ...


def issue_number_from_url(url: str) -> int:
    """Return the issue number from an issue URL (its final path segment).

    Raises:
        GatewayError: If the URL does not end in a number.
    """
    segment = url.strip().rstrip("/").rsplit("/", 1)[-1]
    if not (segment.isascii() and segment.isdigit()):
        raise GatewayError(
            "Unexpected response format from tracker",
            hint=f"Expected an issue URL, got {url.strip()!r}",
        )
    return int(segment)
