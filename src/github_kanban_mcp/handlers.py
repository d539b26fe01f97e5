"""Tool implementations.

Each handler validates its own arguments before making any tracker call, then runs a
linear pipeline against the tracker. Bodies travel through a temp payload that is
released as soon as the call using it returns or fails.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from .errors import InvalidParamsError
from .labels import ensure_labels
from .repository import RepositoryRef
from .tracker import LIST_FIELDS, SUMMARY_FIELDS, issue_number_from_url

if TYPE_CHECKING:
    from .tools import Runtime

logger = logging.getLogger(__name__)

LIST_STATES = ("open", "closed", "all")
ISSUE_STATES = ("open", "closed")

CREATED_FIELDS: tuple[str, ...] = ("number", "title", "url")


def _require_str(arguments: dict[str, Any], key: str, message: str | None = None) -> str:
    v = arguments.get(key)
    if not isinstance(v, str) or not v.strip():
        raise InvalidParamsError(message or f"Field '{key}' is required")
    return v


def _optional_str(arguments: dict[str, Any], key: str) -> str | None:
    v = arguments.get(key)
    if v is None:
        return None
    if not isinstance(v, str):
        raise InvalidParamsError(f"Field '{key}' must be a string")
    return v


def _optional_choice(arguments: dict[str, Any], key: str, choices: Sequence[str]) -> str | None:
    v = _optional_str(arguments, key)
    if not v:
        return None
    if v not in choices:
        raise InvalidParamsError(f"Field '{key}' must be one of: {', '.join(choices)}")
    return v


def _str_list(arguments: dict[str, Any], key: str) -> list[str]:
    v = arguments.get(key)
    if v is None:
        return []
    if not isinstance(v, list) or not all(isinstance(item, str) and item.strip() for item in v):
        raise InvalidParamsError(f"Field '{key}' must be an array of non-empty strings")
    return list(dict.fromkeys(item.strip() for item in v))


def _label_list(arguments: dict[str, Any], key: str = "labels") -> list[str]:
    labels = _str_list(arguments, key)
    # gh splits --label values on commas.
    bad = [label for label in labels if "," in label]
    if bad:
        raise InvalidParamsError(f"Label names must not contain commas: {', '.join(map(repr, bad))}")
    return labels


def normalize_issue_number(value: Any) -> int:
    """Accept 42, 42.0, "42" or "#42" and return 42."""
    if value is None or value == "":
        raise InvalidParamsError("Issue number is required")
    number: int | None = None
    if isinstance(value, bool):
        number = None
    elif isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str):
        token = value.strip().removeprefix("#")
        if token.isascii() and token.isdigit():
            number = int(token)
    if number is None or number < 1:
        raise InvalidParamsError(f"Field 'issue_number' must be a positive integer (got {value!r})")
    return number


def with_emoji(title: str, emoji: str | None) -> str:
    """Prefix the title with an emoji, separated by one space."""
    emoji = (emoji or "").strip()
    return f"{emoji} {title}" if emoji else title


def _shape_issue(issue: dict[str, Any], fields: Sequence[str]) -> dict[str, Any]:
    out = {k: issue.get(k) for k in fields}
    if isinstance(out.get("state"), str):
        out["state"] = out["state"].lower()
    return out


async def handle_list_issues(runtime: Runtime, ref: RepositoryRef, arguments: dict[str, Any]) -> dict[str, Any]:
    state = _optional_choice(arguments, "state", LIST_STATES)
    labels = _label_list(arguments)

    issues = await runtime.tracker.list_issues(ref, state=state, labels=labels)
    return {"issues": [_shape_issue(issue, LIST_FIELDS) for issue in issues]}


async def handle_create_issue(runtime: Runtime, ref: RepositoryRef, arguments: dict[str, Any]) -> dict[str, Any]:
    title = _require_str(arguments, "title", "Title is required")
    emoji = _optional_str(arguments, "emoji")
    body = _optional_str(arguments, "body") or None
    labels = _label_list(arguments)
    assignees = _str_list(arguments, "assignees")

    await ensure_labels(runtime.tracker, ref, labels)

    with runtime.payloads.scoped(body) as payload:
        url = await runtime.tracker.create_issue(
            ref,
            title=with_emoji(title, emoji),
            body=payload,
            labels=labels,
            assignees=assignees,
        )

    number = issue_number_from_url(url)
    logger.info("Created issue #%s in %s", number, ref)
    issue = await runtime.tracker.get_issue(ref, number, fields=CREATED_FIELDS)
    return _shape_issue(issue, CREATED_FIELDS)


async def handle_update_issue(runtime: Runtime, ref: RepositoryRef, arguments: dict[str, Any]) -> dict[str, Any]:
    number = normalize_issue_number(arguments.get("issue_number"))
    title = _optional_str(arguments, "title") or None
    emoji = _optional_str(arguments, "emoji")
    body = _optional_str(arguments, "body") or None
    state = _optional_choice(arguments, "state", ISSUE_STATES)
    labels = _label_list(arguments)
    assignees = _str_list(arguments, "assignees")

    if emoji and title is None:
        logger.debug("Ignoring emoji for issue #%s: no title given", number)

    if labels:
        await ensure_labels(runtime.tracker, ref, labels)

    if state:
        await runtime.tracker.set_issue_state(ref, number, state=state)

    if title is not None or body is not None or labels or assignees:
        with runtime.payloads.scoped(body) as payload:
            await runtime.tracker.edit_issue(
                ref,
                number,
                title=with_emoji(title, emoji) if title is not None else None,
                body=payload,
                add_labels=labels,
                add_assignees=assignees,
            )

    issue = await runtime.tracker.get_issue(ref, number, fields=SUMMARY_FIELDS)
    return _shape_issue(issue, SUMMARY_FIELDS)


async def handle_delete_issue(runtime: Runtime, ref: RepositoryRef, arguments: dict[str, Any]) -> dict[str, Any]:
    number = normalize_issue_number(arguments.get("issue_number"))

    message = await runtime.tracker.delete_issue(ref, number)
    logger.info("Deleted issue #%s in %s", number, ref)
    return {"number": number, "deleted": True, "message": message}


async def handle_add_comment(runtime: Runtime, ref: RepositoryRef, arguments: dict[str, Any]) -> dict[str, Any]:
    number = normalize_issue_number(arguments.get("issue_number"))
    body = _require_str(arguments, "body", "Comment body is required")
    state = _optional_choice(arguments, "state", ISSUE_STATES)

    if state:
        await runtime.tracker.set_issue_state(ref, number, state=state)

    with runtime.payloads.scoped(body) as payload:
        comment_url = await runtime.tracker.add_comment(ref, number, body=payload)

    issue = await runtime.tracker.get_issue(ref, number, fields=SUMMARY_FIELDS)
    result = _shape_issue(issue, SUMMARY_FIELDS)
    result["comment_url"] = comment_url
    return result
