"""Error paths and argument validation for the dispatcher."""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import github_kanban_mcp.tools as tools
import pytest
from github_kanban_mcp.audit import AuditEvent
from github_kanban_mcp.config import AppConfig, LimitsConfig
from github_kanban_mcp.errors import (GatewayError, IdentityError,
                                      InvalidParamsError, MethodNotFoundError,
                                      ToolError)
from github_kanban_mcp.handlers import normalize_issue_number, with_emoji
from github_kanban_mcp.payloads import TempPayloadChannel


@dataclass
class DummyAudit:
    events: list[AuditEvent]

    def write_event(self, event: AuditEvent) -> None:
        self.events.append(event)

    def measure_start(self) -> float:
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)


class ScriptedTracker:
    """Fails every call unless a result (or exception) was scripted for it."""

    def __init__(self, **results: object) -> None:
        self._results = results
        self.calls: list[str] = []

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)

        async def call(*_args: Any, **_kwargs: Any) -> object:
            self.calls.append(name)
            if name not in self._results:
                raise AssertionError(f"Unexpected tracker call: {name}")
            val = self._results[name]
            if isinstance(val, BaseException):
                raise val
            return val

        return call


def _dispatcher(tmp_path: Path, tracker: object, *, defaults: bool = True) -> tuple[tools.Dispatcher, DummyAudit]:
    cfg = AppConfig(
        backend="cli",
        gh_path="gh",
        host="github.com",
        default_owner="octo" if defaults else None,
        default_repo="board" if defaults else None,
        github_token=None,
        api_base_url="https://api.github.com",
        scratch_dir=tmp_path / "scratch",
        audit_log_path=None,
        audit_max_bytes=5 * 1024 * 1024,
        audit_max_backups=2,
        limits=LimitsConfig(),
    )
    audit = DummyAudit(events=[])
    runtime = tools.Runtime(
        config=cfg,
        audit=audit,  # type: ignore[arg-type]
        tracker=tracker,  # type: ignore[arg-type]
        payloads=TempPayloadChannel(cfg.scratch_dir),
    )
    return tools.Dispatcher(runtime), audit


@pytest.mark.asyncio
async def test_unknown_tool_is_method_not_found(tmp_path: Path) -> None:
    tracker = ScriptedTracker()
    dispatcher, audit = _dispatcher(tmp_path, tracker)

    with pytest.raises(MethodNotFoundError) as exc:
        await dispatcher.dispatch("move_card", {})

    assert exc.value.message == "Unknown tool: move_card"
    assert exc.value.hint is not None and "list_issues" in exc.value.hint
    assert tracker.calls == []
    assert audit.events[0].outcome == "denied"
    assert audit.events[0].error_code == "MethodNotFound"


@pytest.mark.asyncio
async def test_missing_title_makes_no_tracker_calls(tmp_path: Path) -> None:
    tracker = ScriptedTracker()
    dispatcher, audit = _dispatcher(tmp_path, tracker)

    with pytest.raises(InvalidParamsError) as exc:
        await dispatcher.dispatch("create_issue", {"owner": "octo", "repo": "board"})

    assert exc.value.message == "Missing required field: title"
    assert tracker.calls == []
    assert audit.events[0].error_code == "InvalidParams"


@pytest.mark.asyncio
async def test_blank_title_is_rejected(tmp_path: Path) -> None:
    dispatcher, _ = _dispatcher(tmp_path, ScriptedTracker())

    with pytest.raises(InvalidParamsError):
        await dispatcher.dispatch("create_issue", {"title": "   "})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("name", "arguments", "fragment"),
    [
        ("list_issues", {"state": "merged"}, "must be one of"),
        ("list_issues", {"labels": "bug"}, "must be of type array"),
        ("list_issues", {"labels": ["bug", 3]}, "array of strings"),
        ("list_issues", {"column": "todo"}, "Unexpected fields: column"),
        ("update_issue", {"issue_number": True}, "must be of type integer or string"),
        ("update_issue", {"issue_number": "abc"}, "positive integer"),
        ("update_issue", {"issue_number": 0}, "positive integer"),
        ("update_issue", {"issue_number": 1.5}, "must be of type integer or string"),
        ("delete_issue", {}, "Missing required field: issue_number"),
        ("add_comment", {"issue_number": 1}, "Missing required field: body"),
        ("add_comment", {"issue_number": 1, "body": ""}, "at least 1 characters"),
        ("add_comment", {"issue_number": 1, "body": "x", "state": "all"}, "must be one of"),
    ],
)
async def test_invalid_arguments(tmp_path: Path, name: str, arguments: dict[str, Any], fragment: str) -> None:
    tracker = ScriptedTracker()
    dispatcher, _ = _dispatcher(tmp_path, tracker)

    with pytest.raises(InvalidParamsError) as exc:
        await dispatcher.dispatch(name, arguments)

    assert fragment in exc.value.message
    assert tracker.calls == []


@pytest.mark.asyncio
async def test_unresolvable_repository_is_invalid_request(tmp_path: Path) -> None:
    tracker = ScriptedTracker()
    dispatcher, audit = _dispatcher(tmp_path, tracker, defaults=False)

    with pytest.raises(IdentityError) as exc:
        await dispatcher.dispatch("list_issues", {})

    assert exc.value.code == "InvalidRequest"
    assert tracker.calls == []
    assert audit.events[0].target_repo == "<unknown>"


@pytest.mark.asyncio
async def test_gateway_error_passes_through_verbatim(tmp_path: Path) -> None:
    tracker = ScriptedTracker(delete_issue=GatewayError("HTTP 404: Not Found", status_code=1))
    dispatcher, audit = _dispatcher(tmp_path, tracker)

    with pytest.raises(GatewayError) as exc:
        await dispatcher.dispatch("delete_issue", {"issue_number": 999})

    assert exc.value.message == "HTTP 404: Not Found"
    assert audit.events[0].outcome == "failed"
    assert audit.events[0].target_repo == "octo/board"


@pytest.mark.asyncio
async def test_unexpected_exception_is_wrapped(tmp_path: Path) -> None:
    tracker = ScriptedTracker(list_issues=RuntimeError("socket closed"))
    dispatcher, audit = _dispatcher(tmp_path, tracker)

    with pytest.raises(ToolError) as exc:
        await dispatcher.dispatch("list_issues", {})

    assert exc.value.code == "Internal"
    assert exc.value.message == "GitHub error: socket closed"
    assert isinstance(exc.value.__cause__, RuntimeError)
    assert audit.events[0].error_code == "Internal"


@pytest.mark.asyncio
async def test_malformed_create_response(tmp_path: Path) -> None:
    tracker = ScriptedTracker(create_issue="Created issue\n")
    dispatcher, _ = _dispatcher(tmp_path, tracker)

    with pytest.raises(GatewayError) as exc:
        await dispatcher.dispatch("create_issue", {"title": "T"})

    assert exc.value.message == "Unexpected response format from tracker"
    assert tracker.calls == ["create_issue"]


@pytest.mark.asyncio
async def test_strict_label_failure_stops_create(tmp_path: Path) -> None:
    tracker = ScriptedTracker(list_labels=[], create_label=GatewayError("HTTP 403: Forbidden"))
    dispatcher, _ = _dispatcher(tmp_path, tracker)

    with pytest.raises(GatewayError) as exc:
        await dispatcher.dispatch("create_issue", {"title": "T", "labels": ["todo"]})

    assert exc.value.message == "Failed to create label todo: HTTP 403: Forbidden"
    assert "create_issue" not in tracker.calls


@pytest.mark.asyncio
async def test_comment_body_file_removed_when_tracker_fails(tmp_path: Path) -> None:
    tracker = ScriptedTracker(add_comment=GatewayError("HTTP 500"))
    dispatcher, _ = _dispatcher(tmp_path, tracker)

    with pytest.raises(GatewayError):
        await dispatcher.dispatch("add_comment", {"issue_number": 3, "body": "hello"})

    assert list((tmp_path / "scratch").iterdir()) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("name", "arguments", "failing_call"),
    [
        ("create_issue", {"title": "T", "body": "multi\nline"}, "create_issue"),
        ("update_issue", {"issue_number": 3, "body": "new\ntext"}, "edit_issue"),
        ("add_comment", {"issue_number": 3, "body": "hi\nthere"}, "add_comment"),
    ],
)
async def test_gateway_error_with_body_keeps_message_and_status(
    tmp_path: Path, name: str, arguments: dict[str, Any], failing_call: str
) -> None:
    tracker = ScriptedTracker(**{failing_call: GatewayError("could not add label: 'x' not found", status_code=1)})
    dispatcher, audit = _dispatcher(tmp_path, tracker)

    with pytest.raises(GatewayError) as exc:
        await dispatcher.dispatch(name, arguments)

    assert exc.value.message == "could not add label: 'x' not found"
    assert exc.value.status_code == 1
    assert tracker.calls == [failing_call]
    assert audit.events[0].error_code == "Internal"
    assert list((tmp_path / "scratch").iterdir()) == []


@pytest.mark.asyncio
async def test_label_failure_on_update_leaves_state_untouched(tmp_path: Path) -> None:
    tracker = ScriptedTracker(list_labels=[], create_label=GatewayError("HTTP 403: Forbidden"))
    dispatcher, _ = _dispatcher(tmp_path, tracker)

    with pytest.raises(GatewayError) as exc:
        await dispatcher.dispatch("update_issue", {"issue_number": 3, "state": "closed", "labels": ["todo"]})

    assert exc.value.message == "Failed to create label todo: HTTP 403: Forbidden"
    assert tracker.calls == ["list_labels", "create_label"]
    assert "set_issue_state" not in tracker.calls


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("name", "arguments"),
    [
        ("create_issue", {"title": "T", "labels": ["a,b"]}),
        ("update_issue", {"issue_number": 3, "labels": ["todo", "in,progress"]}),
        ("list_issues", {"labels": ["x,y"]}),
    ],
)
async def test_label_names_with_commas_are_rejected(tmp_path: Path, name: str, arguments: dict[str, Any]) -> None:
    tracker = ScriptedTracker()
    dispatcher, _ = _dispatcher(tmp_path, tracker)

    with pytest.raises(InvalidParamsError) as exc:
        await dispatcher.dispatch(name, arguments)

    assert "must not contain commas" in exc.value.message
    assert tracker.calls == []


@pytest.mark.parametrize(("value", "expected"), [(42, 42), (42.0, 42), ("42", 42), (" #42 ", 42)])
def test_normalize_issue_number(value: object, expected: int) -> None:
    assert normalize_issue_number(value) == expected


@pytest.mark.parametrize("value", [None, "", False, -1, "4a", "٤٢"])
def test_normalize_issue_number_rejects(value: object) -> None:
    with pytest.raises(InvalidParamsError):
        normalize_issue_number(value)


def test_with_emoji() -> None:
    assert with_emoji("Title", "🐛") == "🐛 Title"
    assert with_emoji("Title", None) == "Title"
    assert with_emoji("Title", "  ") == "Title"


def test_validate_tool_arguments_accepts_string_issue_number() -> None:
    tools.validate_tool_arguments("update_issue", {"issue_number": "#7", "labels": []})
