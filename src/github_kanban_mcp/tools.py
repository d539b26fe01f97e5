"""Tool registry and dispatch layer.

This module:
- defines the served tools (public contract surface)
- builds a runtime from host-provided config
- resolves the target repository once per call and routes to the handler
- writes one audit event per call and classifies every failure as a ToolError
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .audit import (OUTCOME_DENIED, OUTCOME_FAILED, OUTCOME_SUCCEEDED,
                    AuditLogger, build_event, new_correlation_id)
from .config import BACKEND_API, AppConfig
from .errors import (CONFIG_CODE, INTERNAL_CODE, InvalidParamsError,
                     MethodNotFoundError, ToolError, internal_error)
from .gateway import GhCli, GhCliTracker
from .github_client import GitHubClient
from .github_graphql_client import GitHubGraphQLClient
from .handlers import (ISSUE_STATES, LIST_STATES, handle_add_comment,
                       handle_create_issue, handle_delete_issue,
                       handle_list_issues, handle_update_issue)
from .payloads import TempPayloadChannel
from .repository import RepositoryRef, resolve_repository
from .rest_tracker import RestTracker
from .tracker import Tracker

logger = logging.getLogger(__name__)

_REPO_PROPERTIES: dict[str, Any] = {
    "owner": {"type": "string", "description": "Repository owner (user or organization)"},
    "repo": {"type": "string", "description": "Repository name, or 'owner/name'"},
    "path": {"type": "string", "description": "Absolute path of a local clone whose 'origin' remote names the repository"},
}

_ISSUE_NUMBER = {"type": ["integer", "string"], "description": "Issue number"}
_STRING_ARRAY = {"type": "array", "items": {"type": "string"}}

TOOL_METADATA: dict[str, dict[str, Any]] = {
    "list_issues": {
        "description": "List issues on the kanban board (repository issues).",
        "inputSchema": {
            "type": "object",
            "required": [],
            "properties": {
                **_REPO_PROPERTIES,
                "state": {"type": "string", "enum": list(LIST_STATES), "description": "Issue state"},
                "labels": {**_STRING_ARRAY, "description": "Only issues carrying all of these labels"},
            },
            "additionalProperties": False,
        },
    },
    "create_issue": {
        "description": "Create a new issue. Missing labels are created first.",
        "inputSchema": {
            "type": "object",
            "required": ["title"],
            "properties": {
                **_REPO_PROPERTIES,
                "title": {"type": "string", "minLength": 1, "description": "Issue title"},
                "emoji": {"type": "string", "description": "Emoji prepended to the title"},
                "body": {"type": "string", "description": "Issue body (Markdown)"},
                "labels": {**_STRING_ARRAY, "description": "Labels to apply"},
                "assignees": {**_STRING_ARRAY, "description": "Logins to assign"},
            },
            "additionalProperties": False,
        },
    },
    "update_issue": {
        "description": "Update an existing issue. A state change is applied before other edits.",
        "inputSchema": {
            "type": "object",
            "required": ["issue_number"],
            "properties": {
                **_REPO_PROPERTIES,
                "issue_number": _ISSUE_NUMBER,
                "title": {"type": "string", "description": "New title"},
                "emoji": {"type": "string", "description": "Emoji prepended to the new title"},
                "body": {"type": "string", "description": "New body (Markdown)"},
                "state": {"type": "string", "enum": list(ISSUE_STATES), "description": "New state"},
                "labels": {**_STRING_ARRAY, "description": "Labels to add"},
                "assignees": {**_STRING_ARRAY, "description": "Logins to add as assignees"},
            },
            "additionalProperties": False,
        },
    },
    "delete_issue": {
        "description": "Delete an issue (task) from the kanban board.",
        "inputSchema": {
            "type": "object",
            "required": ["issue_number"],
            "properties": {
                **_REPO_PROPERTIES,
                "issue_number": _ISSUE_NUMBER,
            },
            "additionalProperties": False,
        },
    },
    "add_comment": {
        "description": "Add a comment to an issue (task), optionally changing its state first.",
        "inputSchema": {
            "type": "object",
            "required": ["issue_number", "body"],
            "properties": {
                **_REPO_PROPERTIES,
                "issue_number": _ISSUE_NUMBER,
                "body": {"type": "string", "minLength": 1, "description": "Comment text (Markdown)"},
                "state": {
                    "type": "string",
                    "enum": list(ISSUE_STATES),
                    "description": "State to set on the issue before commenting",
                },
            },
            "additionalProperties": False,
        },
    },
}


@dataclass(frozen=True, slots=True)
class Runtime:
    """Per-server dependencies shared across tool calls."""

    config: AppConfig
    audit: AuditLogger
    tracker: Tracker
    payloads: TempPayloadChannel


Handler = Callable[[Runtime, RepositoryRef, dict[str, Any]], Awaitable[dict[str, Any]]]

_TOOL_FUNCS: dict[str, Handler] = {
    "list_issues": handle_list_issues,
    "create_issue": handle_create_issue,
    "update_issue": handle_update_issue,
    "delete_issue": handle_delete_issue,
    "add_comment": handle_add_comment,
}

_JSON_TYPES: dict[str, Callable[[Any], bool]] = {
    "string": lambda v: isinstance(v, str),
    "integer": lambda v: (isinstance(v, int) and not isinstance(v, bool)) or (isinstance(v, float) and v.is_integer()),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
}


def validate_tool_arguments(tool_name: str, arguments: dict[str, Any]) -> None:
    """Validate tool arguments against the tool's declared input schema.

    This is intentionally a minimal validator that enforces:
    - required fields
    - no extra properties when additionalProperties=false
    - basic JSON types (a single type or a list of types)
    - string enums and minLength, array item types

    It does NOT implement full JSON Schema.
    """
    if tool_name not in TOOL_METADATA:
        raise MethodNotFoundError(f"Unknown tool: {tool_name}")

    schema = TOOL_METADATA[tool_name]["inputSchema"]
    props: dict[str, Any] = schema.get("properties", {})
    required: list[str] = schema.get("required", [])

    for k in required:
        if arguments.get(k) is None:
            raise InvalidParamsError(f"Missing required field: {k}")

    if schema.get("additionalProperties", True) is False:
        extras = sorted(k for k in arguments if k not in props)
        if extras:
            raise InvalidParamsError(f"Unexpected fields: {', '.join(extras)}")

    for k, spec in props.items():
        v = arguments.get(k)
        if v is None:
            continue
        expected = spec.get("type")
        types = expected if isinstance(expected, list) else [expected]
        if expected is not None and not any(_JSON_TYPES[t](v) for t in types):
            raise InvalidParamsError(f"Field '{k}' must be of type {' or '.join(types)}")

        if isinstance(v, str):
            enum = spec.get("enum")
            if enum is not None and v not in enum:
                raise InvalidParamsError(f"Field '{k}' must be one of: {', '.join(enum)}")
            min_len = spec.get("minLength")
            if isinstance(min_len, int) and len(v.strip()) < min_len:
                raise InvalidParamsError(f"Field '{k}' must be at least {min_len} characters")

        if isinstance(v, list):
            item_type = spec.get("items", {}).get("type")
            if item_type is not None and not all(_JSON_TYPES[item_type](item) for item in v):
                raise InvalidParamsError(f"Field '{k}' must be an array of {item_type}s")


def build_tracker(config: AppConfig) -> Tracker:
    """Create the tracker backend selected by the configuration."""
    if config.backend == BACKEND_API:
        # load_config_from_env guarantees a token for the api backend.
        token = config.github_token or ""
        github = GitHubClient(token=token, limits=config.limits, api_base_url=config.api_base_url)
        graphql = GitHubGraphQLClient(token=token, limits=config.limits, api_base_url=config.api_base_url)
        return RestTracker(github, graphql, page_size=config.limits.page_size)
    return GhCliTracker(GhCli(executable=config.gh_path), host=config.host)


def build_runtime(config: AppConfig) -> Runtime:
    """Wire up the runtime for a configuration."""
    audit = AuditLogger(
        sink_path=config.audit_log_path,
        max_bytes=config.audit_max_bytes,
        max_backups=config.audit_max_backups,
    )
    return Runtime(
        config=config,
        audit=audit,
        tracker=build_tracker(config),
        payloads=TempPayloadChannel(config.scratch_dir),
    )


def _outcome_for(err: ToolError) -> str:
    if err.code in {INTERNAL_CODE, CONFIG_CODE}:
        return OUTCOME_FAILED
    return OUTCOME_DENIED


class Dispatcher:
    """Single entry point for tool calls."""

    def __init__(self, runtime: Runtime) -> None:
        self._runtime = runtime

    @property
    def runtime(self) -> Runtime:
        return self._runtime

    async def dispatch(self, name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
        """Run a tool call and return its result.

        Raises:
            ToolError: Always classified; unexpected exceptions are wrapped as internal errors.
        """
        runtime = self._runtime
        arguments = arguments or {}
        correlation_id = new_correlation_id()
        start = runtime.audit.measure_start()
        target_repo = "<unknown>"

        try:
            func = _TOOL_FUNCS.get(name)
            if func is None:
                raise MethodNotFoundError(
                    f"Unknown tool: {name}",
                    hint=f"Available tools: {', '.join(sorted(_TOOL_FUNCS))}",
                )

            validate_tool_arguments(name, arguments)

            ref = resolve_repository(
                arguments,
                default_owner=runtime.config.default_owner,
                default_repo=runtime.config.default_repo,
                host=runtime.config.host,
            )
            target_repo = ref.full_name

            result = await func(runtime, ref, arguments)
        except ToolError as err:
            self._audit(correlation_id, name, target_repo, start, _outcome_for(err), err)
            logger.info("Tool %s failed (%s): %s", name, err.code, err.message)
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.exception("Tool %s raised an unexpected error", name)
            err = internal_error(f"GitHub error: {exc}")
            self._audit(correlation_id, name, target_repo, start, OUTCOME_FAILED, err)
            raise err from exc

        self._audit(correlation_id, name, target_repo, start, OUTCOME_SUCCEEDED, None)
        return result

    def _audit(
        self,
        correlation_id: str,
        name: str,
        target_repo: str,
        start: float,
        outcome: str,
        err: ToolError | None,
    ) -> None:
        audit = self._runtime.audit
        audit.write_event(
            build_event(
                correlation_id=correlation_id,
                operation=name,
                target_repo=target_repo,
                outcome=outcome,
                error_code=err.code if err is not None else None,
                reason=err.message if err is not None else None,
                duration_ms=audit.measure_duration_ms(start),
            )
        )
