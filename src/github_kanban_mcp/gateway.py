"""GitHub CLI (`gh`) backend.

Commands are always built as argument vectors and executed without a shell. User text
(titles, label names) is passed as `--flag=value` or after `--`, so it can never be read
as another flag.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from .errors import GatewayError
from .payloads import TempPayload
from .repository import RepositoryRef
from .tracker import LIST_FIELDS

logger = logging.getLogger(__name__)

LIST_LIMIT = 100
LABEL_LIST_LIMIT = 1000


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Captured output of one gh invocation."""

    stdout: str
    stderr: str
    exit_code: int


class CommandRunner(Protocol):
    async def run(self, args: Sequence[str]) -> CommandResult: ...


def _default_env() -> dict[str, str]:
    env = dict(os.environ)
    env["GH_PROMPT_DISABLED"] = "1"
    env["GH_NO_UPDATE_NOTIFIER"] = "1"
    env["NO_COLOR"] = "1"
    return env


class GhCli:
    """Runs gh subcommands as subprocesses."""

    def __init__(self, *, executable: str = "gh", env: Mapping[str, str] | None = None) -> None:
        self._executable = executable
        self._env = dict(env) if env is not None else _default_env()

    async def run(self, args: Sequence[str]) -> CommandResult:
        """Run `gh <args>` and return its output.

        Raises:
            GatewayError: If gh cannot be started or exits non-zero.
        """
        logger.debug("Running gh %s", " ".join(args[:2]))
        try:
            proc = await asyncio.create_subprocess_exec(
                self._executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._env,
            )
        except FileNotFoundError as exc:
            raise GatewayError(
                f"GitHub CLI not found: {self._executable}",
                hint="Install gh (https://cli.github.com) or set GITHUB_KANBAN_MCP_GH_PATH",
            ) from exc
        except OSError as exc:
            raise GatewayError(f"Failed to start GitHub CLI: {exc}") from exc

        out, err = await proc.communicate()
        exit_code = proc.returncode if proc.returncode is not None else -1
        result = CommandResult(
            stdout=out.decode("utf-8", errors="replace"),
            stderr=err.decode("utf-8", errors="replace"),
            exit_code=exit_code,
        )
        if exit_code != 0:
            message = result.stderr.strip() or result.stdout.strip() or f"gh exited with status {exit_code}"
            raise GatewayError(message, status_code=exit_code)
        return result


def _last_line(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else ""


def _decode_json(result: CommandResult) -> Any:
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as exc:
        raise GatewayError("GitHub CLI returned invalid JSON") from exc


class GhCliTracker:
    """Tracker implementation on top of gh."""

    def __init__(self, cli: CommandRunner, *, host: str = "github.com") -> None:
        self._cli = cli
        self._host = host

    def _repo(self, ref: RepositoryRef) -> str:
        if self._host == "github.com":
            return ref.full_name
        return f"{self._host}/{ref.full_name}"

    async def list_issues(
        self, ref: RepositoryRef, *, state: str | None, labels: Sequence[str]
    ) -> list[dict[str, Any]]:
        args = ["issue", "list", "--repo", self._repo(ref), "--limit", str(LIST_LIMIT)]
        if state:
            args += ["--state", state]
        args += [f"--label={label}" for label in labels]
        args += ["--json", ",".join(LIST_FIELDS)]

        data = _decode_json(await self._cli.run(args))
        if not isinstance(data, list):
            raise GatewayError("Unexpected issue list response")
        return data

    async def create_issue(
        self,
        ref: RepositoryRef,
        *,
        title: str,
        body: TempPayload | None,
        labels: Sequence[str],
        assignees: Sequence[str],
    ) -> str:
        args = ["issue", "create", "--repo", self._repo(ref), f"--title={title}"]
        # gh refuses to prompt for a body when not interactive, so always send one.
        args += ["--body-file", str(body.path)] if body is not None else ["--body="]
        args += [f"--label={label}" for label in labels]
        args += [f"--assignee={login}" for login in assignees]

        result = await self._cli.run(args)
        return _last_line(result.stdout)

    async def get_issue(self, ref: RepositoryRef, number: int, *, fields: Sequence[str]) -> dict[str, Any]:
        args = ["issue", "view", str(number), "--repo", self._repo(ref), "--json", ",".join(fields)]
        data = _decode_json(await self._cli.run(args))
        if not isinstance(data, dict):
            raise GatewayError("Unexpected issue response")
        return data

    async def set_issue_state(self, ref: RepositoryRef, number: int, *, state: str) -> None:
        command = "close" if state == "closed" else "reopen"
        await self._cli.run(["issue", command, str(number), "--repo", self._repo(ref)])

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
        args = ["issue", "edit", str(number), "--repo", self._repo(ref)]
        if title is not None:
            args.append(f"--title={title}")
        if body is not None:
            args += ["--body-file", str(body.path)]
        args += [f"--add-label={label}" for label in add_labels]
        args += [f"--add-assignee={login}" for login in add_assignees]
        await self._cli.run(args)

    async def delete_issue(self, ref: RepositoryRef, number: int) -> str:
        result = await self._cli.run(["issue", "delete", str(number), "--repo", self._repo(ref), "--yes"])
        return result.stdout.strip() or result.stderr.strip() or f"Deleted issue #{number}"

    async def add_comment(self, ref: RepositoryRef, number: int, *, body: TempPayload) -> str:
        result = await self._cli.run(
            ["issue", "comment", str(number), "--repo", self._repo(ref), "--body-file", str(body.path)]
        )
        return _last_line(result.stdout)

    async def list_labels(self, ref: RepositoryRef) -> list[str]:
        args = ["label", "list", "--repo", self._repo(ref), "--limit", str(LABEL_LIST_LIMIT), "--json", "name"]
        data = _decode_json(await self._cli.run(args))
        if not isinstance(data, list):
            raise GatewayError("Unexpected label list response")
        return [item["name"] for item in data if isinstance(item, dict) and isinstance(item.get("name"), str)]

    async def create_label(self, ref: RepositoryRef, *, name: str, color: str) -> None:
        await self._cli.run(["label", "create", "--repo", self._repo(ref), "--color", color, "--", name])
