"""Repository identity resolution.

A tool call names its target repository in one of several ways. Explicit arguments
always win over discovery from a local working copy and over host defaults.
No network I/O happens here: only string validation and reading `.git/config`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import IdentityError, InvalidParamsError

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass(frozen=True, slots=True)
class RepositoryRef:
    """Owner + name of a remote repository."""

    owner: str
    name: str

    def __post_init__(self) -> None:
        for field_name, value in (("owner", self.owner), ("name", self.name)):
            if not isinstance(value, str) or not _SLUG_RE.match(value):
                raise InvalidParamsError(f"Invalid repository {field_name}: {value!r}")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name


def _make_ref(owner: str, name: str) -> RepositoryRef:
    if not _SLUG_RE.match(owner) or not _SLUG_RE.match(name):
        raise IdentityError(f"Invalid repository identifier: {owner}/{name}")
    return RepositoryRef(owner=owner, name=name)


def parse_full_name(value: str) -> RepositoryRef:
    """Parse an `owner/name` string."""
    owner, sep, name = value.strip().partition("/")
    if not sep or not owner or not name or "/" in name:
        raise IdentityError(
            f"Repository must be given as 'owner/name' (got {value!r})",
        )
    return _make_ref(owner, name)


def _remote_url_pattern(host: str) -> re.Pattern[str]:
    return re.compile(rf"(?:^|[@/]){re.escape(host)}[/:]([^/\s]+)/([^/\s]+?)(?:\.git)?/?$", re.IGNORECASE)


def parse_remote_url(url: str, *, host: str = "github.com") -> RepositoryRef:
    """Extract owner/name from an https or ssh remote URL on `host`."""
    match = _remote_url_pattern(host).search(url.strip())
    if not match:
        raise IdentityError(f"Unrecognized repository URL format: {url}")
    return _make_ref(match.group(1), match.group(2))


def _find_git_dir(repo_path: Path) -> Path:
    dot_git = repo_path / ".git"
    if dot_git.is_dir():
        return dot_git
    if dot_git.is_file():
        # Worktrees and submodules: ".git" is a file with "gitdir: <path>".
        content = dot_git.read_text(encoding="utf-8").strip()
        if content.startswith("gitdir:"):
            git_dir = Path(content[len("gitdir:"):].strip())
            if not git_dir.is_absolute():
                git_dir = (repo_path / git_dir).resolve()
            commondir = git_dir / "commondir"
            if commondir.is_file():
                git_dir = (git_dir / commondir.read_text(encoding="utf-8").strip()).resolve()
            if git_dir.is_dir():
                return git_dir
    raise IdentityError(
        f'Path "{repo_path}" is not a git repository (no .git directory found)',
    )


def read_origin_url(config_text: str) -> str:
    """Return the url of `[remote "origin"]` from git config text, or "" if absent."""
    in_origin = False
    for raw in config_text.splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", ";")):
            continue
        if line.startswith("["):
            in_origin = re.fullmatch(r'\[\s*remote\s+"origin"\s*\]', line) is not None
            continue
        if in_origin:
            key, sep, value = line.partition("=")
            if sep and key.strip().lower() == "url":
                return value.strip().strip('"')
    return ""


def discover_from_path(path: str | Path, *, host: str = "github.com") -> RepositoryRef:
    """Discover the repository of a local working copy from its `origin` remote."""
    repo_path = Path(path).expanduser()
    git_dir = _find_git_dir(repo_path)

    config_path = git_dir / "config"
    try:
        config_text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        config_text = ""
    except OSError as exc:
        raise IdentityError(f"Could not read git config for {repo_path}: {exc}") from exc

    url = read_origin_url(config_text)
    if not url:
        raise IdentityError(
            f'Git remote "origin" is not configured (repository path: {repo_path})',
            hint="Configure it with: git remote add origin <URL>",
        )

    ref = parse_remote_url(url, host=host)
    logger.debug("Discovered repository %s from %s", ref, repo_path)
    return ref


def _optional_str(arguments: dict[str, Any], key: str) -> str | None:
    value = arguments.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise IdentityError(f"Field '{key}' must be a string")
    return value.strip()


def resolve_repository(
    arguments: dict[str, Any],
    *,
    default_owner: str | None = None,
    default_repo: str | None = None,
    host: str = "github.com",
) -> RepositoryRef:
    """Resolve the target repository of a tool call.

    Order: explicit owner+repo, combined "owner/name" repo, bare repo with the default
    owner, local path discovery, host defaults.

    Raises:
        IdentityError: If no usable repository identity can be found.
    """
    owner = _optional_str(arguments, "owner")
    repo = _optional_str(arguments, "repo")
    path = _optional_str(arguments, "path")

    if owner is not None and repo is not None:
        if not owner or not repo:
            raise IdentityError("Both owner and repo are required")
        return _make_ref(owner, repo)

    if repo:
        if "/" in repo:
            return parse_full_name(repo)
        if owner is None and default_owner:
            return _make_ref(default_owner, repo)
        raise IdentityError(
            f"Repository must be given as 'owner/name' (got {repo!r})",
            hint="Pass owner and repo separately, or configure GITHUB_OWNER",
        )

    if path:
        return discover_from_path(path, host=host)

    if owner is None and default_owner and default_repo:
        return _make_ref(default_owner, default_repo)

    raise IdentityError(
        "Repository is required",
        hint="Pass owner and repo, a combined 'owner/name' repo, or the path of a local clone",
    )
