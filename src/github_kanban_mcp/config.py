"""Configuration loading for github-kanban-mcp.

Configuration is supplied by the host environment (e.g., MCP client config), not by the agent.
It is loaded once at startup and passed explicitly to the runtime; handlers never read the
environment themselves. The token is treated as a secret and must never be emitted to agents,
logs, or audit reasons.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError

BACKEND_CLI = "cli"
BACKEND_API = "api"

DEFAULT_HOST = "github.com"
DEFAULT_API_URL = "https://api.github.com"


@dataclass(frozen=True, slots=True)
class LimitsConfig:
    """Network limits for the HTTP backend."""

    total_timeout_s: float = 60.0
    connect_timeout_s: float = 5.0
    read_timeout_s: float = 30.0

    # Page size for list calls
    page_size: int = 100


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Server configuration."""

    backend: str
    gh_path: str
    host: str
    default_owner: str | None
    default_repo: str | None
    github_token: str | None
    api_base_url: str
    scratch_dir: Path

    audit_log_path: Path | None
    audit_max_bytes: int
    audit_max_backups: int
    limits: LimitsConfig


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _parse_backend(value: str | None) -> str:
    if not value:
        return BACKEND_CLI
    normalized = value.strip().lower()
    if normalized not in {BACKEND_CLI, BACKEND_API}:
        raise ConfigError(message="GITHUB_KANBAN_MCP_BACKEND must be 'cli' or 'api'")
    return normalized


def _parse_absolute_path(value: str | None, *, name: str) -> Path | None:
    if not value:
        return None
    p = Path(value)
    if not p.is_absolute():
        raise ConfigError(message=f"{name} must be an absolute path when set")
    return p


def load_config_from_env() -> AppConfig:
    """Load and validate configuration from environment variables.

    Raises:
        ConfigError: If configuration is invalid.
    """
    backend = _parse_backend(os.getenv("GITHUB_KANBAN_MCP_BACKEND"))
    gh_path = _clean(os.getenv("GITHUB_KANBAN_MCP_GH_PATH")) or "gh"
    host = (_clean(os.getenv("GITHUB_HOST")) or DEFAULT_HOST).lower()

    default_owner = _clean(os.getenv("GITHUB_OWNER"))
    default_repo = _clean(os.getenv("GITHUB_REPO"))

    token = _clean(os.getenv("GITHUB_TOKEN"))
    if backend == BACKEND_API and not token:
        raise ConfigError(
            message="Missing required configuration (GITHUB_TOKEN)",
            hint="The 'api' backend needs a token; the 'cli' backend uses gh's own credentials",
        )

    api_base_url = (_clean(os.getenv("GITHUB_API_URL")) or DEFAULT_API_URL).rstrip("/")
    if not api_base_url.startswith("https://"):
        raise ConfigError(message="GITHUB_API_URL must be an https:// URL")

    scratch_dir = _parse_absolute_path(
        os.getenv("GITHUB_KANBAN_MCP_SCRATCH_DIR"), name="GITHUB_KANBAN_MCP_SCRATCH_DIR"
    ) or Path(tempfile.gettempdir()) / "github-kanban-mcp"

    audit_path = _parse_absolute_path(
        os.getenv("GITHUB_KANBAN_MCP_AUDIT_LOG_PATH"), name="GITHUB_KANBAN_MCP_AUDIT_LOG_PATH"
    )

    # Retention controls are host-controlled and not exposed in tool outputs.
    audit_max_bytes = 5 * 1024 * 1024
    audit_max_backups = 2

    return AppConfig(
        backend=backend,
        gh_path=gh_path,
        host=host,
        default_owner=default_owner,
        default_repo=default_repo,
        github_token=token,
        api_base_url=api_base_url,
        scratch_dir=scratch_dir,
        audit_log_path=audit_path,
        audit_max_bytes=audit_max_bytes,
        audit_max_backups=audit_max_backups,
        limits=LimitsConfig(),
    )
