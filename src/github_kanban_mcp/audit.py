"""Structured audit trail.

Exactly one JSON line is written per tool call, to stderr and optionally to a rotating
file. Events never contain tokens or issue/comment bodies.
"""

from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

OUTCOME_SUCCEEDED = "succeeded"
OUTCOME_DENIED = "denied"
OUTCOME_FAILED = "failed"


def new_correlation_id() -> str:
    """Generate a random correlation id for one tool call."""
    return uuid.uuid4().hex


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """A single audit event."""

    timestamp: str
    correlation_id: str
    operation: str
    target_repo: str
    outcome: str
    error_code: str | None
    reason: str | None
    duration_ms: int | None

    def to_json(self) -> str:
        payload = {k: v for k, v in asdict(self).items() if v is not None}
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class AuditLogger:
    """Writes audit events as JSONL to stderr and optionally to a rotating file."""

    def __init__(
        self,
        *,
        sink_path: Path | None,
        max_bytes: int = 5 * 1024 * 1024,
        max_backups: int = 2,
    ) -> None:
        self._logger = logging.getLogger(f"{__name__}.{uuid.uuid4().hex[:8]}")
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False

        formatter = logging.Formatter("%(message)s")
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        self._logger.addHandler(stderr_handler)

        if sink_path is not None:
            try:
                sink_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = RotatingFileHandler(
                    sink_path, maxBytes=max_bytes, backupCount=max_backups, encoding="utf-8", delay=True
                )
            except OSError as exc:
                logging.getLogger(__name__).warning("Audit file sink disabled: %s", exc)
            else:
                file_handler.setFormatter(formatter)
                self._logger.addHandler(file_handler)

    def write_event(self, event: AuditEvent) -> None:
        """Write one audit event."""
        self._logger.info(event.to_json())

    def close(self) -> None:
        for handler in list(self._logger.handlers):
            handler.close()
            self._logger.removeHandler(handler)

    def measure_start(self) -> float:
        """Return a monotonic start timestamp for duration measurement."""
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        """Convert a monotonic start timestamp into elapsed milliseconds."""
        return int((time.monotonic() - start) * 1000)


def build_event(
    *,
    correlation_id: str,
    operation: str,
    target_repo: str,
    outcome: str,
    error_code: str | None = None,
    reason: str | None = None,
    duration_ms: int | None = None,
) -> AuditEvent:
    """Construct an audit event."""
    return AuditEvent(
        timestamp=_now_rfc3339(),
        correlation_id=correlation_id,
        operation=operation,
        target_repo=target_repo,
        outcome=outcome,
        error_code=error_code,
        reason=reason,
        duration_ms=duration_ms,
    )
