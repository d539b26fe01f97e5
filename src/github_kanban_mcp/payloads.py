"""Temporary files for multi-line text bodies.

Issue and comment bodies are handed to the tracker as files (`--body-file`) rather than
inline arguments. Each payload is owned by one operation and deleted when it ends,
whether it succeeded or not.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TempPayload:
    """A body written to a scratch file."""

    path: Path
    content: str


class TempPayloadChannel:
    """Creates and releases payload files under a shared scratch directory.

    File names are unique (mkstemp), so concurrent operations never collide.
    """

    def __init__(self, scratch_dir: Path) -> None:
        self._scratch_dir = scratch_dir

    @property
    def scratch_dir(self) -> Path:
        return self._scratch_dir

    def acquire(self, content: str) -> TempPayload:
        """Write `content` verbatim to a fresh file and return it."""
        self._scratch_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix="body-", suffix=".md", dir=self._scratch_dir)
        path = Path(name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(content)
        except BaseException:
            path.unlink(missing_ok=True)
            raise
        return TempPayload(path=path, content=content)

    def release(self, payload: TempPayload) -> None:
        """Delete the payload file. Failures are logged, never raised."""
        try:
            payload.path.unlink()
        except OSError as exc:
            logger.warning("Failed to remove temporary file %s: %s", payload.path.name, exc)

    def scoped(self, content: str | None) -> ScopedPayload:
        """Return a context manager yielding a payload for `content` (None when there is no content)."""
        return ScopedPayload(self, content)


class ScopedPayload:
    """Acquires a payload on enter and releases it on exit.

    Exceptions raised inside the block propagate untouched.
    """

    def __init__(self, channel: TempPayloadChannel, content: str | None) -> None:
        self._channel = channel
        self._content = content
        self._payload: TempPayload | None = None

    def __enter__(self) -> TempPayload | None:
        if self._content is not None:
            self._payload = self._channel.acquire(self._content)
        return self._payload

    def __exit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: TracebackType | None) -> bool:
        if self._payload is not None:
            self._channel.release(self._payload)
            self._payload = None
        return False
