"""Make sure the labels an issue refers to exist in the repository."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence

from .errors import GatewayError
from .repository import RepositoryRef
from .tracker import Tracker

logger = logging.getLogger(__name__)

_HEX_DIGITS = "0123456789ABCDEF"


def generate_color(rng: random.Random | None = None) -> str:
    """Return a random 6-digit uppercase hex color (no leading '#')."""
    chooser = rng or random
    return "".join(chooser.choice(_HEX_DIGITS) for _ in range(6))


def _is_already_exists(err: GatewayError) -> bool:
    text = f"{err.message} {err.hint or ''}".lower()
    return "already exists" in text or "already_exists" in text


async def ensure_labels(
    tracker: Tracker,
    ref: RepositoryRef,
    labels: Sequence[str],
    *,
    strict: bool = True,
) -> list[str]:
    """Create the labels in `labels` that `ref` does not have yet.

    Existing labels are left untouched (never recolored). A concurrent creation
    ("already exists") counts as success. In strict mode any other creation failure
    is raised; otherwise it is logged and the remaining labels are still attempted.

    Returns:
        Names of the labels that were created.
    """
    wanted = list(dict.fromkeys(label for label in labels if label))
    if not wanted:
        return []

    try:
        existing = set(await tracker.list_labels(ref))
    except GatewayError as exc:
        logger.warning("Failed to list labels for %s: %s", ref, exc.message)
        existing = set()

    created: list[str] = []
    for name in wanted:
        if name in existing:
            continue
        try:
            await tracker.create_label(ref, name=name, color=generate_color())
        except GatewayError as exc:
            if _is_already_exists(exc):
                logger.debug("Label %r already exists in %s", name, ref)
                continue
            if strict:
                raise GatewayError(
                    f"Failed to create label {name}: {exc.message}",
                    hint=exc.hint,
                    status_code=exc.status_code,
                ) from exc
            logger.warning("Failed to create label %r in %s: %s", name, ref, exc.message)
            continue
        logger.info("Created label %r in %s", name, ref)
        created.append(name)
    return created
