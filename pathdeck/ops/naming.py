from __future__ import annotations

import os
from pathlib import Path

from pathdeck.catalog.errors import OperationFailed


def resolve_collision(path: Path) -> Path:
    """Return ``path`` or the first free ``"<stem> N<suffix>"`` sibling, N >= 1."""
    if not os.path.lexists(path):
        return path
    stem = path.stem
    suffix = path.suffix
    counter = 1
    candidate = path
    while os.path.lexists(candidate):
        candidate = path.with_name(f"{stem} {counter}{suffix}")
        counter += 1
    return candidate


def validate_name(name: str) -> str:
    """Reject names that cannot denote a single entry inside a directory."""
    cleaned = name.strip()
    if not cleaned:
        raise OperationFailed("Name cannot be empty.")
    if cleaned in {".", ".."}:
        raise OperationFailed(f"'{cleaned}' is not a valid name.")
    if "/" in cleaned or "\0" in cleaned or (os.sep != "/" and os.sep in cleaned):
        raise OperationFailed(f"'{cleaned}' must not contain a path separator.")
    return cleaned
