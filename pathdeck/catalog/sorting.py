from __future__ import annotations

from enum import Enum
import locale
from typing import Any, Callable, Iterable

from pathdeck.catalog.entry import EntryKind, PathCatalogEntry


class SortKey(str, Enum):
    NAME = "name"
    SIZE = "size"
    DATE_MODIFIED = "date_modified"
    TYPE = "type"


class SortDirection(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


def name_key(name: str) -> tuple[str, str]:
    """Case-insensitive, locale-aware collation key for a display name."""
    folded = name.casefold()
    try:
        collated = locale.strxfrm(folded)
    except (ValueError, OSError):
        collated = folded
    return collated, name


def _type_label(entry: PathCatalogEntry) -> str:
    if entry.kind is EntryKind.FILE:
        return entry.suffix.lstrip(".")
    return entry.kind.value


_SECONDARY_KEYS: dict[SortKey, Callable[[PathCatalogEntry], Any]] = {
    SortKey.NAME: lambda entry: name_key(entry.name),
    SortKey.SIZE: lambda entry: (entry.size, name_key(entry.name)),
    SortKey.DATE_MODIFIED: lambda entry: (entry.modified, name_key(entry.name)),
    SortKey.TYPE: lambda entry: (_type_label(entry), name_key(entry.name)),
}


def sort_entries(
    entries: Iterable[PathCatalogEntry],
    key: SortKey = SortKey.NAME,
    direction: SortDirection = SortDirection.ASCENDING,
) -> list[PathCatalogEntry]:
    """Directories first, then the requested key within each group.

    The direction only reorders entries inside the directory and
    non-directory groups; directories never move below files.
    """
    ordered = sorted(
        entries,
        key=_SECONDARY_KEYS[SortKey(key)],
        reverse=SortDirection(direction) is SortDirection.DESCENDING,
    )
    ordered.sort(key=lambda entry: not entry.is_dir)
    return ordered
