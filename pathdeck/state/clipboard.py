from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Iterable

from pathdeck.catalog.entry import PathCatalogEntry, as_path


class ClipboardOperation(str, Enum):
    COPY = "copy"
    CUT = "cut"


class Clipboard:
    """Paths picked up by copy or cut, waiting to be pasted."""

    def __init__(self) -> None:
        self._paths: list[Path] = []
        self._operation = ClipboardOperation.COPY

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    @property
    def operation(self) -> ClipboardOperation:
        return self._operation

    @property
    def has_items(self) -> bool:
        return bool(self._paths)

    def copy(self, items: Iterable[PathCatalogEntry | Path | str]) -> None:
        self._paths = [as_path(item) for item in items]
        self._operation = ClipboardOperation.COPY

    def cut(self, items: Iterable[PathCatalogEntry | Path | str]) -> None:
        self._paths = [as_path(item) for item in items]
        self._operation = ClipboardOperation.CUT

    def clear(self) -> None:
        self._paths = []
