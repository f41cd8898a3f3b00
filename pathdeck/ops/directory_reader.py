from __future__ import annotations

from collections import deque
import logging
import os
from pathlib import Path
import stat
from typing import Callable

from PySide6.QtCore import QObject, QRunnable, Signal

from pathdeck.catalog.entry import PathCatalogEntry
from pathdeck.catalog.errors import CatalogError, NotFound, classify_os_error
from pathdeck.catalog.sorting import sort_entries

_logger = logging.getLogger(__name__)

Reader = Callable[[Path, bool], list[PathCatalogEntry]]


def read_directory(path: Path | str, include_hidden: bool = False) -> list[PathCatalogEntry]:
    """List the immediate children of ``path``, directories first.

    Raises ``NotFound`` when the path is missing or not a directory and
    ``AccessDenied`` when it cannot be enumerated. Children that vanish
    between the listing and their stat call are skipped.
    """
    target = Path(os.path.abspath(path))
    try:
        info = target.stat()
    except OSError as exc:
        raise classify_os_error(exc, target) from exc
    if not stat.S_ISDIR(info.st_mode):
        raise NotFound(f"Not a directory: '{target}'", target)

    try:
        with os.scandir(target) as iterator:
            names = [item.name for item in iterator]
    except OSError as exc:
        raise classify_os_error(exc, target) from exc

    entries: list[PathCatalogEntry] = []
    for name in names:
        try:
            entry = PathCatalogEntry.from_path(target / name)
        except OSError as exc:
            _logger.debug("Skipping %s: %s", target / name, exc)
            continue
        if entry.hidden and not include_hidden:
            continue
        entries.append(entry)
    _logger.debug("Read %d entries from %s", len(entries), target)
    return sort_entries(entries)


class ReadSignals(QObject):
    loaded = Signal(int, object, object)
    failed = Signal(int, object, object)
    finished = Signal(int)


class DirectoryReadWorker(QRunnable):
    """Read ``path`` and, up to ``depth`` levels, the directories below it.

    Every signal carries the ``token`` the owner handed in so that late
    results of a superseded request can be recognised and dropped.
    """

    def __init__(
        self,
        token: int,
        path: Path,
        include_hidden: bool,
        depth: int = 1,
        reader: Reader | None = None,
    ) -> None:
        super().__init__()
        self.signals = ReadSignals()
        self._token = token
        self._path = Path(path)
        self._include_hidden = include_hidden
        self._depth = max(1, depth)
        self._reader = reader or read_directory
        self._cancel = False

    @property
    def token(self) -> int:
        return self._token

    def cancel(self) -> None:
        self._cancel = True

    def run(self) -> None:
        pending: deque[tuple[Path, int]] = deque([(self._path, 1)])
        while pending and not self._cancel:
            path, level = pending.popleft()
            try:
                entries = self._reader(path, self._include_hidden)
            except CatalogError as exc:
                self.signals.failed.emit(self._token, path, exc)
                continue
            except OSError as exc:
                self.signals.failed.emit(self._token, path, classify_os_error(exc, path))
                continue
            if self._cancel:
                break
            self.signals.loaded.emit(self._token, path, entries)
            if level < self._depth:
                pending.extend((entry.path, level + 1) for entry in entries if entry.is_dir)
        self.signals.finished.emit(self._token)
