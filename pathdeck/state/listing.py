from __future__ import annotations

import itertools
import logging
import os
from pathlib import Path
from typing import Iterable

from PySide6.QtCore import QObject, QThreadPool, QTimer, Signal, Slot

from pathdeck.catalog.entry import PathCatalogEntry, as_path
from pathdeck.catalog.errors import CatalogError
from pathdeck.catalog.sorting import SortDirection, SortKey, sort_entries
from pathdeck.ops.directory_reader import DirectoryReadWorker, Reader
from pathdeck.utils.config import DEFAULT_REFRESH_DELAY_MS

_logger = logging.getLogger(__name__)

ItemLike = PathCatalogEntry | Path | str


class DirectoryListing(QObject):
    """The directory one pane is showing, its sort order and its selection.

    ``entries`` always belong to ``path``: navigating empties them before the
    new directory is read, and a read that finishes after a newer request was
    made is thrown away.
    """

    pathChanged = Signal(object)
    entriesChanged = Signal()
    selectionChanged = Signal()
    loadingChanged = Signal(bool)
    errorChanged = Signal(str)

    def __init__(
        self,
        reader: Reader | None = None,
        pool: QThreadPool | None = None,
        show_hidden: bool = False,
        refresh_delay_ms: int = DEFAULT_REFRESH_DELAY_MS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._reader = reader
        self._pool = pool or QThreadPool.globalInstance()
        self._show_hidden = show_hidden
        self._tokens = itertools.count(1)
        self._token = 0
        self._worker: DirectoryReadWorker | None = None
        self._path: Path | None = None
        self._entries: list[PathCatalogEntry] = []
        self._selection: set[Path] = set()
        self._sort_key = SortKey.NAME
        self._sort_direction = SortDirection.ASCENDING
        self._error: str | None = None
        self._loading = False
        self._refresh_timer = QTimer(self)
        self._refresh_timer.setSingleShot(True)
        self._refresh_timer.setInterval(max(0, refresh_delay_ms))
        self._refresh_timer.timeout.connect(self._reload)

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def entries(self) -> list[PathCatalogEntry]:
        return list(self._entries)

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def show_hidden(self) -> bool:
        return self._show_hidden

    @property
    def sort_key(self) -> SortKey:
        return self._sort_key

    @property
    def sort_direction(self) -> SortDirection:
        return self._sort_direction

    def navigate(self, path: Path | str) -> None:
        target = Path(os.path.abspath(path))
        self._refresh_timer.stop()
        if target != self._path:
            self._path = target
            self._selection.clear()
            self._entries = []
            self.pathChanged.emit(target)
            self.entriesChanged.emit()
            self.selectionChanged.emit()
        self._reload()

    def navigate_up(self) -> None:
        if self._path is None:
            return
        parent = self._path.parent
        if parent != self._path:
            self.navigate(parent)

    def refresh(self) -> None:
        """Re-read the current path after the settling delay."""
        if self._path is None:
            return
        self._refresh_timer.start()

    def handle_change(self, path: Path | str) -> None:
        if self._path is not None and Path(os.path.abspath(path)) == self._path:
            self.refresh()

    def set_show_hidden(self, show_hidden: bool) -> None:
        if show_hidden == self._show_hidden:
            return
        self._show_hidden = show_hidden
        if self._path is not None:
            self._reload()

    def set_sort(self, key: SortKey | str, direction: SortDirection | str = SortDirection.ASCENDING) -> None:
        self._sort_key = SortKey(key)
        self._sort_direction = SortDirection(direction)
        self._entries = sort_entries(self._entries, self._sort_key, self._sort_direction)
        self.entriesChanged.emit()

    def selection(self) -> set[Path]:
        return set(self._selection)

    def selected_entries(self) -> list[PathCatalogEntry]:
        return [entry for entry in self._entries if entry.path in self._selection]

    def is_selected(self, item: ItemLike) -> bool:
        return as_path(item) in self._selection

    def select(self, item: ItemLike) -> None:
        key = as_path(item)
        if key not in self._selection:
            self._selection.add(key)
            self.selectionChanged.emit()

    def select_all(self, items: Iterable[ItemLike] | None = None) -> None:
        source = self._entries if items is None else items
        self._selection = {as_path(item) for item in source}
        self.selectionChanged.emit()

    def deselect(self, item: ItemLike) -> None:
        key = as_path(item)
        if key in self._selection:
            self._selection.discard(key)
            self.selectionChanged.emit()

    def toggle(self, item: ItemLike) -> None:
        key = as_path(item)
        if key in self._selection:
            self._selection.discard(key)
        else:
            self._selection.add(key)
        self.selectionChanged.emit()

    def clear_selection(self) -> None:
        if self._selection:
            self._selection.clear()
            self.selectionChanged.emit()

    @Slot()
    def _reload(self) -> None:
        if self._path is None:
            return
        if self._worker is not None:
            self._worker.cancel()
        self._token = next(self._tokens)
        worker = DirectoryReadWorker(self._token, self._path, self._show_hidden, reader=self._reader)
        worker.signals.loaded.connect(self._on_loaded)
        worker.signals.failed.connect(self._on_failed)
        worker.signals.finished.connect(self._on_finished)
        self._worker = worker
        self._set_loading(True)
        _logger.debug("Listing %s", self._path)
        self._pool.start(worker)

    def _is_current(self, token: int, path: Path) -> bool:
        if token != self._token or path != self._path:
            _logger.debug("Discarding stale listing of %s", path)
            return False
        return True

    @Slot(int, object, object)
    def _on_loaded(self, token: int, path: Path, entries: list[PathCatalogEntry]) -> None:
        if not self._is_current(token, path):
            return
        self._entries = sort_entries(entries, self._sort_key, self._sort_direction)
        present = {entry.path for entry in self._entries}
        pruned = self._selection & present
        selection_changed = pruned != self._selection
        self._selection = pruned
        self._set_error(None)
        self.entriesChanged.emit()
        if selection_changed:
            self.selectionChanged.emit()

    @Slot(int, object, object)
    def _on_failed(self, token: int, path: Path, error: CatalogError) -> None:
        if not self._is_current(token, path):
            return
        _logger.warning("Could not list %s: %s", path, error)
        self._entries = []
        had_selection = bool(self._selection)
        self._selection.clear()
        self._set_error(str(error))
        self.entriesChanged.emit()
        if had_selection:
            self.selectionChanged.emit()

    @Slot(int)
    def _on_finished(self, token: int) -> None:
        if token != self._token:
            return
        self._worker = None
        self._set_loading(False)

    def _set_loading(self, loading: bool) -> None:
        if loading != self._loading:
            self._loading = loading
            self.loadingChanged.emit(loading)

    def _set_error(self, message: str | None) -> None:
        if message == self._error:
            return
        self._error = message
        self.errorChanged.emit(message or "")
