from __future__ import annotations

import itertools
import logging
from pathlib import Path
from typing import Iterable

from PySide6.QtCore import QObject, QThreadPool, Signal, Slot

from pathdeck.catalog.entry import PathCatalogEntry, as_path
from pathdeck.catalog.errors import CatalogError
from pathdeck.ops.naming import validate_name
from pathdeck.ops.transfer_worker import (
    OperationKind,
    OperationRecord,
    TransferItem,
    TransferWorker,
)
from pathdeck.ops.trash_utils import TrashBin
from pathdeck.state.clipboard import Clipboard, ClipboardOperation
from pathdeck.utils.operation_log import OperationLog

_logger = logging.getLogger(__name__)

ItemLike = PathCatalogEntry | Path | str


class FileMutationEngine(QObject):
    """Create, rename, copy, move and trash entries on worker threads.

    Every call returns an ``OperationRecord`` right away; the record and the
    engine's ``progress``/``status``/``last_error`` are updated from the
    thread that owns the engine as worker signals arrive. Listeners learn
    about changed directories through ``fileSystemChanged``, emitted once a
    batch has stopped, for every directory an applied item touched.
    """

    progressChanged = Signal(float)
    statusChanged = Signal(str)
    errorOccurred = Signal(str)
    operationStarted = Signal(object)
    operationFinished = Signal(object)
    fileSystemChanged = Signal(object)

    def __init__(
        self,
        trash_bin: TrashBin | None = None,
        operation_log: OperationLog | None = None,
        pool: QThreadPool | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._trash_bin = trash_bin
        self._op_log = operation_log
        self._pool = pool or QThreadPool.globalInstance()
        self._tokens = itertools.count(1)
        self._records: dict[int, OperationRecord] = {}
        self._workers: dict[int, TransferWorker] = {}
        self._clipboards: dict[int, Clipboard] = {}
        self._current_token: int | None = None
        self._progress = 0.0
        self._status = ""
        self._last_error: str | None = None

    @property
    def progress(self) -> float:
        """Progress of the most recently started batch."""
        return self._progress

    @property
    def status(self) -> str:
        return self._status

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def is_busy(self) -> bool:
        return bool(self._workers)

    def active_operations(self) -> list[OperationRecord]:
        return [self._records[token] for token in self._workers]

    def create_directory(self, name: str, parent: Path | str) -> OperationRecord:
        return self._create(OperationKind.CREATE_DIRECTORY, name, Path(parent))

    def create_file(self, name: str, parent: Path | str) -> OperationRecord:
        return self._create(OperationKind.CREATE_FILE, name, Path(parent))

    def rename(self, path: ItemLike, new_name: str) -> OperationRecord:
        source = as_path(path)
        try:
            cleaned = validate_name(new_name)
        except CatalogError as exc:
            return self._reject(OperationKind.RENAME, [source], None, exc)
        target = source.with_name(cleaned)
        return self._submit(OperationKind.RENAME, [TransferItem(source, target)], target.parent)

    def copy(self, paths: Iterable[ItemLike], destination_dir: Path | str) -> OperationRecord:
        return self._transfer(OperationKind.COPY, paths, as_path(destination_dir))

    def move(self, paths: Iterable[ItemLike], destination_dir: Path | str) -> OperationRecord:
        return self._transfer(OperationKind.MOVE, paths, as_path(destination_dir))

    def trash(self, paths: Iterable[ItemLike]) -> OperationRecord:
        items = [TransferItem(as_path(item)) for item in paths]
        return self._submit(OperationKind.TRASH, items, None)

    def paste(
        self,
        operation: ClipboardOperation,
        items: Iterable[ItemLike],
        destination: Path | str,
        clipboard: Clipboard | None = None,
    ) -> OperationRecord:
        """Copy or move ``items`` into ``destination``.

        A cut is a move; the clipboard, when given, is cleared once that move
        has completed without error.
        """
        if ClipboardOperation(operation) is ClipboardOperation.COPY:
            return self.copy(items, destination)
        record = self.move(items, destination)
        if clipboard is not None:
            if record.done:
                if record.succeeded:
                    clipboard.clear()
            else:
                self._clipboards[record.token] = clipboard
        return record

    def _create(self, kind: OperationKind, name: str, parent: Path) -> OperationRecord:
        parent = as_path(parent)
        try:
            cleaned = validate_name(name)
        except CatalogError as exc:
            return self._reject(kind, [parent / name], parent, exc)
        target = parent / cleaned
        return self._submit(kind, [TransferItem(target, target)], parent)

    def _transfer(
        self,
        kind: OperationKind,
        paths: Iterable[ItemLike],
        destination_dir: Path,
    ) -> OperationRecord:
        items = []
        for item in paths:
            source = as_path(item)
            items.append(TransferItem(source, destination_dir / source.name))
        return self._submit(kind, items, destination_dir)

    def _reject(
        self,
        kind: OperationKind,
        sources: list[Path],
        destination: Path | None,
        error: CatalogError,
    ) -> OperationRecord:
        record = OperationRecord(
            token=next(self._tokens),
            kind=kind,
            sources=sources,
            destination=destination,
            error=error,
            done=True,
        )
        _logger.warning("%s rejected: %s", kind.value, error)
        self._last_error = str(error)
        self.errorOccurred.emit(self._last_error)
        self.operationFinished.emit(record)
        return record

    def _submit(
        self,
        kind: OperationKind,
        items: list[TransferItem],
        destination: Path | None,
    ) -> OperationRecord:
        token = next(self._tokens)
        record = OperationRecord(
            token=token,
            kind=kind,
            sources=[item.source for item in items],
            destination=destination,
        )
        worker = TransferWorker(token, kind, items, trash_bin=self._trash_bin)
        worker.signals.progress.connect(self._on_progress)
        worker.signals.current.connect(self._on_current)
        worker.signals.itemResult.connect(self._on_item_result)
        worker.signals.error.connect(self._on_error)
        worker.signals.changed.connect(self._on_changed)
        worker.signals.finished.connect(self._on_finished)
        self._records[token] = record
        self._workers[token] = worker
        _logger.debug("Starting %s of %d item(s)", kind.value, len(items))
        self._current_token = token
        self._set_progress(0.0)
        self.operationStarted.emit(record)
        self._pool.start(worker)
        return record

    def _set_progress(self, value: float) -> None:
        self._progress = value
        self.progressChanged.emit(value)

    def _set_status(self, text: str) -> None:
        self._status = text
        self.statusChanged.emit(text)

    @Slot(int, float)
    def _on_progress(self, token: int, value: float) -> None:
        record = self._records.get(token)
        if record is None:
            return
        record.progress = max(record.progress, value)
        if token == self._current_token:
            self._set_progress(record.progress)

    @Slot(int, str)
    def _on_current(self, token: int, text: str) -> None:
        record = self._records.get(token)
        if record is None:
            return
        record.status = text
        if token == self._current_token:
            self._set_status(text)

    @Slot(int, object, object, bool, str)
    def _on_item_result(self, token: int, source: Path, dest: object, success: bool, error: str) -> None:
        record = self._records.get(token)
        if record is None:
            return
        if success and isinstance(dest, Path):
            record.results.append(dest)
        if self._op_log is not None:
            destination = dest if isinstance(dest, Path) else None
            self._op_log.record_item(record.kind, source, destination, error="" if success else error)

    @Slot(int, object)
    def _on_error(self, token: int, error: CatalogError) -> None:
        record = self._records.get(token)
        if record is None:
            return
        record.error = error
        self._last_error = str(error)
        self.errorOccurred.emit(self._last_error)

    @Slot(int, object)
    def _on_changed(self, token: int, path: Path) -> None:
        _logger.debug("Filesystem changed at %s", path)
        self.fileSystemChanged.emit(path)

    @Slot(int)
    def _on_finished(self, token: int) -> None:
        record = self._records.pop(token, None)
        self._workers.pop(token, None)
        clipboard = self._clipboards.pop(token, None)
        if record is None:
            return
        record.done = True
        record.status = ""
        if record.error is None:
            self._last_error = None
            if clipboard is not None:
                clipboard.clear()
        if token == self._current_token:
            self._set_status("")
        _logger.debug(
            "Finished %s: %d done, error=%s",
            record.kind.value,
            len(record.results),
            record.error,
        )
        self.operationFinished.emit(record)
