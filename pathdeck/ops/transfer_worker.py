from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import os
from pathlib import Path
import shutil
import stat

from PySide6.QtCore import QObject, QRunnable, Signal

from pathdeck.catalog.errors import (
    AlreadyExists,
    CatalogError,
    NotFound,
    OperationFailed,
    classify_os_error,
)
from pathdeck.ops.naming import resolve_collision
from pathdeck.ops.trash_utils import TrashBin

_logger = logging.getLogger(__name__)

_BUFFER_SIZE = 1024 * 1024


class OperationKind(str, Enum):
    CREATE_DIRECTORY = "create-dir"
    CREATE_FILE = "create-file"
    RENAME = "rename"
    COPY = "copy"
    MOVE = "move"
    TRASH = "trash"


@dataclass
class TransferItem:
    source: Path
    destination: Path | None = None


@dataclass
class OperationRecord:
    """Live state of one mutation call, updated on the owning thread only."""

    token: int
    kind: OperationKind
    sources: list[Path]
    destination: Path | None
    progress: float = 0.0
    status: str = ""
    results: list[Path] = field(default_factory=list)
    error: CatalogError | None = None
    done: bool = False

    @property
    def succeeded(self) -> bool:
        return self.done and self.error is None


class TransferSignals(QObject):
    progress = Signal(int, float)
    current = Signal(int, str)
    itemResult = Signal(int, object, object, bool, str)
    error = Signal(int, object)
    changed = Signal(int, object)
    finished = Signal(int)


class TransferWorker(QRunnable):
    """Apply one batch item by item, stopping at the first failure."""

    def __init__(
        self,
        token: int,
        kind: OperationKind,
        items: list[TransferItem],
        trash_bin: TrashBin | None = None,
    ) -> None:
        super().__init__()
        self.signals = TransferSignals()
        self._token = token
        self._kind = kind
        self._items = items
        self._trash_bin = trash_bin

    def run(self) -> None:
        total = len(self._items)
        affected: list[Path] = []
        for index, item in enumerate(self._items, start=1):
            self.signals.current.emit(self._token, self._describe(item))
            try:
                result = self._apply(item)
            except CatalogError as exc:
                self._fail(item, exc)
                break
            except OSError as exc:
                self._fail(item, classify_os_error(exc, item.source))
                break
            self.signals.itemResult.emit(self._token, item.source, result, True, "")
            for directory in self._affected_paths(item, result):
                if directory not in affected:
                    affected.append(directory)
            self.signals.progress.emit(self._token, index / total)

        if total == 0:
            self.signals.progress.emit(self._token, 1.0)
        for directory in affected:
            self.signals.changed.emit(self._token, directory)
        self.signals.finished.emit(self._token)

    def _fail(self, item: TransferItem, error: CatalogError) -> None:
        _logger.warning("%s failed for %s: %s", self._kind.value, item.source, error)
        self.signals.itemResult.emit(self._token, item.source, item.destination, False, str(error))
        self.signals.error.emit(self._token, error)

    def _describe(self, item: TransferItem) -> str:
        name = item.source.name
        if self._kind is OperationKind.CREATE_DIRECTORY:
            return f"Creating folder {name}..."
        if self._kind is OperationKind.CREATE_FILE:
            return f"Creating file {name}..."
        if self._kind is OperationKind.RENAME:
            return f"Renaming {name}..."
        if self._kind is OperationKind.COPY:
            return f"Copying {name}..."
        if self._kind is OperationKind.MOVE:
            return f"Moving {name}..."
        return f"Moving {name} to Trash..."

    def _apply(self, item: TransferItem) -> Path:
        if self._kind is OperationKind.CREATE_DIRECTORY:
            return self._create(item.source, directory=True)
        if self._kind is OperationKind.CREATE_FILE:
            return self._create(item.source, directory=False)
        if self._kind is OperationKind.RENAME:
            return self._rename(item.source, _require_destination(item))
        if self._kind is OperationKind.COPY:
            return self._copy(item.source, _require_destination(item))
        if self._kind is OperationKind.MOVE:
            return self._move(item.source, _require_destination(item))
        return self._trash(item.source)

    def _affected_paths(self, item: TransferItem, result: Path) -> list[Path]:
        if self._kind in {OperationKind.CREATE_DIRECTORY, OperationKind.CREATE_FILE}:
            return [result.parent]
        if self._kind is OperationKind.COPY:
            return [result.parent]
        paths = [item.source.parent]
        if self._kind is OperationKind.MOVE:
            paths.append(result.parent)
        if result != item.source and result.is_dir() and not result.is_symlink():
            paths.append(item.source)
        return paths

    @staticmethod
    def _create(target: Path, directory: bool) -> Path:
        parent = target.parent
        if not parent.is_dir():
            raise NotFound(f"Directory not found: '{parent}'", parent)
        if os.path.lexists(target):
            raise AlreadyExists(f"'{target.name}' already exists in '{parent}'", target)
        if directory:
            target.mkdir()
        else:
            with target.open("xb"):
                pass
        return target

    @staticmethod
    def _rename(source: Path, dest: Path) -> Path:
        if not os.path.lexists(source):
            raise NotFound(f"Not found: '{source}'", source)
        if dest == source:
            return source
        if os.path.lexists(dest) and not _same_entry(source, dest):
            raise AlreadyExists(f"'{dest.name}' already exists in '{dest.parent}'", dest)
        os.rename(source, dest)
        return dest

    def _copy(self, source: Path, dest: Path) -> Path:
        if not os.path.lexists(source):
            raise NotFound(f"Not found: '{source}'", source)
        if not dest.parent.is_dir():
            raise NotFound(f"Directory not found: '{dest.parent}'", dest.parent)
        _check_not_inside(source, dest.parent)
        dest = resolve_collision(dest)
        copied = self._copy_item(source, dest)
        _logger.debug("Copied %s to %s (%d bytes)", source, dest, copied)
        return dest

    def _move(self, source: Path, dest: Path) -> Path:
        if not os.path.lexists(source):
            raise NotFound(f"Not found: '{source}'", source)
        if not dest.parent.is_dir():
            raise NotFound(f"Directory not found: '{dest.parent}'", dest.parent)
        _check_not_inside(source, dest.parent)
        dest = resolve_collision(dest)
        if self._same_filesystem(source, dest):
            os.rename(source, dest)
        else:
            self._copy_item(source, dest)
            self._remove_existing(source)
        return dest

    def _trash(self, source: Path) -> Path:
        if self._trash_bin is None:
            raise OperationFailed("No trash location is configured.", source)
        return self._trash_bin.move_to_trash(source)

    def _copy_item(self, source: Path, dest: Path) -> int:
        if source.is_symlink():
            shutil.copy2(source, dest, follow_symlinks=False)
            return source.lstat().st_size
        if source.is_dir():
            return self._copy_dir(source, dest)
        return self._copy_file(source, dest)

    def _copy_dir(self, source: Path, dest: Path) -> int:
        bytes_done = 0
        dest.mkdir()
        for root, dirnames, filenames in os.walk(source):
            rel = Path(root).relative_to(source)
            dest_root = dest / rel
            for name in dirnames:
                src_dir = Path(root) / name
                if src_dir.is_symlink():
                    shutil.copy2(src_dir, dest_root / name, follow_symlinks=False)
                else:
                    (dest_root / name).mkdir()
            for name in filenames:
                src_file = Path(root) / name
                dst_file = dest_root / name
                if src_file.is_symlink():
                    shutil.copy2(src_file, dst_file, follow_symlinks=False)
                elif stat.S_ISREG(src_file.lstat().st_mode):
                    bytes_done += self._copy_file(src_file, dst_file)
        for root, _dirnames, _filenames in os.walk(source, topdown=False):
            rel = Path(root).relative_to(source)
            shutil.copystat(root, dest / rel, follow_symlinks=False)
        return bytes_done

    @staticmethod
    def _copy_file(source: Path, dest: Path) -> int:
        bytes_done = 0
        with source.open("rb") as src, dest.open("xb") as dst:
            while True:
                chunk = src.read(_BUFFER_SIZE)
                if not chunk:
                    break
                dst.write(chunk)
                bytes_done += len(chunk)
        shutil.copystat(source, dest, follow_symlinks=False)
        return bytes_done

    @staticmethod
    def _same_filesystem(src: Path, dest: Path) -> bool:
        try:
            return src.lstat().st_dev == dest.parent.stat().st_dev
        except OSError:
            return False

    @staticmethod
    def _remove_existing(path: Path) -> None:
        if not os.path.lexists(path):
            return
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()


def _require_destination(item: TransferItem) -> Path:
    if item.destination is None:
        raise OperationFailed(f"No destination given for '{item.source}'", item.source)
    return item.destination


def _same_entry(left: Path, right: Path) -> bool:
    # Case-only renames on case-insensitive filesystems.
    if left.parent != right.parent or left.name.casefold() != right.name.casefold():
        return False
    try:
        return os.path.samefile(left, right)
    except OSError:
        return False


def _check_not_inside(source: Path, dest_dir: Path) -> None:
    if source.is_symlink() or not source.is_dir():
        return
    try:
        resolved_source = source.resolve()
        resolved_dest = dest_dir.resolve()
    except OSError:
        return
    if resolved_dest == resolved_source or resolved_source in resolved_dest.parents:
        raise OperationFailed(
            f"Cannot place '{source.name}' inside itself.",
            source,
        )
