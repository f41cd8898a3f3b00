from __future__ import annotations

from dataclasses import dataclass
import itertools
import logging
import os
from pathlib import Path

from PySide6.QtCore import QObject, QThreadPool, Signal, Slot

from pathdeck.catalog.entry import PathCatalogEntry
from pathdeck.catalog.errors import CatalogError
from pathdeck.ops.directory_reader import DirectoryReadWorker, Reader
from pathdeck.utils.config import DEFAULT_PREFETCH_DEPTH

_logger = logging.getLogger(__name__)


@dataclass
class TreeNode:
    path: Path
    expanded: bool = False
    children: tuple[PathCatalogEntry, ...] | None = None
    loading_token: int | None = None
    error: str | None = None

    @property
    def loaded(self) -> bool:
        return self.children is not None

    @property
    def loading(self) -> bool:
        return self.loading_token is not None


class TreeCache(QObject):
    """Lazily filled children of an expandable directory tree.

    Cached children stay exactly as they were read until ``invalidate`` (or a
    change notification routed through ``handle_change``) drops them. A
    second request for a path whose read is still in flight joins that read
    instead of starting another one.
    """

    rootLoaded = Signal(object)
    nodeChanged = Signal(object)
    errorOccurred = Signal(str)

    def __init__(
        self,
        reader: Reader | None = None,
        pool: QThreadPool | None = None,
        prefetch_depth: int = DEFAULT_PREFETCH_DEPTH,
        show_hidden: bool = False,
        applications_dir: Path | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._reader = reader
        self._pool = pool or QThreadPool.globalInstance()
        self._prefetch_depth = max(1, prefetch_depth)
        self._show_hidden = show_hidden
        self._applications_dir = applications_dir
        self._tokens = itertools.count(1)
        self._nodes: dict[Path, TreeNode] = {}
        self._workers: dict[int, DirectoryReadWorker] = {}
        self._root: Path | None = None
        self._pinned: list[Path] = []
        self._prefetch_token: int | None = None
        self._prefetch_skip: set[Path] = set()
        self._last_error: str | None = None

    @property
    def root(self) -> Path | None:
        return self._root

    @property
    def pinned(self) -> list[Path]:
        """Extra top-level directories shown next to the root."""
        return list(self._pinned)

    @property
    def show_hidden(self) -> bool:
        return self._show_hidden

    @property
    def is_loading(self) -> bool:
        return self._prefetch_token is not None

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def load(self, root_path: Path | str) -> None:
        """Replace the whole cache with a fresh tree rooted at ``root_path``."""
        for worker in self._workers.values():
            worker.cancel()
        self._workers.clear()
        self._nodes.clear()
        self._pinned = []
        self._prefetch_skip.clear()
        self._last_error = None

        root = Path(os.path.abspath(root_path))
        self._root = root
        token = next(self._tokens)
        self._prefetch_token = token
        node = self._node(root)
        node.expanded = True
        node.loading_token = token
        _logger.debug("Loading tree at %s (depth %d)", root, self._prefetch_depth)
        self._start(token, root, self._prefetch_depth)

    def refresh(self) -> None:
        if self._root is not None:
            self.load(self._root)

    def set_show_hidden(self, show_hidden: bool) -> None:
        if show_hidden == self._show_hidden:
            return
        self._show_hidden = show_hidden
        self.refresh()

    def toggle_expansion(self, path: Path | str) -> bool:
        """Flip the expansion flag and return the new state.

        Expanding a node whose children are not cached starts a read.
        """
        node = self._node(Path(os.path.abspath(path)))
        node.expanded = not node.expanded
        if node.expanded and not node.loaded:
            self.request_children(node.path)
        self.nodeChanged.emit(node.path)
        return node.expanded

    def request_children(self, path: Path | str) -> bool:
        """Make sure the children of ``path`` get read.

        Returns False when they are cached already or a read for the path is
        in flight.
        """
        node = self._node(Path(os.path.abspath(path)))
        if node.loaded:
            return False
        if node.loading:
            _logger.debug("Joining in-flight read of %s", node.path)
            return False
        if self._awaits_prefetch(node.path):
            _logger.debug("Joining prefetch for %s", node.path)
            node.loading_token = self._prefetch_token
            node.error = None
            return False
        token = next(self._tokens)
        node.loading_token = token
        node.error = None
        self._start(token, node.path, 1)
        return True

    def invalidate(self, path: Path | str | None = None) -> None:
        """Drop cached children of ``path``, or of every node when omitted.

        Collapsed nodes are read again on their next expansion; expanded
        nodes are read again right away.
        """
        if path is None:
            for worker in self._workers.values():
                worker.cancel()
            self._workers.clear()
            self._prefetch_token = None
            nodes = list(self._nodes.values())
            for node in nodes:
                self._drop(node)
            for node in nodes:
                if node.expanded:
                    self.request_children(node.path)
            if self._root is not None:
                self.nodeChanged.emit(self._root)
            return
        key = Path(os.path.abspath(path))
        node = self._nodes.get(key)
        if node is None:
            return
        self._drop(node)
        if node.expanded:
            self.request_children(key)
        self.nodeChanged.emit(key)

    def handle_change(self, path: Path | str) -> None:
        """React to a filesystem-changed notification for ``path``."""
        self.invalidate(path)

    def children_of(self, path: Path | str) -> tuple[PathCatalogEntry, ...] | None:
        """Cached children in display order, or None when not loaded yet."""
        node = self._nodes.get(Path(os.path.abspath(path)))
        if node is None:
            return None
        return node.children

    def is_expanded(self, path: Path | str) -> bool:
        node = self._nodes.get(Path(os.path.abspath(path)))
        return bool(node and node.expanded)

    def is_node_loading(self, path: Path | str) -> bool:
        node = self._nodes.get(Path(os.path.abspath(path)))
        return bool(node and node.loading)

    def error_for(self, path: Path | str) -> str | None:
        node = self._nodes.get(Path(os.path.abspath(path)))
        return node.error if node else None

    def _node(self, path: Path) -> TreeNode:
        node = self._nodes.get(path)
        if node is None:
            node = TreeNode(path=path)
            self._nodes[path] = node
        return node

    def _drop(self, node: TreeNode) -> None:
        node.children = None
        node.error = None
        node.loading_token = None
        self._prefetch_skip.add(node.path)

    def _awaits_prefetch(self, path: Path) -> bool:
        if self._prefetch_token is None or self._root is None or path in self._prefetch_skip:
            return False
        try:
            relative = path.relative_to(self._root)
        except ValueError:
            return False
        return 0 < len(relative.parts) < self._prefetch_depth

    def _start(self, token: int, path: Path, depth: int) -> None:
        worker = DirectoryReadWorker(token, path, self._show_hidden, depth=depth, reader=self._reader)
        worker.signals.loaded.connect(self._on_loaded)
        worker.signals.failed.connect(self._on_failed)
        worker.signals.finished.connect(self._on_finished)
        self._workers[token] = worker
        self._pool.start(worker)

    def _accepts(self, token: int, path: Path) -> TreeNode | None:
        if token == self._prefetch_token:
            if path in self._prefetch_skip:
                return None
            node = self._node(path)
            if node.loading_token not in {None, token}:
                return None
            return node
        node = self._nodes.get(path)
        if node is None or node.loading_token != token:
            return None
        return node

    @Slot(int, object, object)
    def _on_loaded(self, token: int, path: Path, entries: list[PathCatalogEntry]) -> None:
        node = self._accepts(token, path)
        if node is None:
            _logger.debug("Discarding stale children of %s", path)
            return
        node.children = tuple(entries)
        node.loading_token = None
        node.error = None
        self.nodeChanged.emit(path)

    @Slot(int, object, object)
    def _on_failed(self, token: int, path: Path, error: CatalogError) -> None:
        node = self._accepts(token, path)
        if node is None:
            return
        node.children = None
        node.loading_token = None
        node.error = str(error)
        if path in self._pinned:
            self._pinned.remove(path)
        self._last_error = node.error
        _logger.warning("Could not read %s: %s", path, error)
        self.errorOccurred.emit(node.error)
        self.nodeChanged.emit(path)

    @Slot(int)
    def _on_finished(self, token: int) -> None:
        self._workers.pop(token, None)
        if token != self._prefetch_token:
            return
        self._prefetch_token = None
        # Nodes that joined the prefetch but were never reached by it.
        for node in list(self._nodes.values()):
            if node.loading_token == token:
                node.loading_token = None
                if node.expanded:
                    self.request_children(node.path)
        root = self._root
        if root is None:
            return
        self._pin_applications(root)
        self.rootLoaded.emit(root)

    def _pin_applications(self, root: Path) -> None:
        apps = self._applications_dir
        children = self.children_of(root)
        if apps is None or children is None:
            return
        apps = Path(os.path.abspath(apps))
        if apps == root or any(entry.path == apps for entry in children):
            return
        self._pinned = [apps]
        self.request_children(apps)
