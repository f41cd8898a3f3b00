from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
import itertools
import logging
import os
from pathlib import Path
import stat
from typing import Callable, Iterator

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot

from pathdeck.catalog.entry import ContentKind, PathCatalogEntry, content_kind
from pathdeck.catalog.errors import CatalogError, NotFound, classify_os_error
from pathdeck.catalog.sorting import sort_entries

_logger = logging.getLogger(__name__)

_PROGRESS_EVERY = 200


class DateBucket(str, Enum):
    ANY = "any"
    TODAY = "today"
    THIS_WEEK = "this-week"
    THIS_MONTH = "this-month"
    THIS_YEAR = "this-year"


@dataclass(frozen=True)
class SearchFilters:
    include_hidden: bool = False
    content: ContentKind = ContentKind.ANY
    modified: DateBucket = DateBucket.ANY

    def matches(self, entry: PathCatalogEntry, now: datetime | None = None) -> bool:
        if entry.hidden and not self.include_hidden:
            return False
        if self.content is not ContentKind.ANY and content_kind(entry) is not self.content:
            return False
        if self.modified is DateBucket.ANY:
            return True
        return _within_bucket(entry.modified, self.modified, now or datetime.now())


@dataclass
class SearchPlan:
    root: Path
    query: str
    include_subdirectories: bool = True
    filters: SearchFilters = field(default_factory=SearchFilters)

    @property
    def needle(self) -> str:
        return self.query.strip().casefold()


def iter_matches(
    plan: SearchPlan,
    is_cancelled: Callable[[], bool] = lambda: False,
    on_scanned: Callable[[int], None] | None = None,
) -> Iterator[PathCatalogEntry]:
    """Yield entries below ``plan.root`` whose name contains the query.

    Raises ``NotFound`` when the root is missing or not a directory and
    ``AccessDenied`` when it cannot be listed. Directories below the root
    that cannot be read during the walk are skipped.
    """
    root = check_root(plan.root)
    needle = plan.needle
    if not needle:
        return
    now = datetime.now()
    scanned = 0
    for dirpath, dirnames, filenames in os.walk(root, onerror=_skip_unreadable):
        if is_cancelled():
            return
        if not plan.filters.include_hidden:
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            filenames = [f for f in filenames if not f.startswith(".")]
        for name in dirnames + filenames:
            if is_cancelled():
                return
            scanned += 1
            if on_scanned is not None and scanned % _PROGRESS_EVERY == 0:
                on_scanned(scanned)
            if needle not in name.casefold():
                continue
            try:
                entry = PathCatalogEntry.from_path(Path(dirpath) / name)
            except OSError as exc:
                _logger.debug("Skipping %s: %s", Path(dirpath) / name, exc)
                continue
            if plan.filters.matches(entry, now):
                yield entry
        if not plan.include_subdirectories:
            return


def check_root(path: Path | str) -> Path:
    """Return the absolute search root, or raise if it cannot be searched."""
    root = Path(os.path.abspath(path))
    try:
        info = root.stat()
    except OSError as exc:
        raise classify_os_error(exc, root) from exc
    if not stat.S_ISDIR(info.st_mode):
        raise NotFound(f"Not a directory: '{root}'", root)
    try:
        with os.scandir(root):
            pass
    except OSError as exc:
        raise classify_os_error(exc, root) from exc
    return root


def search_tree(
    root: Path | str,
    query: str,
    include_subdirectories: bool = True,
    filters: SearchFilters | None = None,
) -> list[PathCatalogEntry]:
    plan = SearchPlan(
        root=Path(root),
        query=query,
        include_subdirectories=include_subdirectories,
        filters=filters or SearchFilters(),
    )
    return sort_entries(iter_matches(plan))


def _skip_unreadable(exc: OSError) -> None:
    _logger.debug("Skipping unreadable directory %s: %s", exc.filename, exc)


def _within_bucket(modified: datetime, bucket: DateBucket, now: datetime) -> bool:
    if bucket is DateBucket.TODAY:
        return modified.date() == now.date()
    if bucket is DateBucket.THIS_WEEK:
        return modified >= now - timedelta(weeks=1)
    if bucket is DateBucket.THIS_MONTH:
        return modified >= _months_before(now, 1)
    if bucket is DateBucket.THIS_YEAR:
        return modified >= _months_before(now, 12)
    return True


def _months_before(moment: datetime, months: int) -> datetime:
    index = moment.year * 12 + moment.month - 1 - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class SearchSignals(QObject):
    found = Signal(int, object)
    progress = Signal(int, int)
    finished = Signal(int, object)
    error = Signal(int, object)


class SearchWorker(QRunnable):
    def __init__(self, token: int, plan: SearchPlan) -> None:
        super().__init__()
        self._token = token
        self._plan = plan
        self.signals = SearchSignals()
        self._cancel = False

    def cancel(self) -> None:
        self._cancel = True

    def run(self) -> None:
        matches: list[PathCatalogEntry] = []
        try:
            for entry in iter_matches(self._plan, self._is_cancelled, self._report_scanned):
                matches.append(entry)
                self.signals.found.emit(self._token, entry)
        except CatalogError as exc:
            self.signals.error.emit(self._token, exc)
        if self._cancel:
            return
        self.signals.finished.emit(self._token, sort_entries(matches))

    def _is_cancelled(self) -> bool:
        return self._cancel

    def _report_scanned(self, count: int) -> None:
        self.signals.progress.emit(self._token, count)


class SearchEngine(QObject):
    """Runs one search at a time; a new ``search`` call supersedes the last.

    Results of a superseded traversal are dropped by token, so only the
    latest search ever writes ``results``.
    """

    resultFound = Signal(object)
    resultsChanged = Signal()
    scanned = Signal(int)
    searchStarted = Signal(str)
    searchFinished = Signal(int)
    errorOccurred = Signal(str)

    def __init__(self, pool: QThreadPool | None = None, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._pool = pool or QThreadPool.globalInstance()
        self._tokens = itertools.count(1)
        self._token = 0
        self._worker: SearchWorker | None = None
        self._results: list[PathCatalogEntry] = []
        self._last_error: str | None = None
        self._query = ""
        self._failed = False

    @property
    def results(self) -> list[PathCatalogEntry]:
        return list(self._results)

    @property
    def is_searching(self) -> bool:
        return self._worker is not None

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def query(self) -> str:
        return self._query

    def search(
        self,
        root: Path | str,
        query: str,
        include_subdirectories: bool = True,
        filters: SearchFilters | None = None,
    ) -> int:
        self.cancel()
        self._token = next(self._tokens)
        self._query = query
        self._results = []
        self._failed = False
        plan = SearchPlan(
            root=Path(root),
            query=query,
            include_subdirectories=include_subdirectories,
            filters=filters or SearchFilters(),
        )
        self.searchStarted.emit(query)
        if not plan.needle:
            try:
                check_root(plan.root)
            except CatalogError as exc:
                self._last_error = str(exc)
                self.errorOccurred.emit(self._last_error)
            else:
                self._last_error = None
            self.resultsChanged.emit()
            self.searchFinished.emit(0)
            return self._token

        worker = SearchWorker(self._token, plan)
        worker.signals.found.connect(self._on_found)
        worker.signals.progress.connect(self._on_progress)
        worker.signals.error.connect(self._on_error)
        worker.signals.finished.connect(self._on_finished)
        self._worker = worker
        _logger.debug("Searching %s for %r", plan.root, query)
        self._pool.start(worker)
        return self._token

    def cancel(self) -> None:
        if self._worker is None:
            return
        _logger.debug("Cancelling search %d", self._token)
        self._worker.cancel()
        self._worker = None
        self._token = next(self._tokens)

    def clear(self) -> None:
        self.cancel()
        self._query = ""
        self._results = []
        self.resultsChanged.emit()

    @Slot(int, object)
    def _on_found(self, token: int, entry: PathCatalogEntry) -> None:
        if token != self._token:
            return
        self._results.append(entry)
        self.resultFound.emit(entry)

    @Slot(int, int)
    def _on_progress(self, token: int, count: int) -> None:
        if token == self._token:
            self.scanned.emit(count)

    @Slot(int, object)
    def _on_error(self, token: int, error: CatalogError) -> None:
        if token != self._token:
            return
        self._failed = True
        self._last_error = str(error)
        self.errorOccurred.emit(self._last_error)

    @Slot(int, object)
    def _on_finished(self, token: int, results: list[PathCatalogEntry]) -> None:
        if token != self._token:
            _logger.debug("Dropping results of superseded search %d", token)
            return
        self._worker = None
        self._results = list(results)
        if not self._failed:
            self._last_error = None
        self.resultsChanged.emit()
        self.searchFinished.emit(len(self._results))
