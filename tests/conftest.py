"""Shared Qt fixtures: a headless application, a private pool, event pumping."""

from __future__ import annotations

import os
from pathlib import Path
import threading
import time
from typing import Callable

import pytest
from PySide6.QtCore import QCoreApplication, QThreadPool

from pathdeck.catalog.entry import PathCatalogEntry
from pathdeck.ops.directory_reader import read_directory


class RecordingReader:
    """Directory reader that records every call and can hold chosen paths."""

    def __init__(self) -> None:
        self.calls: list[Path] = []
        self._lock = threading.Lock()
        self._gates: dict[Path, threading.Event] = {}

    def hold(self, path: Path) -> threading.Event:
        gate = threading.Event()
        self._gates[Path(os.path.abspath(path))] = gate
        return gate

    def release_all(self) -> None:
        for gate in self._gates.values():
            gate.set()

    def count(self, path: Path) -> int:
        target = Path(os.path.abspath(path))
        with self._lock:
            return sum(1 for call in self.calls if call == target)

    def __call__(self, path: Path, include_hidden: bool) -> list[PathCatalogEntry]:
        target = Path(os.path.abspath(path))
        with self._lock:
            self.calls.append(target)
        gate = self._gates.get(target)
        if gate is not None:
            gate.wait(5)
        return read_directory(target, include_hidden)


@pytest.fixture(scope="session")
def qapp() -> QCoreApplication:
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture
def pool(qapp: QCoreApplication):
    thread_pool = QThreadPool()
    thread_pool.setMaxThreadCount(4)
    yield thread_pool
    thread_pool.waitForDone(5000)
    QCoreApplication.processEvents()


@pytest.fixture
def reader(pool: QThreadPool):
    recording = RecordingReader()
    yield recording
    recording.release_all()


@pytest.fixture
def wait_until(qapp: QCoreApplication) -> Callable[..., bool]:
    def _wait(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            QCoreApplication.processEvents()
            if predicate():
                return True
            time.sleep(0.005)
        QCoreApplication.processEvents()
        return predicate()

    return _wait


@pytest.fixture
def settle(qapp: QCoreApplication) -> Callable[[float], None]:
    def _settle(seconds: float = 0.1) -> None:
        deadline = time.monotonic() + seconds
        while time.monotonic() < deadline:
            QCoreApplication.processEvents()
            time.sleep(0.005)

    return _settle
