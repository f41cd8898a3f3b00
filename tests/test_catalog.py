"""Entry classification, sort policy and error mapping."""

from __future__ import annotations

from datetime import datetime
import errno
import os
from pathlib import Path

from pathdeck.catalog.entry import ContentKind, EntryKind, PathCatalogEntry, as_path, content_kind
from pathdeck.catalog.errors import (
    AccessDenied,
    AlreadyExists,
    NotFound,
    OperationFailed,
    classify_os_error,
)
from pathdeck.catalog.sorting import SortDirection, SortKey, sort_entries


def _entry(name: str, kind: EntryKind = EntryKind.FILE, size: int = 0, day: int = 1, content_type: str | None = None) -> PathCatalogEntry:
    stamp = datetime(2024, 1, day)
    return PathCatalogEntry(
        path=Path("/data") / name,
        name=name,
        kind=kind,
        size=size,
        modified=stamp,
        created=stamp,
        hidden=name.startswith("."),
        readable=True,
        writable=True,
        executable=False,
        content_type=content_type,
    )


def test_sort_by_size_descending_keeps_directories_first() -> None:
    entries = [
        _entry("small.bin", size=1),
        _entry("docs", EntryKind.DIRECTORY),
        _entry("large.bin", size=100),
        _entry("archive", EntryKind.DIRECTORY),
    ]

    ordered = sort_entries(entries, SortKey.SIZE, SortDirection.DESCENDING)

    assert [entry.name for entry in ordered] == ["docs", "archive", "large.bin", "small.bin"]


def test_sort_by_modified_and_type() -> None:
    entries = [
        _entry("b.txt", day=3),
        _entry("a.png", day=1),
        _entry("c.md", day=2),
    ]

    by_date = sort_entries(entries, SortKey.DATE_MODIFIED)
    by_type = sort_entries(entries, SortKey.TYPE)

    assert [entry.name for entry in by_date] == ["a.png", "c.md", "b.txt"]
    assert [entry.name for entry in by_type] == ["c.md", "a.png", "b.txt"]


def test_symlinks_group_with_files() -> None:
    entries = [_entry("link", EntryKind.SYMLINK), _entry("folder", EntryKind.DIRECTORY), _entry("afile")]

    ordered = sort_entries(entries)

    assert [entry.name for entry in ordered] == ["folder", "afile", "link"]


def test_content_kind_facets() -> None:
    assert content_kind(_entry("photos", EntryKind.DIRECTORY)) is ContentKind.FOLDER
    assert content_kind(_entry("Tool.app", EntryKind.DIRECTORY)) is ContentKind.APPLICATION
    assert content_kind(_entry("cat.png", content_type="image/png")) is ContentKind.IMAGE
    assert content_kind(_entry("clip.mp4", content_type="video/mp4")) is ContentKind.VIDEO
    assert content_kind(_entry("song.mp3", content_type="audio/mpeg")) is ContentKind.AUDIO
    assert content_kind(_entry("paper.pdf", content_type="application/pdf")) is ContentKind.DOCUMENT
    assert content_kind(_entry("notes.txt", content_type="text/plain")) is ContentKind.DOCUMENT
    assert content_kind(_entry("setup.exe")) is ContentKind.APPLICATION
    assert content_kind(_entry("blob.bin", content_type="application/octet-stream")) is None


def test_from_path_reads_metadata(tmp_path: Path) -> None:
    target = tmp_path / "report.txt"
    target.write_text("hello", encoding="utf-8")

    entry = PathCatalogEntry.from_path(target)

    assert entry.path == target
    assert entry.name == "report.txt"
    assert entry.kind is EntryKind.FILE
    assert entry.size == 5
    assert entry.readable
    assert not entry.hidden
    assert entry.content_type == "text/plain"
    assert entry.display_size() == "5.0 B"


def test_as_path_accepts_entries_and_strings(tmp_path: Path) -> None:
    target = tmp_path / "x"
    target.mkdir()

    assert as_path(PathCatalogEntry.from_path(target)) == target
    assert as_path(str(target)) == target


def test_classify_os_error_maps_to_catalog_errors(tmp_path: Path) -> None:
    missing = tmp_path / "missing"

    assert isinstance(classify_os_error(FileNotFoundError(errno.ENOENT, "gone"), missing), NotFound)
    assert isinstance(classify_os_error(PermissionError(errno.EACCES, "denied"), missing), AccessDenied)
    assert isinstance(classify_os_error(FileExistsError(errno.EEXIST, "exists"), missing), AlreadyExists)
    failure = classify_os_error(OSError(errno.EIO, os.strerror(errno.EIO)), missing)
    assert isinstance(failure, OperationFailed)
    assert failure.path == missing
