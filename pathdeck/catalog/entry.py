from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import mimetypes
import os
from pathlib import Path
import stat

_DOCUMENT_TYPES = {
    "application/pdf",
    "application/rtf",
    "application/msword",
    "application/vnd.oasis.opendocument.text",
    "application/vnd.oasis.opendocument.spreadsheet",
    "application/vnd.oasis.opendocument.presentation",
    "application/vnd.ms-excel",
    "application/vnd.ms-powerpoint",
    "application/epub+zip",
    "application/json",
    "application/xml",
}
_DOCUMENT_PREFIXES = ("application/vnd.openxmlformats-officedocument.",)
_APPLICATION_TYPES = {
    "application/x-executable",
    "application/x-sharedlib",
    "application/x-msdownload",
    "application/x-msdos-program",
    "application/vnd.microsoft.portable-executable",
    "application/x-desktop",
    "application/vnd.appimage",
}
_APPLICATION_SUFFIXES = {".app", ".appimage", ".desktop", ".exe", ".msi", ".flatpakref"}


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    UNKNOWN = "unknown"


class ContentKind(str, Enum):
    ANY = "any"
    DOCUMENT = "document"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    APPLICATION = "application"
    FOLDER = "folder"


@dataclass(frozen=True, eq=False)
class PathCatalogEntry:
    """Metadata of one filesystem node as it was when it was read.

    Equality and hashing use ``path`` only, so an entry can still be found in
    a set or selection after the file behind it has changed.
    """

    path: Path
    name: str
    kind: EntryKind
    size: int
    modified: datetime
    created: datetime
    hidden: bool
    readable: bool
    writable: bool
    executable: bool
    content_type: str | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathCatalogEntry):
            return NotImplemented
        return self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @property
    def suffix(self) -> str:
        return self.path.suffix.lower()

    @classmethod
    def from_path(cls, path: Path | str) -> "PathCatalogEntry":
        """Snapshot ``path`` without following a final symbolic link.

        Raises ``OSError`` when the path cannot be stat'ed.
        """
        target = Path(os.path.abspath(path))
        info = os.lstat(target)
        mode = info.st_mode
        if stat.S_ISLNK(mode):
            kind = EntryKind.SYMLINK
        elif stat.S_ISDIR(mode):
            kind = EntryKind.DIRECTORY
        elif stat.S_ISREG(mode):
            kind = EntryKind.FILE
        else:
            kind = EntryKind.UNKNOWN
        name = target.name or str(target)
        created = getattr(info, "st_birthtime", None) or info.st_ctime
        return cls(
            path=target,
            name=name,
            kind=kind,
            size=0 if kind is EntryKind.DIRECTORY else info.st_size,
            modified=datetime.fromtimestamp(info.st_mtime),
            created=datetime.fromtimestamp(created),
            hidden=_is_hidden(name, info),
            readable=os.access(target, os.R_OK),
            writable=os.access(target, os.W_OK),
            executable=os.access(target, os.X_OK),
            content_type=_guess_content_type(name, kind),
        )

    def display_size(self) -> str:
        if self.kind is EntryKind.DIRECTORY:
            return "--"
        size = float(self.size)
        for unit in ["B", "KB", "MB", "GB", "TB"]:
            if size < 1024.0:
                return f"{size:.1f} {unit}"
            size /= 1024.0
        return f"{size:.1f} PB"


def content_kind(entry: PathCatalogEntry) -> ContentKind | None:
    """Classify an entry for the search facets, ``None`` when nothing fits."""
    if entry.kind is EntryKind.DIRECTORY:
        if entry.suffix == ".app":
            return ContentKind.APPLICATION
        return ContentKind.FOLDER
    mime = entry.content_type or ""
    if entry.suffix in _APPLICATION_SUFFIXES or mime in _APPLICATION_TYPES:
        return ContentKind.APPLICATION
    if mime.startswith("image/"):
        return ContentKind.IMAGE
    if mime.startswith("video/"):
        return ContentKind.VIDEO
    if mime.startswith("audio/"):
        return ContentKind.AUDIO
    if mime.startswith("text/") or mime in _DOCUMENT_TYPES or mime.startswith(_DOCUMENT_PREFIXES):
        return ContentKind.DOCUMENT
    if not mime and entry.kind is EntryKind.FILE and entry.executable:
        return ContentKind.APPLICATION
    return None


def _is_hidden(name: str, info: os.stat_result) -> bool:
    if name.startswith("."):
        return True
    attributes = getattr(info, "st_file_attributes", 0)
    return bool(attributes & getattr(stat, "FILE_ATTRIBUTE_HIDDEN", 0))


def _guess_content_type(name: str, kind: EntryKind) -> str | None:
    if kind is EntryKind.DIRECTORY:
        return "inode/directory"
    if kind is EntryKind.SYMLINK:
        return "inode/symlink"
    mime, _ = mimetypes.guess_type(name, strict=False)
    return mime


def as_path(item: PathCatalogEntry | Path | str) -> Path:
    if isinstance(item, PathCatalogEntry):
        return item.path
    return Path(os.path.abspath(item))
