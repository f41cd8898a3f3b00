from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
import os
from pathlib import Path
import shutil
from typing import Optional
from urllib.parse import quote, unquote

from pathdeck.ops.naming import resolve_collision

_logger = logging.getLogger(__name__)


@dataclass
class TrashInfo:
    original_path: Path
    deletion_date: str


@dataclass(frozen=True)
class TrashedItem:
    name: str
    location: Path
    info: Optional[TrashInfo]


def parse_trash_info(path: Path) -> Optional[TrashInfo]:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return None

    original = None
    deletion_date = ""
    in_section = False
    for line in lines:
        if line.strip() == "[Trash Info]":
            in_section = True
            continue
        if not in_section or "=" not in line:
            continue
        key, value = line.split("=", 1)
        if key == "Path":
            original = Path(unquote(value))
        elif key == "DeletionDate":
            deletion_date = value

    if original is None:
        return None
    return TrashInfo(original_path=original, deletion_date=deletion_date)


def unique_trash_name(base: Path, name: str) -> str:
    candidate = name
    counter = 1
    while (base / candidate).exists() or (base.parent / "info" / f"{candidate}.trashinfo").exists():
        candidate = f"{name} {counter}"
        counter += 1
    return candidate


class TrashBin:
    """Recoverable-deletion area laid out as a freedesktop.org trash can."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def files_dir(self) -> Path:
        return self._root / "files"

    @property
    def info_dir(self) -> Path:
        return self._root / "info"

    def move_to_trash(self, source: Path) -> Path:
        """Move ``source`` into the trash and return its new location.

        Raises ``OSError`` from the underlying move; on failure nothing is
        left behind in ``info/``.
        """
        source = Path(os.path.abspath(source))
        if not os.path.lexists(source):
            raise FileNotFoundError(2, "No such file or directory", str(source))
        self.files_dir.mkdir(parents=True, exist_ok=True)
        self.info_dir.mkdir(parents=True, exist_ok=True)

        name = unique_trash_name(self.files_dir, source.name)
        dest_path = self.files_dir / name
        info_path = self.info_dir / f"{name}.trashinfo"
        timestamp = datetime.now().strftime("%Y-%m-%dT%H:%M:%S")
        encoded = quote(str(source), safe="/")
        info_path.write_text(
            f"[Trash Info]\nPath={encoded}\nDeletionDate={timestamp}\n",
            encoding="utf-8",
        )
        try:
            shutil.move(str(source), str(dest_path))
        except OSError:
            info_path.unlink(missing_ok=True)
            raise
        _logger.debug("Trashed %s as %s", source, dest_path)
        return dest_path

    def items(self) -> list[TrashedItem]:
        if not self.files_dir.exists():
            return []
        found: list[TrashedItem] = []
        for entry in sorted(self.files_dir.iterdir()):
            info = parse_trash_info(self.info_dir / f"{entry.name}.trashinfo")
            found.append(TrashedItem(name=entry.name, location=entry, info=info))
        return found

    def restore(self, name: str) -> Path:
        """Put a trashed item back where it came from.

        An occupied original location gets a numbered name instead of being
        overwritten.
        """
        location = self.files_dir / name
        info_path = self.info_dir / f"{name}.trashinfo"
        info = parse_trash_info(info_path)
        if info is None:
            raise FileNotFoundError(2, "No trash metadata", str(info_path))
        if not os.path.lexists(location):
            raise FileNotFoundError(2, "No such file or directory", str(location))
        target = info.original_path
        target.parent.mkdir(parents=True, exist_ok=True)
        if os.path.lexists(target):
            target = resolve_collision(target)
        shutil.move(str(location), str(target))
        info_path.unlink(missing_ok=True)
        _logger.debug("Restored %s to %s", location, target)
        return target
