"""Error taxonomy shared by the reader, the caches, search and mutations."""

from __future__ import annotations

import errno
from pathlib import Path


class CatalogError(Exception):
    """Base class for filesystem errors surfaced to callers."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = Path(path) if path is not None else None

    def __str__(self) -> str:
        return self.message


class NotFound(CatalogError):
    """The path does not exist or is not the expected kind."""


class AccessDenied(CatalogError):
    """Permission to read or modify the path was refused."""


class AlreadyExists(CatalogError):
    """The target name is taken and the operation does not auto-resolve."""


class OperationFailed(CatalogError):
    """Any other filesystem failure."""


def classify_os_error(exc: OSError, path: Path | str | None = None) -> CatalogError:
    target = path if path is not None else exc.filename
    label = str(target) if target is not None else "item"
    if isinstance(exc, (FileNotFoundError, NotADirectoryError)):
        return NotFound(f"Not found: '{label}'", target)
    if isinstance(exc, PermissionError) or exc.errno in {errno.EACCES, errno.EPERM}:
        return AccessDenied(f"Access denied to '{label}'", target)
    if isinstance(exc, FileExistsError) or exc.errno == errno.ENOTEMPTY:
        return AlreadyExists(f"'{label}' already exists", target)
    reason = exc.strerror or str(exc)
    return OperationFailed(f"Operation failed: {reason}", target)
