from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
import sys

from pathdeck.utils.config import ConfigStore


@dataclass(frozen=True)
class DefaultLocations:
    home: Path
    applications: Path | None
    trash: Path


def read_default_locations(config: ConfigStore | None = None) -> DefaultLocations:
    """Read the default navigation targets from the host environment once."""
    home = Path.home()
    return DefaultLocations(
        home=home,
        applications=_applications_dir(home),
        trash=_trash_root(home, config),
    )


def _applications_dir(home: Path) -> Path | None:
    if sys.platform == "darwin":
        candidates = [Path("/Applications")]
    else:
        data_home = Path(os.environ.get("XDG_DATA_HOME") or home / ".local/share")
        candidates = [Path("/usr/share/applications"), data_home / "applications"]
    for candidate in candidates:
        if candidate.is_dir():
            return candidate
    return None


def _trash_root(home: Path, config: ConfigStore | None) -> Path:
    if config is not None:
        override = config.get_str("trash_path")
        if override:
            return Path(override).expanduser()
    data_home = Path(os.environ.get("XDG_DATA_HOME") or home / ".local/share")
    return data_home / "Trash"
