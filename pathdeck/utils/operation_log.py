from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
from pathlib import Path

from pathdeck.ops.transfer_worker import OperationKind
from pathdeck.utils.config import ConfigStore

_logger = logging.getLogger(__name__)

DEFAULT_MAX_MB = 5


@dataclass(frozen=True)
class JournalEntry:
    timestamp: datetime
    kind: OperationKind
    source: Path
    destination: Path | None = None
    error: str = ""

    @property
    def succeeded(self) -> bool:
        return not self.error

    def to_line(self) -> str:
        return json.dumps(
            {
                "timestamp": self.timestamp.isoformat(),
                "kind": self.kind.value,
                "source": str(self.source),
                "destination": None if self.destination is None else str(self.destination),
                "error": self.error,
            }
        )

    @classmethod
    def from_line(cls, line: str) -> "JournalEntry":
        data = json.loads(line)
        destination = data.get("destination")
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            kind=OperationKind(data["kind"]),
            source=Path(data["source"]),
            destination=Path(destination) if destination else None,
            error=data.get("error") or "",
        )


class OperationLog:
    """Journal of mutated items, one JSON object per line.

    When the file grows past ``max_bytes`` its older half is dropped.
    """

    def __init__(self, path: Path, max_bytes: int = DEFAULT_MAX_MB * 1024 * 1024) -> None:
        self._path = Path(path)
        self._max_bytes = max_bytes

    @classmethod
    def from_config(cls, config: ConfigStore) -> "OperationLog":
        default = Path.home() / ".cache/pathdeck/logs/operation_log.jsonl"
        path = Path(config.get_str("operation_log_path") or default).expanduser()
        max_mb = config.get_int("operation_log_max_mb", DEFAULT_MAX_MB)
        return cls(path, max_mb * 1024 * 1024)

    @property
    def path(self) -> Path:
        return self._path

    def record_item(
        self,
        kind: OperationKind,
        source: Path,
        destination: Path | None = None,
        error: str = "",
    ) -> JournalEntry:
        entry = JournalEntry(
            timestamp=datetime.now(timezone.utc),
            kind=OperationKind(kind),
            source=Path(source),
            destination=destination,
            error=error,
        )
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(entry.to_line() + "\n")
            if self._max_bytes > 0 and self._path.stat().st_size > self._max_bytes:
                self._trim()
        except OSError as exc:
            _logger.warning("Could not write operation journal %s: %s", self._path, exc)
        return entry

    def entries(self, limit: int | None = None) -> list[JournalEntry]:
        """Journal entries oldest first; malformed lines are skipped."""
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []
        parsed: list[JournalEntry] = []
        for line in lines:
            if not line.strip():
                continue
            try:
                parsed.append(JournalEntry.from_line(line))
            except (ValueError, KeyError) as exc:
                _logger.debug("Skipping malformed journal line in %s: %s", self._path, exc)
        if limit:
            return parsed[-limit:]
        return parsed

    def _trim(self) -> None:
        lines = self._path.read_text(encoding="utf-8").splitlines(keepends=True)
        kept = lines[len(lines) // 2 :]
        self._path.write_text("".join(kept), encoding="utf-8")
        _logger.debug("Trimmed operation journal %s to %d entries", self._path, len(kept))
