"""File sink ``_spark_metadata`` log reader.

The file sink writes its own metadata log next to the output data. A batch's
files are only visible to readers once the batch id appears in this log,
which is what makes the file sink exactly-once. Every tenth batch (by
default) is compacted into ``<id>.compact`` carrying all live entries so far.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from streamkeeper.exceptions import CorruptLogFileError, SinkLogNotFoundError
from streamkeeper.logfile import (
    LogFile,
    find_log_file,
    list_log_files,
    read_metadata_log_file,
)

METADATA_DIR = "_spark_metadata"

ACTION_ADD = "add"
ACTION_DELETE = "delete"


@dataclass(frozen=True)
class SinkFileEntry:
    """One output file recorded in the sink log."""

    path: str
    size: int
    is_dir: bool = False
    modification_time: int = 0
    block_replication: int = 1
    block_size: int = 0
    action: str = ACTION_ADD

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "SinkFileEntry":
        return cls(
            path=str(data["path"]),
            size=int(data.get("size", 0)),
            is_dir=bool(data.get("isDir", False)),
            modification_time=int(data.get("modificationTime", 0)),
            block_replication=int(data.get("blockReplication", 1)),
            block_size=int(data.get("blockSize", 0)),
            action=str(data.get("action", ACTION_ADD)),
        )


class FileSinkLog:
    """Metadata log of a file sink output directory."""

    def __init__(self, output_path: Path) -> None:
        """Open the sink log under ``output_path``.

        Raises:
            SinkLogNotFoundError: If ``_spark_metadata`` does not exist
        """
        self.output_path = Path(output_path).expanduser().resolve()
        self.log_dir = self.output_path / METADATA_DIR
        if not self.log_dir.is_dir():
            raise SinkLogNotFoundError(str(self.log_dir))

    def log_files(self) -> list[LogFile]:
        return list_log_files(self.log_dir)

    def batch_ids(self) -> list[int]:
        return [f.batch_id for f in self.log_files()]

    @property
    def latest_batch_id(self) -> int | None:
        batch_ids = self.batch_ids()
        return batch_ids[-1] if batch_ids else None

    def entries(self, batch_id: int) -> list[SinkFileEntry]:
        """Entries written in ``batch_id``'s log file.

        For a compact batch these are all live entries up to that batch.
        """
        path = find_log_file(self.log_dir, batch_id)
        content = read_metadata_log_file(path)

        entries = []
        for line in content.lines:
            if not line.strip():
                continue
            try:
                data = json.loads(line)
                entries.append(SinkFileEntry.from_json(data))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                raise CorruptLogFileError(str(path), f"invalid sink entry: {e}") from e
        return entries

    def files(self, batch_id: int) -> list[SinkFileEntry]:
        """Added files recorded in ``batch_id``'s log file."""
        return [e for e in self.entries(batch_id) if e.action == ACTION_ADD]

    def live_files(self) -> list[SinkFileEntry]:
        """All files visible to readers: latest compact plus later batches."""
        log_files = self.log_files()
        start = 0
        for index, log_file in enumerate(log_files):
            if log_file.compact:
                start = index

        live: dict[str, SinkFileEntry] = {}
        for log_file in log_files[start:]:
            for entry in self.entries(log_file.batch_id):
                if entry.action == ACTION_DELETE:
                    live.pop(entry.path, None)
                else:
                    live[entry.path] = entry
        return list(live.values())

    def summary(self) -> dict[str, Any]:
        log_files = self.log_files()
        live = self.live_files()
        return {
            "output_path": str(self.output_path),
            "batches": len(log_files),
            "latest_batch_id": log_files[-1].batch_id if log_files else None,
            "compact_batches": [f.batch_id for f in log_files if f.compact],
            "live_files": len(live),
            "live_bytes": sum(e.size for e in live),
        }
