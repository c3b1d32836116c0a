"""Read access to a streaming query's checkpoint directory.

Expected layout::

    <checkpoint>/metadata            {"id": "<query uuid>"}
    <checkpoint>/offsets/<batchId>   planned offsets per micro-batch
    <checkpoint>/commits/<batchId>   completion marker per micro-batch
    <checkpoint>/sources/<n>/...     per-source logs
    <checkpoint>/state/...           state store files

Example:
    checkpoint = Checkpoint(Path("/chk/orders"))
    summary = checkpoint.summary()
    print(summary.latest_commit, summary.pending_batch_ids)
"""

import json
from pathlib import Path
from typing import Any

from streamkeeper.checkpoint.models import CheckpointSummary, CommitRecord, OffsetRecord
from streamkeeper.exceptions import (
    CheckpointFileNotFoundError,
    CheckpointNotFoundError,
    CorruptLogFileError,
)
from streamkeeper.logfile import (
    LogFile,
    find_log_file,
    list_batch_ids,
    list_log_files,
    read_metadata_log_file,
)
from streamkeeper.logging_config import get_logger

logger = get_logger(__name__)

OFFSETS_DIR = "offsets"
COMMITS_DIR = "commits"
SOURCES_DIR = "sources"
STATE_DIR = "state"
METADATA_FILE = "metadata"

NO_OFFSET = "-"


def _parse_json(path: Path, text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise CorruptLogFileError(str(path), f"invalid JSON: {e}") from e


def _int_field(path: Path, data: dict[str, Any], key: str) -> int:
    value = data.get(key, 0)
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise CorruptLogFileError(str(path), f"{key} is not an integer: {value!r}") from e



def _parse_source_offset(value: str) -> Any:
    """Source offsets are JSON for most sources but stay opaque to us."""
    if value == NO_OFFSET:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


class Checkpoint:
    """A streaming query checkpoint directory."""

    def __init__(self, path: Path) -> None:
        """Open a checkpoint directory.

        Args:
            path: Checkpoint location passed to ``checkpointLocation``

        Raises:
            CheckpointNotFoundError: If the path holds no checkpoint
        """
        self.path = Path(path).expanduser().resolve()

        if not self.path.is_dir():
            raise CheckpointNotFoundError(str(self.path))
        if not (self.offsets_dir.is_dir() or (self.path / METADATA_FILE).is_file()):
            raise CheckpointNotFoundError(str(self.path))

    @property
    def offsets_dir(self) -> Path:
        return self.path / OFFSETS_DIR

    @property
    def commits_dir(self) -> Path:
        return self.path / COMMITS_DIR

    @property
    def query_id(self) -> str | None:
        """Query id from ``metadata``; stable across restarts of the same query."""
        metadata_path = self.path / METADATA_FILE
        if not metadata_path.is_file():
            return None
        text = metadata_path.read_text(encoding="utf-8").strip()
        if not text:
            raise CorruptLogFileError(str(metadata_path), "file is empty")
        data = _parse_json(metadata_path, text.splitlines()[0])
        if not isinstance(data, dict) or "id" not in data:
            raise CorruptLogFileError(str(metadata_path), "missing query id")
        return str(data["id"])

    def offset_batch_ids(self) -> list[int]:
        return list_batch_ids(self.offsets_dir)

    def commit_batch_ids(self) -> list[int]:
        return list_batch_ids(self.commits_dir)

    def offset_files(self) -> list[LogFile]:
        return list_log_files(self.offsets_dir)

    def commit_files(self) -> list[LogFile]:
        return list_log_files(self.commits_dir)

    def offset(self, batch_id: int) -> OffsetRecord:
        """Read the offset record for ``batch_id``.

        Raises:
            CheckpointFileNotFoundError: If the batch has no offset file
            CorruptLogFileError: If the file cannot be parsed
        """
        path = find_log_file(self.offsets_dir, batch_id)
        content = read_metadata_log_file(path)

        if not content.lines:
            raise CorruptLogFileError(str(path), "missing offset metadata")

        metadata_line = content.lines[0].strip()
        metadata: dict[str, Any] = {}
        if metadata_line:
            parsed = _parse_json(path, metadata_line)
            if not isinstance(parsed, dict):
                raise CorruptLogFileError(str(path), "offset metadata is not an object")
            metadata = parsed

        conf = metadata.get("conf") or {}
        if not isinstance(conf, dict):
            raise CorruptLogFileError(str(path), "offset conf is not an object")

        return OffsetRecord(
            batch_id=batch_id,
            version=content.version,
            batch_watermark_ms=_int_field(path, metadata, "batchWatermarkMs"),
            batch_timestamp_ms=_int_field(path, metadata, "batchTimestampMs"),
            conf={str(k): str(v) for k, v in conf.items()},
            source_offsets=[_parse_source_offset(line) for line in content.lines[1:]],
            path=path,
        )

    def commit(self, batch_id: int) -> CommitRecord:
        """Read the commit record for ``batch_id``.

        Raises:
            CheckpointFileNotFoundError: If the batch was never committed
            CorruptLogFileError: If the file cannot be parsed
        """
        path = find_log_file(self.commits_dir, batch_id)
        content = read_metadata_log_file(path)

        data: dict[str, Any] = {}
        if content.lines and content.lines[0].strip():
            parsed = _parse_json(path, content.lines[0])
            if not isinstance(parsed, dict):
                raise CorruptLogFileError(str(path), "commit metadata is not an object")
            data = parsed

        return CommitRecord(
            batch_id=batch_id,
            version=content.version,
            next_batch_watermark_ms=_int_field(path, data, "nextBatchWatermarkMs"),
            path=path,
        )

    def offsets(self) -> list[OffsetRecord]:
        return [self.offset(batch_id) for batch_id in self.offset_batch_ids()]

    def commits(self) -> list[CommitRecord]:
        return [self.commit(batch_id) for batch_id in self.commit_batch_ids()]

    def latest_offset(self) -> OffsetRecord | None:
        batch_ids = self.offset_batch_ids()
        return self.offset(batch_ids[-1]) if batch_ids else None

    def latest_commit(self) -> CommitRecord | None:
        batch_ids = self.commit_batch_ids()
        return self.commit(batch_ids[-1]) if batch_ids else None

    def is_committed(self, batch_id: int) -> bool:
        try:
            find_log_file(self.commits_dir, batch_id)
        except CheckpointFileNotFoundError:
            return False
        return True

    def source_count(self) -> int:
        sources_dir = self.path / SOURCES_DIR
        if not sources_dir.is_dir():
            return 0
        return sum(1 for entry in sources_dir.iterdir() if entry.is_dir() and entry.name.isdigit())

    def has_state(self) -> bool:
        state_dir = self.path / STATE_DIR
        return state_dir.is_dir() and any(state_dir.iterdir())

    def summary(self) -> CheckpointSummary:
        """Summarise offsets, commits and auxiliary directories."""
        summary = CheckpointSummary(
            path=self.path,
            query_id=self.query_id,
            offset_batch_ids=self.offset_batch_ids(),
            commit_batch_ids=self.commit_batch_ids(),
            has_state=self.has_state(),
            source_count=self.source_count(),
        )
        logger.debug(
            "checkpoint_summary",
            path=str(self.path),
            latest_offset=summary.latest_offset,
            latest_commit=summary.latest_commit,
        )
        return summary
