"""Records read from a checkpoint directory."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class OffsetRecord:
    """Planned offsets for one micro-batch (``offsets/<batchId>``).

    ``source_offsets`` has one entry per source in query plan order. ``None``
    marks a source that had no offset yet when the batch was planned.
    """

    batch_id: int
    version: int
    batch_watermark_ms: int = 0
    batch_timestamp_ms: int = 0
    conf: dict[str, str] = field(default_factory=dict)
    source_offsets: list[Any] = field(default_factory=list)
    path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "version": self.version,
            "batch_watermark_ms": self.batch_watermark_ms,
            "batch_timestamp_ms": self.batch_timestamp_ms,
            "conf": dict(self.conf),
            "source_offsets": list(self.source_offsets),
        }


@dataclass(frozen=True)
class CommitRecord:
    """Completion marker for one micro-batch (``commits/<batchId>``)."""

    batch_id: int
    version: int
    next_batch_watermark_ms: int = 0
    path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "version": self.version,
            "next_batch_watermark_ms": self.next_batch_watermark_ms,
        }


@dataclass
class CheckpointSummary:
    """Snapshot of a checkpoint directory's progress metadata."""

    path: Path
    query_id: str | None
    offset_batch_ids: list[int]
    commit_batch_ids: list[int]
    has_state: bool = False
    source_count: int = 0

    @property
    def latest_offset(self) -> int | None:
        return self.offset_batch_ids[-1] if self.offset_batch_ids else None

    @property
    def latest_commit(self) -> int | None:
        return self.commit_batch_ids[-1] if self.commit_batch_ids else None

    @property
    def pending_batch_ids(self) -> list[int]:
        """Offsets planned but not committed; the engine re-runs these on restart."""
        latest_commit = self.latest_commit
        if latest_commit is None:
            return list(self.offset_batch_ids)
        return [b for b in self.offset_batch_ids if b > latest_commit]

    @property
    def next_batch_id(self) -> int:
        """Batch id the query will run next when restarted."""
        pending = self.pending_batch_ids
        if pending:
            return pending[0]
        latest_commit = self.latest_commit
        return 0 if latest_commit is None else latest_commit + 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "query_id": self.query_id,
            "offsets": len(self.offset_batch_ids),
            "commits": len(self.commit_batch_ids),
            "latest_offset": self.latest_offset,
            "latest_commit": self.latest_commit,
            "pending_batch_ids": self.pending_batch_ids,
            "next_batch_id": self.next_batch_id,
            "has_state": self.has_state,
            "source_count": self.source_count,
        }
