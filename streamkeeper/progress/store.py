"""Parquet history of progress records.

Progress is only kept in driver memory by the engine (``recentProgress``
holds the last 100 records). ``ProgressStore`` buffers tracked records and
flushes them to Parquet so batch history survives driver restarts.
"""

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import pyarrow as pa
import pyarrow.parquet as pq

from streamkeeper.logging_config import get_logger
from streamkeeper.progress.tracker import TrackedBatch

logger = get_logger(__name__)

PROGRESS_SCHEMA = pa.schema(
    [
        ("query_id", pa.string()),
        ("run_id", pa.string()),
        ("name", pa.string()),
        ("timestamp", pa.timestamp("ms", tz="UTC")),
        ("batch_id", pa.int64()),
        ("kind", pa.string()),
        ("num_input_rows", pa.int64()),
        ("input_rows_per_second", pa.float64()),
        ("processed_rows_per_second", pa.float64()),
        ("trigger_execution_ms", pa.int64()),
        ("add_batch_ms", pa.int64()),
        ("watermark", pa.string()),
        ("sink_description", pa.string()),
        ("state_rows_total", pa.int64()),
    ]
)


class ProgressStore:
    """Buffered Parquet writer for tracked progress.

    Files are written as ``progress_<UTC timestamp>_<seq>.parquet`` under
    ``root``; ``read_all`` concatenates them in name order.
    """

    def __init__(self, root: Path, flush_count: int = 100) -> None:
        """Initialize store.

        Args:
            root: Directory receiving Parquet files
            flush_count: Records buffered before a file is written
        """
        if flush_count < 1:
            raise ValueError("flush_count must be at least 1")
        self.root = Path(root).expanduser()
        self.flush_count = flush_count
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._file_counter = 0
        self.files_written = 0

    def append(self, batch: TrackedBatch) -> Path | None:
        """Buffer a record; returns the file path when a flush happened."""
        with self._lock:
            self._buffer.append(batch.to_record())
            if len(self._buffer) < self.flush_count:
                return None
            rows, self._buffer = self._buffer, []
        return self._write(rows)

    def extend(self, batches: Iterable[TrackedBatch]) -> list[Path]:
        written = []
        for batch in batches:
            path = self.append(batch)
            if path is not None:
                written.append(path)
        return written

    def flush(self) -> Path | None:
        """Write any buffered records."""
        with self._lock:
            rows, self._buffer = self._buffer, []
        if not rows:
            return None
        return self._write(rows)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._buffer)

    def _write(self, rows: list[dict[str, Any]]) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)

        for row in rows:
            ts = row["timestamp"]
            if isinstance(ts, datetime) and ts.tzinfo is None:
                row["timestamp"] = ts.replace(tzinfo=timezone.utc)

        table = pa.Table.from_pylist(rows, schema=PROGRESS_SCHEMA)

        with self._lock:
            self._file_counter += 1
            counter = self._file_counter
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        path = self.root / f"progress_{stamp}_{counter:05d}.parquet"

        pq.write_table(table, path, compression="snappy")
        self.files_written += 1

        logger.info("progress_flushed", path=str(path), rows=table.num_rows)
        return path

    def files(self) -> list[Path]:
        if not self.root.is_dir():
            return []
        return sorted(self.root.glob("progress_*.parquet"))

    def read_all(self) -> pa.Table:
        """Load every flushed record as one table (empty table if none)."""
        files = self.files()
        if not files:
            return PROGRESS_SCHEMA.empty_table()
        tables = [pq.read_table(path) for path in files]
        return pa.concat_tables(tables)
