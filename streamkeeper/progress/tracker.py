"""In-memory tracking of streaming query progress."""

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from streamkeeper.exceptions import AmbiguousQueryError
from streamkeeper.logging_config import get_logger
from streamkeeper.progress.classify import BatchKind, classify_progress
from streamkeeper.progress.models import QueryProgress, parse_progress

logger = get_logger(__name__)


@dataclass(frozen=True)
class TrackedBatch:
    """A progress record with its empty-batch classification."""

    kind: BatchKind
    progress: QueryProgress

    @property
    def batch_id(self) -> int:
        return self.progress.batch_id

    def to_record(self) -> dict[str, Any]:
        record = self.progress.to_record()
        record["kind"] = self.kind.value
        return record


@dataclass
class ProgressSummary:
    """Aggregates over the tracked history."""

    total: int = 0
    data_batches: int = 0
    no_data_batches: int = 0
    idle_events: int = 0
    total_input_rows: int = 0
    last_batch_id: int | None = None
    mean_trigger_ms: float | None = None
    max_trigger_ms: int | None = None
    skipped_batch_ids: list[int] = field(default_factory=list)
    replayed_batch_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "data_batches": self.data_batches,
            "no_data_batches": self.no_data_batches,
            "idle_events": self.idle_events,
            "total_input_rows": self.total_input_rows,
            "last_batch_id": self.last_batch_id,
            "mean_trigger_ms": self.mean_trigger_ms,
            "max_trigger_ms": self.max_trigger_ms,
            "skipped_batch_ids": self.skipped_batch_ids,
            "replayed_batch_ids": self.replayed_batch_ids,
        }


@dataclass
class HealthReport:
    """Health assessment of a query against its trigger interval."""

    falling_behind: bool = False
    overrun: bool = False
    stalled: bool = False
    reasons: list[str] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return not (self.falling_behind or self.overrun or self.stalled)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "falling_behind": self.falling_behind,
            "overrun": self.overrun,
            "stalled": self.stalled,
            "reasons": self.reasons,
        }


class ProgressTracker:
    """Collects progress records and classifies each trigger.

    Records of several queries may share one tracker; gaps, replays, summary
    and health are always evaluated for a single query id.

    Safe to feed from a listener thread while another thread reads.

    Example:
        tracker = ProgressTracker(max_history=500)
        tracker.record(query.lastProgress)
        print(tracker.summary().skipped_batch_ids)
    """

    def __init__(self, max_history: int = 1000, query_id: str | None = None) -> None:
        """Initialize tracker.

        Args:
            max_history: Records kept; older records are dropped
            query_id: Only accept records for this query id
        """
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self.max_history = max_history
        self.query_id = query_id
        self._history: deque[TrackedBatch] = deque(maxlen=max_history)
        self._lock = threading.Lock()
        self.started_runs: list[str] = []
        self.terminated: dict[str, str | None] = {}
        self.last_idle_at: datetime | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)

    def record(self, progress: Any) -> TrackedBatch | None:
        """Add a progress record; returns None when filtered by query id."""
        parsed = parse_progress(progress)
        if not self.accepts(parsed.id):
            return None

        tracked = TrackedBatch(kind=classify_progress(parsed), progress=parsed)
        with self._lock:
            self._history.append(tracked)

        logger.debug(
            "progress_recorded",
            query_id=parsed.id,
            batch_id=parsed.batch_id,
            kind=tracked.kind.value,
            num_input_rows=parsed.num_input_rows,
        )
        return tracked

    def record_all(self, records: Iterable[Any]) -> int:
        count = 0
        for record in records:
            if self.record(record) is not None:
                count += 1
        return count

    def accepts(self, query_id: Any) -> bool:
        """Whether events of ``query_id`` belong to this tracker."""
        return self.query_id is None or str(query_id) == self.query_id

    def mark_started(self, run_id: str) -> None:
        with self._lock:
            self.started_runs.append(run_id)

    def mark_terminated(self, run_id: str, exception: str | None = None) -> None:
        with self._lock:
            self.terminated[run_id] = exception

    def mark_idle(self, timestamp: datetime | None = None) -> None:
        """Record an idle event delivered without a progress record."""
        timestamp = timestamp or datetime.now(timezone.utc)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        with self._lock:
            self.last_idle_at = timestamp

    def query_ids(self) -> list[str]:
        """Query ids present in the history, in order of first appearance."""
        return list(dict.fromkeys(b.progress.id for b in self.batches()))

    def _select_query(self, query_id: str | None) -> str | None:
        if query_id is not None:
            return query_id
        if self.query_id is not None:
            return self.query_id
        ids = self.query_ids()
        if len(ids) > 1:
            raise AmbiguousQueryError(ids)
        return ids[0] if ids else None

    def batches(
        self, kind: BatchKind | None = None, query_id: str | None = None
    ) -> list[TrackedBatch]:
        with self._lock:
            history = list(self._history)
        if query_id is not None:
            history = [b for b in history if b.progress.id == query_id]
        if kind is None:
            return history
        return [b for b in history if b.kind == kind]

    def executed(self, query_id: str | None = None) -> list[TrackedBatch]:
        """Data and no-data batches; idle events are not batches."""
        return [b for b in self.batches(query_id=query_id) if b.kind != BatchKind.IDLE]

    def last(self) -> TrackedBatch | None:
        with self._lock:
            return self._history[-1] if self._history else None

    def gaps(self, query_id: str | None = None) -> list[int]:
        """Batch ids missing between executed batches of one query.

        Raises:
            AmbiguousQueryError: If no query is selected and several are tracked
        """
        selected = self._select_query(query_id)
        seen = sorted({b.batch_id for b in self.executed(selected)})
        missing: list[int] = []
        for previous, current in zip(seen, seen[1:]):
            missing.extend(range(previous + 1, current))
        return missing

    def replays(self, query_id: str | None = None) -> list[int]:
        """Batch ids of one query executed more than once, e.g. re-run after a restart."""
        selected = self._select_query(query_id)
        counts: dict[int, int] = {}
        for batch in self.executed(selected):
            counts[batch.batch_id] = counts.get(batch.batch_id, 0) + 1
        return sorted(b for b, n in counts.items() if n > 1)

    def summary(self, query_id: str | None = None) -> ProgressSummary:
        selected = self._select_query(query_id)
        history = self.batches(query_id=selected)
        summary = ProgressSummary(total=len(history))

        trigger_ms = []
        for batch in history:
            if batch.kind == BatchKind.DATA:
                summary.data_batches += 1
            elif batch.kind == BatchKind.NO_DATA:
                summary.no_data_batches += 1
            else:
                summary.idle_events += 1
            summary.total_input_rows += batch.progress.num_input_rows
            if batch.kind != BatchKind.IDLE and batch.progress.trigger_execution_ms is not None:
                trigger_ms.append(batch.progress.trigger_execution_ms)

        executed = [b for b in history if b.kind != BatchKind.IDLE]
        if executed:
            summary.last_batch_id = max(b.batch_id for b in executed)
        if trigger_ms:
            summary.mean_trigger_ms = sum(trigger_ms) / len(trigger_ms)
            summary.max_trigger_ms = max(trigger_ms)

        summary.skipped_batch_ids = self.gaps(selected)
        summary.replayed_batch_ids = self.replays(selected)
        return summary

    def health(
        self,
        trigger_interval: float,
        falling_behind_factor: float = 1.5,
        stall_intervals: int = 10,
        now: datetime | None = None,
        query_id: str | None = None,
    ) -> HealthReport:
        """Assess the latest state of one query.

        Args:
            trigger_interval: Processing-time trigger interval in seconds (0 = none)
            falling_behind_factor: Input/processed rate ratio considered falling behind
            stall_intervals: Intervals without an executed batch before stalled
            now: Reference time (defaults to the current UTC time)
            query_id: Query to assess; required when several are tracked
        """
        report = HealthReport()
        history = self.batches(query_id=self._select_query(query_id))
        if not history:
            return report

        executed = [b for b in history if b.kind != BatchKind.IDLE]
        latest = executed[-1].progress if executed else None

        if latest is not None:
            input_rate = latest.input_rows_per_second
            processed_rate = latest.processed_rows_per_second
            if input_rate > 0 and input_rate > processed_rate * falling_behind_factor:
                report.falling_behind = True
                report.reasons.append(
                    f"input rate {input_rate:.1f} rows/s exceeds processed rate "
                    f"{processed_rate:.1f} rows/s"
                )

            trigger_ms = latest.trigger_execution_ms
            if (
                trigger_interval > 0
                and trigger_ms is not None
                and trigger_ms > trigger_interval * 1000
            ):
                report.overrun = True
                report.reasons.append(
                    f"batch {latest.batch_id} took {trigger_ms}ms, longer than the "
                    f"{trigger_interval:g}s trigger interval"
                )

        if trigger_interval > 0:
            now = now or datetime.now(timezone.utc)
            # Idle heartbeats are not progress; with no executed batch at all,
            # the query has been idle since its first record.
            last_time = latest.timestamp if latest else history[0].progress.timestamp
            if last_time.tzinfo is None:
                last_time = last_time.replace(tzinfo=timezone.utc)
            idle_seconds = (now - last_time).total_seconds()
            if idle_seconds > trigger_interval * stall_intervals:
                report.stalled = True
                report.reasons.append(
                    f"no executed batch for {idle_seconds:.0f}s "
                    f"({stall_intervals} trigger intervals)"
                )

        return report
