"""Checkpoint reconciliation, rollback and purge planning.

The engine writes ``offsets/<N>`` before running batch N and ``commits/<N>``
after the sink has accepted it. A healthy checkpoint therefore has at most
one offset ahead of the latest commit. Everything here reads that pair of
logs (plus, optionally, a file sink's own log) and reports or plans file
removals. Nothing is deleted unless ``apply_plan`` is called with
``dry_run=False``.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from streamkeeper.checkpoint.layout import Checkpoint
from streamkeeper.exceptions import ReconciliationError
from streamkeeper.logfile import LogFile
from streamkeeper.logging_config import get_logger, log_operation
from streamkeeper.sinks.metadata_log import FileSinkLog

logger = get_logger(__name__)


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class FindingCode(str, Enum):
    CLEAN = "CLEAN"
    PENDING_BATCH = "PENDING_BATCH"
    MULTIPLE_PENDING = "MULTIPLE_PENDING"
    ORPHAN_COMMIT = "ORPHAN_COMMIT"
    OFFSET_GAP = "OFFSET_GAP"
    COMMIT_GAP = "COMMIT_GAP"
    SINK_AHEAD = "SINK_AHEAD"
    SINK_BEHIND = "SINK_BEHIND"


@dataclass(frozen=True)
class Finding:
    severity: Severity
    code: FindingCode
    message: str
    batch_ids: tuple[int, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "code": self.code.value,
            "message": self.message,
            "batch_ids": list(self.batch_ids),
        }


@dataclass
class ReconciliationReport:
    """Outcome of comparing offsets, commits and an optional sink log."""

    checkpoint_path: Path
    latest_offset: int | None
    latest_commit: int | None
    sink_latest: int | None = None
    findings: list[Finding] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return not any(f.severity == Severity.ERROR for f in self.findings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checkpoint_path": str(self.checkpoint_path),
            "latest_offset": self.latest_offset,
            "latest_commit": self.latest_commit,
            "sink_latest": self.sink_latest,
            "healthy": self.healthy,
            "findings": [f.to_dict() for f in self.findings],
        }


def _gaps(batch_ids: list[int]) -> list[int]:
    """Missing ids between the first and last retained batch."""
    if len(batch_ids) < 2:
        return []
    present = set(batch_ids)
    return [b for b in range(batch_ids[0], batch_ids[-1] + 1) if b not in present]


def reconcile(checkpoint: Checkpoint, sink_output: Path | None = None) -> ReconciliationReport:
    """Compare offsets with commits and report inconsistencies.

    Args:
        checkpoint: Checkpoint to inspect
        sink_output: Output path of a file sink to compare against commits

    Returns:
        ReconciliationReport; ``healthy`` is False when any error was found
    """
    offset_ids = checkpoint.offset_batch_ids()
    commit_ids = checkpoint.commit_batch_ids()

    report = ReconciliationReport(
        checkpoint_path=checkpoint.path,
        latest_offset=offset_ids[-1] if offset_ids else None,
        latest_commit=commit_ids[-1] if commit_ids else None,
    )
    findings = report.findings

    offset_set = set(offset_ids)
    orphans = [b for b in commit_ids if b not in offset_set]
    # Purged offsets below the retained window are not orphans.
    if offset_ids:
        orphans = [b for b in orphans if b >= offset_ids[0]]
    if orphans:
        findings.append(
            Finding(
                Severity.ERROR,
                FindingCode.ORPHAN_COMMIT,
                f"{len(orphans)} commit(s) have no offset file",
                tuple(orphans),
            )
        )

    latest_commit = report.latest_commit
    pending = [b for b in offset_ids if latest_commit is None or b > latest_commit]
    if len(pending) == 1:
        findings.append(
            Finding(
                Severity.WARNING,
                FindingCode.PENDING_BATCH,
                f"Batch {pending[0]} was planned but not committed; "
                "it will be re-run with the same offsets on restart",
                tuple(pending),
            )
        )
    elif len(pending) > 1:
        findings.append(
            Finding(
                Severity.ERROR,
                FindingCode.MULTIPLE_PENDING,
                f"{len(pending)} uncommitted offsets; the engine plans at most one batch ahead",
                tuple(pending),
            )
        )

    offset_gaps = _gaps(offset_ids)
    if offset_gaps:
        findings.append(
            Finding(
                Severity.WARNING,
                FindingCode.OFFSET_GAP,
                f"Offset log is missing {len(offset_gaps)} batch id(s)",
                tuple(offset_gaps),
            )
        )

    commit_gaps = _gaps(commit_ids)
    if commit_gaps:
        findings.append(
            Finding(
                Severity.WARNING,
                FindingCode.COMMIT_GAP,
                f"Commit log is missing {len(commit_gaps)} batch id(s)",
                tuple(commit_gaps),
            )
        )

    if sink_output is not None:
        _reconcile_sink(report, FileSinkLog(sink_output))

    if not findings:
        findings.append(Finding(Severity.INFO, FindingCode.CLEAN, "Offsets and commits are consistent"))

    log_operation(
        logger,
        "reconcile",
        checkpoint=str(checkpoint.path),
        healthy=report.healthy,
        findings=[f.code.value for f in findings],
    )
    return report


def _reconcile_sink(report: ReconciliationReport, sink_log: FileSinkLog) -> None:
    sink_latest = sink_log.latest_batch_id
    report.sink_latest = sink_latest
    if sink_latest is None:
        if report.latest_commit is not None:
            report.findings.append(
                Finding(
                    Severity.ERROR,
                    FindingCode.SINK_BEHIND,
                    "Sink log is empty but the checkpoint has commits",
                )
            )
        return

    committed = -1 if report.latest_commit is None else report.latest_commit
    ahead = sink_latest - committed

    if ahead == 1:
        report.findings.append(
            Finding(
                Severity.INFO,
                FindingCode.SINK_AHEAD,
                f"Sink recorded batch {sink_latest} before its commit; "
                "the replay will be skipped by the sink",
                (sink_latest,),
            )
        )
    elif ahead > 1:
        report.findings.append(
            Finding(
                Severity.ERROR,
                FindingCode.SINK_AHEAD,
                f"Sink log is {ahead} batches ahead of commits",
                tuple(range(committed + 1, sink_latest + 1)),
            )
        )
    elif ahead < 0:
        report.findings.append(
            Finding(
                Severity.ERROR,
                FindingCode.SINK_BEHIND,
                f"Sink log ends at batch {sink_latest} but commits reach {committed}",
                tuple(range(sink_latest + 1, committed + 1)),
            )
        )


@dataclass
class RemovalPlan:
    """Files to remove from a checkpoint."""

    checkpoint_path: Path
    operation: str
    files: list[Path] = field(default_factory=list)
    batch_ids: list[int] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.files

    def to_dict(self) -> dict[str, Any]:
        return {
            "checkpoint_path": str(self.checkpoint_path),
            "operation": self.operation,
            "batch_ids": self.batch_ids,
            "files": [str(p) for p in self.files],
        }


@dataclass
class RollbackPlan(RemovalPlan):
    to_batch: int = -1


@dataclass
class PurgePlan(RemovalPlan):
    retain: int = 0


def _select(files: list[LogFile], predicate) -> list[LogFile]:
    return [f for f in files if predicate(f.batch_id)]


def plan_rollback(checkpoint: Checkpoint, to_batch: int | None = None) -> RollbackPlan:
    """Plan removal of offsets and commits newer than ``to_batch``.

    After applying the plan the query resumes with batch ``to_batch + 1`` and
    re-plans its offsets from the sources. Sinks that are not idempotent will
    see that data again.

    Args:
        checkpoint: Checkpoint to roll back
        to_batch: Last batch to keep; defaults to the latest commit

    Raises:
        ReconciliationError: If ``to_batch`` is not a committed batch
    """
    commit_ids = checkpoint.commit_batch_ids()

    if to_batch is None:
        if not commit_ids:
            raise ReconciliationError(
                "Checkpoint has no commits to roll back to",
                path=str(checkpoint.path),
            )
        to_batch = commit_ids[-1]
    elif to_batch not in commit_ids:
        raise ReconciliationError(
            f"Batch {to_batch} is not committed",
            path=str(checkpoint.path),
            to_batch=to_batch,
        )

    offsets = _select(checkpoint.offset_files(), lambda b: b > to_batch)
    commits = _select(checkpoint.commit_files(), lambda b: b > to_batch)

    return RollbackPlan(
        checkpoint_path=checkpoint.path,
        operation="rollback",
        files=[f.path for f in offsets + commits],
        batch_ids=sorted({f.batch_id for f in offsets + commits}),
        to_batch=to_batch,
    )


def plan_purge(checkpoint: Checkpoint, retain: int) -> PurgePlan:
    """Plan removal of batches older than the newest ``retain`` commits.

    The latest committed offset/commit pair is always kept, as is any
    pending offset.

    Raises:
        ReconciliationError: If ``retain`` is less than 1
    """
    if retain < 1:
        raise ReconciliationError("retain must be at least 1", retain=retain)

    commit_ids = checkpoint.commit_batch_ids()
    if len(commit_ids) <= retain:
        return PurgePlan(checkpoint_path=checkpoint.path, operation="purge", retain=retain)

    threshold = commit_ids[-retain]
    offsets = _select(checkpoint.offset_files(), lambda b: b < threshold)
    commits = _select(checkpoint.commit_files(), lambda b: b < threshold)

    return PurgePlan(
        checkpoint_path=checkpoint.path,
        operation="purge",
        files=[f.path for f in offsets + commits],
        batch_ids=sorted({f.batch_id for f in offsets + commits}),
        retain=retain,
    )


def _crc_sibling(path: Path) -> Path:
    return path.parent / f".{path.name}.crc"


def apply_plan(plan: RemovalPlan, dry_run: bool = True) -> list[Path]:
    """Delete the files listed in ``plan`` along with their checksum files.

    Args:
        plan: Rollback or purge plan
        dry_run: If True, only report what would be removed

    Returns:
        Paths removed (or that would be removed)
    """
    removed: list[Path] = []
    for path in plan.files:
        targets = [path]
        crc = _crc_sibling(path)
        if crc.exists():
            targets.append(crc)
        for target in targets:
            if not dry_run:
                target.unlink(missing_ok=True)
            removed.append(target)

    log_operation(
        logger,
        plan.operation,
        checkpoint=str(plan.checkpoint_path),
        dry_run=dry_run,
        batch_ids=plan.batch_ids,
        files_removed=len(removed),
    )
    return removed
