"""Checkpoint inspection and reconciliation for streaming queries.

This module reads the offset and commit logs the engine keeps in a query's
checkpoint directory, reports inconsistencies between them, and plans
rollback and purge operations.
"""

from streamkeeper.checkpoint.layout import Checkpoint
from streamkeeper.checkpoint.models import CheckpointSummary, CommitRecord, OffsetRecord
from streamkeeper.checkpoint.reconcile import (
    Finding,
    FindingCode,
    PurgePlan,
    ReconciliationReport,
    RollbackPlan,
    Severity,
    apply_plan,
    plan_purge,
    plan_rollback,
    reconcile,
)
from streamkeeper.logfile import (
    LogContent,
    LogFile,
    list_batch_ids,
    list_log_files,
    read_metadata_log_file,
)

__all__ = [
    "Checkpoint",
    "CheckpointSummary",
    "CommitRecord",
    "Finding",
    "FindingCode",
    "LogContent",
    "LogFile",
    "OffsetRecord",
    "PurgePlan",
    "ReconciliationReport",
    "RollbackPlan",
    "Severity",
    "apply_plan",
    "list_batch_ids",
    "list_log_files",
    "plan_purge",
    "plan_rollback",
    "read_metadata_log_file",
    "reconcile",
]
