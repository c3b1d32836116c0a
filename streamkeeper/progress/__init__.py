"""Streaming query progress inspection.

This module parses the engine's progress records, classifies each trigger
as a data batch, no-data batch or idle event, tracks history per query,
and persists it to Parquet.
"""

from streamkeeper.progress.classify import BatchKind, classify_progress
from streamkeeper.progress.listener import ProgressForwarder, attach_listener, build_listener
from streamkeeper.progress.loader import iter_progress_file, load_progress_file
from streamkeeper.progress.models import (
    QueryProgress,
    SinkProgress,
    SourceProgress,
    StateOperatorProgress,
    parse_progress,
)
from streamkeeper.progress.store import PROGRESS_SCHEMA, ProgressStore
from streamkeeper.progress.tracker import (
    HealthReport,
    ProgressSummary,
    ProgressTracker,
    TrackedBatch,
)

__all__ = [
    "BatchKind",
    "HealthReport",
    "PROGRESS_SCHEMA",
    "ProgressForwarder",
    "ProgressStore",
    "ProgressSummary",
    "ProgressTracker",
    "QueryProgress",
    "SinkProgress",
    "SourceProgress",
    "StateOperatorProgress",
    "TrackedBatch",
    "attach_listener",
    "build_listener",
    "classify_progress",
    "iter_progress_file",
    "load_progress_file",
    "parse_progress",
]
