"""Sink type classification from progress sink descriptions.

The engine reports the sink of a running query only as a free-form
``sink.description`` string in each progress record. The delivery guarantee
of a query depends on which sink that string names, so classification is
the first step of any replay or reconciliation decision.
"""

import re
from dataclasses import dataclass
from enum import Enum


class SinkKind(str, Enum):
    """Known sink families."""

    FILE = "file"
    DELTA = "delta"
    KAFKA = "kafka"
    FOREACH_BATCH = "foreach_batch"
    FOREACH = "foreach"
    MEMORY = "memory"
    CONSOLE = "console"
    NOOP = "noop"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SinkInfo:
    """Classified sink.

    Attributes:
        kind: Sink family
        description: Raw description string from the progress record
        path: Output location when the description carries one
        exactly_once: Whether replaying a batch id is idempotent at the sink
        has_metadata_log: Whether the sink keeps its own ``_spark_metadata`` log
    """

    kind: SinkKind
    description: str
    path: str | None = None
    exactly_once: bool = False
    has_metadata_log: bool = False

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "description": self.description,
            "path": self.path,
            "exactly_once": self.exactly_once,
            "has_metadata_log": self.has_metadata_log,
        }


_BRACKET_PATH_RE = re.compile(r"\[(.*)\]\s*$")

# Ordered: more specific patterns first.
_PATTERNS: list[tuple[re.Pattern[str], SinkKind]] = [
    (re.compile(r"^DeltaSink\b|delta\.sources\.DeltaSink|DeltaTable", re.IGNORECASE), SinkKind.DELTA),
    (re.compile(r"^FileSink\b|FileStreamSink|FileTable", re.IGNORECASE), SinkKind.FILE),
    (re.compile(r"ForeachBatchSink", re.IGNORECASE), SinkKind.FOREACH_BATCH),
    (re.compile(r"ForeachWriterTable|ForeachSink|ForeachWriter", re.IGNORECASE), SinkKind.FOREACH),
    (re.compile(r"kafka010|KafkaTable|KafkaSink", re.IGNORECASE), SinkKind.KAFKA),
    (re.compile(r"MemorySink|MemoryTable|MemoryStream", re.IGNORECASE), SinkKind.MEMORY),
    (re.compile(r"ConsoleTable|ConsoleSink", re.IGNORECASE), SinkKind.CONSOLE),
    (re.compile(r"NoopTable|noop", re.IGNORECASE), SinkKind.NOOP),
]

_EXACTLY_ONCE = {SinkKind.FILE, SinkKind.DELTA}
_METADATA_LOG = {SinkKind.FILE}


def classify_sink(description: str | None) -> SinkInfo:
    """Classify a progress ``sink.description`` string.

    File and Delta sinks record the batch id they committed and skip a
    replayed batch, so they are exactly-once. ``foreachBatch`` is only
    exactly-once when the user function is idempotent on ``batchId``; that
    cannot be known here, so it is reported as at-least-once.

    Examples:
        classify_sink("FileSink[/data/out]").path == "/data/out"
        classify_sink("ForeachBatchSink").kind == SinkKind.FOREACH_BATCH
    """
    text = (description or "").strip()

    kind = SinkKind.UNKNOWN
    for pattern, candidate in _PATTERNS:
        if pattern.search(text):
            kind = candidate
            break

    path = None
    if kind in (SinkKind.FILE, SinkKind.DELTA):
        match = _BRACKET_PATH_RE.search(text)
        if match and match.group(1):
            path = match.group(1)

    return SinkInfo(
        kind=kind,
        description=text,
        path=path,
        exactly_once=kind in _EXACTLY_ONCE,
        has_metadata_log=kind in _METADATA_LOG,
    )
