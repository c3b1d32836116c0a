"""Pydantic models for the engine's streaming query progress records.

Field names mirror the camelCase JSON the engine emits from
``StreamingQuery.lastProgress`` and ``QueryProgressEvent.progress.json``.
Unknown keys are ignored so newer engine versions still parse.
"""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from streamkeeper.exceptions import ProgressParseError


class _ProgressModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SourceProgress(_ProgressModel):
    """Per-source progress within one trigger."""

    description: str = ""
    start_offset: Any = Field(default=None, alias="startOffset")
    end_offset: Any = Field(default=None, alias="endOffset")
    latest_offset: Any = Field(default=None, alias="latestOffset")
    num_input_rows: int = Field(default=0, alias="numInputRows")
    input_rows_per_second: float = Field(default=0.0, alias="inputRowsPerSecond")
    processed_rows_per_second: float = Field(default=0.0, alias="processedRowsPerSecond")
    metrics: dict[str, Any] = Field(default_factory=dict)


class SinkProgress(_ProgressModel):
    """Sink progress; ``num_output_rows`` is -1 when the sink does not report it."""

    description: str = ""
    num_output_rows: int = Field(default=-1, alias="numOutputRows")
    metrics: dict[str, Any] = Field(default_factory=dict)


class StateOperatorProgress(_ProgressModel):
    operator_name: str = Field(default="", alias="operatorName")
    num_rows_total: int = Field(default=0, alias="numRowsTotal")
    num_rows_updated: int = Field(default=0, alias="numRowsUpdated")
    num_rows_removed: int = Field(default=0, alias="numRowsRemoved")
    num_rows_dropped_by_watermark: int = Field(default=0, alias="numRowsDroppedByWatermark")
    memory_used_bytes: int = Field(default=0, alias="memoryUsedBytes")
    custom_metrics: dict[str, Any] = Field(default_factory=dict, alias="customMetrics")


class QueryProgress(_ProgressModel):
    """One progress record for a streaming query trigger."""

    id: str
    run_id: str = Field(alias="runId")
    name: str | None = None
    timestamp: datetime
    batch_id: int = Field(alias="batchId")
    batch_duration: int | None = Field(default=None, alias="batchDuration")
    num_input_rows: int = Field(default=0, alias="numInputRows")
    input_rows_per_second: float = Field(default=0.0, alias="inputRowsPerSecond")
    processed_rows_per_second: float = Field(default=0.0, alias="processedRowsPerSecond")
    duration_ms: dict[str, int] = Field(default_factory=dict, alias="durationMs")
    event_time: dict[str, str] = Field(default_factory=dict, alias="eventTime")
    state_operators: list[StateOperatorProgress] = Field(
        default_factory=list, alias="stateOperators"
    )
    sources: list[SourceProgress] = Field(default_factory=list)
    sink: SinkProgress | None = None
    observed_metrics: dict[str, Any] = Field(default_factory=dict, alias="observedMetrics")

    @property
    def trigger_execution_ms(self) -> int | None:
        return self.duration_ms.get("triggerExecution")

    @property
    def executed(self) -> bool:
        """Whether a micro-batch actually ran in this trigger."""
        return "addBatch" in self.duration_ms

    @property
    def watermark(self) -> str | None:
        return self.event_time.get("watermark")

    def to_record(self) -> dict[str, Any]:
        """Flatten into a row for tabular output and Parquet storage."""
        return {
            "query_id": self.id,
            "run_id": self.run_id,
            "name": self.name,
            "timestamp": self.timestamp,
            "batch_id": self.batch_id,
            "num_input_rows": self.num_input_rows,
            "input_rows_per_second": self.input_rows_per_second,
            "processed_rows_per_second": self.processed_rows_per_second,
            "trigger_execution_ms": self.trigger_execution_ms,
            "add_batch_ms": self.duration_ms.get("addBatch"),
            "watermark": self.watermark,
            "sink_description": self.sink.description if self.sink else None,
            "state_rows_total": sum(op.num_rows_total for op in self.state_operators),
        }


def parse_progress(value: Any) -> QueryProgress:
    """Parse a progress record from any shape the engine hands out.

    Accepts a dict (``StreamingQuery.lastProgress``), a JSON string, a
    ``QueryProgress`` instance, or an engine progress object exposing a
    ``json`` attribute or method (listener events).

    Raises:
        ProgressParseError: If the value cannot be parsed
    """
    if isinstance(value, QueryProgress):
        return value

    if not isinstance(value, (dict, str, bytes)):
        raw = getattr(value, "json", None)
        if raw is None:
            raise ProgressParseError(f"unsupported progress type {type(value).__name__}")
        value = raw() if callable(raw) else raw

    if isinstance(value, (str, bytes)):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ProgressParseError(f"invalid JSON: {e}") from e

    if not isinstance(value, dict):
        raise ProgressParseError("progress record is not a JSON object")

    try:
        return QueryProgress.model_validate(value)
    except ValidationError as e:
        raise ProgressParseError(str(e)) from e
