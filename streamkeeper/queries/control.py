"""Stopping streaming queries without cutting a micro-batch in half.

``StreamingQuery.stop()`` interrupts the running batch. The batch's offsets
are already in the checkpoint, so it is re-run on restart, and non-idempotent
sinks see its output twice. Waiting for ``status["isTriggerActive"]`` to turn
false before stopping avoids that replay in the common case.

Query and manager objects are duck-typed against pyspark's
``StreamingQuery`` and ``StreamingQueryManager``.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable

from streamkeeper.exceptions import QueryNotFoundError, QueryStopTimeoutError
from streamkeeper.logging_config import get_logger, log_error, log_operation, query_context

logger = get_logger(__name__)


@dataclass
class StopResult:
    """Outcome of stopping one query.

    Attributes:
        query_id: Query id (stable across restarts)
        name: Query name, if set
        graceful: True if the query was stopped between micro-batches
        last_batch_id: Batch id of the last progress record before stopping
        waited_seconds: Time spent waiting for the running batch
        already_stopped: True if the query was inactive to begin with
        error: Error message when stopping failed (only set by stop_all)
    """

    query_id: str
    name: str | None = None
    graceful: bool = True
    last_batch_id: int | None = None
    waited_seconds: float = 0.0
    already_stopped: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "query_id": self.query_id,
            "name": self.name,
            "graceful": self.graceful,
            "last_batch_id": self.last_batch_id,
            "waited_seconds": round(self.waited_seconds, 3),
            "already_stopped": self.already_stopped,
            "error": self.error,
        }


@dataclass
class StopAllResult:
    results: list[StopResult] = field(default_factory=list)

    @property
    def failed(self) -> list[StopResult]:
        return [r for r in self.results if r.error is not None]

    @property
    def ok(self) -> bool:
        return not self.failed


def _trigger_active(query: Any) -> bool:
    status = query.status or {}
    return bool(status.get("isTriggerActive", False))


def _last_batch_id(query: Any) -> int | None:
    progress = query.lastProgress
    if not progress:
        return None
    batch_id = progress.get("batchId") if isinstance(progress, dict) else None
    return int(batch_id) if batch_id is not None else None


def find_query(manager: Any, name_or_id: str) -> Any:
    """Find an active query by name, then by id.

    Raises:
        QueryNotFoundError: If no active query matches
    """
    for query in manager.active:
        if query.name == name_or_id:
            return query
    for query in manager.active:
        if str(query.id) == name_or_id or str(query.runId) == name_or_id:
            return query
    raise QueryNotFoundError(name_or_id)


def stop_query(
    query: Any,
    timeout: float = 60.0,
    wait_for_batch: bool = True,
    poll_interval: float = 0.5,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> StopResult:
    """Stop a query, first waiting for its running micro-batch to finish.

    Args:
        query: Streaming query handle
        timeout: Seconds to wait for the running batch, and again for termination
        wait_for_batch: If False, stop immediately
        poll_interval: Seconds between status polls
        clock: Monotonic clock (injectable for tests)
        sleep: Sleep function (injectable for tests)

    Returns:
        StopResult describing how the query was stopped

    Raises:
        QueryStopTimeoutError: If the query is still active after stopping
    """
    query_id = str(query.id)
    result = StopResult(query_id=query_id, name=query.name)

    if not query.isActive:
        result.already_stopped = True
        result.last_batch_id = _last_batch_id(query)
        return result

    run_id = getattr(query, "runId", None)
    with query_context(query_id, str(run_id) if run_id else None):
        start = clock()
        if wait_for_batch:
            while _trigger_active(query) and clock() - start < timeout:
                sleep(poll_interval)
            result.waited_seconds = clock() - start
            result.graceful = not _trigger_active(query)
            if not result.graceful:
                logger.warning("stop_interrupting_batch", waited_seconds=result.waited_seconds)
        else:
            result.graceful = not _trigger_active(query)

        result.last_batch_id = _last_batch_id(query)
        query.stop()
        query.awaitTermination(timeout)

        if query.isActive:
            raise QueryStopTimeoutError(query_id, timeout)

        log_operation(
            logger,
            "stop_query",
            name=result.name,
            graceful=result.graceful,
            last_batch_id=result.last_batch_id,
        )
    return result


def stop_all(
    manager: Any,
    timeout: float = 60.0,
    wait_for_batch: bool = True,
    poll_interval: float = 0.5,
    **kwargs: Any,
) -> StopAllResult:
    """Stop every active query; a failure on one does not block the rest."""
    outcome = StopAllResult()
    for query in list(manager.active):
        try:
            outcome.results.append(
                stop_query(
                    query,
                    timeout=timeout,
                    wait_for_batch=wait_for_batch,
                    poll_interval=poll_interval,
                    **kwargs,
                )
            )
        except Exception as e:
            query_id = str(getattr(query, "id", "?"))
            log_error(logger, e, "stop_query", query_id=query_id)
            outcome.results.append(
                StopResult(
                    query_id=query_id,
                    name=getattr(query, "name", None),
                    graceful=False,
                    error=str(e),
                )
            )
    return outcome
