"""Empty-batch semantics for progress records.

Three different things show up as "zero input rows" in a query's progress:

- a **no-data batch**: the engine ran a micro-batch without new input so a
  stateful query can advance its watermark and emit or evict state. The batch
  id advances and ``durationMs`` contains ``addBatch``.
- an **idle event**: the trigger fired, found nothing to do, and reported a
  heartbeat. No batch ran, the batch id does not advance, and ``addBatch`` is
  absent.
- a real **data batch** that happened to be small.

Sinks therefore never see batch ids for idle triggers, which is why batch ids
observed downstream are not a trigger count.
"""

from enum import Enum
from typing import Any

from streamkeeper.progress.models import QueryProgress, parse_progress


class BatchKind(str, Enum):
    DATA = "data"
    NO_DATA = "no_data"
    IDLE = "idle"


def classify_progress(progress: QueryProgress | Any) -> BatchKind:
    """Classify a progress record as a data batch, no-data batch or idle event."""
    progress = parse_progress(progress)

    if not progress.executed:
        return BatchKind.IDLE
    if progress.num_input_rows > 0:
        return BatchKind.DATA
    return BatchKind.NO_DATA
