"""Processing-time trigger interval helpers.

The engine accepts trigger intervals either as a number of milliseconds or as
an interval string such as ``"10 seconds"``. These helpers normalise both to
seconds so progress durations can be compared against the cadence.
"""

import math
import re
from datetime import datetime, timedelta

_UNIT_SECONDS = {
    "us": 1e-6,
    "microsecond": 1e-6,
    "ms": 1e-3,
    "millisecond": 1e-3,
    "s": 1.0,
    "sec": 1.0,
    "second": 1.0,
    "m": 60.0,
    "min": 60.0,
    "minute": 60.0,
    "h": 3600.0,
    "hour": 3600.0,
    "d": 86400.0,
    "day": 86400.0,
    "week": 604800.0,
}

_PART_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([a-z]+)")


def _unit_seconds(unit: str) -> float | None:
    if unit in _UNIT_SECONDS:
        return _UNIT_SECONDS[unit]
    if unit.endswith("s") and unit[:-1] in _UNIT_SECONDS:
        return _UNIT_SECONDS[unit[:-1]]
    return None


def parse_interval(value: int | float | str) -> float:
    """Parse a trigger interval into seconds.

    Args:
        value: Seconds as a number, or an interval string like ``"10 seconds"``,
            ``"1 minute 30 seconds"``, ``"500 ms"``, ``"2h"`` or
            ``"interval 5 seconds"``

    Returns:
        Interval in seconds; 0 means run batches as fast as possible

    Raises:
        ValueError: If the value is negative or cannot be parsed
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid trigger interval: {value!r}")

    if isinstance(value, (int, float)):
        if value < 0 or math.isnan(value):
            raise ValueError(f"Trigger interval must be non-negative: {value!r}")
        return float(value)

    if not isinstance(value, str):
        raise ValueError(f"Invalid trigger interval: {value!r}")

    text = value.strip().lower()
    if text.startswith("interval"):
        text = text[len("interval"):].strip()

    if not text:
        raise ValueError("Trigger interval is empty")

    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if seconds < 0:
            raise ValueError(f"Trigger interval must be non-negative: {value!r}")
        return seconds

    total = 0.0
    position = 0
    for match in _PART_RE.finditer(text):
        if text[position:match.start()].strip():
            raise ValueError(f"Invalid trigger interval: {value!r}")
        unit = _unit_seconds(match.group(2))
        if unit is None:
            raise ValueError(f"Unknown interval unit {match.group(2)!r} in {value!r}")
        total += float(match.group(1)) * unit
        position = match.end()

    if position == 0 or text[position:].strip():
        raise ValueError(f"Invalid trigger interval: {value!r}")

    return total


def expected_batches(elapsed_seconds: float, interval: float) -> int | None:
    """Number of triggers a processing-time trigger fires in ``elapsed_seconds``.

    Returns None for a zero interval, where the cadence is data-driven.
    """
    if interval <= 0:
        return None
    return int(elapsed_seconds // interval)


def next_trigger_time(last_trigger: datetime, interval: float) -> datetime:
    """Next trigger time aligned to the interval, as the engine's clock does."""
    if interval <= 0:
        return last_trigger
    epoch = last_trigger.timestamp()
    aligned = (math.floor(epoch / interval) + 1) * interval
    return last_trigger + timedelta(seconds=aligned - epoch)
