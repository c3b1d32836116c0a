"""Streaming query lifecycle control."""

from streamkeeper.queries.control import (
    StopAllResult,
    StopResult,
    find_query,
    stop_all,
    stop_query,
)
from streamkeeper.queries.shutdown import GracefulShutdown

__all__ = [
    "GracefulShutdown",
    "StopAllResult",
    "StopResult",
    "find_query",
    "stop_all",
    "stop_query",
]
