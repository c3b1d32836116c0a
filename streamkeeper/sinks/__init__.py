"""Sink classification and file sink metadata log access."""

from streamkeeper.sinks.metadata_log import FileSinkLog, SinkFileEntry
from streamkeeper.sinks.types import SinkInfo, SinkKind, classify_sink

__all__ = [
    "FileSinkLog",
    "SinkFileEntry",
    "SinkInfo",
    "SinkKind",
    "classify_sink",
]
