"""Custom exceptions for streamkeeper."""

from typing import Any


class StreamKeeperError(Exception):
    """Base exception for all streamkeeper errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(StreamKeeperError):
    """Configuration-related errors."""

    pass


class CheckpointError(StreamKeeperError):
    """Base class for checkpoint-related errors."""

    pass


class CheckpointNotFoundError(CheckpointError):
    """Path is not a streaming checkpoint directory."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Checkpoint not found: {path}", path=path)


class CheckpointFileNotFoundError(CheckpointError):
    """A metadata log file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Checkpoint file not found: {path}", path=path)


class CorruptLogFileError(CheckpointError):
    """A metadata log file is empty or malformed."""

    def __init__(self, path: str, details: str) -> None:
        super().__init__(
            f"Corrupt log file {path}: {details}",
            path=path,
            details=details,
        )


class UnsupportedLogVersionError(CheckpointError):
    """A metadata log file was written by a newer engine version."""

    def __init__(self, path: str, version: int, max_supported: int) -> None:
        super().__init__(
            f"Unsupported log version v{version} in {path} (max supported: v{max_supported})",
            path=path,
            version=version,
            max_supported=max_supported,
        )


class ReconciliationError(CheckpointError):
    """A rollback or purge plan cannot be built."""

    pass


class SinkError(StreamKeeperError):
    """Base class for sink-related errors."""

    pass


class SinkLogNotFoundError(SinkError):
    """File sink output has no _spark_metadata log."""

    def __init__(self, path: str) -> None:
        super().__init__(f"File sink metadata log not found: {path}", path=path)


class ProgressError(StreamKeeperError):
    """Base class for progress-related errors."""

    pass


class ProgressParseError(ProgressError):
    """A progress record could not be parsed."""

    def __init__(self, details: str, line: int | None = None) -> None:
        message = f"Invalid progress record: {details}"
        if line is not None:
            message = f"Invalid progress record at line {line}: {details}"
        super().__init__(message, details=details, line=line)


class AmbiguousQueryError(ProgressError):
    """Progress history holds several queries and none was selected."""

    def __init__(self, query_ids: list[str]) -> None:
        super().__init__(
            f"Progress records belong to {len(query_ids)} queries "
            f"({', '.join(query_ids)}); select one query id",
            query_ids=query_ids,
        )


class QueryError(StreamKeeperError):
    """Base class for streaming query control errors."""

    pass


class QueryNotFoundError(QueryError):
    """No active query matches the given name or id."""

    def __init__(self, name_or_id: str) -> None:
        super().__init__(f"Streaming query not found: {name_or_id}", query=name_or_id)


class QueryStopTimeoutError(QueryError):
    """Query was still active after stop and await."""

    def __init__(self, query_id: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Query {query_id} did not terminate within {timeout_seconds}s",
            query_id=query_id,
            timeout_seconds=timeout_seconds,
        )


def get_exit_code(error: Exception) -> int:
    """Map exception to CLI exit code."""
    exit_codes = {
        CheckpointNotFoundError: 2,
        CheckpointFileNotFoundError: 2,
        SinkLogNotFoundError: 2,
        QueryNotFoundError: 2,
        CorruptLogFileError: 3,
        UnsupportedLogVersionError: 3,
        ProgressParseError: 3,
        ReconciliationError: 4,
        AmbiguousQueryError: 4,
        QueryStopTimeoutError: 5,
        ConfigurationError: 6,
    }

    for exc_type, code in exit_codes.items():
        if isinstance(error, exc_type):
            return code

    return 1
