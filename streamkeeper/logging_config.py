"""Logging configuration for streamkeeper.

Everything logs through structlog. Query identity is carried in context
variables so that log lines emitted while handling one query (stopping it,
recording its progress) all carry its ``query_id`` and ``run_id``.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.types import EventDict, Processor

from streamkeeper.config import get_settings

REDACTED = "***REDACTED***"

# Matched against lower-cased keys, including dotted engine conf keys such as
# spark.hadoop.fs.s3a.secret.key.
_SENSITIVE_MARKERS = ("password", "secret", "token", "credential", "access.key", "access_key")


def _is_sensitive(key: str) -> bool:
    key = key.lower()
    return any(marker in key for marker in _SENSITIVE_MARKERS)


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: REDACTED if _is_sensitive(str(k)) else _redact(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_redact(v) for v in value]
    return value


def censor_sensitive_keys(
    logger: Any, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact credentials, including those nested in logged engine conf."""
    for key in list(event_dict.keys()):
        if _is_sensitive(key):
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _redact(event_dict[key])
    return event_dict


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stderr.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level name; defaults to ``log_level`` from settings
        log_format: ``json`` or ``text``; defaults to ``log_format`` from settings
    """
    settings = get_settings()
    level = level or settings.log_level
    log_format = log_format or settings.log_format

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        censor_sensitive_keys,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _renderer(log_format),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Logs go to stderr; stdout is reserved for command output.
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level),
        force=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)


@contextmanager
def query_context(query_id: str | None, run_id: str | None = None) -> Iterator[None]:
    """Bind query identity to every log line emitted inside the block."""
    bound = {}
    if query_id:
        bound["query_id"] = query_id
    if run_id:
        bound["run_id"] = run_id
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def log_operation(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    query_id: str | None = None,
    **kwargs: Any,
) -> None:
    """Log a completed operation."""
    context: dict[str, Any] = {"operation": operation}
    if query_id:
        context["query_id"] = query_id
    context.update(kwargs)

    logger.info("operation", **context)


def log_error(
    logger: structlog.stdlib.BoundLogger,
    error: Exception,
    operation: str,
    query_id: str | None = None,
    **kwargs: Any,
) -> None:
    """Log a failed operation with its traceback."""
    context: dict[str, Any] = {
        "operation": operation,
        "error_type": type(error).__name__,
        "error_message": str(error),
    }
    if query_id:
        context["query_id"] = query_id
    context.update(kwargs)

    logger.error("operation_failed", **context, exc_info=True)
