"""Reader for the engine's HDFS-style metadata log files.

Offsets, commits, source logs and the file sink's ``_spark_metadata`` log all
share one on-disk shape: a directory of files named by batch id, each starting
with a ``v<N>`` version line followed by one JSON document per line. This
module only reads that shape; writing it stays the engine's job.
"""

import re
from dataclasses import dataclass
from pathlib import Path

from streamkeeper.exceptions import (
    CheckpointFileNotFoundError,
    CorruptLogFileError,
    UnsupportedLogVersionError,
)

COMPACT_SUFFIX = ".compact"
MAX_SUPPORTED_VERSION = 1

_BATCH_FILE_RE = re.compile(r"^(\d+)(\.compact)?$")
_VERSION_RE = re.compile(r"^v(\d+)$")


@dataclass(frozen=True)
class LogFile:
    """A batch file inside a metadata log directory."""

    batch_id: int
    path: Path
    compact: bool = False


@dataclass(frozen=True)
class LogContent:
    """Parsed contents of a metadata log file."""

    path: Path
    version: int
    lines: list[str]


def parse_batch_file_name(name: str) -> tuple[int, bool] | None:
    """Return ``(batch_id, compact)`` for a log file name, or None to skip it.

    Hidden files (checksums like ``.0.crc`` and in-flight ``.0.<uuid>.tmp``)
    and anything not named by a batch id are skipped.
    """
    if name.startswith("."):
        return None
    match = _BATCH_FILE_RE.match(name)
    if not match:
        return None
    return int(match.group(1)), match.group(2) is not None


def list_log_files(log_dir: Path) -> list[LogFile]:
    """List batch files in a metadata log directory, ordered by batch id.

    A missing directory is an empty log: the engine creates it lazily on the
    first batch.
    """
    log_dir = Path(log_dir)
    if not log_dir.is_dir():
        return []

    files = []
    for entry in log_dir.iterdir():
        if not entry.is_file():
            continue
        parsed = parse_batch_file_name(entry.name)
        if parsed is None:
            continue
        batch_id, compact = parsed
        files.append(LogFile(batch_id=batch_id, path=entry, compact=compact))

    files.sort(key=lambda f: f.batch_id)
    return files


def list_batch_ids(log_dir: Path) -> list[int]:
    """Sorted batch ids present in a metadata log directory."""
    return [f.batch_id for f in list_log_files(log_dir)]


def find_log_file(log_dir: Path, batch_id: int) -> Path:
    """Locate the file for ``batch_id``, plain or compacted.

    Raises:
        CheckpointFileNotFoundError: If neither file exists
    """
    log_dir = Path(log_dir)
    for candidate in (log_dir / str(batch_id), log_dir / f"{batch_id}{COMPACT_SUFFIX}"):
        if candidate.is_file():
            return candidate
    raise CheckpointFileNotFoundError(str(log_dir / str(batch_id)))


def read_metadata_log_file(
    path: Path, max_version: int = MAX_SUPPORTED_VERSION
) -> LogContent:
    """Read a metadata log file and validate its version header.

    Args:
        path: Log file path
        max_version: Highest ``v<N>`` header accepted

    Returns:
        LogContent with the version and the body lines (header stripped)

    Raises:
        CheckpointFileNotFoundError: If the file does not exist
        CorruptLogFileError: If the file is empty, undecodable, or has no header
        UnsupportedLogVersionError: If the header is newer than ``max_version``
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise CheckpointFileNotFoundError(str(path)) from None
    except UnicodeDecodeError as e:
        raise CorruptLogFileError(str(path), f"not UTF-8 text: {e}") from e

    lines = text.split("\n")
    if not lines or not lines[0].strip():
        raise CorruptLogFileError(str(path), "file is empty")

    header = lines[0].strip()
    match = _VERSION_RE.match(header)
    if not match:
        raise CorruptLogFileError(str(path), f"invalid version header {header!r}")

    version = int(match.group(1))
    if version < 1:
        raise CorruptLogFileError(str(path), f"invalid version {version}")
    if version > max_version:
        raise UnsupportedLogVersionError(str(path), version, max_version)

    body = lines[1:]
    # Writers terminate every entry with a newline; drop the trailing empty split.
    while body and body[-1] == "":
        body.pop()

    return LogContent(path=path, version=version, lines=body)
