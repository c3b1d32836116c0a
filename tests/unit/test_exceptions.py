"""Tests for exceptions and exit codes."""

import pytest

from streamkeeper.exceptions import (
    AmbiguousQueryError,
    CheckpointNotFoundError,
    ConfigurationError,
    CorruptLogFileError,
    ProgressParseError,
    QueryStopTimeoutError,
    ReconciliationError,
    StreamKeeperError,
    UnsupportedLogVersionError,
    get_exit_code,
)


class TestExceptions:
    def test_to_dict(self):
        error = CorruptLogFileError("/chk/offsets/3", "file is empty")

        assert error.to_dict() == {
            "error_type": "CorruptLogFileError",
            "message": "Corrupt log file /chk/offsets/3: file is empty",
            "context": {"path": "/chk/offsets/3", "details": "file is empty"},
        }

    def test_progress_parse_error_line(self):
        error = ProgressParseError("invalid JSON", line=4)

        assert "line 4" in str(error)
        assert error.context == {"details": "invalid JSON", "line": 4}

    @pytest.mark.parametrize(
        "error,code",
        [
            (CheckpointNotFoundError("/chk"), 2),
            (CorruptLogFileError("/chk/offsets/0", "bad"), 3),
            (UnsupportedLogVersionError("/chk/offsets/0", 2, 1), 3),
            (ProgressParseError("bad"), 3),
            (ReconciliationError("no commits"), 4),
            (AmbiguousQueryError(["a", "b"]), 4),
            (QueryStopTimeoutError("q1", 5), 5),
            (ConfigurationError("bad"), 6),
            (StreamKeeperError("other"), 1),
            (RuntimeError("boom"), 1),
        ],
    )
    def test_exit_codes(self, error, code):
        assert get_exit_code(error) == code
