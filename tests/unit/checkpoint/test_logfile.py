"""Tests for metadata log file reading."""

import pytest

from streamkeeper.exceptions import (
    CheckpointFileNotFoundError,
    CorruptLogFileError,
    UnsupportedLogVersionError,
)
from streamkeeper.logfile import (
    find_log_file,
    list_batch_ids,
    list_log_files,
    parse_batch_file_name,
    read_metadata_log_file,
)


class TestParseBatchFileName:
    """Test log file name parsing."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("0", (0, False)),
            ("42", (42, False)),
            ("19.compact", (19, True)),
            (".0.crc", None),
            (".3.9f1c2d.tmp", None),
            ("metadata", None),
            ("12.json", None),
        ],
    )
    def test_names(self, name, expected):
        assert parse_batch_file_name(name) == expected


class TestListLogFiles:
    """Test listing batch files in a log directory."""

    def test_missing_directory_is_empty(self, tmp_path):
        assert list_log_files(tmp_path / "missing") == []

    def test_sorted_numerically_and_skips_hidden(self, tmp_path):
        for name in ["10", "2", "9.compact", ".2.crc", ".10.abc.tmp"]:
            (tmp_path / name).write_text("v1\n{}")

        files = list_log_files(tmp_path)

        assert [f.batch_id for f in files] == [2, 9, 10]
        assert [f.compact for f in files] == [False, True, False]
        assert list_batch_ids(tmp_path) == [2, 9, 10]

    def test_skips_subdirectories(self, tmp_path):
        (tmp_path / "3").mkdir()
        (tmp_path / "4").write_text("v1\n{}")

        assert list_batch_ids(tmp_path) == [4]


class TestFindLogFile:
    """Test locating plain and compacted batch files."""

    def test_plain(self, tmp_path):
        (tmp_path / "5").write_text("v1")
        assert find_log_file(tmp_path, 5) == tmp_path / "5"

    def test_compact(self, tmp_path):
        (tmp_path / "9.compact").write_text("v1")
        assert find_log_file(tmp_path, 9) == tmp_path / "9.compact"

    def test_missing(self, tmp_path):
        with pytest.raises(CheckpointFileNotFoundError):
            find_log_file(tmp_path, 1)


class TestReadMetadataLogFile:
    """Test version header validation and body splitting."""

    def test_reads_body_lines(self, tmp_path):
        path = tmp_path / "0"
        path.write_text('v1\n{"a":1}\n{"b":2}\n')

        content = read_metadata_log_file(path)

        assert content.version == 1
        assert content.lines == ['{"a":1}', '{"b":2}']

    def test_header_only(self, tmp_path):
        path = tmp_path / "0"
        path.write_text("v1")

        assert read_metadata_log_file(path).lines == []

    def test_empty_file_is_corrupt(self, tmp_path):
        path = tmp_path / "0"
        path.write_text("")

        with pytest.raises(CorruptLogFileError, match="empty"):
            read_metadata_log_file(path)

    def test_bad_header_is_corrupt(self, tmp_path):
        path = tmp_path / "0"
        path.write_text('{"batchWatermarkMs":0}')

        with pytest.raises(CorruptLogFileError, match="version header"):
            read_metadata_log_file(path)

    def test_binary_garbage_is_corrupt(self, tmp_path):
        path = tmp_path / "0"
        path.write_bytes(b"\xff\xfe\x00\x01")

        with pytest.raises(CorruptLogFileError):
            read_metadata_log_file(path)

    def test_newer_version_rejected(self, tmp_path):
        path = tmp_path / "0"
        path.write_text("v2\n{}")

        with pytest.raises(UnsupportedLogVersionError) as exc_info:
            read_metadata_log_file(path)

        assert exc_info.value.context["version"] == 2
        assert exc_info.value.context["max_supported"] == 1

    def test_max_version_override(self, tmp_path):
        path = tmp_path / "0"
        path.write_text("v2\n{}")

        assert read_metadata_log_file(path, max_version=2).version == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(CheckpointFileNotFoundError):
            read_metadata_log_file(tmp_path / "0")
