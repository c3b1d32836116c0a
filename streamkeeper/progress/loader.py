"""Load progress records exported as JSON lines."""

import json
from pathlib import Path
from typing import Iterator

from streamkeeper.exceptions import ProgressParseError
from streamkeeper.progress.models import QueryProgress, parse_progress


def iter_progress_file(path: Path) -> Iterator[QueryProgress]:
    """Yield progress records from a JSON-lines file.

    Blank lines are skipped. A JSON array on a single line (as produced by
    dumping ``recentProgress``) is expanded.

    Raises:
        ProgressParseError: With the 1-based line number of a bad record
    """
    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            text = line.strip()
            if not text:
                continue
            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                raise ProgressParseError(f"invalid JSON: {e.msg}", line=line_no) from e

            records = data if isinstance(data, list) else [data]
            for record in records:
                try:
                    yield parse_progress(record)
                except ProgressParseError as e:
                    raise ProgressParseError(e.context["details"], line=line_no) from e


def load_progress_file(path: Path) -> list[QueryProgress]:
    """Read every progress record in ``path``."""
    return list(iter_progress_file(path))
