from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..models.validation_error import ValidationError

"""Validation report buffering (JSON Lines).

- one file per run: logs/validation-YYYYMMDD-HHMMSS.jsonl (UTC), created on
  first flush
- one line per finding, fixed key set (see REPORT_KEYS) plus `file`
- findings are buffered and appended per input file
"""

__all__ = [
    "REPORT_KEYS",
    "ValidationReport",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

REPORT_KEYS = (
    "file",
    "row",
    "column",
    "value",
    "message",
    "kind",
    "severity",
    "corrected_value",
    "reference_row",
    "reference_value",
    "match",
)


class ValidationReport:
    """In-memory buffer of findings; flush() appends them as JSON Lines."""

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._logs_dir = logs_dir or LOGS_DIR
        self._lines: list[str] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"validation-{stamp}.jsonl"
        return self._file_path

    def extend(self, file_name: str, errors: Iterable[ValidationError]) -> None:
        for e in errors:
            # `file` first so every line is self-describing
            data = {"file": file_name, **e.to_dict()}
            self._lines.append(json.dumps(data, ensure_ascii=False))

    def __len__(self) -> int:
        return len(self._lines)

    def flush(self) -> Path:
        fp = self.file_path
        if not self._lines:
            return fp
        with fp.open("a", encoding="utf-8") as f:
            for line in self._lines:
                f.write(line + "\n")
        self._lines.clear()
        return fp
