from __future__ import annotations

import sys
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

from tqdm import tqdm

"""Progress over the input files of a CLI run (tqdm, TTY only).

The bar shows the file being validated and the running totals of open errors
and warnings. Off a TTY (CI, redirected output) tqdm is created disabled, so
the log lines stay free of control sequences.
"""

__all__ = ["ProgressTracker"]


class ProgressTracker:
    """Iterate the input files, advancing the bar after each one.

    Usage:
        with ProgressTracker(paths) as progress:
            for path in progress:
                ...
                progress.record(open_errors=2, warnings=1)
    """

    def __init__(self, paths: Sequence[Path], *, enabled: bool | None = None) -> None:
        self.paths = list(paths)
        self.open_errors = 0
        self.warnings = 0
        self.enabled = sys.stdout.isatty() if enabled is None else enabled
        self.bar = tqdm(total=len(self.paths), unit="file", ascii=True, leave=False, disable=not self.enabled)

    def __iter__(self) -> Iterator[Path]:
        for path in self.paths:
            self.bar.set_description_str(path.name)
            yield path
            self.bar.update(1)

    def record(self, *, open_errors: int, warnings: int) -> None:
        """Add one file's counts to the totals shown after the bar."""
        self.open_errors += open_errors
        self.warnings += warnings
        self.bar.set_postfix(open=self.open_errors, warn=self.warnings)

    def close(self) -> None:
        self.bar.close()

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
