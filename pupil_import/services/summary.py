from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from ..models.validation_error import ErrorKind, Severity, ValidationError

"""Derived summaries of a validation run and the SUMMARY line.

SUMMARY line format (the label comes from the log formatter):

    SUMMARY files={files} rows={rows} errors={errors} warnings={warnings}
    open={open} resolved={resolved} duplicates={dup} identity={ident}
    diacritics={diacritics} elapsed_sec={elapsed}
"""

__all__ = [
    "FindingGroup",
    "ValidationSummary",
    "summarize",
    "format_elapsed",
    "render_summary_line",
]


@dataclass(frozen=True)
class FindingGroup:
    """Findings pointing back to the same reference (first-seen row / correct id)."""
    column: str
    reference_row: int
    reference_value: str | None
    rows: tuple[int, ...]


@dataclass(frozen=True)
class ValidationSummary:
    total: int = 0
    errors: int = 0
    warnings: int = 0
    open: int = 0
    resolved: int = 0
    open_errors: int = 0  # open findings of error severity; drives the exit code
    by_column: dict[str, int] = field(default_factory=dict)
    by_kind: dict[ErrorKind, int] = field(default_factory=dict)
    duplicate_groups: tuple[FindingGroup, ...] = ()
    identity_groups: tuple[FindingGroup, ...] = ()

    def count(self, kind: ErrorKind) -> int:
        return self.by_kind.get(kind, 0)


def _groups(errors: Iterable[ValidationError], kind: ErrorKind) -> tuple[FindingGroup, ...]:
    grouped: dict[tuple[str, int, str | None], list[int]] = {}
    for e in errors:
        if e.kind is not kind or e.reference_row is None:
            continue
        grouped.setdefault((e.column, e.reference_row, e.reference_value), []).append(e.row)
    return tuple(
        FindingGroup(column=column, reference_row=ref_row, reference_value=ref_value, rows=tuple(rows))
        for (column, ref_row, ref_value), rows in grouped.items()
    )


def summarize(errors: Iterable[ValidationError]) -> ValidationSummary:
    findings = list(errors)
    by_column: dict[str, int] = {}
    by_kind: dict[ErrorKind, int] = {}
    for e in findings:
        by_column[e.column] = by_column.get(e.column, 0) + 1
        by_kind[e.kind] = by_kind.get(e.kind, 0) + 1
    open_findings = [e for e in findings if e.is_open]
    return ValidationSummary(
        total=len(findings),
        errors=sum(1 for e in findings if e.severity is Severity.ERROR),
        warnings=sum(1 for e in findings if e.severity is Severity.WARNING),
        open=len(open_findings),
        resolved=len(findings) - len(open_findings),
        open_errors=sum(1 for e in open_findings if e.severity is Severity.ERROR),
        by_column=by_column,
        by_kind=by_kind,
        duplicate_groups=_groups(findings, ErrorKind.DUPLICATE),
        identity_groups=_groups(findings, ErrorKind.IDENTITY),
    )


def format_elapsed(seconds: float) -> str:
    # integers without decimals, tiny values without scientific notation
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.2f}".rstrip("0").rstrip(".")


def render_summary_line(file_count: int, row_count: int, summary: ValidationSummary, elapsed: float) -> str:
    """Render the body of the SUMMARY line of a CLI run (without the label).

    Examples:
        >>> render_summary_line(1, 3, ValidationSummary(total=1, errors=1, open=1, open_errors=1), 0.5)
        'files=1 rows=3 errors=1 warnings=0 open=1 resolved=0 duplicates=0 identity=0 diacritics=0 elapsed_sec=0.5'
    """
    return (
        f"files={file_count} "
        f"rows={row_count} "
        f"errors={summary.errors} "
        f"warnings={summary.warnings} "
        f"open={summary.open} "
        f"resolved={summary.resolved} "
        f"duplicates={summary.count(ErrorKind.DUPLICATE)} "
        f"identity={summary.count(ErrorKind.IDENTITY)} "
        f"diacritics={summary.count(ErrorKind.DIACRITIC)} "
        f"elapsed_sec={format_elapsed(elapsed)}"
    )
