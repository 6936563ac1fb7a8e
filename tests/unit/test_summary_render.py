from __future__ import annotations

import re

from pupil_import.logging.init import log_summary, setup_logging
from pupil_import.models import ErrorKind, Severity, ValidationError
from pupil_import.services.summary import format_elapsed, render_summary_line, summarize

SUMMARY_RE = re.compile(
    r"^SUMMARY files=\d+ rows=\d+ errors=\d+ warnings=\d+ open=\d+ resolved=\d+ "
    r"duplicates=\d+ identity=\d+ diacritics=\d+ elapsed_sec=[0-9.]+$"
)


def findings() -> list[ValidationError]:
    return [
        ValidationError(row=1, column="S_PLZ", value="80", message="PLZ"),
        ValidationError(row=2, column="S_ID", value="S1", message="dup", kind=ErrorKind.DUPLICATE, reference_row=1),
        ValidationError(row=3, column="S_ID", value="S1", message="dup", kind=ErrorKind.DUPLICATE, reference_row=1),
        ValidationError(
            row=3, column="P_ERZ1_ID", value="P2", message="id", kind=ErrorKind.IDENTITY,
            severity=Severity.WARNING, reference_row=1, reference_value="P1",
        ),
        ValidationError(
            row=4, column="S_Name", value="Muller", message="dia", kind=ErrorKind.DIACRITIC,
            severity=Severity.WARNING, corrected_value="Müller",
        ),
    ]


def test_summarize_counts():
    s = summarize(findings())
    assert (s.total, s.errors, s.warnings) == (5, 3, 2)
    assert (s.open, s.resolved, s.open_errors) == (4, 1, 3)
    assert s.by_column["S_ID"] == 2
    assert s.count(ErrorKind.DUPLICATE) == 2
    assert s.count(ErrorKind.REQUIRED) == 0


def test_summarize_groups_by_reference():
    s = summarize(findings())
    (dup,) = s.duplicate_groups
    assert (dup.column, dup.reference_row, dup.rows) == ("S_ID", 1, (2, 3))
    (ident,) = s.identity_groups
    assert ident.reference_value == "P1"


def test_open_errors_ignore_warnings_and_resolved_findings():
    errors = findings()
    for e in errors:
        if not e.is_warning:
            e.dismiss()
    assert summarize(errors).open_errors == 0


def test_render_summary_line_format():
    line = render_summary_line(2, 10, summarize(findings()), 1.234)
    assert line == (
        "files=2 rows=10 errors=3 warnings=2 open=4 resolved=1 "
        "duplicates=2 identity=1 diacritics=1 elapsed_sec=1.23"
    )


def test_format_elapsed():
    assert format_elapsed(0) == "0"
    assert format_elapsed(3.0) == "3"
    assert format_elapsed(0.5) == "0.5"
    assert format_elapsed(0.000123) == "0.000123"


def test_summary_line_is_labelled_once_by_the_logger(clean_logging, capsys):
    setup_logging()
    log_summary(render_summary_line(1, 3, summarize(findings()), 0.5))
    (line,) = capsys.readouterr().out.splitlines()
    assert SUMMARY_RE.match(line)
    assert line.count("SUMMARY") == 1
