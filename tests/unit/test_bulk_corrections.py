from __future__ import annotations

import logging

from pupil_import.models import ColumnDefinition, ErrorKind, Severity, ValidationError, ValidationType
from pupil_import.services.bulk_corrections import (
    CellCorrection,
    analyze_errors,
    apply_corrected_values,
    apply_corrections,
    apply_suggestion,
    resolve_errors,
    validate_advisor_suggestions,
)
from pupil_import.services.field_validator import MESSAGES
from pupil_import.services.orchestrator import validate


def fmt(row, column, value, vtype):
    return ValidationError(row=row, column=column, value=value, message=MESSAGES[vtype], kind=ErrorKind.FORMAT)


def identity(row, value, reference, severity=Severity.ERROR, column="P_ERZ1_ID"):
    return ValidationError(
        row=row, column=column, value=value, message="Inkonsistente ID", kind=ErrorKind.IDENTITY,
        severity=severity, reference_row=1, reference_value=reference,
    )


def test_no_open_errors_no_suggestions():
    e = fmt(1, "S_AHV", "7561234567890", ValidationType.AHV)
    e.dismiss()
    assert analyze_errors([e]) == []


def test_phone_errors_are_grouped_per_column():
    errors = [
        fmt(1, "P_ERZ1_Mobil", "0791234567", ValidationType.PHONE),
        fmt(3, "P_ERZ1_Mobil", "+41 79 123 45 67", ValidationType.PHONE),
        fmt(4, "P_ERZ1_Mobil", "12", ValidationType.PHONE),  # not fixable
    ]
    (suggestion,) = analyze_errors(errors)
    assert suggestion.type == "phone_format"
    assert suggestion.affected_rows == (1, 3)
    assert suggestion.auto_fix
    assert suggestion.pattern == "2 Telefonnummern können ins Schweizer Format konvertiert werden"


def test_apply_phone_suggestion():
    errors = [fmt(1, "P_ERZ1_Mobil", "0791234567", ValidationType.PHONE)]
    (suggestion,) = analyze_errors(errors)
    assert apply_suggestion(suggestion, errors) == [CellCorrection(1, "P_ERZ1_Mobil", "+41 79 123 45 67")]


def test_date_errors_get_the_matching_fix():
    errors = [
        fmt(2, "S_Geburtsdatum", "2015-2-1x", ValidationType.DATE),
        fmt(3, "S_Geburtsdatum", "1-2-2015", ValidationType.DATE),
    ]
    by_type = {s.type: s.affected_rows for s in analyze_errors(errors)}
    assert by_type == {"date_de_format": (3,)}


def test_spreadsheet_serials_are_valid_dates_and_get_no_suggestion():
    columns = [ColumnDefinition("S_Geburtsdatum", validation_type=ValidationType.DATE)]
    rows = [{"S_Geburtsdatum": "40000"}, {"S_Geburtsdatum": "03-05-2010"}]
    errors = validate(rows, columns)
    assert [e.row for e in errors] == [2]
    assert [s.type for s in analyze_errors(errors)] == ["date_de_format"]


def test_advisor_suggestion_can_convert_spreadsheet_serials():
    error = ValidationError(row=1, column="Datum", value="43831", message="Datum außerhalb der Periode")
    (suggestion,) = validate_advisor_suggestions(
        [{"affectedColumn": "Datum", "affectedRows": [1], "fixFunction": "excel_date", "autoFix": True}]
    )
    assert apply_suggestion(suggestion, [error]) == [CellCorrection(1, "Datum", "01.01.2020")]


def test_whitespace_suggestion():
    errors = [fmt(2, "S_PLZ", " 8000  ", ValidationType.PLZ)]
    types = [s.type for s in analyze_errors(errors)]
    assert types == ["plz_format", "whitespace_trim"]


def test_duplicates_are_manual():
    dup = ValidationError(row=2, column="S_ID", value="S1", message="Duplikat", kind=ErrorKind.DUPLICATE)
    (suggestion,) = analyze_errors([dup])
    assert suggestion.type == "duplicate"
    assert not suggestion.auto_fix
    assert suggestion.fix_function is None


def test_identity_group_with_single_target_is_auto_fixable():
    errors = [identity(2, "P2", "P1"), identity(5, "P3", "P1")]
    (suggestion,) = analyze_errors(errors)
    assert suggestion.type == "parent_id_inconsistent"
    assert suggestion.auto_fix
    assert suggestion.correct_value == "P1"
    assert suggestion.pattern == '2 inkonsistente IDs - Kann auf "P1" konsolidiert werden'
    assert [c.corrected_value for c in apply_suggestion(suggestion, errors)] == ["P1", "P1"]


def test_identity_consolidation_uses_each_findings_own_reference():
    errors = [identity(2, "P2", "P1"), identity(4, "Q2", "Q1")]
    (suggestion,) = analyze_errors(errors)
    assert suggestion.correct_value is None
    assert [(c.row, c.corrected_value) for c in apply_suggestion(suggestion, errors)] == [(2, "P1"), (4, "Q1")]


def test_identity_group_with_a_warning_stays_manual():
    errors = [identity(2, "P2", "P1"), identity(3, "P4", "P1", severity=Severity.WARNING)]
    (suggestion,) = analyze_errors(errors)
    assert not suggestion.auto_fix


def test_apply_corrections_copies_rows():
    rows = [{"A": "x"}, {"A": "y"}]
    updated = apply_corrections(rows, [CellCorrection(2, "A", "z"), CellCorrection(9, "A", "out of range")])
    assert updated == [{"A": "x"}, {"A": "z"}]
    assert rows[1]["A"] == "y"


def test_apply_corrected_values_skips_open_and_dismissed():
    fixed = ValidationError(row=1, column="S_Name", value="Muller", message="", corrected_value="Müller")
    dismissed = ValidationError(row=1, column="S_Vorname", value="Hans", message="")
    dismissed.dismiss()
    still_open = ValidationError(row=2, column="S_Name", value="Muller", message="")
    rows = [{"S_Name": "Muller", "S_Vorname": "Hans"}, {"S_Name": "Muller"}]
    assert apply_corrected_values(rows, [fixed, dismissed, still_open]) == [
        {"S_Name": "Müller", "S_Vorname": "Hans"},
        {"S_Name": "Muller"},
    ]


def test_resolve_errors_marks_open_findings_on_corrected_cells():
    errors = [identity(2, "P2", "P1"), identity(3, "P3", "P1")]
    assert resolve_errors(errors, [CellCorrection(2, "P_ERZ1_ID", "P1")]) == 1
    assert errors[0].corrected_value == "P1"
    assert errors[1].is_open


def test_validate_advisor_suggestions_filters_malformed_entries(caplog, clean_logging):
    raw = [
        {"affectedColumn": "S_PLZ", "affectedRows": [1, "2", 3.0, float("nan"), True], "autoFix": True},
        {"affectedColumn": "S_PLZ", "affectedRows": "1"},
        {"affectedRows": [1]},
        {"affectedColumn": "S_PLZ", "affectedRows": ["x"]},
        "garbage",
    ]
    with caplog.at_level(logging.WARNING):
        (suggestion,) = validate_advisor_suggestions(raw)
    assert suggestion.affected_rows == (1, 3)
    assert suggestion.type == "bulk_correction"
    assert suggestion.pattern == "Unbekanntes Muster"
    assert suggestion.suggestion == "Bitte manuell prüfen"
    assert suggestion.auto_fix
    assert "invalid affectedRows" in caplog.text
    assert validate_advisor_suggestions({"not": "a list"}) == []
