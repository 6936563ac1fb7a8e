from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from ..models import Row
from ..models.column_definition import ValidationType
from ..models.validation_error import ErrorKind, Severity, ValidationError
from .field_validator import MESSAGES
from .normalizer import (
    convert_excel_date,
    format_ahv,
    format_date_de,
    format_email,
    format_gender,
    format_iban,
    format_name,
    format_phone,
    format_plz,
    format_street,
    trim_whitespace,
)

"""Local bulk corrections.

Looks at the open findings of a run and groups the ones that share a
mechanical fix (phone/AHV/date/e-mail/PLZ/gender canonicalization,
whitespace) into suggestions. Duplicates and identity inconsistencies are
grouped as well; identity groups made only of error-severity findings can be
consolidated automatically, while any warning in the group keeps it manual.

Id consolidation reads each finding's `reference_value`; message text is
never parsed.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "Suggestion",
    "CellCorrection",
    "FIX_FUNCTIONS",
    "analyze_errors",
    "apply_suggestion",
    "apply_corrections",
    "apply_corrected_values",
    "resolve_errors",
    "validate_advisor_suggestions",
]

AUTO_FIX_TEXT = "Automatische Korrektur verfügbar"
MANUAL_TEXT = "Manuelle Überprüfung empfohlen"
CONSOLIDATE_ID = "consolidate_id"

FIX_FUNCTIONS: dict[str, Callable[[str], str | None]] = {
    "phone_format": format_phone,
    "ahv_format": format_ahv,
    "excel_date": convert_excel_date,
    "date_de_format": format_date_de,
    "email_format": format_email,
    "plz_format": format_plz,
    "gender_format": format_gender,
    "name_format": format_name,
    "street_format": format_street,
    "iban_format": format_iban,
    "whitespace_trim": trim_whitespace,
}


@dataclass(frozen=True)
class Suggestion:
    type: str
    affected_column: str
    affected_rows: tuple[int, ...]
    pattern: str  # German description of the group
    suggestion: str
    auto_fix: bool
    fix_function: str | None
    correct_value: str | None = None


@dataclass(frozen=True)
class CellCorrection:
    row: int
    column: str
    corrected_value: str


class _Correction(Protocol):
    row: int
    column: str
    corrected_value: str


# (fix function, type whose check failed, description)
# spreadsheet serials pass the date check; excel_date is only reached through
# advisor suggestions
_FORMAT_FIXES: tuple[tuple[str, ValidationType, Callable[[int], str]], ...] = (
    ("phone_format", ValidationType.PHONE, lambda n: f"{n} Telefonnummern können ins Schweizer Format konvertiert werden"),
    ("ahv_format", ValidationType.AHV, lambda n: f"{n} AHV-Nummern können formatiert werden (756.XXXX.XXXX.XX)"),
    ("date_de_format", ValidationType.DATE, lambda n: f"{n} Datumsangaben im falschen Format (Bindestriche/ISO) → DD.MM.YYYY"),
    ("email_format", ValidationType.EMAIL, lambda n: f"{n} E-Mail-Adressen können bereinigt werden"),
    ("plz_format", ValidationType.PLZ, lambda n: f"{n} Postleitzahlen können bereinigt werden"),
    ("gender_format", ValidationType.GENDER, lambda n: f"{n} Geschlechtsangaben können normalisiert werden (M/W/D)"),
)


def _by_column(errors: Iterable[ValidationError]) -> dict[str, list[ValidationError]]:
    grouped: dict[str, list[ValidationError]] = {}
    for e in errors:
        grouped.setdefault(e.column, []).append(e)
    return grouped


def _format_suggestions(by_column: dict[str, list[ValidationError]]) -> list[Suggestion]:
    suggestions: list[Suggestion] = []
    for fix_name, validation_type, describe in _FORMAT_FIXES:
        fix = FIX_FUNCTIONS[fix_name]
        message = MESSAGES[validation_type]
        for column, column_errors in by_column.items():
            rows = tuple(
                e.row for e in column_errors
                if e.kind is ErrorKind.FORMAT and e.message == message and fix(e.value) is not None
            )
            if rows:
                suggestions.append(
                    Suggestion(fix_name, column, rows, describe(len(rows)), AUTO_FIX_TEXT, True, fix_name)
                )
    return suggestions


def _whitespace_suggestions(by_column: dict[str, list[ValidationError]]) -> list[Suggestion]:
    suggestions: list[Suggestion] = []
    for column, column_errors in by_column.items():
        rows = tuple(
            e.row for e in column_errors
            if e.kind in (ErrorKind.FORMAT, ErrorKind.FORMAT_RULE) and trim_whitespace(e.value) is not None
        )
        if rows:
            suggestions.append(
                Suggestion(
                    "whitespace_trim", column, rows,
                    f'{len(rows)} Einträge in "{column}" mit führenden/nachfolgenden Leerzeichen',
                    AUTO_FIX_TEXT, True, "whitespace_trim",
                )
            )
    return suggestions


def _duplicate_suggestions(by_column: dict[str, list[ValidationError]]) -> list[Suggestion]:
    suggestions: list[Suggestion] = []
    for column, column_errors in by_column.items():
        rows = tuple(e.row for e in column_errors if e.kind is ErrorKind.DUPLICATE)
        if rows:
            suggestions.append(
                Suggestion(
                    "duplicate", column, rows,
                    f"{len(rows)} Duplikate in Spalte {column} - Manuelle Prüfung erforderlich",
                    MANUAL_TEXT, False, None,
                )
            )
    return suggestions


def _identity_suggestions(by_column: dict[str, list[ValidationError]]) -> list[Suggestion]:
    suggestions: list[Suggestion] = []
    for column, column_errors in by_column.items():
        group = [e for e in column_errors if e.kind is ErrorKind.IDENTITY and e.reference_value]
        if not group:
            continue
        targets = {e.reference_value for e in group}
        single_target = targets.pop() if len(targets) == 1 else None
        # warnings are name-only matches: review, never auto-merge
        auto_fix = all(e.severity is Severity.ERROR for e in group)
        if single_target:
            pattern = f'{len(group)} inkonsistente IDs - Kann auf "{single_target}" konsolidiert werden'
        else:
            pattern = f"{len(group)} inkonsistente IDs - Kann auf die zuerst gesehene ID konsolidiert werden"
        suggestions.append(
            Suggestion(
                "parent_id_inconsistent", column, tuple(e.row for e in group), pattern,
                AUTO_FIX_TEXT if auto_fix else MANUAL_TEXT, auto_fix, CONSOLIDATE_ID,
                correct_value=single_target,
            )
        )
    return suggestions


def analyze_errors(errors: Sequence[ValidationError]) -> list[Suggestion]:
    """Group the open findings into bulk-correction suggestions."""
    open_errors = [e for e in errors if e.is_open]
    if not open_errors:
        return []
    by_column = _by_column(open_errors)
    return (
        _format_suggestions(by_column)
        + _whitespace_suggestions(by_column)
        + _duplicate_suggestions(by_column)
        + _identity_suggestions(by_column)
    )


def apply_suggestion(suggestion: Suggestion, errors: Sequence[ValidationError]) -> list[CellCorrection]:
    """Compute the cell rewrites of a suggestion (rows are not touched)."""
    lookup: dict[tuple[int, str], ValidationError] = {}
    for e in errors:
        if e.column != suggestion.affected_column:
            continue
        # an open finding wins over a resolved one on the same cell
        if (e.row, e.column) not in lookup or e.is_open:
            lookup[(e.row, e.column)] = e
    fix = FIX_FUNCTIONS.get(suggestion.fix_function or "")

    corrections: list[CellCorrection] = []
    for row in suggestion.affected_rows:
        error = lookup.get((row, suggestion.affected_column))
        if error is None or not error.value:
            continue
        if fix is not None:
            value = fix(error.value)
        elif suggestion.fix_function == CONSOLIDATE_ID:
            value = error.reference_value
        else:
            value = suggestion.correct_value
        if value and value != error.value:
            corrections.append(CellCorrection(row=row, column=suggestion.affected_column, corrected_value=value))
    return corrections


def apply_corrections(rows: Sequence[Row], corrections: Iterable[_Correction]) -> list[Row]:
    """Copies of `rows` with the corrections written in."""
    updated = [dict(row) for row in rows]
    for c in corrections:
        if 1 <= c.row <= len(updated):
            updated[c.row - 1][c.column] = c.corrected_value
    return updated


def apply_corrected_values(rows: Sequence[Row], errors: Iterable[ValidationError]) -> list[Row]:
    """Write every resolved finding's corrected value back (dismissals are no-ops)."""
    corrections = [
        CellCorrection(row=e.row, column=e.column, corrected_value=e.corrected_value)
        for e in errors
        if e.corrected_value is not None and e.corrected_value != e.value
    ]
    return apply_corrections(rows, corrections)


def resolve_errors(errors: Iterable[ValidationError], corrections: Iterable[_Correction]) -> int:
    """Mark open findings on corrected cells as resolved; returns how many."""
    by_cell = {(c.row, c.column): c.corrected_value for c in corrections}
    resolved = 0
    for e in errors:
        if e.is_open and (e.row, e.column) in by_cell:
            e.resolve(by_cell[(e.row, e.column)])
            resolved += 1
    return resolved


def _is_row_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not (isinstance(value, float) and math.isnan(value))


def validate_advisor_suggestions(raw: Any) -> list[Suggestion]:
    """Keep only well-formed suggestions from an external advisor.

    Entries need a string `affectedColumn` and an `affectedRows` array; rows
    are filtered to numbers and entries left without rows are dropped.
    """
    if not isinstance(raw, list):
        logger.warning("advisor: expected a list of suggestions")
        return []
    suggestions: list[Suggestion] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        rows = item.get("affectedRows")
        column = item.get("affectedColumn")
        if not isinstance(rows, list):
            logger.warning(f"advisor: invalid affectedRows, skipping {item!r}")
            continue
        if not column or not isinstance(column, str):
            logger.warning(f"advisor: missing affectedColumn, skipping {item!r}")
            continue
        numbers = tuple(int(r) for r in rows if _is_row_number(r))
        if not numbers:
            continue
        suggestions.append(
            Suggestion(
                type=item.get("type") or "bulk_correction",
                affected_column=column,
                affected_rows=numbers,
                pattern=item.get("pattern") or "Unbekanntes Muster",
                suggestion=item.get("suggestion") or "Bitte manuell prüfen",
                auto_fix=bool(item.get("autoFix")),
                fix_function=item.get("fixFunction") or None,
                correct_value=item.get("correctValue") or None,
            )
        )
    return suggestions
