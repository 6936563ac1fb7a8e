from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..models import Row
from ..models.column_definition import ColumnDefinition, FormatRule
from ..models.validation_error import ErrorKind, ValidationError
from .diacritics import DEFAULT_NAME_COLUMNS, reconcile_diacritics
from .duplicates import DEFAULT_UNIQUE_COLUMNS, find_duplicates
from .field_validator import CompiledFormatRule, check_field, compile_format_rules
from .identity_matcher import DEFAULT_PARENT_SLOTS, ParentSlot, find_identity_inconsistencies
from .normalizer import cell_text

"""Validation orchestration.

Runs the passes in a fixed order over a whole dataset:

1. per-cell field validation (required, built-in shape, format rules)
2. duplicate detection over the unique columns
3. parent identity matching
4. diacritic reconciliation over the name columns

The result is ordered row-major, then by the pass that produced it. Nothing
is cached between calls: every run builds fresh working maps, so the function
is safe to call from several threads on independent datasets.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ValidationSettings",
    "STAGE_ORDER",
    "validate",
    "validate_cells",
]

STAGE_ORDER = {
    ErrorKind.REQUIRED: 0,
    ErrorKind.FORMAT: 0,
    ErrorKind.FORMAT_RULE: 0,
    ErrorKind.DUPLICATE: 1,
    ErrorKind.IDENTITY: 2,
    ErrorKind.DIACRITIC: 3,
}


@dataclass(frozen=True)
class ValidationSettings:
    """Per-import-type knobs, built once per session (see ImportProfile.settings())."""
    unique_columns: tuple[str, ...] = DEFAULT_UNIQUE_COLUMNS
    parent_slots: tuple[ParentSlot, ...] = DEFAULT_PARENT_SLOTS
    name_columns: tuple[str, ...] = DEFAULT_NAME_COLUMNS


def validate_cells(
    rows: Sequence[Row],
    columns: Sequence[ColumnDefinition],
    format_rules: Sequence[CompiledFormatRule] = (),
) -> list[ValidationError]:
    """Field pass. Absent columns read as empty, so only `required` can fire."""
    errors: list[ValidationError] = []
    for index, row in enumerate(rows):
        for column in columns:
            raw = row.get(column.name)
            issue = check_field(raw, column, format_rules)
            if issue is None:
                continue
            kind, message = issue
            errors.append(
                ValidationError(
                    row=index + 1,
                    column=column.name,
                    value=cell_text(raw),
                    message=message,
                    kind=kind,
                )
            )
    return errors


def validate(
    rows: Sequence[Row],
    columns: Sequence[ColumnDefinition],
    format_rules: Iterable[FormatRule] | None = None,
    *,
    settings: ValidationSettings | None = None,
) -> list[ValidationError]:
    """Validate a full dataset and return every finding.

    Args:
        rows: Input rows (read only)
        columns: Column definitions of the import type
        format_rules: Optional user format rules; inactive or uncompilable
            rules are skipped
        settings: Unique/name columns and parent slots; defaults match the
            LehrerOffice student export

    Returns:
        Findings sorted by (row, stage). Same input, same list.
    """
    settings = settings or ValidationSettings()
    compiled = compile_format_rules(format_rules)

    cell_errors = validate_cells(rows, columns, compiled)
    duplicate_errors = find_duplicates(rows, settings.unique_columns)
    identity_errors = find_identity_inconsistencies(rows, settings.parent_slots)
    diacritic_errors = reconcile_diacritics(rows, settings.name_columns)
    logger.debug(
        f"validate rows={len(rows)} cells={len(cell_errors)} duplicates={len(duplicate_errors)} "
        f"identity={len(identity_errors)} diacritics={len(diacritic_errors)}"
    )

    errors = cell_errors + duplicate_errors + identity_errors + diacritic_errors
    # stable: within a row and stage the pass's own order is kept
    errors.sort(key=lambda e: (e.row, STAGE_ORDER[e.kind]))
    return errors
