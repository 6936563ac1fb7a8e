from __future__ import annotations

from collections.abc import Sequence

from ..models import Row
from ..models.validation_error import ErrorKind, ValidationError
from .normalizer import cell_text

"""Uniqueness check over configured student columns.

Parent AHV numbers are deliberately not unique candidates: a parent with
several children appears once per child row.
"""

__all__ = [
    "DEFAULT_UNIQUE_COLUMNS",
    "find_duplicates",
]

DEFAULT_UNIQUE_COLUMNS: tuple[str, ...] = ("S_AHV", "S_ID")

MSG_DUPLICATE = 'Duplikat: "{value}" kommt auch in Zeile {first_row} vor'


def find_duplicates(rows: Sequence[Row], columns: Sequence[str] = DEFAULT_UNIQUE_COLUMNS) -> list[ValidationError]:
    """Flag every repeat of a non-blank value in a unique column.

    The first occurrence is never flagged. Errors come back in row order,
    then column order, and reference the first-seen row.
    """
    first_seen: dict[str, dict[str, int]] = {col: {} for col in columns}
    errors: list[ValidationError] = []
    for index, row in enumerate(rows):
        row_number = index + 1
        for col in columns:
            value = cell_text(row.get(col))
            if not value:
                continue
            seen = first_seen[col]
            if value not in seen:
                seen[value] = row_number
                continue
            errors.append(
                ValidationError(
                    row=row_number,
                    column=col,
                    value=value,
                    message=MSG_DUPLICATE.format(value=value, first_row=seen[value]),
                    kind=ErrorKind.DUPLICATE,
                    reference_row=seen[value],
                )
            )
    return errors
