from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from ..models import Row
from ..models.validation_error import ErrorKind, Severity, ValidationError
from .normalizer import cell_text, count_diacritics, strip_diacritics

"""Diacritic reconciliation for name columns.

"Muller" and "Müller" in the same column are almost always the same family
typed on different keyboards. The spelling carrying the most diacritics wins
(ties: the first one seen) and every other spelling gets a warning with the
canonical spelling pre-filled as its corrected value. Those warnings are
therefore resolved on creation; the rows themselves are not touched until
apply_corrected_values() writes them back.
"""

__all__ = [
    "DEFAULT_NAME_COLUMNS",
    "MSG_DIACRITIC",
    "SpellingGroup",
    "group_spellings",
    "reconcile_diacritics",
]

DEFAULT_NAME_COLUMNS: tuple[str, ...] = (
    "S_Name",
    "S_Vorname",
    "P_ERZ1_Name",
    "P_ERZ1_Vorname",
    "P_ERZ2_Name",
    "P_ERZ2_Vorname",
)

MSG_DIACRITIC = 'Diakritische Korrektur: "{value}" → "{canonical}"'


@dataclass
class SpellingGroup:
    key: str
    spellings: list[str] = field(default_factory=list)  # distinct, first-seen order
    rows: list[tuple[int, str]] = field(default_factory=list)  # (row, spelling)

    @property
    def canonical(self) -> str:
        # max() keeps the first of equal scores, which is the first seen
        return max(self.spellings, key=count_diacritics)


def group_spellings(rows: Sequence[Row], column: str) -> list[SpellingGroup]:
    """Group the values of one column by their diacritic-free form."""
    groups: dict[str, SpellingGroup] = {}
    for index, row in enumerate(rows):
        value = cell_text(row.get(column))
        if not value:
            continue
        key = strip_diacritics(value)
        group = groups.setdefault(key, SpellingGroup(key=key))
        if value not in group.spellings:
            group.spellings.append(value)
        group.rows.append((index + 1, value))
    return list(groups.values())


def reconcile_diacritics(
    rows: Sequence[Row], name_columns: Sequence[str] = DEFAULT_NAME_COLUMNS
) -> list[ValidationError]:
    errors: list[ValidationError] = []
    for column in name_columns:
        for group in group_spellings(rows, column):
            if len(group.spellings) < 2:
                continue
            canonical = group.canonical
            for row_number, value in group.rows:
                if value == canonical:
                    continue
                errors.append(
                    ValidationError(
                        row=row_number,
                        column=column,
                        value=value,
                        message=MSG_DIACRITIC.format(value=value, canonical=canonical),
                        kind=ErrorKind.DIACRITIC,
                        severity=Severity.WARNING,
                        corrected_value=canonical,
                    )
                )
    errors.sort(key=lambda e: e.row)
    return errors
