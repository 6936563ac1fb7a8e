from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Column and format-rule models for the LehrerOffice -> PUPIL import.

A ColumnDefinition declares the expected shape of one column of an import
type. Definitions are loaded once per session from an import profile and are
immutable thereafter.
"""

__all__ = [
    "ValidationType",
    "ColumnDefinition",
    "FormatRule",
]


class ValidationType(Enum):
    """Built-in shape checks a column can declare."""
    DATE = "date"
    AHV = "ahv"
    EMAIL = "email"
    NUMBER = "number"
    TEXT = "text"
    PLZ = "plz"
    GENDER = "gender"
    PHONE = "phone"


@dataclass(frozen=True)
class ColumnDefinition:
    """Expected shape of one column.

    `validation_type` is None for columns without a built-in format check
    (only the required check applies to them).
    """
    name: str
    required: bool = False
    category: str = ""
    validation_type: ValidationType | None = None


@dataclass(frozen=True)
class FormatRule:
    """User-configurable regex check layered on top of the built-in checks.

    `applies_to_columns` None means the rule applies to every column.
    """
    name: str
    pattern: str
    error_message: str
    applies_to_columns: tuple[str, ...] | None = None
    is_active: bool = True

    def applies_to(self, column: str) -> bool:
        if not self.is_active:
            return False
        return self.applies_to_columns is None or column in self.applies_to_columns
