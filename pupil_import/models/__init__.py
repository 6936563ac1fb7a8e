"""Domain models for the LehrerOffice -> PUPIL import engine."""

from .column_definition import ColumnDefinition, FormatRule, ValidationType
from .correction_rule import (
    AppliedCorrection,
    ApplyResult,
    CorrectionRule,
    CorrectionStats,
    MatchType,
)
from .validation_error import (
    ErrorKind,
    IdentityMatch,
    MatchStrategy,
    Reliability,
    Severity,
    ValidationError,
)

Row = dict[str, str | int | float | None]

__all__ = [
    # Column models
    "ColumnDefinition",
    "FormatRule",
    "ValidationType",
    # Findings
    "ErrorKind",
    "IdentityMatch",
    "MatchStrategy",
    "Reliability",
    "Severity",
    "ValidationError",
    # Correction memory
    "AppliedCorrection",
    "ApplyResult",
    "CorrectionRule",
    "CorrectionStats",
    "MatchType",
    "Row",
]
