from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Correction memory models.

A CorrectionRule is a replayable (column, original_value) -> corrected_value
mapping, optionally scoped to rows whose identifier column holds a given
value. Rules travel as JSON with camelCase keys; `to_dict`/`from_dict` are
the only place that mapping lives.
"""

__all__ = [
    "MatchType",
    "CorrectionRule",
    "AppliedCorrection",
    "CorrectionStats",
    "ApplyResult",
]


class MatchType(Enum):
    EXACT = "exact"
    IDENTIFIER = "identifier"


@dataclass(frozen=True)
class CorrectionRule:
    id: str
    column: str
    original_value: str
    corrected_value: str
    match_type: MatchType
    import_type: str
    created_at: str  # ISO8601
    applied_count: int = 0
    identifier_column: str | None = None
    identifier_value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "column": self.column,
            "originalValue": self.original_value,
            "correctedValue": self.corrected_value,
            "matchType": self.match_type.value,
        }
        # optional keys are omitted rather than written as null
        if self.identifier_column is not None:
            data["identifierColumn"] = self.identifier_column
        if self.identifier_value is not None:
            data["identifierValue"] = self.identifier_value
        data["importType"] = self.import_type
        data["createdAt"] = self.created_at
        data["appliedCount"] = self.applied_count
        return data

    @staticmethod
    def from_dict(data: dict[str, Any]) -> CorrectionRule:
        return CorrectionRule(
            id=str(data["id"]),
            column=str(data["column"]),
            original_value=str(data["originalValue"]),
            corrected_value=str(data["correctedValue"]),
            match_type=MatchType(data["matchType"]),
            import_type=str(data["importType"]),
            created_at=str(data["createdAt"]),
            applied_count=int(data.get("appliedCount", 0)),
            identifier_column=data.get("identifierColumn"),
            identifier_value=data.get("identifierValue"),
        )


@dataclass(frozen=True)
class AppliedCorrection:
    """A single cell rewrite produced by replaying a rule."""
    row: int  # 1-based
    column: str
    original_value: str
    corrected_value: str
    rule_id: str
    resolves_error: bool = False  # an open ValidationError matched this cell


@dataclass(frozen=True)
class CorrectionStats:
    total_applied: int = 0
    by_column: dict[str, int] = field(default_factory=dict)
    rules_used: tuple[str, ...] = ()


@dataclass(frozen=True)
class ApplyResult:
    corrections: list[AppliedCorrection]
    stats: CorrectionStats
