from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

"""ValidationError model.

A ValidationError is created by the validation passes and is never deleted:
the only mutation allowed is setting `corrected_value`, which marks it as
resolved. Resolving with the unchanged value is how a flagged case is
dismissed, so the full audit trail (what was wrong, what it became) stays in
the list.

Identity inconsistencies carry their facts as structured fields
(`reference_row`, `reference_value`, `match`) so bulk resolution never has to
re-parse `message`, which is display text only.
"""

__all__ = [
    "Severity",
    "ErrorKind",
    "MatchStrategy",
    "Reliability",
    "IdentityMatch",
    "ValidationError",
]


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


class ErrorKind(Enum):
    """Which pass produced the error (stage order of the orchestrator)."""
    REQUIRED = "required"
    FORMAT = "format"
    FORMAT_RULE = "format_rule"
    DUPLICATE = "duplicate"
    IDENTITY = "identity"
    DIACRITIC = "diacritic"


class MatchStrategy(Enum):
    """Identity matching strategies in decreasing reliability order."""
    AHV = "AHV"
    NAME_ADDRESS = "name_address"
    PARENT_PAIR = "parent_pair"
    NAME_ONLY = "name_only"


class Reliability(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# German labels used in rendered messages
STRATEGY_LABELS = {
    MatchStrategy.AHV: "AHV",
    MatchStrategy.NAME_ADDRESS: "Name + Adresse",
    MatchStrategy.PARENT_PAIR: "Elternpaar",
    MatchStrategy.NAME_ONLY: "Name",
}

RELIABILITY_LABELS = {
    Reliability.HIGH: "hoch",
    Reliability.MEDIUM: "mittel",
    Reliability.LOW: "niedrig",
}


@dataclass(frozen=True)
class IdentityMatch:
    """Structured facts behind an identity-inconsistency error."""
    strategy: MatchStrategy
    reliability: Reliability
    display_identifier: str  # AHV number or person name used for matching
    slot_label: str  # slot of the losing occurrence (e.g. ERZ2)
    reference_slot_label: str  # slot where the correct id was first seen
    warning_text: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "reliability": self.reliability.value,
            "display_identifier": self.display_identifier,
            "slot_label": self.slot_label,
            "reference_slot_label": self.reference_slot_label,
            "warning_text": self.warning_text,
        }


@dataclass
class ValidationError:
    """One finding of a validation run.

    Attributes:
        row: 1-based row number
        column: Column name the finding is attached to
        value: Offending raw value (as text)
        message: Human-readable, display-only description
        kind: Which pass produced it
        severity: ERROR (default) or WARNING
        corrected_value: None while open; set once resolved
        reference_row: Row the finding refers back to (duplicates, identity)
        reference_value: Value considered correct (identity: the first-seen id)
        match: Identity facts, only for kind == IDENTITY
    """
    row: int
    column: str
    value: str
    message: str
    kind: ErrorKind = ErrorKind.FORMAT
    severity: Severity = Severity.ERROR
    corrected_value: str | None = None
    reference_row: int | None = None
    reference_value: str | None = None
    match: IdentityMatch | None = field(default=None)

    @property
    def is_open(self) -> bool:
        return self.corrected_value is None

    @property
    def is_warning(self) -> bool:
        return self.severity is Severity.WARNING

    def resolve(self, corrected_value: str) -> None:
        """Mark as resolved. Passing the unchanged value dismisses the finding."""
        self.corrected_value = corrected_value

    def dismiss(self) -> None:
        self.corrected_value = self.value

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["severity"] = self.severity.value
        data["match"] = self.match.to_dict() if self.match else None
        return data

    def to_json_line(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)
