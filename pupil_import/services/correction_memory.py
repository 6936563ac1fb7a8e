from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import jsonschema
from jsonschema.exceptions import ValidationError as SchemaValidationError

from ..models import Row
from ..models.correction_rule import (
    AppliedCorrection,
    ApplyResult,
    CorrectionRule,
    CorrectionStats,
    MatchType,
)
from ..models.validation_error import ValidationError
from .normalizer import cell_text

"""Correction memory: reusable value -> value rules.

Rule sets are plain lists of frozen CorrectionRule objects; every operation
returns a new list. The rules file is the one external wire format:

    {"version": "1.0", "exportedAt": ..., "exportedFrom": ...,
     "importType": ..., "rules": [ {camelCase rule}, ... ]}

Loading a file validates it against contracts/correction_rules_schema.json and
refuses files written for a different import type.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "FILE_VERSION",
    "CorrectionRulesError",
    "create_rule",
    "add_rule",
    "remove_rule",
    "apply_rules",
    "record_usage",
    "export_rules",
    "dumps_rules",
    "load_rules",
    "loads_rules",
    "read_rules_file",
    "write_rules_file",
]

FILE_VERSION = "1.0"
SCHEMA_PATH = Path(__file__).resolve().parent.parent / "contracts" / "correction_rules_schema.json"


class CorrectionRulesError(Exception):
    """A rules file that cannot be used for this session (message is user-facing)."""


def _now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _generate_id() -> str:
    millis = int(datetime.now(UTC).timestamp() * 1000)
    return f"{millis}-{uuid.uuid4().hex[:7]}"


def create_rule(
    column: str,
    original_value: str,
    corrected_value: str,
    import_type: str,
    identifier_column: str | None = None,
    identifier_value: str | None = None,
) -> CorrectionRule:
    """Build a rule from a manual correction.

    The rule is identifier-scoped only when both identifier column and value
    are given; otherwise it is an exact value match.
    """
    scoped = bool(identifier_column and identifier_value)
    return CorrectionRule(
        id=_generate_id(),
        column=column,
        original_value=original_value,
        corrected_value=corrected_value,
        match_type=MatchType.IDENTIFIER if scoped else MatchType.EXACT,
        import_type=import_type,
        created_at=_now_iso(),
        identifier_column=identifier_column if scoped else None,
        identifier_value=identifier_value if scoped else None,
    )


def add_rule(rules: Sequence[CorrectionRule], rule: CorrectionRule) -> list[CorrectionRule]:
    """Upsert by (column, original_value). A replaced rule keeps its id and position."""
    updated = list(rules)
    for index, existing in enumerate(updated):
        if existing.column == rule.column and existing.original_value == rule.original_value:
            updated[index] = replace(rule, id=existing.id)
            return updated
    updated.append(rule)
    return updated


def remove_rule(rules: Sequence[CorrectionRule], rule_id: str) -> list[CorrectionRule]:
    return [r for r in rules if r.id != rule_id]


def _rule_matches_row(rule: CorrectionRule, row: Row) -> bool:
    if rule.match_type is MatchType.EXACT:
        return True
    if not rule.identifier_column or not rule.identifier_value:
        return False
    return cell_text(row.get(rule.identifier_column)) == rule.identifier_value


def apply_rules(
    rules: Sequence[CorrectionRule],
    rows: Sequence[Row],
    errors: Sequence[ValidationError] = (),
) -> ApplyResult:
    """Replay rules against rows and report the cell rewrites they imply.

    A rule fires on a cell whose current value equals its original value (and,
    for identifier rules, whose row carries the identifier value). Cells that
    already hold the corrected value are left alone, and each cell is
    rewritten at most once per call. Rows are not modified.
    """
    open_errors = {(e.row, e.column, e.value) for e in errors if e.is_open}
    corrections: list[AppliedCorrection] = []
    by_column: dict[str, int] = {}
    used: list[str] = []
    touched: set[tuple[int, str]] = set()

    for index, row in enumerate(rows):
        row_number = index + 1
        for rule in rules:
            if rule.original_value == rule.corrected_value or (row_number, rule.column) in touched:
                continue
            if cell_text(row.get(rule.column)) != rule.original_value:
                continue
            if not _rule_matches_row(rule, row):
                continue
            corrections.append(
                AppliedCorrection(
                    row=row_number,
                    column=rule.column,
                    original_value=rule.original_value,
                    corrected_value=rule.corrected_value,
                    rule_id=rule.id,
                    resolves_error=(row_number, rule.column, rule.original_value) in open_errors,
                )
            )
            touched.add((row_number, rule.column))
            by_column[rule.column] = by_column.get(rule.column, 0) + 1
            if rule.id not in used:
                used.append(rule.id)

    logger.debug(f"correction rules applied={len(corrections)} rules_used={len(used)}")
    stats = CorrectionStats(total_applied=len(corrections), by_column=by_column, rules_used=tuple(used))
    return ApplyResult(corrections=corrections, stats=stats)


def record_usage(
    rules: Sequence[CorrectionRule], corrections: Iterable[AppliedCorrection]
) -> list[CorrectionRule]:
    """Bump applied_count by the number of cells each rule rewrote."""
    counts: dict[str, int] = {}
    for correction in corrections:
        counts[correction.rule_id] = counts.get(correction.rule_id, 0) + 1
    return [
        replace(r, applied_count=r.applied_count + counts[r.id]) if r.id in counts else r
        for r in rules
    ]


def export_rules(
    rules: Iterable[CorrectionRule],
    import_type: str,
    exported_from: str | None = None,
) -> dict[str, Any]:
    return {
        "version": FILE_VERSION,
        "exportedAt": _now_iso(),
        "exportedFrom": exported_from or "unknown",
        "importType": import_type,
        "rules": [r.to_dict() for r in rules],
    }


def dumps_rules(rules: Iterable[CorrectionRule], import_type: str, exported_from: str | None = None) -> str:
    return json.dumps(export_rules(rules, import_type, exported_from), ensure_ascii=False, indent=2)


def _validate_document(data: Any) -> None:
    schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    try:
        jsonschema.validate(data, schema)
    except SchemaValidationError as e:
        raise CorrectionRulesError(f"Ungültiges Dateiformat: {e.message}") from e


def load_rules(data: Any, import_type: str) -> list[CorrectionRule]:
    """Rules from a parsed rules document.

    Raises:
        CorrectionRulesError: Not a rules document, or written for another
            import type
    """
    if not isinstance(data, dict) or not isinstance(data.get("rules"), list):
        raise CorrectionRulesError("Ungültiges Dateiformat")
    _validate_document(data)
    if data["importType"] != import_type:
        raise CorrectionRulesError(
            f'Die Datei enthält Korrekturen für "{data["importType"]}", '
            f'aber Sie haben "{import_type}" ausgewählt.'
        )
    return [CorrectionRule.from_dict(item) for item in data["rules"]]


def loads_rules(text: str, import_type: str) -> list[CorrectionRule]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise CorrectionRulesError(f"Fehler beim Lesen der Datei: {e}") from e
    return load_rules(data, import_type)


def read_rules_file(path: Path, import_type: str) -> list[CorrectionRule]:
    if not path.exists():
        raise CorrectionRulesError(f"Datei nicht gefunden: {path}")
    return loads_rules(path.read_text(encoding="utf-8"), import_type)


def write_rules_file(
    path: Path, rules: Iterable[CorrectionRule], import_type: str, exported_from: str | None = None
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dumps_rules(rules, import_type, exported_from) + "\n", encoding="utf-8")
    return path
