from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..models.column_definition import ColumnDefinition, FormatRule, ValidationType
from ..models.validation_error import ErrorKind
from .normalizer import GENDER_TOKENS, cell_text

"""Per-cell validation.

validate_field() is a pure function of (value, column definition, compiled
format rules): required check first, blanks short-circuit, then the built-in
shape check for the column's validation type, then user format rules.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "CompiledFormatRule",
    "compile_format_rules",
    "check_field",
    "validate_field",
    "normalize_gender",
    "is_valid_date",
    "is_valid_ahv",
    "is_valid_email",
    "is_valid_number",
    "is_valid_plz",
    "is_valid_gender",
    "is_valid_phone",
]

_DATE_PATTERNS = (
    re.compile(r"^\d{2}\.\d{2}\.\d{4}$"),  # DD.MM.YYYY
    re.compile(r"^\d{4}-\d{2}-\d{2}$"),  # YYYY-MM-DD
    re.compile(r"^\d{2}/\d{2}/\d{4}$"),  # DD/MM/YYYY
    re.compile(r"^\d+$"),  # spreadsheet serial
)
_AHV_RE = re.compile(r"^756\.\d{4}\.\d{4}\.\d{2}$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PLZ_RE = re.compile(r"^\d{4,5}$")
_PHONE_CLEAN_RE = re.compile(r"[\s\-().\/]")
_PHONE_PATTERNS = (
    re.compile(r"^\+\d{7,15}$"),  # +41791234567
    re.compile(r"^00\d{7,15}$"),  # 0041791234567
    re.compile(r"^0\d{8,10}$"),  # 0791234567
    re.compile(r"^\d{10,11}$"),
)

_VALID_GENDER_TOKENS = {"M", "W", "D", "MÄNNLICH", "WEIBLICH", "DIVERS", "MALE", "FEMALE", "DIVERSE"}

MSG_REQUIRED = 'Pflichtfeld "{column}" ist leer'
MESSAGES = {
    ValidationType.DATE: "Ungültiges Datumsformat",
    ValidationType.AHV: "Ungültiges AHV-Format (756.XXXX.XXXX.XX)",
    ValidationType.EMAIL: "Ungültige E-Mail-Adresse",
    ValidationType.NUMBER: "Ungültige Zahl",
    ValidationType.PLZ: "Ungültige PLZ (4-5 Ziffern erwartet)",
    ValidationType.GENDER: "Ungültiges Geschlecht (M, W oder D erwartet)",
    ValidationType.PHONE: "Ungültiges Telefonformat",
}


@dataclass(frozen=True)
class CompiledFormatRule:
    rule: FormatRule
    regex: re.Pattern[str]


def compile_format_rules(rules: Iterable[FormatRule] | None) -> tuple[CompiledFormatRule, ...]:
    """Compile active format rules once per session; invalid regexes are skipped."""
    compiled: list[CompiledFormatRule] = []
    for rule in rules or ():
        if not rule.is_active:
            continue
        try:
            compiled.append(CompiledFormatRule(rule=rule, regex=re.compile(rule.pattern)))
        except re.error as e:
            logger.warning(f"format rule '{rule.name}' skipped: invalid pattern {rule.pattern!r} ({e})")
    return tuple(compiled)


def is_valid_date(value: str) -> bool:
    if any(p.match(value) for p in _DATE_PATTERNS):
        return True
    # spreadsheet readers hand back datetimes rendered as ISO timestamps
    try:
        datetime.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_valid_ahv(value: str) -> bool:
    return bool(_AHV_RE.match(value))


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value))


def is_valid_number(value: str) -> bool:
    if "_" in value:
        return False
    try:
        number = float(value)
    except ValueError:
        return False
    return math.isfinite(number)


def is_valid_plz(value: str) -> bool:
    return bool(_PLZ_RE.match(re.sub(r"\s", "", value)))


def is_valid_gender(value: str) -> bool:
    return value.strip().upper() in _VALID_GENDER_TOKENS


def normalize_gender(value: str) -> str | None:
    """Map an accepted gender token to M/W/D."""
    token = value.strip().upper()
    if token not in _VALID_GENDER_TOKENS:
        return None
    for canonical, variants in GENDER_TOKENS.items():
        if token in variants:
            return canonical
    return None


def is_valid_phone(value: str) -> bool:
    cleaned = _PHONE_CLEAN_RE.sub("", value)
    return any(p.match(cleaned) for p in _PHONE_PATTERNS)


_CHECKS = {
    ValidationType.DATE: is_valid_date,
    ValidationType.AHV: is_valid_ahv,
    ValidationType.EMAIL: is_valid_email,
    ValidationType.NUMBER: is_valid_number,
    ValidationType.PLZ: is_valid_plz,
    ValidationType.GENDER: is_valid_gender,
    ValidationType.PHONE: is_valid_phone,
}


def check_field(
    value: Any,
    column: ColumnDefinition,
    format_rules: Sequence[CompiledFormatRule] = (),
) -> tuple[ErrorKind, str] | None:
    """Like validate_field() but also reports which check failed."""
    text = cell_text(value)
    if text == "":
        if column.required:
            return ErrorKind.REQUIRED, MSG_REQUIRED.format(column=column.name)
        return None

    check = _CHECKS.get(column.validation_type) if column.validation_type else None
    if check is not None and not check(text):
        return ErrorKind.FORMAT, MESSAGES[column.validation_type]

    for compiled in format_rules:
        if not compiled.rule.applies_to(column.name):
            continue
        if not compiled.regex.search(text):
            return ErrorKind.FORMAT_RULE, compiled.rule.error_message
    return None


def validate_field(
    value: Any,
    column: ColumnDefinition,
    format_rules: Sequence[CompiledFormatRule] = (),
) -> str | None:
    """Return an error message for the cell, or None when it passes.

    Parameters:
        value: Raw cell value (str, number or None)
        column: Declared column shape
        format_rules: Rules from compile_format_rules(); unscoped rules apply
            to every column
    """
    issue = check_field(value, column, format_rules)
    return issue[1] if issue else None
