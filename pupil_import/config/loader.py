from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.column_definition import ColumnDefinition, FormatRule, ValidationType
from ..services.diacritics import DEFAULT_NAME_COLUMNS
from ..services.duplicates import DEFAULT_UNIQUE_COLUMNS
from ..services.identity_matcher import DEFAULT_PARENT_SLOTS, ParentSlot
from ..services.orchestrator import ValidationSettings

"""Import profile loader.

An import profile describes one import type: its columns, unique and name
columns, parent slots and format rules. Profiles are YAML, validated against
contracts/import_profile_schema.json, and loaded once per session.

Built-in profiles live next to this module in profiles/<import_type>.yml.
"""

__all__ = [
    "ConfigError",
    "ImportProfile",
    "PROFILES_DIR",
    "SCHEMA_PATH",
    "load_profile",
    "load_builtin_profile",
    "builtin_import_types",
]

_package_root = Path(__file__).resolve().parent.parent
SCHEMA_PATH = _package_root / "contracts" / "import_profile_schema.json"
PROFILES_DIR = Path(__file__).resolve().parent / "profiles"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class ImportProfile:
    import_type: str
    name: str
    columns: tuple[ColumnDefinition, ...]
    unique_columns: tuple[str, ...] = DEFAULT_UNIQUE_COLUMNS
    name_columns: tuple[str, ...] = DEFAULT_NAME_COLUMNS
    parent_slots: tuple[ParentSlot, ...] = DEFAULT_PARENT_SLOTS
    format_rules: tuple[FormatRule, ...] = ()

    def settings(self) -> ValidationSettings:
        return ValidationSettings(
            unique_columns=self.unique_columns,
            parent_slots=self.parent_slots,
            name_columns=self.name_columns,
        )

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]


def _validate_profile_schema(data: Any) -> None:
    """Validate profile data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or invalid, or the data
            violates it (missing keys, wrong types, unknown keys)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"profile schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"profile validation failed: {e.message}") from e


def _column(raw: dict[str, Any]) -> ColumnDefinition:
    vtype = raw.get("validation_type")
    return ColumnDefinition(
        name=raw["name"],
        required=bool(raw.get("required", False)),
        category=raw.get("category", ""),
        validation_type=ValidationType(vtype) if vtype else None,
    )


def _slot(raw: dict[str, Any]) -> ParentSlot:
    return ParentSlot(
        label=raw["label"],
        id_column=raw["id_column"],
        surname_column=raw["surname_column"],
        first_name_column=raw["first_name_column"],
        ahv_column=raw.get("ahv_column"),
        street_column=raw.get("street_column"),
        phone_columns=tuple(raw.get("phone_columns", ())),
    )


def _format_rule(raw: dict[str, Any]) -> FormatRule:
    scope = raw.get("applies_to_columns")
    return FormatRule(
        name=raw["name"],
        pattern=raw["pattern"],
        error_message=raw["error_message"],
        applies_to_columns=tuple(scope) if scope else None,
        is_active=bool(raw.get("is_active", True)),
    )


def load_profile(path: Path) -> ImportProfile:
    if not path.exists():
        raise ConfigError(f"profile not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    _validate_profile_schema(data)

    columns = tuple(_column(c) for c in data["columns"])
    names = [c.name for c in columns]
    if len(set(names)) != len(names):
        raise ConfigError(f"profile validation failed: duplicate column names in {path.name}")

    slots = data.get("parent_slots")
    return ImportProfile(
        import_type=data["import_type"],
        name=data.get("name", data["import_type"]),
        columns=columns,
        unique_columns=tuple(data.get("unique_columns", DEFAULT_UNIQUE_COLUMNS)),
        name_columns=tuple(data.get("name_columns", DEFAULT_NAME_COLUMNS)),
        parent_slots=tuple(_slot(s) for s in slots) if slots is not None else DEFAULT_PARENT_SLOTS,
        format_rules=tuple(_format_rule(r) for r in data.get("format_rules", ())),
    )


def builtin_import_types() -> list[str]:
    return sorted(p.stem for p in PROFILES_DIR.glob("*.yml"))


def load_builtin_profile(import_type: str) -> ImportProfile:
    path = PROFILES_DIR / f"{import_type}.yml"
    if not path.exists():
        known = ", ".join(builtin_import_types())
        raise ConfigError(f"profile not found: unknown import type '{import_type}' (known: {known})")
    profile = load_profile(path)
    if profile.import_type != import_type:
        raise ConfigError(
            f"profile validation failed: {path.name} declares import_type '{profile.import_type}'"
        )
    return profile
