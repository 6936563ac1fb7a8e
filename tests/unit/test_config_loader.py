from __future__ import annotations

from pathlib import Path

import pytest

from pupil_import.config.loader import (
    ConfigError,
    builtin_import_types,
    load_builtin_profile,
    load_profile,
)
from pupil_import.models import ValidationType
from pupil_import.services.identity_matcher import DEFAULT_PARENT_SLOTS


def write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_builtin_import_types():
    assert builtin_import_types() == ["journal", "schueler"]


def test_load_builtin_schueler_profile():
    profile = load_builtin_profile("schueler")
    assert profile.import_type == "schueler"
    assert profile.name == "Schülerdaten"
    assert profile.unique_columns == ("S_AHV", "S_ID")
    assert [s.label for s in profile.parent_slots] == ["ERZ1", "ERZ2"]
    assert profile.parent_slots == DEFAULT_PARENT_SLOTS
    by_name = {c.name: c for c in profile.columns}
    assert by_name["S_AHV"].required
    assert by_name["S_AHV"].validation_type is ValidationType.AHV
    assert by_name["S_ID"].validation_type is None
    assert len(profile.column_names) == len(set(profile.column_names))


def test_load_builtin_journal_profile():
    profile = load_builtin_profile("journal")
    settings = profile.settings()
    assert settings.unique_columns == ()
    assert settings.parent_slots == ()
    (rule,) = profile.format_rules
    assert rule.applies_to_columns == ("Dauer",)
    assert rule.pattern == r"^\d+$"


def test_unknown_import_type():
    with pytest.raises(ConfigError, match="^profile not found: unknown import type 'lehrer'"):
        load_builtin_profile("lehrer")


def test_missing_profile_file(tmp_path):
    with pytest.raises(ConfigError, match="^profile not found"):
        load_profile(tmp_path / "nope.yml")


def test_invalid_yaml(tmp_path):
    path = write(tmp_path / "bad.yml", "import_type: [unclosed\n")
    with pytest.raises(ConfigError, match="^invalid yaml"):
        load_profile(path)


@pytest.mark.parametrize(
    "text",
    [
        "name: no import type\ncolumns: [{name: A}]\n",
        "import_type: x\ncolumns: []\n",
        "import_type: x\ncolumns: [{name: A, validation_type: colour}]\n",
        "import_type: x\ncolumns: [{name: A}]\nsurprise: true\n",
    ],
)
def test_schema_violations(tmp_path, text):
    path = write(tmp_path / "p.yml", text)
    with pytest.raises(ConfigError, match="^profile validation failed"):
        load_profile(path)


def test_duplicate_column_names(tmp_path):
    path = write(tmp_path / "p.yml", "import_type: x\ncolumns: [{name: A}, {name: A}]\n")
    with pytest.raises(ConfigError, match="duplicate column names"):
        load_profile(path)


def test_minimal_profile_falls_back_to_defaults(tmp_path):
    path = write(tmp_path / "p.yml", "import_type: custom\ncolumns: [{name: Code, required: true}]\n")
    profile = load_profile(path)
    assert profile.name == "custom"
    assert profile.parent_slots == DEFAULT_PARENT_SLOTS
    assert profile.format_rules == ()
    assert profile.columns[0].required


def test_custom_slots_and_rules(tmp_path):
    path = write(
        tmp_path / "p.yml",
        "import_type: custom\n"
        "columns: [{name: M_ID}, {name: M_Name}, {name: M_Vorname}]\n"
        "parent_slots:\n"
        "  - {label: Mutter, id_column: M_ID, surname_column: M_Name, first_name_column: M_Vorname}\n"
        "format_rules:\n"
        "  - {name: kurz, pattern: '^.{0,5}$', error_message: zu lang, is_active: false}\n",
    )
    profile = load_profile(path)
    (slot,) = profile.parent_slots
    assert slot.label == "Mutter"
    assert slot.phone_columns == ()
    assert profile.format_rules[0].is_active is False
    assert profile.format_rules[0].applies_to_columns is None
