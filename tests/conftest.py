# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from pupil_import.logging.init import reset_logging
from pupil_import.models import ColumnDefinition, ValidationType


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("PUPIL_IMPORT_TYPE", raising=False)
        monkeypatch.delenv("PUPIL_IMPORT_PROFILE", raising=False)
        yield p


@pytest.fixture()
def clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def student_columns() -> list[ColumnDefinition]:
    return [
        ColumnDefinition("S_AHV", required=True, category="Schüler", validation_type=ValidationType.AHV),
        ColumnDefinition("S_ID", category="Schüler"),
        ColumnDefinition("S_Name", required=True, category="Schüler", validation_type=ValidationType.TEXT),
        ColumnDefinition("S_Vorname", required=True, category="Schüler", validation_type=ValidationType.TEXT),
        ColumnDefinition("S_Geschlecht", required=True, category="Schüler", validation_type=ValidationType.GENDER),
        ColumnDefinition("S_Geburtsdatum", required=True, category="Schüler", validation_type=ValidationType.DATE),
        ColumnDefinition("S_PLZ", category="Schüler", validation_type=ValidationType.PLZ),
        ColumnDefinition("P_ERZ1_ID", category="Erziehungsberechtigte/r 1"),
        ColumnDefinition("P_ERZ1_AHV", category="Erziehungsberechtigte/r 1", validation_type=ValidationType.AHV),
        ColumnDefinition("P_ERZ1_Email", category="Erziehungsberechtigte/r 1", validation_type=ValidationType.EMAIL),
        ColumnDefinition("P_ERZ1_Mobil", category="Erziehungsberechtigte/r 1", validation_type=ValidationType.PHONE),
    ]


def student(n: int, **fields) -> dict:
    """A valid student row; keyword arguments add or override columns."""
    row = {
        "S_AHV": f"756.1000.0000.{n:02d}",
        "S_ID": f"S{n}",
        "S_Name": "Muster",
        "S_Vorname": f"Kind{n}",
        "S_Geschlecht": "W",
        "S_Geburtsdatum": "01.02.2015",
    }
    row.update(fields)
    return row


def parent(slot: int, id: str, surname: str, first_name: str, **fields) -> dict:
    """Columns of one parent slot, e.g. parent(1, "P1", "Meier", "Sandra", Strasse="Hauptstr. 1")."""
    prefix = f"P_ERZ{slot}_"
    row = {f"{prefix}ID": id, f"{prefix}Name": surname, f"{prefix}Vorname": first_name}
    row.update({f"{prefix}{k}": v for k, v in fields.items()})
    return row


@pytest.fixture()
def make_student():
    return student


@pytest.fixture()
def make_parent():
    return parent
