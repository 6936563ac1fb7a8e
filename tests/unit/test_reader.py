from __future__ import annotations

from datetime import datetime

import pandas as pd
import pytest

from pupil_import.models import ColumnDefinition
from pupil_import.source.reader import SourceReadError, check_column_status, frame_to_sheet, read_rows


def test_read_semicolon_csv_keeps_text(tmp_path):
    path = tmp_path / "schueler.csv"
    path.write_text(
        " S_AHV ;S_ID;S_Name;S_PLZ\n756.1000.0000.01;007;Müller;8000\n;;;\n756.1000.0000.02;008;Meier;\n",
        encoding="utf-8",
    )
    sheet = read_rows(path)
    assert sheet.file_name == "schueler.csv"
    assert sheet.headers == ["S_AHV", "S_ID", "S_Name", "S_PLZ"]
    assert sheet.rows == [
        {"S_AHV": "756.1000.0000.01", "S_ID": "007", "S_Name": "Müller", "S_PLZ": "8000"},
        {"S_AHV": "756.1000.0000.02", "S_ID": "008", "S_Name": "Meier", "S_PLZ": None},
    ]


def test_read_windows_1252_csv(tmp_path):
    path = tmp_path / "alt.csv"
    path.write_bytes("S_Name,S_Vorname\nMüller,Jérôme\n".encode("cp1252"))
    sheet = read_rows(path)
    assert sheet.rows == [{"S_Name": "Müller", "S_Vorname": "Jérôme"}]


def test_read_excel_renders_dates(tmp_path):
    path = tmp_path / "schueler.xlsx"
    frame = pd.DataFrame([["S_Name", "S_Geburtsdatum", "S_PLZ"], ["Meier", datetime(2015, 2, 1), 8000]])
    frame.to_excel(path, header=False, index=False)
    sheet = read_rows(path)
    assert sheet.rows == [{"S_Name": "Meier", "S_Geburtsdatum": "01.02.2015", "S_PLZ": 8000}]


@pytest.mark.parametrize(
    "name, message",
    [
        ("data.txt", "Nicht unterstütztes Dateiformat"),
        ("missing.csv", "Datei nicht gefunden"),
    ],
)
def test_read_rejects_unusable_paths(tmp_path, name, message):
    with pytest.raises(SourceReadError, match=message):
        read_rows(tmp_path / name)


def test_read_empty_file(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    with pytest.raises(SourceReadError, match="Die Datei ist leer"):
        read_rows(path)


def test_frame_to_sheet_drops_unnamed_columns():
    frame = pd.DataFrame([["A", None], ["x", "ignored"]])
    sheet = frame_to_sheet(frame, "f.xlsx")
    assert sheet.headers == ["A"]
    assert sheet.rows == [{"A": "x"}]


def test_check_column_status():
    columns = [
        ColumnDefinition("S_AHV", required=True),
        ColumnDefinition("S_Name", required=True),
        ColumnDefinition("S_PLZ"),
    ]
    status = check_column_status(["S_Name", "Bemerkung"], columns)
    assert status.found == ["S_Name"]
    assert status.missing == ["S_AHV", "S_PLZ"]
    assert status.missing_required == ["S_AHV"]
    assert status.extra == ["Bemerkung"]


def test_read_single_column_csv(tmp_path):
    path = tmp_path / "codes.csv"
    path.write_text("Code\nA\nB\n", encoding="utf-8")
    assert read_rows(path).rows == [{"Code": "A"}, {"Code": "B"}]


def test_read_ragged_csv(tmp_path):
    path = tmp_path / "ragged.csv"
    path.write_text("S_ID;S_Name\n1;A\n2;B;extra\n", encoding="utf-8")
    with pytest.raises(SourceReadError, match="^Datei konnte nicht gelesen werden: .*line 3"):
        read_rows(path)


def test_read_corrupt_workbook(tmp_path):
    path = tmp_path / "kaputt.xlsx"
    path.write_bytes(b"not a workbook")
    with pytest.raises(SourceReadError, match="^Datei konnte nicht gelesen werden"):
        read_rows(path)
