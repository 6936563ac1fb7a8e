from __future__ import annotations

import csv
import io
import zipfile
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..models import Row
from ..models.column_definition import ColumnDefinition

"""Source file reader (CSV / Excel -> rows).

Thin adapter in front of the validation engine:
- first row is the header, header cells are trimmed
- fully empty rows are skipped, NaN becomes None
- CSV cells are kept as text (AHV numbers, ids with leading zeros), the
  delimiter is sniffed; UTF-8 first, Windows-1252 for older exports
- Excel dates become DD.MM.YYYY
"""

__all__ = [
    "SourceReadError",
    "SheetData",
    "ColumnStatus",
    "SUPPORTED_SUFFIXES",
    "read_rows",
    "frame_to_sheet",
    "check_column_status",
]

SUPPORTED_SUFFIXES = (".csv", ".xlsx", ".xls")
_CSV_ENCODINGS = ("utf-8-sig", "cp1252")
_CSV_DELIMITERS = ";,\t|"


class SourceReadError(Exception):
    """Input file cannot be turned into rows (message is user-facing)."""


@dataclass
class SheetData:
    file_name: str
    headers: list[str]
    rows: list[Row]


@dataclass(frozen=True)
class ColumnStatus:
    found: list[str]
    missing: list[str]
    missing_required: list[str]
    extra: list[str]  # in the file but not defined for the import type


def _decode(path: Path) -> str:
    raw = path.read_bytes()
    last_error: UnicodeDecodeError | None = None
    for encoding in _CSV_ENCODINGS:
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError as e:
            last_error = e
    raise SourceReadError(f"Datei konnte nicht gelesen werden: {last_error}")


def _sniff_delimiter(header_line: str) -> str:
    try:
        return csv.Sniffer().sniff(header_line, delimiters=_CSV_DELIMITERS).delimiter
    except csv.Error:
        # single-column file
        return _CSV_DELIMITERS[0]


def _read_csv(path: Path) -> pd.DataFrame:
    text = _decode(path)
    if not text.strip():
        raise SourceReadError("Die Datei ist leer.")
    return pd.read_csv(
        io.StringIO(text),
        sep=_sniff_delimiter(text.splitlines()[0]),
        header=None,
        dtype=str,
        keep_default_na=False,
        na_values=[""],
    )


def _cell(value: Any) -> str | int | float | None:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, (datetime, date)):
        return value.strftime("%d.%m.%Y")
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return value
    return str(value)


def frame_to_sheet(df: pd.DataFrame, file_name: str) -> SheetData:
    """Use the first row as header and turn the rest into row dicts."""
    if df.shape[0] == 0:
        raise SourceReadError("Die Datei ist leer.")
    headers = ["" if pd.isna(c) else str(c).strip() for c in df.iloc[0].tolist()]
    rows: list[Row] = []
    for _, raw in df.iloc[1:].iterrows():
        if raw.isna().all():
            continue
        row: Row = {}
        for col, val in zip(headers, raw.tolist(), strict=False):
            if not col:
                continue
            row[col] = _cell(val)
        rows.append(row)
    return SheetData(file_name=file_name, headers=[h for h in headers if h], rows=rows)


def read_rows(path: Path) -> SheetData:
    """Read the first sheet of an Excel file or a CSV file.

    Raises:
        SourceReadError: Unsupported extension, missing, empty or unparseable file
    """
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise SourceReadError(
            f"Nicht unterstütztes Dateiformat: {path.name} (erwartet: {', '.join(SUPPORTED_SUFFIXES)})"
        )
    if not path.exists():
        raise SourceReadError(f"Datei nicht gefunden: {path}")
    if path.stat().st_size == 0:
        raise SourceReadError("Die Datei ist leer.")

    try:
        if suffix == ".csv":
            df = _read_csv(path)
        else:
            df = pd.read_excel(path, sheet_name=0, header=None, dtype=object)
    except pd.errors.EmptyDataError as e:
        raise SourceReadError("Die Datei ist leer.") from e
    # ragged CSV rows (ParserError is a ValueError), corrupt or foreign workbooks
    except (ValueError, OSError, zipfile.BadZipFile) as e:
        raise SourceReadError(f"Datei konnte nicht gelesen werden: {e}") from e
    return frame_to_sheet(df, path.name)


def check_column_status(headers: Sequence[str], columns: Sequence[ColumnDefinition]) -> ColumnStatus:
    present = set(headers)
    defined = {c.name for c in columns}
    return ColumnStatus(
        found=[c.name for c in columns if c.name in present],
        missing=[c.name for c in columns if c.name not in present],
        missing_required=[c.name for c in columns if c.required and c.name not in present],
        extra=[h for h in headers if h not in defined],
    )
