from __future__ import annotations

import math
import re
import unicodedata
from datetime import date, timedelta
from typing import Any

"""Pure string helpers shared by the validation passes.

Every canonicalizer returns the canonical string or None when the input cannot
be normalized with confidence. None of them raise on bad input.
"""

__all__ = [
    "cell_text",
    "strip_diacritics",
    "count_diacritics",
    "normalize_phone_digits",
    "normalize_key",
    "format_ahv",
    "format_phone",
    "format_plz",
    "format_email",
    "format_gender",
    "format_name",
    "format_street",
    "format_iban",
    "convert_excel_date",
    "format_date_de",
    "trim_whitespace",
]

_NON_DIGIT_RE = re.compile(r"\D")
_WS_RE = re.compile(r"\s+")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Domain typos seen in LehrerOffice exports
_EMAIL_DOMAIN_FIXES = (
    ("@gmial.", "@gmail."),
    ("@gmai.", "@gmail."),
    ("@gamil.", "@gmail."),
    ("@hotmal.", "@hotmail."),
    ("@outllok.", "@outlook."),
    ("@outlok.", "@outlook."),
)

GENDER_TOKENS = {
    "M": ("M", "MÄNNLICH", "MAENNLICH", "MALE", "MANN", "HERR", "H"),
    "W": ("W", "WEIBLICH", "FEMALE", "FRAU", "F"),
    "D": ("D", "DIVERS", "DIVERSE", "X", "ANDERES"),
}

# Excel's day zero (serial 25569 == 1970-01-01)
_EXCEL_EPOCH = date(1899, 12, 30)


def cell_text(value: Any) -> str:
    """Render a cell as trimmed text. None/NaN become "", 5.0 becomes "5"."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def _strip_marks(s: str) -> str:
    decomposed = unicodedata.normalize("NFD", s)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def strip_diacritics(s: str) -> str:
    """Decompose, drop combining marks, lowercase."""
    return _strip_marks(s or "").lower()


def count_diacritics(s: str) -> int:
    """Number of combining marks in `s`; the "richness" of a spelling."""
    decomposed = unicodedata.normalize("NFD", s or "")
    return len(decomposed) - len(_strip_marks(decomposed))


def normalize_phone_digits(s: str) -> str:
    return _NON_DIGIT_RE.sub("", s or "")


def normalize_key(s: str) -> str:
    """Matching key for names and streets: diacritic-free, lowercase, single spaces."""
    return _WS_RE.sub(" ", strip_diacritics(s)).strip()


def format_ahv(value: str) -> str | None:
    digits = normalize_phone_digits(value)
    if len(digits) == 13 and digits.startswith("756"):
        return f"{digits[0:3]}.{digits[3:7]}.{digits[7:11]}.{digits[11:13]}"
    return None


def format_phone(value: str) -> str | None:
    """Swiss number as `+41 XX XXX XX XX`."""
    digits = normalize_phone_digits(value)
    if digits.startswith("0041") and len(digits) == 13:
        digits = digits[2:]
    elif digits.startswith("0") and len(digits) == 10:
        digits = "41" + digits[1:]
    elif len(digits) == 9 and not digits.startswith("0"):
        digits = "41" + digits
    if len(digits) != 11 or not digits.startswith("41"):
        return None
    return f"+41 {digits[2:4]} {digits[4:7]} {digits[7:9]} {digits[9:11]}"


def format_plz(value: str) -> str | None:
    digits = normalize_phone_digits(value)
    if 4 <= len(digits) <= 5:
        return digits
    return None


def format_email(value: str) -> str | None:
    cleaned = _WS_RE.sub("", (value or "").strip().lower())
    cleaned = _strip_marks(cleaned)
    cleaned = cleaned.replace(",", ".")
    cleaned = re.sub(r"\.+", ".", cleaned)
    cleaned = re.sub(r"@+", "@", cleaned)
    for wrong, right in _EMAIL_DOMAIN_FIXES:
        cleaned = cleaned.replace(wrong, right)
    if _EMAIL_RE.match(cleaned):
        return cleaned
    return None


def format_gender(value: str) -> str | None:
    token = (value or "").strip().upper()
    for canonical, variants in GENDER_TOKENS.items():
        if token in variants:
            return canonical
    return None


def _is_single_case(s: str) -> bool:
    all_caps = s == s.upper() and s != s.lower()
    all_lower = s == s.lower() and s != s.upper()
    return all_caps or all_lower


def format_name(value: str) -> str | None:
    """Capitalize all-caps or all-lowercase names ("MÜLLER-MEIER" -> "Müller-Meier")."""
    trimmed = (value or "").strip()
    if not trimmed or not _is_single_case(trimmed):
        return None
    parts = re.split(r"(\s+|-)", trimmed.lower())
    return "".join(p if p == "-" or p.isspace() else p[:1].upper() + p[1:] for p in parts)


def format_street(value: str) -> str | None:
    trimmed = (value or "").strip()
    if not trimmed or not _is_single_case(trimmed):
        return None
    formatted = trimmed.lower()
    formatted = re.sub(r"^str\.?\s*", "Strasse ", formatted)
    formatted = re.sub(r"\bstr\.?$", "strasse", formatted)
    formatted = re.sub(r"\bpl\.?$", "platz", formatted)
    parts = re.split(r"(\s+)", formatted)
    return "".join(p if p.isspace() else p[:1].upper() + p[1:] for p in parts)


def format_iban(value: str) -> str | None:
    cleaned = _WS_RE.sub("", value or "").upper()
    if cleaned.startswith("CH") and len(cleaned) == 21:
        groups = [cleaned[i:i + 4] for i in range(0, 20, 4)]
        return " ".join(groups + [cleaned[20:]])
    return None


def convert_excel_date(value: str) -> str | None:
    """Spreadsheet serial number -> DD.MM.YYYY."""
    text = (value or "").strip()
    if not text.isdigit():
        return None
    serial = int(text)
    if not 1 < serial < 100000:
        return None
    d = _EXCEL_EPOCH + timedelta(days=serial)
    return d.strftime("%d.%m.%Y")


def format_date_de(value: str) -> str | None:
    """DD-MM-YYYY or YYYY-MM-DD -> DD.MM.YYYY."""
    text = (value or "").strip()
    m = re.match(r"^(\d{1,2})-(\d{1,2})-(\d{4})$", text)
    if m:
        return f"{int(m.group(1)):02d}.{int(m.group(2)):02d}.{m.group(3)}"
    m = re.match(r"^(\d{4})-(\d{2})-(\d{2})$", text)
    if m:
        return f"{m.group(3)}.{m.group(2)}.{m.group(1)}"
    return None


def trim_whitespace(value: str) -> str | None:
    """Trimmed/collapsed value, or None when nothing would change."""
    trimmed = re.sub(r"\s{2,}", " ", (value or "").strip())
    return trimmed if trimmed != value else None
