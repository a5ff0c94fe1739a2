from __future__ import annotations

import math
import re
import unicodedata
from datetime import date, datetime, timedelta
from typing import Any

"""Field normalizer: raw cell values -> canonical values.

Every function here is total. Unrecognized input yields None (dates,
identifiers), the caller-supplied default (numbers) or the table default
(enumerations); nothing raises.

Synonym tables are keyed by *folded* text (lower-case, accents stripped,
underscores and repeated spaces collapsed to one space), so canonical codes
such as ``en_tramite`` map to themselves.
"""

__all__ = [
    "fold",
    "clean_text",
    "policy_key",
    "identification_key",
    "parse_date",
    "parse_number",
    "parse_money",
    "parse_bool",
    "normalize_enum",
    "normalize_identification_type",
    "normalize_policy_status",
    "normalize_payment_frequency",
    "normalize_relationship",
    "IDENTIFICATION_TYPE_MAP",
    "POLICY_STATUS_MAP",
    "PAYMENT_FREQUENCY_MAP",
    "RELATIONSHIP_MAP",
    "AFFIRMATIVE_TOKENS",
]

# Spreadsheet (1900 date system) day zero; serial 1 == 1900-01-01 once the
# fictitious 1900-02-29 is accounted for by starting on 12-30.
_SERIAL_EPOCH = date(1899, 12, 30)
_SERIAL_MAX = 2958465  # 9999-12-31

_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[ T].*)?$")
_DMY_SLASH_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DMY_DASH_RE = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_NUMBER_CHARS_RE = re.compile(r"[^0-9,.\-]")
# "1.500", "-12.345": a lone dot before exactly three digits groups thousands
_DOT_THOUSANDS_RE = re.compile(r"-?[1-9]\d{0,2}\.\d{3}")
_SPACES_RE = re.compile(r"\s+")

AFFIRMATIVE_TOKENS = frozenset({"si", "sí", "yes", "true", "1", "x"})

DEFAULT_IDENTIFICATION_TYPE = "cedula"
DEFAULT_POLICY_STATUS = "en_tramite"
DEFAULT_PAYMENT_FREQUENCY = "mensual"
DEFAULT_RELATIONSHIP = "otro"

IDENTIFICATION_TYPE_MAP: dict[str, str] = {
    "cedula": "cedula",
    "cedula de identidad": "cedula",
    "ci": "cedula",
    "c.i": "cedula",
    "c.i.": "cedula",
    "pasaporte": "pasaporte",
    "passport": "pasaporte",
    "rif": "rif",
    "r.i.f.": "rif",
    "otro": "otro",
    "other": "otro",
}

POLICY_STATUS_MAP: dict[str, str] = {
    "vigente": "vigente",
    "activa": "vigente",
    "activo": "vigente",
    "active": "vigente",
    "pendiente": "pendiente",
    "pending": "pendiente",
    "cancelada": "cancelada",
    "cancelado": "cancelada",
    "anulada": "cancelada",
    "cancelled": "cancelada",
    "canceled": "cancelada",
    "vencida": "vencida",
    "vencido": "vencida",
    "expired": "vencida",
    "en tramite": "en_tramite",
    "tramite": "en_tramite",
    "in process": "en_tramite",
}

PAYMENT_FREQUENCY_MAP: dict[str, str] = {
    "mensual": "mensual",
    "monthly": "mensual",
    "mensual 10 cuotas": "mensual_10_cuotas",
    "10 cuotas": "mensual_10_cuotas",
    "mensual 12 cuotas": "mensual_12_cuotas",
    "12 cuotas": "mensual_12_cuotas",
    "bimensual": "bimensual",
    "bimestral": "bimensual",
    "bimonthly": "bimensual",
    "trimestral": "trimestral",
    "quarterly": "trimestral",
    "semestral": "semestral",
    "semiannual": "semestral",
    "semi-annual": "semestral",
    "anual": "anual",
    "annual": "anual",
    "yearly": "anual",
}

RELATIONSHIP_MAP: dict[str, str] = {
    "conyuge": "conyuge",
    "esposo": "conyuge",
    "esposa": "conyuge",
    "spouse": "conyuge",
    "hijo": "hijo",
    "hija": "hijo",
    "child": "hijo",
    "son": "hijo",
    "daughter": "hijo",
    "padre": "padre",
    "father": "padre",
    "madre": "madre",
    "mother": "madre",
    "hermano": "hermano",
    "hermana": "hermano",
    "sibling": "hermano",
    "brother": "hermano",
    "sister": "hermano",
    "tomador": "tomador_titular",
    "titular": "tomador_titular",
    "tomador titular": "tomador_titular",
    "tomador y titular": "tomador_titular",
    "otro": "otro",
    "other": "otro",
}


def fold(text: Any) -> str:
    """Lower-case, strip accents and collapse whitespace.

    >>> fold("  Cédula   Tomador ")
    'cedula tomador'
    """
    if text is None:
        return ""
    s = str(text).replace("\xa0", " ")
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    return _SPACES_RE.sub(" ", s).strip().lower()


def clean_text(value: Any) -> str | None:
    """Cell value -> trimmed text, or None when empty.

    Integral floats (how spreadsheets hand back numeric ids) lose their ``.0``.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).replace("\xa0", " ").strip()
    return text or None


def policy_key(value: Any) -> str:
    """Natural key for policies: lower-cased, trimmed policy number."""
    text = clean_text(value)
    return text.lower() if text else ""


def identification_key(value: Any) -> str:
    """Natural key for people: only alphanumerics, lower-cased.

    ``"V-12345678"`` and ``"v12345678"`` both become ``"v12345678"``.
    """
    text = clean_text(value)
    if not text:
        return ""
    return _NON_ALNUM_RE.sub("", text.lower())


def _safe_date(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _from_serial(serial: float) -> str | None:
    if not (1 <= serial <= _SERIAL_MAX):
        return None
    return (_SERIAL_EPOCH + timedelta(days=int(serial))).isoformat()


def parse_date(value: Any) -> str | None:
    """Parse a date cell into ``yyyy-mm-dd``.

    Accepts date/datetime objects, ISO text, ``dd/mm/yyyy``, ``dd-mm-yyyy`` and
    numeric spreadsheet serials. No timezone arithmetic is performed.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return _from_serial(float(value))

    text = str(value).strip()
    if not text:
        return None
    m = _ISO_RE.match(text)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    m = _DMY_SLASH_RE.match(text) or _DMY_DASH_RE.match(text)
    if m:
        return _safe_date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
    try:
        return _from_serial(float(text))
    except ValueError:
        return None


def parse_number(value: Any, default: float | None = None) -> float | None:
    """Locale tolerant decimal parse.

    ``1.500,50``, ``1,500.50``, ``1500,5`` and ``$ 1500`` all parse. When both
    separators appear, the right-most one is the decimal separator; a single
    comma alone is a decimal comma; repeated identical separators are
    thousands separators. A single dot followed by exactly three digits is a
    thousands separator too (``1.500`` is 1500), unless the integer part is
    zero (``0.500`` is 0.5).
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return default
        return float(value)

    raw = str(value).strip()
    text = _NUMBER_CHARS_RE.sub("", raw).rstrip(".,")
    if raw[:1] not in ".,":
        # "Bs. 1.500" leaves a stray leading dot
        text = text.lstrip(".,")
    if not text or text in {"-", ".", ","}:
        return default

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif text.count(",") > 1:
        text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")
    elif text.count(".") > 1 or _DOT_THOUSANDS_RE.fullmatch(text):
        text = text.replace(".", "")

    try:
        return float(text)
    except ValueError:
        return default


def parse_money(value: Any) -> float | None:
    """Monetary field: empty cell -> None, unparseable text -> 0.0."""
    if clean_text(value) is None:
        return None
    return parse_number(value, default=0.0)


def parse_bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in AFFIRMATIVE_TOKENS


def _enum_key(value: Any) -> str:
    return fold(value).replace("_", " ").strip()


def normalize_enum(value: Any, table: dict[str, str], default: str) -> str:
    """Map free text onto a canonical code; empty or unknown -> ``default``."""
    key = _enum_key(value)
    if not key:
        return default
    return table.get(key, default)


def normalize_identification_type(value: Any) -> str:
    return normalize_enum(value, IDENTIFICATION_TYPE_MAP, DEFAULT_IDENTIFICATION_TYPE)


def normalize_policy_status(value: Any) -> str:
    return normalize_enum(value, POLICY_STATUS_MAP, DEFAULT_POLICY_STATUS)


def normalize_payment_frequency(value: Any) -> str:
    return normalize_enum(value, PAYMENT_FREQUENCY_MAP, DEFAULT_PAYMENT_FREQUENCY)


def normalize_relationship(value: Any) -> str:
    return normalize_enum(value, RELATIONSHIP_MAP, DEFAULT_RELATIONSHIP)
