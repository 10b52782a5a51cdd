"""Field normalizers shared by the cleansing and derivation stages.

Pure scalar functions mapping raw extract values to canonical business
values. None of them raise on bad data except ``split_product_key``: an
unmapped, blank or unparsable input resolves to a defined sentinel.

Key utilities:
- Text: strip invisible characters, snake_case headers
- Codes: case-insensitive code-to-label maps with a "n/a" default
- Countries: abbreviation expansion with permissive passthrough
- Numbers and dates: robust float parsing, ISO dates, YYYYMMDD integers
- Keys: composite product key decomposition, legacy id prefixes

Examples:
    >>> from dwh_core.staging.cleaning_utils import CRM_GENDER_CODES, map_code, parse_int_date
    >>> map_code(" m ", CRM_GENDER_CODES)
    'Male'
    >>> parse_int_date(20101229)
    Timestamp('2010-12-29 00:00:00')
    >>> parse_int_date(0)
    NaT
"""

from __future__ import annotations

import math
import re
from typing import Any, Mapping, Optional

import numpy as np
import pandas as pd

from dwh_core.exceptions import MalformedKeyError

# Canonical "unknown / not applicable" value for categorical and text attributes
NOT_APPLICABLE = "n/a"

# Unicode characters that should be stripped from text
NBSP = "\u00a0"  # Non-breaking space
NNBSP = "\u202f"  # Narrow non-breaking space
ZW = "".join(chr(c) for c in (0x200B, 0x200C, 0x200D, 0xFEFF))  # Zero-width characters

# Regex to strip currency symbols while preserving number separators
_CURRENCY_RE = re.compile(r"[^\d,.\-\(\)\s]")

MARITAL_STATUS_CODES = {
    "M": "Married",
    "S": "Single",
}

CRM_GENDER_CODES = {
    "M": "Male",
    "F": "Female",
}

# The ERP spells genders out as often as it abbreviates them
ERP_GENDER_CODES = {
    "M": "Male",
    "MALE": "Male",
    "F": "Female",
    "FEMALE": "Female",
}

PRODUCT_LINE_CODES = {
    "M": "Mountain",
    "R": "Road",
    "S": "Other Sales",
    "T": "Touring",
}

COUNTRY_NAMES = {
    "DE": "Germany",
    "US": "United States",
    "USA": "United States",
}

# Composite product keys look like "CO-RF-FR-R92B-58": a 5-character
# category prefix, one separator, then the product key proper.
CATEGORY_PREFIX_WIDTH = 5
CATEGORY_SEPARATOR = "-"
CATEGORY_ID_SEPARATOR = "_"

# Digits in an encoded YYYYMMDD date
INT_DATE_WIDTH = 8


def is_missing(x: Any) -> bool:
    """Return True for None, NaN, NaT and pd.NA scalars."""
    if x is None:
        return True
    if isinstance(x, str):
        return False
    try:
        return bool(pd.isna(x))
    except (TypeError, ValueError):
        return False


def strip_invisibles(x: Any) -> Optional[str]:
    """Remove invisible and problematic whitespace characters from text.

    Strips carriage returns, tabs, non-breaking and zero-width characters,
    collapses runs of whitespace and trims both ends.

    Args:
        x: Value to clean (string, number, or None).

    Returns:
        Cleaned string or None if input is None/NaN.

    Examples:
        >>> strip_invisibles("  Jon  ")
        'Jon'
        >>> strip_invisibles(None)
        None
    """
    if is_missing(x):
        return None
    s = str(x)
    s = s.replace("\r", "").replace("\t", " ").replace(NBSP, " ").replace(NNBSP, " ")
    s = re.sub(r"[%s]" % re.escape(ZW), "", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def clean_text(x: Any) -> Optional[str]:
    """Trim a free-text field; blank values become None."""
    s = strip_invisibles(x)
    return s if s else None


def to_snake(s: str) -> str:
    """Convert a header to snake_case ("CST_ID " -> "cst_id")."""
    s0 = strip_invisibles(s) or ""
    s1 = re.sub(r"[^\w\s]", " ", s0.lower())
    return re.sub(r"\s+", "_", s1).strip("_")


def map_code(x: Any, mapping: Mapping[str, str]) -> str:
    """Map a raw code to its business label.

    Comparison is case-insensitive and whitespace-trimmed. Unmapped, blank
    and null inputs resolve to ``NOT_APPLICABLE``.

    Args:
        x: Raw code value.
        mapping: Upper-case code -> label.

    Returns:
        The mapped label or "n/a".

    Examples:
        >>> map_code("s", MARITAL_STATUS_CODES)
        'Single'
        >>> map_code("X", MARITAL_STATUS_CODES)
        'n/a'
    """
    s = strip_invisibles(x)
    if not s:
        return NOT_APPLICABLE
    return mapping.get(s.upper(), NOT_APPLICABLE)


def normalize_country(x: Any) -> str:
    """Expand known country abbreviations.

    Blank or null maps to "n/a"; any other non-empty value passes through
    trimmed but otherwise unchanged.

    Examples:
        >>> normalize_country(" DE")
        'Germany'
        >>> normalize_country("USA")
        'United States'
        >>> normalize_country("France")
        'France'
    """
    s = strip_invisibles(x)
    if not s:
        return NOT_APPLICABLE
    return COUNTRY_NAMES.get(s, s)


def to_float(x: Any) -> Optional[float]:
    """Robustly parse numbers in various formats.

    Handles thousands separators ('1,234.56'), negatives in parentheses
    ('(12.50)') and stray currency symbols ('$ 35').

    Args:
        x: Value to parse (string, number, or None).

    Returns:
        Parsed float value or None if parsing fails.

    Examples:
        >>> to_float("1,234.56")
        1234.56
        >>> to_float("(1,234.56)")
        -1234.56
        >>> to_float("")
        None
    """
    if is_missing(x):
        return None
    if isinstance(x, (int, float, np.integer, np.floating)) and not isinstance(x, bool):
        v = float(x)
        return None if math.isinf(v) else v
    s = str(x).strip()
    if not s:
        return None

    neg = False
    if s.startswith("(") and s.endswith(")"):
        neg, s = True, s[1:-1].strip()

    s = _CURRENCY_RE.sub("", s)
    s = re.sub(r"\s+", "", s)
    if not s:
        return None

    # 1,234,567 or 1,234.56 -> commas are thousands
    if re.fullmatch(r"-?\d{1,3}(?:,\d{3})+(?:\.\d+)?", s):
        s = s.replace(",", "")

    try:
        v = float(s)
    except ValueError:
        return None
    return -v if neg else v


def to_date(val: Any) -> pd.Timestamp:
    """Parse a calendar date.

    Accepts ISO strings (with or without a time part), Timestamps and
    datetime/date objects. Time components are dropped.

    Args:
        val: Value to parse.

    Returns:
        Parsed Timestamp at midnight, or pd.NaT if parsing fails.

    Examples:
        >>> to_date("2021-01-01")
        Timestamp('2021-01-01 00:00:00')
        >>> to_date("not a date")
        NaT
    """
    if is_missing(val):
        return pd.NaT
    if isinstance(val, (pd.Timestamp, np.datetime64)):
        ts = pd.to_datetime(val, errors="coerce")
        return ts.normalize() if not pd.isna(ts) else pd.NaT
    s = strip_invisibles(val)
    if not s:
        return pd.NaT
    for fmt in ("%Y-%m-%d", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S"):
        try:
            return pd.to_datetime(s, format=fmt, errors="raise").normalize()
        except (ValueError, TypeError):
            pass
    ts = pd.to_datetime(s, errors="coerce")
    return ts.normalize() if not pd.isna(ts) else pd.NaT


def parse_int_date(val: Any) -> pd.Timestamp:
    """Interpret an 8-digit integer as a YYYYMMDD date.

    Zero, null, anything that is not exactly 8 digits and impossible calendar
    dates (e.g. 20101345) all resolve to "no date" (pd.NaT). Never raises.

    Args:
        val: Encoded date (int, float with integral value, or digit string).

    Returns:
        Timestamp or pd.NaT.

    Examples:
        >>> parse_int_date("20101229")
        Timestamp('2010-12-29 00:00:00')
        >>> parse_int_date(5489)
        NaT
    """
    if is_missing(val) or isinstance(val, bool):
        return pd.NaT
    if isinstance(val, (int, np.integer)):
        s = str(int(val))
    elif isinstance(val, (float, np.floating)):
        if not float(val).is_integer():
            return pd.NaT
        s = str(int(val))
    else:
        s = strip_invisibles(val) or ""
        if s.endswith(".0"):
            s = s[:-2]
    if len(s) != INT_DATE_WIDTH or not s.isdigit() or int(s) == 0:
        return pd.NaT
    return pd.to_datetime(s, format="%Y%m%d", errors="coerce")


def split_product_key(key: Any) -> tuple[str, str]:
    """Decompose a composite product key into (category id, product key).

    The category id is the fixed-width prefix with its internal separator
    replaced ("CO-RF" -> "CO_RF"); the product key is what follows the
    prefix and its trailing separator.

    Args:
        key: Composite key such as "CO-RF-FR-R92B-58".

    Returns:
        Tuple (cat_id, prd_key), e.g. ("CO_RF", "FR-R92B-58").

    Raises:
        MalformedKeyError: If the key is null, shorter than the prefix, or
            has nothing after the prefix and its separator.

    Examples:
        >>> split_product_key("AC-HE-HL-U509-R")
        ('AC_HE', 'HL-U509-R')
    """
    s = strip_invisibles(key)
    if s is None or len(s) < CATEGORY_PREFIX_WIDTH + 2:
        raise MalformedKeyError(key, CATEGORY_PREFIX_WIDTH + 2)
    cat_id = s[:CATEGORY_PREFIX_WIDTH].replace(CATEGORY_SEPARATOR, CATEGORY_ID_SEPARATOR)
    prd_key = s[CATEGORY_PREFIX_WIDTH + 1 :]
    return cat_id, prd_key


def strip_prefix(x: Any, prefix: str) -> Optional[str]:
    """Drop a legacy prefix from an id ("NASAW00011000" -> "AW00011000")."""
    s = clean_text(x)
    if s is None:
        return None
    if s.startswith(prefix):
        s = s[len(prefix) :]
    return s or None


def remove_separator(x: Any, sep: str = "-") -> Optional[str]:
    """Remove every occurrence of a separator ("AW-00011000" -> "AW00011000")."""
    s = clean_text(x)
    if s is None:
        return None
    return s.replace(sep, "") or None
