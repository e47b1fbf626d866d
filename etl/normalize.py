"""
Field Normalizers

Pure functions that turn heterogeneous raw field values into canonical forms.
None of them raise: input that cannot be represented comes back as None.
"""

import re
from datetime import date, datetime
from typing import Any, Optional, Tuple

from dateutil import parser as dateparser

ISO_DATE_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$")
SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
PHONE_DISALLOWED = re.compile(r"[^\d+\- ]")
NON_DIGIT = re.compile(r"\D")
FILL_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))

DEPARTMENT_ALIASES = {
    # Computer Science
    "computer science": "Computer Science",
    "cs": "Computer Science",
    "comp sci": "Computer Science",
    "comp. sci.": "Computer Science",
    "cse": "Computer Science",
    # Electronics
    "electronics": "Electronics",
    "ece": "Electronics",
    "ec": "Electronics",
    # Mechanical
    "mechanical": "Mechanical",
    "mech": "Mechanical",
    "me": "Mechanical",
    # Electrical Engineering
    "electrical engineering": "Electrical Engineering",
    "electrical": "Electrical Engineering",
    "ee": "Electrical Engineering",
    "eee": "Electrical Engineering",
}

YEAR_WORDS = {
    "one": 1, "first": 1, "1st": 1,
    "two": 2, "second": 2, "2nd": 2,
    "three": 3, "third": 3, "3rd": 3,
    "four": 4, "fourth": 4, "4th": 4,
}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    # NaN from pandas
    if isinstance(value, float) and value != value:
        return True
    return isinstance(value, str) and value.strip() == ""


def clean_string(value: Any) -> Optional[str]:
    """Trim a value to a string, or None when it is empty."""
    if _is_blank(value):
        return None
    return str(value).strip()


def normalize_email(value: Any) -> Optional[str]:
    """Lowercase and trim. No structural change."""
    text = clean_string(value)
    return text.lower() if text else None


def normalize_phone(value: Any, country_code: Optional[str] = "+91") -> Optional[str]:
    """
    Keep digits, '+', spaces and '-'; prefix bare 10-digit numbers.

    Args:
        value: Raw phone value
        country_code: Prefix for numbers whose digit residue is exactly ten
            digits. Falsy disables prefixing.

    Returns:
        Normalized phone string, or None
    """
    text = clean_string(value)
    if text is None:
        return None

    cleaned = PHONE_DISALLOWED.sub("", text).strip()
    digits = NON_DIGIT.sub("", cleaned)

    if country_code and len(digits) == 10:
        return f"{country_code}-{digits}"

    return cleaned or None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a raw date into a calendar date.

    Accepted shapes, tried in order:
    - ISO ``YYYY-MM-DD`` with an optional time suffix (discarded)
    - ``DD/MM/YYYY`` (always day-first)
    - any complete date the dateutil parser understands; partial dates
      such as a bare month or weekday are rejected
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = clean_string(value)
    if text is None:
        return None

    match = ISO_DATE_PREFIX.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    match = SLASH_DATE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    # A partial date ("July", "12", "Monday") borrows its missing parts from
    # the default, so it parses differently against two defaults
    try:
        first = dateparser.parse(text, default=FILL_DEFAULTS[0])
        second = dateparser.parse(text, default=FILL_DEFAULTS[1])
    except (ValueError, OverflowError):
        return None
    if first.date() != second.date():
        return None
    return first.date()


def normalize_date(value: Any) -> Optional[str]:
    """Normalize a raw date to ISO ``YYYY-MM-DD``, or None."""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None


def normalize_department(value: Any) -> Optional[str]:
    """Map a department alias to its canonical name. Unknown names give None."""
    text = clean_string(value)
    if text is None:
        return None
    return DEPARTMENT_ALIASES.get(text.lower())


def normalize_year(value: Any) -> Optional[int]:
    """
    Resolve a year of study.

    Numbers pass through, numeric strings are parsed, and English words
    one..four (cardinal, ordinal, or "1st" style) are looked up.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value and value.is_integer() else None

    text = clean_string(value)
    if text is None:
        return None

    try:
        return int(text)
    except ValueError:
        pass

    try:
        number = float(text)
        if number.is_integer():
            return int(number)
    except ValueError:
        pass

    return YEAR_WORDS.get(text.lower())


def split_name(full_name: Any) -> Tuple[Optional[str], str]:
    """
    Split a full name on whitespace.

    Returns:
        (first_name, last_name); first_name is None for an empty name and
        last_name is "" when there is only one token
    """
    text = clean_string(full_name)
    if text is None:
        return None, ""
    parts = text.split()
    return parts[0], " ".join(parts[1:])
