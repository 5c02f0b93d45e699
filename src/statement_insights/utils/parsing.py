"""Parsing utilities for loosely-typed statement records."""

import calendar
import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any

MONTH_ABBREVIATIONS = {
    1: "JAN",
    2: "FEB",
    3: "MAR",
    4: "APR",
    5: "MAY",
    6: "JUN",
    7: "JUL",
    8: "AUG",
    9: "SEP",
    10: "OCT",
    11: "NOV",
    12: "DEC",
}

_MONTH_LOOKUP = {str(num): abbr for num, abbr in MONTH_ABBREVIATIONS.items()}

DEFAULT_MONTH = 1
DEFAULT_YEAR = 2025

PARSING_RESULT_SUFFIX = re.compile(r"_parsing_result\.json$", re.IGNORECASE)

# Leading numeric literal, e.g. "12.5" in "12.5 USD"
_DECIMAL_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_INTEGER_PREFIX = re.compile(r"^[+-]?\d+")

# Values at or beyond 10**20 in magnitude are out of range and become 0
MAX_MAGNITUDE_DIGITS = 20
_MAX_INTEGER = 10**MAX_MAGNITUDE_DIGITS


def _clean_text(value: Any) -> str:
    """Convert to text, drop thousands separators and surrounding whitespace."""
    return str(value).replace(",", "").strip()


def _bounded_decimal(value: Decimal) -> Decimal:
    if not value.is_finite() or value.adjusted() >= MAX_MAGNITUDE_DIGITS:
        return Decimal(0)
    return value


def _bounded_integer(value: int) -> int:
    return value if -_MAX_INTEGER < value < _MAX_INTEGER else 0


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a numeric-like value to Decimal.

    Handles:
    - Numbers (int, float, Decimal); NaN and infinities become 0
    - Numeric strings with thousands separators ("1,234.56")
    - Sentinel text such as "NA", empty strings and None (all 0)
    - Magnitudes of 1e20 or more (0)

    Never raises.

    Args:
        value: Raw value from a statement record

    Returns:
        Finite Decimal, 0 when the value cannot be interpreted
    """
    if value is None or isinstance(value, bool):
        return Decimal(0)

    if isinstance(value, Decimal):
        return _bounded_decimal(value)

    if isinstance(value, int):
        return Decimal(_bounded_integer(value))

    if isinstance(value, float):
        return _bounded_decimal(Decimal(repr(value))) if math.isfinite(value) else Decimal(0)

    match = _DECIMAL_PREFIX.match(_clean_text(value))
    if not match:
        return Decimal(0)

    try:
        parsed = Decimal(match.group())
    except InvalidOperation:
        return Decimal(0)

    return _bounded_decimal(parsed)


def to_integer(value: Any) -> int:
    """
    Coerce an integer-like value to int.

    Numbers are floored; text keeps only its leading whole-number part,
    so "1,234.56" becomes 1234. Out-of-range magnitudes become 0.
    Never raises.
    """
    if value is None or isinstance(value, bool):
        return 0

    if isinstance(value, int):
        return _bounded_integer(value)

    if isinstance(value, float):
        return _bounded_integer(math.floor(value)) if math.isfinite(value) else 0

    if isinstance(value, Decimal):
        return math.floor(_bounded_decimal(value))

    match = _INTEGER_PREFIX.match(_clean_text(value))
    if not match:
        return 0

    text = match.group()
    digits = text.lstrip("+-").lstrip("0") or "0"
    if len(digits) > MAX_MAGNITUDE_DIGITS:
        return 0
    number = int(digits)
    return _bounded_integer(-number if text.startswith("-") else number)


def month_abbreviation(month: Any) -> str:
    """
    Map a month number to its three-letter abbreviation.

    Values outside 1-12 are returned as their literal text form.
    """
    if isinstance(month, float) and month.is_integer():
        month = int(month)
    return _MONTH_LOOKUP.get(str(month), str(month))


def normalize_month(value: Any) -> int:
    """Return the statement month as 1-12, defaulting to January."""
    month = to_integer(value)
    return month if 1 <= month <= 12 else DEFAULT_MONTH


def normalize_year(value: Any) -> int:
    """Return a usable calendar year, defaulting to 2025."""
    year = to_integer(value)
    return year if 1 <= year <= 9999 else DEFAULT_YEAR


def format_us_date(month: int, day: int, year: int) -> str:
    """Format as M/D/YYYY without leading zeros."""
    return f"{month}/{day}/{year}"


def month_date_range(month: Any, year: Any) -> tuple[str, str]:
    """
    Get the first and last calendar day of a statement month.

    Args:
        month: Raw statement month
        year: Raw statement year

    Returns:
        Tuple of (first_date, last_date) formatted as M/D/YYYY
    """
    month_num = normalize_month(month)
    year_num = normalize_year(year)
    last_day = calendar.monthrange(year_num, month_num)[1]
    return (
        format_us_date(month_num, 1, year_num),
        format_us_date(month_num, last_day, year_num),
    )


def display_filename(filename: str | None) -> str:
    """Strip the parsing-agent suffix from a source filename."""
    if not filename:
        return ""
    return PARSING_RESULT_SUFFIX.sub("", filename)
