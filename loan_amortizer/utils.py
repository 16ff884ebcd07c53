"""Utility functions for the loan amortizer.

This module provides helpers for turning user input into Python data types and
for handling dates, including adding months and normalizing year-month strings
to ``datetime.date`` instances. The ``to_*`` helpers are tolerant: they return
``None`` instead of raising so the engine can map bad input to a zero result.
The ``parse_*`` helpers raise ``ValueError``.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, getcontext
import calendar
from typing import Optional

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

MONTHS_PER_YEAR = 12


def to_decimal(value: object) -> Optional[Decimal]:
    """Convert ``value`` to a finite ``Decimal`` or return ``None``.

    Accepts ``Decimal``, ``int``, ``float`` and numeric strings (commas are
    stripped). Booleans, NaN and infinities are rejected.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        if not cleaned:
            return None
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            return None
    else:
        return None
    if not result.is_finite():
        return None
    return result


def to_int(value: object) -> Optional[int]:
    """Convert ``value`` to an ``int`` if it is integral, else return ``None``."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    number = to_decimal(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``ValueError`` if conversion fails.
    """
    result = to_decimal(value)
    if result is None:
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    """Convert an annual percentage rate (``8`` for 8 %) to a monthly decimal."""
    return annual_rate_percent / Decimal(100) / Decimal(MONTHS_PER_YEAR)


def parse_year_month(ym: str) -> date:
    """Parse a YYYY-MM string into a ``date`` object (first day of month).

    Raises
    ------
    ValueError
        If the string is not a valid year-month.
    """
    try:
        parts = ym.split("-")
        if len(parts) != 2:
            raise ValueError(ym)
        return date(int(parts[0]), int(parts[1]), 1)
    except (AttributeError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid year-month string: {ym}") from exc


def parse_date(value: object) -> date:
    """Return ``value`` as a ``date``.

    ``date`` and ``datetime`` objects are accepted as is (datetimes are truncated
    to their date). Strings may be ``YYYY-MM-DD`` or ``YYYY-MM``; the latter
    means the first day of that month.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Invalid date: {value!r}")
    text = value.strip()
    if text.count("-") == 1:
        return parse_year_month(text)
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"Invalid date: {value}") from exc


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(start: date, end: date) -> int:
    """Whole calendar months from ``start`` to ``end``, ignoring the day."""
    return (end.year - start.year) * MONTHS_PER_YEAR + (end.month - start.month)


def convert_term_to_months(term: int, unit: str = "months") -> int:
    """Convert a loan term entered in ``months`` or ``years`` to months."""
    unit = unit.strip().lower()
    if unit in ("years", "year", "y"):
        return term * MONTHS_PER_YEAR
    if unit in ("months", "month", "m"):
        return term
    raise ValueError(f"Unknown term unit: {unit}")
