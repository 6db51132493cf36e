"""Calendar helpers for "YYYY-MM-DD" dates and "YYYY-MM" month keys.

Date ranges are compared as plain strings throughout the engine, which is
only correct for zero-padded values, so every boundary value goes through
:func:`ensure_date` or :func:`ensure_month` first.
"""
from __future__ import annotations

import calendar
import re
from datetime import date, timedelta
from functools import lru_cache
from typing import Tuple

from budget_core.errors import InvalidDateFormat

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")


def ensure_date(value: str) -> str:
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise InvalidDateFormat(value, "YYYY-MM-DD")
    try:
        date.fromisoformat(value)
    except ValueError:
        raise InvalidDateFormat(value, "YYYY-MM-DD") from None
    return value


def ensure_month(value: str) -> str:
    if not isinstance(value, str) or not _MONTH_RE.match(value) or not 1 <= int(value[5:]) <= 12:
        raise InvalidDateFormat(value, "YYYY-MM")
    return value


@lru_cache(maxsize=4096)
def previous_month(month: str) -> str:
    year, mon = int(month[:4]), int(month[5:7])
    if mon == 1:
        return f"{year - 1:04d}-12"
    return f"{year:04d}-{mon - 1:02d}"


@lru_cache(maxsize=4096)
def next_month(month: str) -> str:
    year, mon = int(month[:4]), int(month[5:7])
    if mon == 12:
        return f"{year + 1:04d}-01"
    return f"{year:04d}-{mon + 1:02d}"


def month_range(start: str, end: str) -> Tuple[str, ...]:
    """Inclusive list of month keys from ``start`` to ``end``."""
    ensure_month(start)
    ensure_month(end)
    months = []
    current = start
    while current <= end:
        months.append(current)
        current = next_month(current)
    return tuple(months)


def months_before(month: str, count: int) -> Tuple[str, ...]:
    """The ``count`` months preceding ``month``, most recent first."""
    months = []
    current = month
    for _ in range(count):
        current = previous_month(current)
        months.append(current)
    return tuple(months)


def month_bounds(month: str) -> Tuple[str, str]:
    ensure_month(month)
    year, mon = int(month[:4]), int(month[5:7])
    last = calendar.monthrange(year, mon)[1]
    return f"{month}-01", f"{month}-{last:02d}"


def previous_day(day: str) -> str:
    ensure_date(day)
    return (date.fromisoformat(day) - timedelta(days=1)).isoformat()
