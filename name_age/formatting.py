"""
Display helpers for numbers, ages and year ranges.
"""

import math
from numbers import Real
from typing import Any, Optional


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and not math.isnan(value)


def format_number(value: Any) -> str:
    """Thousands separators, e.g. ``1234567 -> "1,234,567"``; non-numbers give "0"."""
    if not _is_number(value):
        return "0"
    if float(value).is_integer():
        return f"{int(value):,}"
    # At most three decimals, trailing zeros dropped
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def format_age(age: Any) -> str:
    if not _is_number(age) or age < 0:
        return "0 years old"
    if age == 1:
        return "1 year old"
    return f"{int(age)} years old"


def format_year_range(start_year: Optional[int], end_year: Optional[int]) -> str:
    """``"1996-2024"``, a single year when equal, or "" if either is missing."""
    if not start_year or not end_year:
        return ""
    if start_year == end_year:
        return f"{start_year}"
    return f"{start_year}-{end_year}"


def ordinal_suffix(num: int) -> str:
    """English ordinal suffix: st, nd, rd or th (11th-13th included)."""
    j, k = num % 10, num % 100
    if j == 1 and k != 11:
        return "st"
    if j == 2 and k != 12:
        return "nd"
    if j == 3 and k != 13:
        return "rd"
    return "th"


def format_ordinal(num: int) -> str:
    return f"{num}{ordinal_suffix(num)}"


def percentage(value: float, total: float) -> float:
    if total == 0:
        return 0.0
    return value / total * 100


def format_percentage(value: Any, decimals: int = 1) -> str:
    if not _is_number(value):
        return "0%"
    return f"{value:.{decimals}f}%"
