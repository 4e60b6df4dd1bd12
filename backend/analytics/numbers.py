"""Numeric helpers shared by analytics and ingestion.

Every helper returns a finite value: zero denominators and unparseable input
map to a default instead of NaN or infinity.
"""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Union

Number = Union[int, float]

NOT_AVAILABLE = "N/A"

_INTEGER_TEXT = re.compile(r"^[+-]?\d+$")


def parse_int(value: Any) -> int:
    """Parse a stored counter (decimal string, int, float or None) into an int.

    Thousands separators are stripped, fractions truncated toward zero, and
    anything unparseable becomes 0. Python ints are unbounded, so counters
    beyond 2**53 keep full precision.
    """
    if value is None or isinstance(value, bool):
        return int(value or 0)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    text = str(value).strip().replace(",", "")
    if not text:
        return 0
    if _INTEGER_TEXT.match(text):
        return int(text)
    try:
        return int(Decimal(text))
    except (InvalidOperation, ValueError, OverflowError):
        return 0


def finite(value: Number, default: Number = 0) -> Number:
    if isinstance(value, float) and not math.isfinite(value):
        return default
    return value


def safe_div(numerator: Number, denominator: Number, default: Number = 0) -> float:
    """numerator / denominator, or ``default`` for a zero denominator or non-finite result."""
    if not denominator:
        return default
    try:
        result = numerator / denominator
    except (OverflowError, ZeroDivisionError):
        return default
    return result if math.isfinite(result) else default


def round_half_up(value: Number, digits: int = 0) -> Number:
    """Round halves away from zero on the positive side (1.5 -> 2, -1.5 -> -1)."""
    if not math.isfinite(value):
        return 0
    if digits == 0:
        return int(math.floor(value + 0.5))
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def ratio_or_na(numerator: Number, denominator: Number, digits: int = 2) -> str:
    """Ratio formatted to ``digits`` decimals, or "N/A" when the denominator is zero."""
    if not denominator:
        return NOT_AVAILABLE
    result = safe_div(numerator, denominator, default=0)
    return f"{result:.{digits}f}"


def percent_or_zero(numerator: Number, denominator: Number, digits: int = 1) -> str:
    """Percentage formatted to ``digits`` decimals, or "0" when the denominator is zero."""
    if not denominator:
        return "0"
    return f"{safe_div(numerator, denominator) * 100:.{digits}f}"
