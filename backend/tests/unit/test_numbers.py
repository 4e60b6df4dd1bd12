"""Numeric helpers never leak NaN or infinity."""

from __future__ import annotations

import math

from analytics.numbers import (
    NOT_AVAILABLE,
    finite,
    parse_int,
    percent_or_zero,
    ratio_or_na,
    round_half_up,
    safe_div,
)


def test_parse_int_accepts_counters_in_every_stored_shape() -> None:
    assert parse_int("1,234,567") == 1234567
    assert parse_int(" 42 ") == 42
    assert parse_int(12.9) == 12
    assert parse_int("-3.7") == -3
    assert parse_int(None) == 0
    assert parse_int("") == 0
    assert parse_int("abc") == 0
    assert parse_int(float("nan")) == 0


def test_parse_int_keeps_precision_beyond_float_range() -> None:
    big = "123456789012345678901234567890"
    assert parse_int(big) == 123456789012345678901234567890
    assert str(parse_int(big)) == big


def test_safe_div_zero_denominator_defaults() -> None:
    assert safe_div(5, 0) == 0
    assert safe_div(5, 0, default=-1) == -1
    assert safe_div(0, 0) == 0
    assert safe_div(10, 4) == 2.5


def test_safe_div_overflow_is_finite() -> None:
    result = safe_div(10 ** 400, 3)
    assert math.isfinite(result)


def test_round_half_up_matches_display_rounding() -> None:
    assert round_half_up(1.5) == 2
    assert round_half_up(2.5) == 3
    assert round_half_up(-1.5) == -1
    assert round_half_up(1.25, 1) == 1.3
    assert round_half_up(float("inf")) == 0


def test_ratio_and_percent_sentinels() -> None:
    assert ratio_or_na(10, 0) == NOT_AVAILABLE
    assert ratio_or_na(10, 4) == "2.50"
    assert percent_or_zero(1, 0) == "0"
    assert percent_or_zero(1, 3) == "33.3"


def test_finite() -> None:
    assert finite(float("nan")) == 0
    assert finite(float("-inf"), 7) == 7
    assert finite(3.5) == 3.5
