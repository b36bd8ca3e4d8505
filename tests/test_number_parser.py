import math

import pytest

from menusales.utils.number_parser import parse_number


@pytest.mark.parametrize("raw, expected", [
    ("2.990,80", 2990.80),
    ("2,990.80", 2990.80),
    ("367,40", 367.40),
    ("2 990,80", 2990.80),
    ("£2,990.80", 2990.80),
    ("1,200", 1200.0),
    ("£3,840.00", 3840.0),
    ("1,234,567", 1234567.0),
    ("1.234.567", 1234567.0),
    ("1.234.567,89", 1234567.89),
    ("12.5", 12.5),
    ("1.2345", 12345.0),
    ("0,125", 0.125),
    ("-42,50", -42.5),
    ("GBP 12.00", 12.0),
    ("€ 1.250,00", 1250.0),
    ("2\u00a0990,80", 2990.80),
    ("2\u202f990,80", 2990.80),
    ("17", 17.0),
])
def test_display_formatted_strings(raw, expected):
    assert parse_number(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", None, "--", "-", "n/a", "   ", "£"])
def test_indeterminate_input_is_zero(raw):
    assert parse_number(raw) == 0.0


def test_numeric_input_passes_through():
    assert parse_number(1234.5) == 1234.5
    assert parse_number(7) == 7.0


def test_non_finite_numbers_are_zero():
    assert parse_number(float("nan")) == 0.0
    assert parse_number(float("inf")) == 0.0
    assert parse_number("inf") == 0.0


def test_never_raises_on_garbage():
    for raw in ["12abc,3.4.5", ",,,", "1,2,3,4.5,6", "--5", object()]:
        value = parse_number(raw)
        assert isinstance(value, float)
        assert math.isfinite(value)
