# Overview: Pytest coverage for decimal arithmetic helpers.

"""
Precision Tests

Quantities are sold in fractional units (eighths of an ounce, grams) and
prices carry cents, so every value must stay exact. These tests pin down:
1. Float inputs behave as their decimal literals (0.1 + 0.2 == 0.3)
2. Half-up rounding at the formatting boundary
3. Sentinels instead of exceptions for division/margin by zero
4. Form-level validation messages
"""

import logging
from decimal import Decimal

from stockledger import precision
from stockledger.precision import (
    add, subtract, multiply, divide, round2, round_to, is_zero, is_negative, is_positive,
    non_negative, calculate_margin, calculate_value, format_price, format_quantity,
    format_percentage, to_decimal, validate_number,
)


class TestArithmetic:
    def test_float_addition_is_exact(self):
        assert add(0.1, 0.2) == Decimal("0.3")
        assert format_price(add(0.1, 0.2)) == "0.30"

    def test_float_subtraction_is_exact(self):
        assert format_price(subtract(0.3, 0.1)) == "0.20"

    def test_multiply_and_divide(self):
        assert multiply(0.1, 3) == Decimal("0.3")
        assert divide(1, 4) == Decimal("0.25")

    def test_divide_by_zero_returns_zero(self):
        """Division by zero is a sentinel, never an exception."""
        assert divide(10, 0) == 0
        assert divide(10, "0.00") == 0

    def test_strings_and_thousands_separators(self):
        assert add("1,000.50", "0.50") == Decimal("1001.00")


class TestRounding:
    def test_half_up(self):
        assert round2(2.995) == Decimal("3.00")
        assert round2(2.994) == Decimal("2.99")
        assert round2(0.005) == Decimal("0.01")

    def test_never_negative_zero(self):
        assert format_price(-0.001) == "0.00"
        assert str(round_to(Decimal("-0.00004"), 4)) == "0.0000"

    def test_alias(self):
        assert precision.round_money_or_quantity(1.005) == Decimal("1.01")


class TestScenarios:
    def test_eighth_ounce_additions(self):
        total = add(add(add(add(0, 7), 7), 7), 7)
        assert format_quantity(total) == "28.00"

    def test_selling_eighths_down_to_zero(self):
        """56g sold in eight 7g portions lands on exactly zero."""
        remaining = to_decimal(56)
        for _ in range(8):
            remaining = subtract(remaining, 7)
        assert remaining == 0
        assert format_quantity(remaining) == "0.00"

    def test_fractional_gram_sales(self):
        remaining = to_decimal(3.5)
        for _ in range(35):
            remaining = subtract(remaining, 0.1)
        assert remaining == 0
        assert not is_negative(remaining)


class TestMargins:
    def test_margin(self):
        assert calculate_margin(10, 6) == Decimal("40")
        assert format_percentage(calculate_margin(10, 6)) == "40.0"

    def test_margin_with_zero_price_is_none(self):
        """No price means no margin, which is not the same as 0%."""
        assert calculate_margin(0, 5) is None
        assert format_percentage(calculate_margin(0, 5)) is None

    def test_inventory_value(self):
        assert calculate_value(12.5, 3) == Decimal("37.5")
        assert format_price(calculate_value(0.1, 3)) == "0.30"


class TestPredicates:
    def test_is_zero_uses_epsilon(self):
        assert is_zero(0)
        assert is_zero(0.005)
        assert is_zero(-0.005)
        assert not is_zero(0.01)
        assert is_zero(Decimal("0.0005"), Decimal("0.001"))

    def test_sign_checks(self):
        assert is_negative(-0.01)
        assert is_positive(0.01)
        assert not is_positive(0)

    def test_non_negative_clamps(self):
        assert non_negative(-0.005) == 0
        assert non_negative(2.5) == Decimal("2.5")


class TestCoercion:
    def test_none_is_zero(self):
        assert to_decimal(None) == 0

    def test_garbage_is_zero_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="stockledger.precision"):
            assert to_decimal("abc") == 0
        assert any("coerced to 0" in r.getMessage() for r in caplog.records)

    def test_nan_and_infinity_are_zero(self):
        assert to_decimal(float("nan")) == 0
        assert to_decimal(float("inf")) == 0

    def test_booleans_are_not_numbers(self):
        assert to_decimal(True) == 0


class TestValidateNumber:
    def test_valid_number(self):
        result = validate_number("1,234.50")
        assert result.valid
        assert result.value == Decimal("1234.50")
        assert result.error is None

    def test_invalid_number(self):
        result = validate_number("abc")
        assert not result.valid
        assert result.error == "Value must be a valid number"

    def test_infinite(self):
        assert validate_number(float("inf")).error == "Value must be finite"
        assert validate_number("Infinity").error == "Value must be finite"

    def test_negative_not_allowed(self):
        result = validate_number(-1, allow_negative=False, label="Quantity")
        assert not result.valid
        assert result.error == "Quantity cannot be negative"

    def test_zero_not_allowed(self):
        assert validate_number(0, allow_zero=False).error == "Value cannot be zero"

    def test_bounds(self):
        assert validate_number(5, min=10).error == "Value must be at least 10"
        assert validate_number(50, max=10).error == "Value must be at most 10"
        assert validate_number(10, min=10, max=10).valid
