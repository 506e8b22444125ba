"""Unit tests for currency rounding and display."""

from decimal import Decimal

import pytest

from lms.core.money import (
    currency_symbol,
    format_money,
    minor_unit_step,
    minor_units,
    quantize_money,
    to_decimal,
)


class TestRounding:
    def test_half_up(self):
        assert quantize_money(Decimal("33.335"), "GBP") == Decimal("33.34")
        assert quantize_money(Decimal("33.334"), "GBP") == Decimal("33.33")

    def test_zero_decimal_currency(self):
        assert minor_units("JPY") == 0
        assert minor_unit_step("JPY") == Decimal("1")
        assert quantize_money(Decimal("1500.5"), "JPY") == Decimal("1501")

    def test_unknown_currency_uses_two_places(self):
        assert minor_units("XYZ") == 2
        assert minor_unit_step("xyz") == Decimal("0.01")

    def test_to_decimal_from_float(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal("2.50") == Decimal("2.50")
        assert to_decimal(3) == Decimal("3")


class TestFormatting:
    @pytest.mark.parametrize(
        "amount,currency,expected",
        [
            (Decimal("1062"), "GBP", "£1,062.00"),
            (Decimal("99.5"), "USD", "$99.50"),
            (Decimal("1234567.891"), "EUR", "€1,234,567.89"),
            (Decimal("2500"), "INR", "₹2,500.00"),
            (Decimal("1500.4"), "JPY", "¥1,500"),
            (Decimal("10"), "SGD", "S$10.00"),
        ],
    )
    def test_format_money(self, amount, currency, expected):
        assert format_money(amount, currency) == expected

    def test_unknown_currency_falls_back_to_code(self):
        assert currency_symbol("CHF") == "CHF"
        assert format_money(Decimal("5"), "chf") == "CHF5.00"

    def test_negative_amount(self):
        assert format_money(Decimal("-12.5"), "GBP") == "-£12.50"
