"""Unit tests for the pricing engine."""

from decimal import Decimal

import pytest

from lms.core.exceptions import InvalidInputError
from lms.admin.services.pricing_engine import (
    Discount,
    DiscountType,
    PriceBreakdown,
    compute_breakdown,
)


class TestComputeBreakdown:
    """Tests for base price + discount + tax."""

    def test_percentage_discount_with_tax(self):
        """Base 1000, 10% off, 18% tax -> 1062."""
        breakdown = compute_breakdown(
            Decimal("1000.00"), Discount.percentage(10), Decimal("0.18")
        )

        assert breakdown.discount_amount == Decimal("100")
        assert breakdown.subtotal == Decimal("900")
        assert breakdown.tax_amount == Decimal("162")
        assert breakdown.final_price == Decimal("1062")
        assert breakdown.discount_type == DiscountType.PERCENTAGE

    def test_no_discount(self):
        breakdown = compute_breakdown(Decimal("250.00"), None, Decimal("0.2"))

        assert breakdown.discount_type == DiscountType.NONE
        assert breakdown.discount_amount == 0
        assert breakdown.discount_value == 0
        assert breakdown.final_price == Decimal("300")

    def test_amount_discount(self):
        breakdown = compute_breakdown(Decimal("500"), Discount.amount("75.50"), 0)

        assert breakdown.discount_amount == Decimal("75.50")
        assert breakdown.final_price == Decimal("424.50")

    def test_amount_discount_is_clamped_to_base_price(self):
        """An amount above the base price discounts the whole base price."""
        breakdown = compute_breakdown(Decimal("200"), Discount.amount(350), Decimal("0.18"))

        assert breakdown.discount_amount == Decimal("200")
        assert breakdown.subtotal == 0
        assert breakdown.tax_amount == 0
        assert breakdown.final_price == 0

    def test_amount_discount_rejected_without_clamping(self):
        with pytest.raises(InvalidInputError) as exc_info:
            compute_breakdown(
                Decimal("200"), Discount.amount(350), 0, clamp_amount_discount=False
            )

        assert exc_info.value.details["field"] == "discount.value"

    def test_full_percentage_discount(self):
        breakdown = compute_breakdown(Decimal("99.99"), Discount.percentage(100), Decimal("0.18"))

        assert breakdown.final_price == 0

    def test_float_inputs_are_exact(self):
        """Floats are converted through their repr, not their binary value."""
        breakdown = compute_breakdown(0.1, None, 0.2)

        assert breakdown.final_price == Decimal("0.12")

    def test_full_precision_until_rounded(self):
        breakdown = compute_breakdown(Decimal("100"), Discount.percentage(Decimal("33.333")), 0)

        assert breakdown.discount_amount == Decimal("33.333")
        rounded = breakdown.rounded("GBP")
        assert rounded.discount_amount == Decimal("33.33")
        assert rounded.final_price == Decimal("66.67")

    def test_rounded_uses_currency_minor_unit(self):
        breakdown = compute_breakdown(Decimal("1000"), Discount.percentage(15), Decimal("0.075"))

        assert breakdown.final_price == Decimal("913.75")
        assert breakdown.rounded("JPY").final_price == Decimal("914")

    def test_rounded_keeps_tax_rate(self):
        breakdown = compute_breakdown(Decimal("10"), None, Decimal("0.1825")).rounded("GBP")

        assert breakdown.tax_rate == Decimal("0.1825")

    def test_idempotent(self):
        args = (Decimal("1234.56"), Discount.percentage(12.5), Decimal("0.18"))

        assert compute_breakdown(*args) == compute_breakdown(*args)

    def test_breakdown_is_immutable(self):
        breakdown = compute_breakdown(Decimal("10"))

        with pytest.raises(Exception):
            breakdown.final_price = Decimal("0")

        assert isinstance(breakdown, PriceBreakdown)


class TestComputeBreakdownValidation:
    """Tests for rejected inputs."""

    @pytest.mark.parametrize(
        "base_price,discount,tax_rate,field",
        [
            (Decimal("-1"), None, 0, "base_price"),
            (Decimal("100"), Discount.percentage(-5), 0, "discount.value"),
            (Decimal("100"), Discount.percentage(101), 0, "discount.value"),
            (Decimal("100"), Discount.amount(-1), 0, "discount.value"),
            (Decimal("100"), None, Decimal("-0.01"), "tax_rate"),
            (Decimal("100"), None, Decimal("1.01"), "tax_rate"),
        ],
    )
    def test_invalid_input(self, base_price, discount, tax_rate, field):
        with pytest.raises(InvalidInputError) as exc_info:
            compute_breakdown(base_price, discount, tax_rate)

        assert exc_info.value.error_code == "INVALID_INPUT"
        assert exc_info.value.status_code == 400
        assert exc_info.value.details["field"] == field

    def test_boundaries_are_accepted(self):
        assert compute_breakdown(0, Discount.percentage(0), 0).final_price == 0
        assert compute_breakdown(Decimal("10"), None, 1).final_price == Decimal("20")


class TestPricingProperties:
    """Invariants over a spread of valid inputs."""

    BASE_PRICES = [Decimal("0"), Decimal("0.01"), Decimal("19.99"), Decimal("1000"), Decimal("123456.78")]
    DISCOUNTS = [
        Discount.none(),
        Discount.percentage(0),
        Discount.percentage(Decimal("12.5")),
        Discount.percentage(100),
        Discount.amount(0),
        Discount.amount(Decimal("5.55")),
        Discount.amount(Decimal("999999")),
    ]
    TAX_RATES = [Decimal("0"), Decimal("0.05"), Decimal("0.18"), Decimal("1")]

    def test_final_price_non_negative_and_discount_bounded(self):
        for base in self.BASE_PRICES:
            for discount in self.DISCOUNTS:
                for rate in self.TAX_RATES:
                    breakdown = compute_breakdown(base, discount, rate)

                    assert 0 <= breakdown.discount_amount <= base
                    assert breakdown.final_price >= 0
                    assert breakdown.final_price == (base - breakdown.discount_amount) * (1 + rate)
