"""
Pricing engine: base price + discount + tax rate -> price breakdown.

Pure computation. Values are carried in full ``Decimal`` precision;
``PriceBreakdown.rounded`` is the one place they are cut to the currency's
minor unit, right before persistence or display.
"""
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from lms.core.exceptions import InvalidInputError
from lms.core.money import Number, quantize_money, to_decimal

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


class DiscountType(str, Enum):
    NONE = "NONE"
    PERCENTAGE = "PERCENTAGE"
    AMOUNT = "AMOUNT"


class Discount(BaseModel):
    """A discount request: none, a percentage of the base price, or a fixed amount"""

    model_config = ConfigDict(frozen=True)

    type: DiscountType = DiscountType.NONE
    value: Decimal = ZERO

    @classmethod
    def none(cls) -> "Discount":
        return cls()

    @classmethod
    def percentage(cls, value: Number) -> "Discount":
        return cls(type=DiscountType.PERCENTAGE, value=to_decimal(value))

    @classmethod
    def amount(cls, value: Number) -> "Discount":
        return cls(type=DiscountType.AMOUNT, value=to_decimal(value))


class PriceBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_price: Decimal
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Decimal
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    final_price: Decimal

    def rounded(self, currency: str) -> "PriceBreakdown":
        """Copy with every money field rounded to the currency's minor unit"""
        return self.model_copy(
            update={
                "base_price": quantize_money(self.base_price, currency),
                "discount_amount": quantize_money(self.discount_amount, currency),
                "subtotal": quantize_money(self.subtotal, currency),
                "tax_amount": quantize_money(self.tax_amount, currency),
                "final_price": quantize_money(self.final_price, currency),
            }
        )


def _discount_amount(base_price: Decimal, discount: Discount, clamp_amount_discount: bool) -> Decimal:
    if discount.type == DiscountType.NONE:
        return ZERO

    value = to_decimal(discount.value)
    if value < 0:
        raise InvalidInputError("discount.value", "Discount value cannot be negative", value)

    if discount.type == DiscountType.PERCENTAGE:
        if value > HUNDRED:
            raise InvalidInputError(
                "discount.value", "Percentage discount must be between 0 and 100", value
            )
        return base_price * value / HUNDRED

    if value > base_price:
        if not clamp_amount_discount:
            raise InvalidInputError(
                "discount.value", "Discount amount cannot exceed the base price", value
            )
        return base_price
    return value


def compute_breakdown(
    base_price: Number,
    discount: Optional[Discount] = None,
    tax_rate: Number = ZERO,
    clamp_amount_discount: bool = True,
) -> PriceBreakdown:
    """
    Compute the full-precision price breakdown.

    Args:
        base_price: Non-negative currency amount
        discount: Discount request; ``None`` means no discount
        tax_rate: Fraction in [0, 1]
        clamp_amount_discount: Cap an AMOUNT discount at the base price instead
            of rejecting it

    Raises:
        InvalidInputError: negative base price or discount, percentage outside
            [0, 100], tax rate outside [0, 1]
    """
    discount = discount or Discount.none()
    base = to_decimal(base_price)
    rate = to_decimal(tax_rate)

    if base < 0:
        raise InvalidInputError("base_price", "Base price cannot be negative", base)
    if rate < 0 or rate > ONE:
        raise InvalidInputError("tax_rate", "Tax rate must be between 0 and 1", rate)

    discount_amount = _discount_amount(base, discount, clamp_amount_discount)
    subtotal = base - discount_amount
    tax_amount = subtotal * rate
    final_price = subtotal + tax_amount

    return PriceBreakdown(
        base_price=base,
        discount_type=discount.type,
        discount_value=to_decimal(discount.value) if discount.type != DiscountType.NONE else ZERO,
        discount_amount=discount_amount,
        subtotal=subtotal,
        tax_rate=rate,
        tax_amount=tax_amount,
        final_price=final_price,
    )
