from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from lms.admin.services.pricing_engine import Discount, DiscountType


class DiscountInput(BaseModel):
    """Discount as sent by the client; range checks happen in the pricing engine"""
    type: DiscountType = DiscountType.NONE
    value: Decimal = Field(default=Decimal("0"))

    def to_discount(self) -> Discount:
        return Discount(type=self.type, value=self.value)


class PriceBreakdownRead(BaseModel):
    base_price: Decimal
    discount_type: DiscountType
    discount_value: Optional[Decimal] = None
    discount_amount: Decimal
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    final_price: Decimal
    currency: str
    formatted_final_price: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
