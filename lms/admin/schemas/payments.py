from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Literal
from pydantic import BaseModel, Field, ConfigDict

from lms.admin.models.payments import PaymentMethod, PaymentStatus


class PaymentCreate(BaseModel):
    """Ad-hoc payment added to an existing enrollment"""
    amount: Decimal = Field(..., gt=0)
    method: PaymentMethod = PaymentMethod.CARD
    due_date: Optional[datetime] = Field(None, description="Defaults to now")
    status: Literal["PENDING", "PAID"] = "PENDING"
    description: Optional[str] = Field(None, max_length=1000)
    transaction_id: Optional[str] = Field(None, max_length=255)


class PaymentStatusUpdate(BaseModel):
    """Requested status transition"""
    status: PaymentStatus
    transaction_id: Optional[str] = Field(None, max_length=255)


class PaymentRead(BaseModel):
    id: int
    enrollment_id: int
    amount: Decimal
    currency: str
    method: PaymentMethod
    status: PaymentStatus
    due_date: datetime
    paid_at: Optional[datetime] = None
    transaction_id: Optional[str] = None
    description: Optional[str] = None
    installment_number: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentSummaryRead(BaseModel):
    """Aggregates derived from the live payment rows of one enrollment"""
    total_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    payment_percentage: Decimal
    payment_status: Literal["PENDING", "PARTIAL", "PAID"]
    currency: str

    model_config = ConfigDict(from_attributes=True)


class EnrollmentPaymentsResponse(BaseModel):
    enrollment_id: int
    payments: List[PaymentRead]
    summary: PaymentSummaryRead


class PaymentListResponse(BaseModel):
    """Paginated list of payments"""
    payments: List[PaymentRead]
    total: int
    page: int
    size: int
    pages: int
    filters: Optional[dict] = None
