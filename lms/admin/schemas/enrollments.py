from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Literal
from pydantic import BaseModel, Field, ConfigDict, model_validator

from lms.admin.models.enrollments import EnrollmentFormat, EnrollmentStatus
from lms.admin.models.payments import PaymentMethod
from lms.admin.schemas.payments import PaymentRead, PaymentSummaryRead
from lms.admin.schemas.pricing import DiscountInput, PriceBreakdownRead
from lms.admin.schemas.students import StudentCreate, StudentIdentity

PlanType = Literal["FULL", "INSTALLMENTS"]

DEFAULT_INSTALLMENTS = 3


class PaymentPlan(BaseModel):
    """FULL, or INSTALLMENTS(n); the allowed range of n is checked by the ledger"""
    type: PlanType = "FULL"
    installments: Optional[int] = None

    @model_validator(mode="after")
    def default_installments(self):
        if self.type == "INSTALLMENTS" and self.installments is None:
            self.installments = DEFAULT_INSTALLMENTS
        if self.type == "FULL":
            self.installments = None
        return self


class FirstPayment(BaseModel):
    method: PaymentMethod = PaymentMethod.CARD
    mark_paid: bool = False
    transaction_id: Optional[str] = Field(None, max_length=255)


class EnrollmentCreate(BaseModel):
    """Create an enrollment for an existing student or a new one"""
    student_id: Optional[int] = None
    new_student: Optional[StudentCreate] = None
    course_id: int
    format: Optional[EnrollmentFormat] = Field(
        None, description="May be omitted when the course offers exactly one format"
    )
    session_count: int = Field(1, ge=1, le=500)
    session_duration: int = Field(60, ge=15, le=480, description="Minutes per session")
    discount: DiscountInput = Field(default_factory=DiscountInput)
    payment_plan: PaymentPlan = Field(default_factory=PaymentPlan)
    first_payment: FirstPayment = Field(default_factory=FirstPayment)
    preferred_days: List[str] = Field(default_factory=list)
    preferred_times: List[str] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def check_student_reference(self):
        if (self.student_id is None) == (self.new_student is None):
            raise ValueError("Provide exactly one of student_id or new_student")
        return self


class EnrollmentQuoteRequest(BaseModel):
    course_id: int
    format: Optional[EnrollmentFormat] = None
    discount: DiscountInput = Field(default_factory=DiscountInput)
    payment_plan: PaymentPlan = Field(default_factory=PaymentPlan)


class ScheduledPaymentRead(BaseModel):
    installment_number: int
    amount: Decimal
    due_date: datetime
    description: str


class EnrollmentQuoteResponse(BaseModel):
    course_id: int
    format: EnrollmentFormat
    pricing: PriceBreakdownRead
    schedule: List[ScheduledPaymentRead]


class CourseRef(BaseModel):
    id: int
    title: str

    model_config = ConfigDict(from_attributes=True)


class EnrollmentRead(BaseModel):
    id: int
    student_id: int
    course_id: int
    format: EnrollmentFormat
    session_count: int
    session_duration: int
    base_price: Decimal
    discount_type: str
    discount_value: Optional[Decimal] = None
    discount_amount: Decimal
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    final_price: Decimal
    currency: str
    timezone: Optional[str] = None
    status: EnrollmentStatus
    preferred_days: List[str] = Field(default_factory=list)
    preferred_times: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    enrolled_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    student: Optional[StudentIdentity] = None
    course: Optional[CourseRef] = None

    model_config = ConfigDict(from_attributes=True)


class EnrollmentDetail(BaseModel):
    """Enrollment with its payment schedule and derived summary"""
    enrollment: EnrollmentRead
    payments: List[PaymentRead]
    summary: PaymentSummaryRead


class EnrollmentCreateResponse(EnrollmentDetail):
    student_created: bool
    steps: List[str] = Field(default_factory=list, description="Completed workflow steps")


class EnrollmentStatusUpdate(BaseModel):
    status: EnrollmentStatus
    reason: Optional[str] = Field(None, max_length=1000)


class EnrollmentStatusResponse(BaseModel):
    enrollment: EnrollmentRead
    has_paid_payments: bool = False
    warning: Optional[str] = None


class EnrollmentListResponse(BaseModel):
    """Paginated list of enrollments"""
    enrollments: List[EnrollmentRead]
    total: int
    page: int
    size: int
    pages: int
    filters: Optional[dict] = None
