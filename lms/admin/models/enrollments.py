"""Enrollment model - student, course, format and a point-in-time pricing snapshot"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Numeric,
    JSON,
    Enum as SQLEnum,
    event,
    inspect,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum
from lms.core.database import Base
from lms.core.exceptions import BusinessLogicError
from lms.admin.services.pricing_engine import DiscountType


class EnrollmentFormat(str, Enum):
    """Delivery mode of a course purchase"""
    ONE_TO_ONE = "ONE_TO_ONE"
    GROUP = "GROUP"


class EnrollmentStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    SUSPENDED = "SUSPENDED"


# Allowed enrollment status moves; COMPLETED and CANCELLED are terminal
ENROLLMENT_TRANSITIONS = {
    EnrollmentStatus.PENDING: {EnrollmentStatus.ACTIVE, EnrollmentStatus.CANCELLED},
    EnrollmentStatus.ACTIVE: {
        EnrollmentStatus.COMPLETED,
        EnrollmentStatus.SUSPENDED,
        EnrollmentStatus.CANCELLED,
    },
    EnrollmentStatus.SUSPENDED: {EnrollmentStatus.ACTIVE, EnrollmentStatus.CANCELLED},
    EnrollmentStatus.COMPLETED: set(),
    EnrollmentStatus.CANCELLED: set(),
}

PRICING_SNAPSHOT_FIELDS = (
    "base_price",
    "discount_type",
    "discount_value",
    "discount_amount",
    "subtotal",
    "tax_rate",
    "tax_amount",
    "final_price",
    "currency",
)


class Enrollment(Base):
    __tablename__ = "enrollments"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True)

    student_id = Column(
        Integer, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    course_id = Column(
        Integer, ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    format = Column(SQLEnum(EnrollmentFormat), nullable=False)

    session_count = Column(Integer, nullable=False)
    session_duration = Column(Integer, nullable=False)  # minutes

    # Pricing snapshot, rounded to the currency's minor unit on write
    base_price = Column(Numeric(12, 2), nullable=False)
    discount_type = Column(SQLEnum(DiscountType), nullable=False, default=DiscountType.NONE)
    discount_value = Column(Numeric(12, 2), nullable=True)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    subtotal = Column(Numeric(12, 2), nullable=False)
    tax_rate = Column(Numeric(6, 4), nullable=False)
    tax_amount = Column(Numeric(12, 2), nullable=False)
    final_price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    timezone = Column(String(64), nullable=True)

    status = Column(SQLEnum(EnrollmentStatus), nullable=False, default=EnrollmentStatus.PENDING)

    # Scheduling preferences
    preferred_days = Column(JSON, nullable=False, default=list)
    preferred_times = Column(JSON, nullable=False, default=list)

    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    enrolled_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    student = relationship("Student", back_populates="enrollments", lazy="selectin")
    course = relationship("Course", back_populates="enrollments", lazy="selectin")
    payments = relationship(
        "Payment",
        back_populates="enrollment",
        order_by="Payment.due_date",
    )

    def __repr__(self):
        return f"<Enrollment(id={self.id}, student_id={self.student_id}, course_id={self.course_id}, status={self.status})>"


@event.listens_for(Enrollment, "before_update")
def _protect_pricing_snapshot(mapper, connection, target):
    """The pricing snapshot is written once, at creation"""
    state = inspect(target)
    changed = [
        name for name in PRICING_SNAPSHOT_FIELDS if state.attrs[name].history.has_changes()
    ]
    if changed:
        raise BusinessLogicError(
            "Enrollment pricing snapshot is immutable",
            {"enrollment_id": target.id, "fields": changed},
        )
