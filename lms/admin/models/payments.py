"""Payment model - one row per scheduled or ad-hoc payment of an enrollment"""
from sqlalchemy import (
    Column,
    Integer,
    DateTime,
    ForeignKey,
    String,
    Numeric,
    Text,
    CheckConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum
from lms.core.database import Base


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    PAYPAL = "PAYPAL"
    STRIPE = "STRIPE"
    CASH = "CASH"
    UPI = "UPI"
    NET_BANKING = "NET_BANKING"
    WALLET = "WALLET"


# Allowed payment status moves. FAILED and REFUNDED are terminal.
PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}

# Statuses a payment may be created in
INITIAL_PAYMENT_STATUSES = (PaymentStatus.PENDING, PaymentStatus.PAID)


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_payments_amount_positive"),)
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True)

    enrollment_id = Column(
        Integer, ForeignKey("enrollments.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    method = Column(SQLEnum(PaymentMethod), nullable=False, default=PaymentMethod.CARD)
    status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)

    due_date = Column(DateTime(timezone=True), nullable=False)
    # Set only when the payment becomes PAID
    paid_at = Column(DateTime(timezone=True), nullable=True)

    transaction_id = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)

    # 1-based position in the generated schedule; NULL for ad-hoc payments
    installment_number = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    enrollment = relationship("Enrollment", back_populates="payments")

    def __repr__(self):
        return f"<Payment(id={self.id}, enrollment_id={self.enrollment_id}, amount={self.amount}, status={self.status})>"
