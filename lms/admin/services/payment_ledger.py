"""
Payment ledger - schedule generation, status transitions and derived summaries.

Payment status moves only along PAYMENT_TRANSITIONS:

    PENDING -> PAID -> REFUNDED
    PENDING -> FAILED

Requesting the status a payment already has is a no-op that returns the
record unchanged, so repeating mark_as_paid never moves paid_at. Summaries
are recomputed from the live payment rows on every call and never stored.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.config import INSTALLMENT_INTERVAL_DAYS, MAX_INSTALLMENTS, MIN_INSTALLMENTS
from lms.core.exceptions import (
    BusinessLogicError,
    InvalidInputError,
    InvalidTransitionError,
    ValidationError,
)
from lms.core.logging_utils import log_business_event
from lms.core.money import Number, quantize_money, to_decimal
from lms.admin.crud.enrollments import get_enrollment_by_id
from lms.admin.crud.payments import get_enrollment_payments, get_payment_by_id
from lms.admin.models.enrollments import Enrollment, EnrollmentStatus
from lms.admin.models.payments import (
    INITIAL_PAYMENT_STATUSES,
    PAYMENT_TRANSITIONS,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from lms.admin.services.notification_service import notify_payment_recorded

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
PERCENT_STEP = Decimal("0.01")

FULL_PAYMENT_DESCRIPTION = "Full payment for enrollment"


class ScheduledPayment(BaseModel):
    """One not-yet-persisted entry of a payment schedule"""
    installment_number: int
    amount: Decimal
    due_date: datetime
    description: str


class PaymentSummary(BaseModel):
    total_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    payment_percentage: Decimal
    payment_status: Literal["PENDING", "PARTIAL", "PAID"]
    currency: str


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# === Schedule ===

def check_installment_count(count: int) -> None:
    if count < MIN_INSTALLMENTS or count > MAX_INSTALLMENTS:
        raise InvalidInputError(
            "payment_plan.installments",
            f"Installment count must be between {MIN_INSTALLMENTS} and {MAX_INSTALLMENTS}",
            count,
        )


def split_installments(total: Number, count: int, currency: str) -> List[Decimal]:
    """
    Split a total into ``count`` installments that add up to it exactly.

    Every installment but the last is the total divided by ``count`` and
    rounded to the currency's minor unit; the last one takes the remainder.
    100.00 / 3 gives [33.33, 33.33, 33.34].
    """
    check_installment_count(count)

    total = quantize_money(total, currency)
    share = quantize_money(total / count, currency)
    amounts = [share] * (count - 1)
    amounts.append(total - share * (count - 1))

    if any(amount <= 0 for amount in amounts):
        raise ValidationError(
            f"Price {total} {currency} is too small to split into {count} installments",
            {"field": "payment_plan.installments", "final_price": str(total), "count": count},
        )
    return amounts


def build_schedule(
    final_price: Number,
    currency: str,
    installments: Optional[int] = None,
    start: Optional[datetime] = None,
    interval_days: int = INSTALLMENT_INTERVAL_DAYS,
) -> List[ScheduledPayment]:
    """
    Payment schedule for a final price: a single payment due at ``start`` when
    ``installments`` is None, otherwise that many installments spaced
    ``interval_days`` apart. A zero price yields an empty schedule.
    """
    start = start or utcnow()
    final_price = quantize_money(final_price, currency)

    if installments is None:
        if final_price <= 0:
            return []
        return [
            ScheduledPayment(
                installment_number=1,
                amount=final_price,
                due_date=start,
                description=FULL_PAYMENT_DESCRIPTION,
            )
        ]

    check_installment_count(installments)
    if final_price <= 0:
        return []

    amounts = split_installments(final_price, installments, currency)
    return [
        ScheduledPayment(
            installment_number=index + 1,
            amount=amount,
            due_date=start + timedelta(days=interval_days * index),
            description=f"Installment {index + 1} of {installments}",
        )
        for index, amount in enumerate(amounts)
    ]


def materialize_schedule(
    session: AsyncSession,
    enrollment: Enrollment,
    schedule: List[ScheduledPayment],
    method: PaymentMethod = PaymentMethod.CARD,
    mark_first_paid: bool = False,
    transaction_id: Optional[str] = None,
) -> List[Payment]:
    """
    Add Payment rows for a schedule to the session without flushing.

    With ``mark_first_paid`` the first entry is created directly as PAID,
    stamped now and carrying ``transaction_id``.
    """
    now = utcnow()
    payments = []
    for entry in schedule:
        paid = mark_first_paid and entry.installment_number == 1
        payment = Payment(
            enrollment_id=enrollment.id,
            amount=entry.amount,
            currency=enrollment.currency,
            method=method,
            status=PaymentStatus.PAID if paid else PaymentStatus.PENDING,
            due_date=entry.due_date,
            paid_at=now if paid else None,
            transaction_id=transaction_id if paid else None,
            description=entry.description,
            installment_number=entry.installment_number,
        )
        session.add(payment)
        payments.append(payment)
    return payments


# === Payments ===

async def add_payment(
    session: AsyncSession,
    enrollment_id: int,
    amount: Number,
    method: PaymentMethod = PaymentMethod.CARD,
    due_date: Optional[datetime] = None,
    initial_status: PaymentStatus = PaymentStatus.PENDING,
    transaction_id: Optional[str] = None,
    description: Optional[str] = None,
) -> Payment:
    """
    Record an ad-hoc payment against an enrollment, in its currency.

    Raises:
        InvalidInputError: amount is not positive after rounding
        ValidationError: initial status other than PENDING or PAID
        BusinessLogicError: the enrollment is cancelled
    """
    enrollment = await get_enrollment_by_id(session, enrollment_id)

    initial_status = PaymentStatus(initial_status)
    if initial_status not in INITIAL_PAYMENT_STATUSES:
        raise ValidationError(
            "A payment can only be created as PENDING or PAID",
            {"field": "status", "value": initial_status.value},
        )

    if enrollment.status == EnrollmentStatus.CANCELLED:
        raise BusinessLogicError(
            "Cannot add a payment to a cancelled enrollment",
            {"enrollment_id": enrollment.id},
        )

    rounded = quantize_money(to_decimal(amount), enrollment.currency)
    if rounded <= 0:
        raise InvalidInputError("amount", "Payment amount must be greater than zero", amount)

    paid = initial_status == PaymentStatus.PAID
    payment = Payment(
        enrollment_id=enrollment.id,
        amount=rounded,
        currency=enrollment.currency,
        method=method,
        status=initial_status,
        due_date=due_date or utcnow(),
        paid_at=utcnow() if paid else None,
        transaction_id=transaction_id,
        description=description,
    )
    session.add(payment)
    await session.commit()
    await session.refresh(payment)

    log_business_event(
        "payment_recorded",
        "payment",
        payment.id,
        {
            "enrollment_id": enrollment.id,
            "amount": str(payment.amount),
            "currency": payment.currency,
            "status": payment.status.value,
        },
    )
    await notify_payment_recorded(payment)
    return payment


async def transition(
    session: AsyncSession,
    payment_id: int,
    target: PaymentStatus,
    transaction_id: Optional[str] = None,
) -> Payment:
    """
    Move a payment to ``target``.

    The write is conditional on the status that was read, so of two
    concurrent requests for the same move only one applies it; the other
    gets the stored record back as a no-op.

    Raises:
        InvalidTransitionError: the move is not in PAYMENT_TRANSITIONS
        BusinessLogicError: marking a payment of a cancelled enrollment as paid
    """
    payment = await get_payment_by_id(session, payment_id)
    current = PaymentStatus(payment.status)
    target = PaymentStatus(target)

    if current == target:
        return payment

    if target not in PAYMENT_TRANSITIONS[current]:
        logger.warning(
            f"Rejected payment transition {current.value} -> {target.value}",
            extra={"payment_id": payment.id},
        )
        raise InvalidTransitionError("payment", payment.id, current.value, target.value)

    if target == PaymentStatus.PAID:
        enrollment = await get_enrollment_by_id(session, payment.enrollment_id)
        if enrollment.status == EnrollmentStatus.CANCELLED:
            raise BusinessLogicError(
                "Cannot record a payment against a cancelled enrollment",
                {"enrollment_id": enrollment.id, "payment_id": payment.id},
            )

    values = {"status": target}
    if target == PaymentStatus.PAID:
        values["paid_at"] = utcnow()
        if transaction_id:
            values["transaction_id"] = transaction_id

    result = await session.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        # Another request moved the payment after it was read
        await session.rollback()
        await session.refresh(payment)
        latest = PaymentStatus(payment.status)
        logger.warning(
            f"Payment transition {current.value} -> {target.value} lost to a concurrent change, now {latest.value}",
            extra={"payment_id": payment.id},
        )
        if latest == target:
            return payment
        raise InvalidTransitionError("payment", payment.id, latest.value, target.value)

    await session.commit()
    await session.refresh(payment)

    log_business_event(
        "payment_status_changed",
        "payment",
        payment.id,
        {"from": current.value, "to": target.value, "enrollment_id": payment.enrollment_id},
    )
    if target == PaymentStatus.PAID:
        await notify_payment_recorded(payment)
    return payment


async def mark_as_paid(
    session: AsyncSession, payment_id: int, transaction_id: Optional[str] = None
) -> Payment:
    return await transition(session, payment_id, PaymentStatus.PAID, transaction_id)


async def mark_as_failed(session: AsyncSession, payment_id: int) -> Payment:
    return await transition(session, payment_id, PaymentStatus.FAILED)


async def refund(session: AsyncSession, payment_id: int) -> Payment:
    return await transition(session, payment_id, PaymentStatus.REFUNDED)


# === Summary ===

def summarize_payments(total: Number, payments: List[Payment], currency: str) -> PaymentSummary:
    """Aggregates over a payment set; only PAID payments count as paid"""
    total = quantize_money(total, currency)
    paid = sum(
        (to_decimal(p.amount) for p in payments if p.status == PaymentStatus.PAID),
        ZERO,
    )
    paid = quantize_money(paid, currency)

    if total > 0:
        percentage = min(max(paid / total * HUNDRED, ZERO), HUNDRED)
    else:
        percentage = ZERO

    if total <= 0 or paid >= total:
        status = "PAID"
    elif paid > 0:
        status = "PARTIAL"
    else:
        status = "PENDING"

    return PaymentSummary(
        total_amount=total,
        paid_amount=paid,
        pending_amount=total - paid,
        payment_percentage=percentage.quantize(PERCENT_STEP),
        payment_status=status,
        currency=currency,
    )


async def list_payments(session: AsyncSession, enrollment_id: int) -> List[Payment]:
    """Payments of an existing enrollment in schedule order"""
    await get_enrollment_by_id(session, enrollment_id)
    return await get_enrollment_payments(session, enrollment_id)


async def summarize(session: AsyncSession, enrollment_id: int) -> PaymentSummary:
    enrollment = await get_enrollment_by_id(session, enrollment_id)
    payments = await get_enrollment_payments(session, enrollment_id)
    return summarize_payments(enrollment.final_price, payments, enrollment.currency)
