"""Payment ledger tests against an in-memory database."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select, update

from lms.core.exceptions import (
    BusinessLogicError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from lms.admin.models.enrollments import EnrollmentFormat, EnrollmentStatus
from lms.admin.models.payments import Payment, PaymentMethod, PaymentStatus
from lms.admin.schemas.enrollments import EnrollmentCreate
from lms.admin.services import payment_ledger
from lms.admin.services.enrollment_orchestrator import cancel_enrollment

pytestmark = pytest.mark.integration


@pytest_asyncio.fixture
async def enrollment_result(session, orchestrator, course, student):
    """ONE_TO_ONE enrollment of 1180.00 GBP in 3 installments."""
    return await orchestrator.create(
        session,
        EnrollmentCreate(
            student_id=student.id,
            course_id=course.id,
            format=EnrollmentFormat.ONE_TO_ONE,
            payment_plan={"type": "INSTALLMENTS", "installments": 3},
        ),
    )


class TestPaymentTransitions:
    """Payment status state machine."""

    @pytest.mark.asyncio
    async def test_mark_as_paid_is_idempotent(self, session, enrollment_result):
        """Second mark_as_paid returns the record unchanged."""
        payment_id = enrollment_result.payments[0].id

        first = await payment_ledger.mark_as_paid(session, payment_id, "txn-1")
        paid_at = first.paid_at
        second = await payment_ledger.mark_as_paid(session, payment_id, "txn-2")

        assert first.status == PaymentStatus.PAID
        assert paid_at is not None
        assert second.paid_at == paid_at
        assert second.transaction_id == "txn-1"

    @pytest.mark.asyncio
    async def test_refund_is_terminal(self, session, enrollment_result):
        payment_id = enrollment_result.payments[0].id
        await payment_ledger.mark_as_paid(session, payment_id)

        refunded = await payment_ledger.refund(session, payment_id)
        assert refunded.status == PaymentStatus.REFUNDED

        with pytest.raises(InvalidTransitionError) as exc_info:
            await payment_ledger.mark_as_paid(session, payment_id)

        assert exc_info.value.status_code == 409
        assert exc_info.value.details["current_status"] == "REFUNDED"

    @pytest.mark.asyncio
    async def test_failed_is_terminal(self, session, enrollment_result):
        payment_id = enrollment_result.payments[1].id

        failed = await payment_ledger.mark_as_failed(session, payment_id)
        assert failed.status == PaymentStatus.FAILED
        assert failed.paid_at is None

        for target in (PaymentStatus.PAID, PaymentStatus.PENDING, PaymentStatus.REFUNDED):
            with pytest.raises(InvalidTransitionError):
                await payment_ledger.transition(session, payment_id, target)

        assert (await payment_ledger.mark_as_failed(session, payment_id)).status == PaymentStatus.FAILED

    @pytest.mark.asyncio
    async def test_pending_cannot_be_refunded(self, session, enrollment_result):
        with pytest.raises(InvalidTransitionError):
            await payment_ledger.refund(session, enrollment_result.payments[0].id)

    @pytest.mark.asyncio
    async def test_paid_cannot_go_back_to_pending(self, session, enrollment_result):
        payment_id = enrollment_result.payments[0].id
        await payment_ledger.mark_as_paid(session, payment_id)

        with pytest.raises(InvalidTransitionError):
            await payment_ledger.transition(session, payment_id, PaymentStatus.PENDING)

    @pytest.mark.asyncio
    async def test_unknown_payment(self, session):
        with pytest.raises(NotFoundError):
            await payment_ledger.mark_as_paid(session, 999)


class TestSummary:
    """Summaries follow the live payment rows."""

    @pytest.mark.asyncio
    async def test_summary_tracks_status_changes(self, session, enrollment_result):
        payments = enrollment_result.payments
        assert [p.amount for p in payments] == [
            Decimal("393.33"),
            Decimal("393.33"),
            Decimal("393.34"),
        ]

        summary = await payment_ledger.summarize(session, enrollment_result.enrollment.id)
        assert summary.total_amount == Decimal("1180.00")
        assert summary.payment_status == "PENDING"

        await payment_ledger.mark_as_paid(session, payments[0].id)
        summary = await payment_ledger.summarize(session, enrollment_result.enrollment.id)
        assert summary.paid_amount == Decimal("393.33")
        assert summary.pending_amount == Decimal("786.67")
        assert summary.payment_status == "PARTIAL"

        await payment_ledger.refund(session, payments[0].id)
        summary = await payment_ledger.summarize(session, enrollment_result.enrollment.id)
        assert summary.paid_amount == 0
        assert summary.payment_status == "PENDING"

    @pytest.mark.asyncio
    async def test_list_payments_in_schedule_order(self, session, enrollment_result):
        payments = await payment_ledger.list_payments(session, enrollment_result.enrollment.id)

        assert [p.installment_number for p in payments] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_list_payments_unknown_enrollment(self, session):
        with pytest.raises(NotFoundError):
            await payment_ledger.list_payments(session, 404)


class TestAddPayment:
    """Ad-hoc payments."""

    @pytest.mark.asyncio
    async def test_add_paid_payment(self, session, enrollment_result):
        enrollment = enrollment_result.enrollment

        payment = await payment_ledger.add_payment(
            session,
            enrollment.id,
            Decimal("50"),
            method=PaymentMethod.CASH,
            initial_status=PaymentStatus.PAID,
            transaction_id="cash-001",
            description="Workbook",
        )

        assert payment.status == PaymentStatus.PAID
        assert payment.paid_at is not None
        assert payment.currency == enrollment.currency
        assert payment.amount == Decimal("50.00")
        assert payment.installment_number is None

        summary = await payment_ledger.summarize(session, enrollment.id)
        assert summary.paid_amount == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_add_pending_payment(self, session, enrollment_result):
        payment = await payment_ledger.add_payment(
            session, enrollment_result.enrollment.id, "19.99"
        )

        assert payment.status == PaymentStatus.PENDING
        assert payment.paid_at is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-10", "0.001"])
    async def test_amount_must_be_positive(self, session, enrollment_result, amount):
        with pytest.raises(InvalidInputError):
            await payment_ledger.add_payment(
                session, enrollment_result.enrollment.id, Decimal(amount)
            )

    @pytest.mark.asyncio
    async def test_cannot_create_as_failed(self, session, enrollment_result):
        with pytest.raises(ValidationError):
            await payment_ledger.add_payment(
                session,
                enrollment_result.enrollment.id,
                Decimal("10"),
                initial_status=PaymentStatus.FAILED,
            )

    @pytest.mark.asyncio
    async def test_rejected_for_cancelled_enrollment(self, session, enrollment_result):
        enrollment, _ = await cancel_enrollment(session, enrollment_result.enrollment.id, "Moved away")
        assert enrollment.status == EnrollmentStatus.CANCELLED

        with pytest.raises(BusinessLogicError):
            await payment_ledger.add_payment(session, enrollment.id, Decimal("10"))


class TestConcurrentTransitions:
    """A status change written by another request between read and write."""

    @staticmethod
    async def change_behind_session(session, payment_id, **values):
        """Update the row without touching the copy already loaded in the session."""
        await session.execute(
            update(Payment)
            .where(Payment.id == payment_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await session.commit()

    @pytest.mark.asyncio
    async def test_second_mark_as_paid_keeps_first_record(self, session, enrollment_result):
        payment_id = enrollment_result.payments[0].id
        first_paid_at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        await self.change_behind_session(
            session,
            payment_id,
            status=PaymentStatus.PAID,
            transaction_id="txn-first",
            paid_at=first_paid_at,
        )

        result = await payment_ledger.mark_as_paid(session, payment_id, "txn-second")

        assert result.status == PaymentStatus.PAID
        assert result.transaction_id == "txn-first"
        assert result.paid_at.replace(tzinfo=None) == first_paid_at.replace(tzinfo=None)

        stored = (
            await session.execute(select(Payment.transaction_id).where(Payment.id == payment_id))
        ).scalar_one()
        assert stored == "txn-first"

    @pytest.mark.asyncio
    async def test_payment_failed_meanwhile_cannot_be_paid(self, session, enrollment_result):
        payment_id = enrollment_result.payments[1].id
        await self.change_behind_session(session, payment_id, status=PaymentStatus.FAILED)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await payment_ledger.mark_as_paid(session, payment_id, "txn-late")

        assert exc_info.value.details["current_status"] == "FAILED"
        status = (
            await session.execute(select(Payment.status).where(Payment.id == payment_id))
        ).scalar_one()
        assert status == PaymentStatus.FAILED


class TestCancelledEnrollmentPayments:
    """Payments of a cancelled enrollment."""

    @pytest.mark.asyncio
    async def test_pending_payment_cannot_be_paid(self, session, enrollment_result):
        enrollment_id = enrollment_result.enrollment.id
        payment_id = enrollment_result.payments[0].id
        await cancel_enrollment(session, enrollment_id, "Moved away")

        with pytest.raises(BusinessLogicError):
            await payment_ledger.mark_as_paid(session, payment_id, "txn-after-cancel")

        failed = await payment_ledger.mark_as_failed(session, payment_id)
        assert failed.status == PaymentStatus.FAILED

    @pytest.mark.asyncio
    async def test_paid_payment_can_be_refunded(self, session, enrollment_result):
        enrollment_id = enrollment_result.enrollment.id
        payment_id = enrollment_result.payments[0].id
        await payment_ledger.mark_as_paid(session, payment_id)
        await cancel_enrollment(session, enrollment_id, "Moved away")

        refunded = await payment_ledger.refund(session, payment_id)

        assert refunded.status == PaymentStatus.REFUNDED
