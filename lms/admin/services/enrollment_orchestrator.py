"""
Enrollment creation workflow.

Creation runs as a sequence of named steps:

    resolve_student -> resolve_price -> check_duplicate_enrollment ->
    compute_breakdown -> persist_enrollment -> generate_schedule ->
    record_first_payment

Every step is logged with its outcome. A failing step is reported in the
error details as ``failed_step`` together with the steps completed before it.

Transaction boundaries:
    * default: a new student is committed by resolve_student and survives a
      later failure; persist_enrollment, generate_schedule and
      record_first_payment share one commit, so an enrollment never exists
      without its schedule.
    * atomic: every step runs in one transaction; nothing is kept on failure.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.config import (
    ENROLLMENT_ATOMIC,
    ENROLLMENT_INITIAL_STATUS,
    PRICING_CLAMP_AMOUNT_DISCOUNT,
)
from lms.core.exceptions import (
    BaseAppException,
    DuplicateEnrollmentError,
    InvalidTransitionError,
    ValidationError,
)
from lms.core.logging_utils import log_business_event
from lms.core.money import format_money
from lms.admin.crud.courses import get_course_by_id
from lms.admin.crud.enrollments import find_open_enrollment, get_enrollment_by_id
from lms.admin.crud.payments import get_enrollment_payments, has_paid_payments
from lms.admin.models.courses import Course
from lms.admin.models.enrollments import (
    ENROLLMENT_TRANSITIONS,
    Enrollment,
    EnrollmentFormat,
    EnrollmentStatus,
)
from lms.admin.models.payments import Payment, PaymentStatus
from lms.admin.models.students import Student
from lms.admin.schemas.enrollments import (
    EnrollmentCreate,
    EnrollmentQuoteRequest,
    EnrollmentQuoteResponse,
    ScheduledPaymentRead,
)
from lms.admin.schemas.pricing import PriceBreakdownRead
from lms.admin.schemas.settings import BillingSettings
from lms.admin.services import format_resolver
from lms.admin.services.notification_service import (
    notify_enrollment_created,
    notify_payment_recorded,
)
from lms.admin.services.payment_ledger import (
    PaymentSummary,
    ScheduledPayment,
    build_schedule,
    materialize_schedule,
    summarize_payments,
)
from lms.admin.services.pricing_engine import DiscountType, PriceBreakdown, compute_breakdown
from lms.admin.services.settings_provider import SettingsProvider, settings_provider
from lms.admin.services.student_resolver import resolve_student

logger = logging.getLogger(__name__)

PAID_PAYMENTS_WARNING = (
    "Enrollment has paid payments. Refunds are not issued automatically; "
    "refund each payment separately."
)


class EnrollmentStep(str, Enum):
    RESOLVE_STUDENT = "resolve_student"
    RESOLVE_PRICE = "resolve_price"
    CHECK_DUPLICATE = "check_duplicate_enrollment"
    COMPUTE_BREAKDOWN = "compute_breakdown"
    PERSIST_ENROLLMENT = "persist_enrollment"
    GENERATE_SCHEDULE = "generate_schedule"
    RECORD_FIRST_PAYMENT = "record_first_payment"


@dataclass
class EnrollmentResult:
    enrollment: Enrollment
    payments: List[Payment]
    summary: PaymentSummary
    student_created: bool
    steps: List[str] = field(default_factory=list)


@dataclass
class _WorkflowState:
    """Values produced by completed steps"""
    student: Optional[Student] = None
    student_id: Optional[int] = None
    student_created: bool = False
    course: Optional[Course] = None
    format: Optional[EnrollmentFormat] = None
    base_price: Any = None
    settings: Optional[BillingSettings] = None
    breakdown: Optional[PriceBreakdown] = None
    enrollment: Optional[Enrollment] = None
    schedule: List[ScheduledPayment] = field(default_factory=list)
    payments: List[Payment] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)


def select_format(course: Course, requested: Optional[EnrollmentFormat]) -> EnrollmentFormat:
    """The requested format, or the course's only format when none was given"""
    formats = format_resolver.require_pricing(course)
    if requested is not None:
        return EnrollmentFormat(requested)

    selected = format_resolver.auto_select_format(course)
    if selected is None:
        raise ValidationError(
            "Format is required when a course offers more than one format",
            {"field": "format", "available_formats": sorted(f.value for f in formats)},
        )
    return selected


class EnrollmentOrchestrator:
    def __init__(
        self,
        settings: SettingsProvider = settings_provider,
        initial_status: str = ENROLLMENT_INITIAL_STATUS,
        atomic: bool = ENROLLMENT_ATOMIC,
        clamp_amount_discount: bool = PRICING_CLAMP_AMOUNT_DISCOUNT,
    ):
        initial_status = EnrollmentStatus(initial_status)
        if initial_status not in (EnrollmentStatus.PENDING, EnrollmentStatus.ACTIVE):
            raise ValueError("Initial enrollment status must be PENDING or ACTIVE")

        self.settings = settings
        self.initial_status = initial_status
        self.atomic = atomic
        self.clamp_amount_discount = clamp_amount_discount

    async def _run_step(
        self,
        step: EnrollmentStep,
        state: _WorkflowState,
        action: Callable[[], Awaitable[Any]],
    ) -> Any:
        started = time.time()
        try:
            result = await action()
        except BaseAppException as e:
            e.details.setdefault("failed_step", step.value)
            e.details.setdefault("completed_steps", list(state.completed))
            logger.warning(
                f"Enrollment step {step.value} failed: {e.message}",
                extra={"step": step.value, "error_code": e.error_code, "outcome": "failed"},
            )
            raise
        except Exception as e:
            logger.error(
                f"Enrollment step {step.value} failed: {str(e)}",
                extra={"step": step.value, "exception_type": type(e).__name__, "outcome": "failed"},
            )
            raise

        state.completed.append(step.value)
        logger.info(
            f"Enrollment step {step.value} completed",
            extra={
                "step": step.value,
                "outcome": "ok",
                "duration_ms": round((time.time() - started) * 1000, 2),
            },
        )
        return result

    async def create(self, session: AsyncSession, request: EnrollmentCreate) -> EnrollmentResult:
        """
        Create an enrollment with its pricing snapshot and payment schedule.

        Raises:
            DuplicateEmailError: new student details reuse a registered email
            DuplicateEnrollmentError: the student already holds an open
                enrollment for this course and format
            NoPricingConfiguredError, FormatNotAvailableError: course pricing
            InvalidInputError: discount or installment count out of range
            NotFoundError: unknown student or course id
        """
        state = _WorkflowState()

        async def resolve_student_step():
            state.student, state.student_created = await resolve_student(
                session,
                student_id=request.student_id,
                new_student=request.new_student,
                commit=not self.atomic,
            )
            state.student_id = state.student.id

        async def resolve_price_step():
            state.course = await get_course_by_id(session, request.course_id)
            state.format = select_format(state.course, request.format)
            state.base_price = format_resolver.base_price_for(state.course, state.format)

        async def check_duplicate_step():
            if state.student_created:
                return
            existing = await find_open_enrollment(
                session, state.student.id, state.course.id, state.format
            )
            if existing:
                raise DuplicateEnrollmentError(
                    state.student.id, state.course.id, state.format.value, existing.id
                )

        async def compute_breakdown_step():
            state.settings = await self.settings.get_billing_settings(session)
            breakdown = compute_breakdown(
                state.base_price,
                request.discount.to_discount(),
                state.settings.tax_rate,
                clamp_amount_discount=self.clamp_amount_discount,
            )
            state.breakdown = breakdown.rounded(state.settings.currency)

        async def persist_enrollment_step():
            breakdown = state.breakdown
            enrollment = Enrollment(
                student_id=state.student.id,
                course_id=state.course.id,
                format=state.format,
                session_count=request.session_count,
                session_duration=request.session_duration,
                base_price=breakdown.base_price,
                discount_type=breakdown.discount_type,
                discount_value=(
                    None if breakdown.discount_type == DiscountType.NONE else breakdown.discount_value
                ),
                discount_amount=breakdown.discount_amount,
                subtotal=breakdown.subtotal,
                tax_rate=breakdown.tax_rate,
                tax_amount=breakdown.tax_amount,
                final_price=breakdown.final_price,
                currency=state.settings.currency,
                timezone=state.settings.timezone,
                status=self.initial_status,
                preferred_days=list(request.preferred_days),
                preferred_times=list(request.preferred_times),
                notes=request.notes,
            )
            session.add(enrollment)
            await session.flush()
            state.enrollment = enrollment

        async def generate_schedule_step():
            state.schedule = build_schedule(
                state.enrollment.final_price,
                state.enrollment.currency,
                installments=request.payment_plan.installments,
            )

        async def record_first_payment_step():
            first = request.first_payment
            if first.mark_paid and not state.schedule:
                logger.info(
                    "First payment marked as paid but the schedule is empty",
                    extra={"enrollment_id": state.enrollment.id},
                )
            state.payments = materialize_schedule(
                session,
                state.enrollment,
                state.schedule,
                method=first.method,
                mark_first_paid=first.mark_paid,
                transaction_id=first.transaction_id,
            )
            await session.flush()

        steps: List[Tuple[EnrollmentStep, Callable[[], Awaitable[Any]]]] = [
            (EnrollmentStep.RESOLVE_STUDENT, resolve_student_step),
            (EnrollmentStep.RESOLVE_PRICE, resolve_price_step),
            (EnrollmentStep.CHECK_DUPLICATE, check_duplicate_step),
            (EnrollmentStep.COMPUTE_BREAKDOWN, compute_breakdown_step),
            (EnrollmentStep.PERSIST_ENROLLMENT, persist_enrollment_step),
            (EnrollmentStep.GENERATE_SCHEDULE, generate_schedule_step),
            (EnrollmentStep.RECORD_FIRST_PAYMENT, record_first_payment_step),
        ]

        try:
            for step, action in steps:
                await self._run_step(step, state, action)
            await session.commit()
        except Exception:
            await session.rollback()
            if state.student_created and not self.atomic:
                logger.warning(
                    "Enrollment creation failed after the student was created",
                    extra={"student_id": state.student_id, "completed_steps": state.completed},
                )
            raise

        enrollment = await get_enrollment_by_id(session, state.enrollment.id)
        payments = await get_enrollment_payments(session, enrollment.id)
        summary = summarize_payments(enrollment.final_price, payments, enrollment.currency)

        log_business_event(
            "enrollment_created",
            "enrollment",
            enrollment.id,
            {
                "student_id": enrollment.student_id,
                "course_id": enrollment.course_id,
                "format": enrollment.format.value,
                "final_price": str(enrollment.final_price),
                "currency": enrollment.currency,
                "payments": len(payments),
                "student_created": state.student_created,
            },
        )

        await notify_enrollment_created(enrollment, enrollment.student, enrollment.course)
        for payment in payments:
            if payment.status == PaymentStatus.PAID:
                await notify_payment_recorded(payment)

        return EnrollmentResult(
            enrollment=enrollment,
            payments=payments,
            summary=summary,
            student_created=state.student_created,
            steps=list(state.completed),
        )

    async def quote(self, session: AsyncSession, request: EnrollmentQuoteRequest) -> EnrollmentQuoteResponse:
        """Price and schedule preview; nothing is persisted"""
        course = await get_course_by_id(session, request.course_id)
        format = select_format(course, request.format)
        base_price = format_resolver.base_price_for(course, format)
        settings = await self.settings.get_billing_settings(session)

        breakdown = compute_breakdown(
            base_price,
            request.discount.to_discount(),
            settings.tax_rate,
            clamp_amount_discount=self.clamp_amount_discount,
        ).rounded(settings.currency)
        schedule = build_schedule(
            breakdown.final_price, settings.currency, installments=request.payment_plan.installments
        )

        return EnrollmentQuoteResponse(
            course_id=course.id,
            format=format,
            pricing=PriceBreakdownRead(
                **breakdown.model_dump(),
                currency=settings.currency,
                formatted_final_price=format_money(breakdown.final_price, settings.currency),
            ),
            schedule=[ScheduledPaymentRead(**entry.model_dump()) for entry in schedule],
        )


async def change_status(
    session: AsyncSession,
    enrollment_id: int,
    target: EnrollmentStatus,
    reason: Optional[str] = None,
) -> Tuple[Enrollment, bool]:
    """
    Move an enrollment along ENROLLMENT_TRANSITIONS.

    Returns (enrollment, has_paid_payments). The flag is only computed for a
    cancellation, where paid payments call for a manual refund.
    """
    enrollment = await get_enrollment_by_id(session, enrollment_id)
    current = EnrollmentStatus(enrollment.status)
    target = EnrollmentStatus(target)

    if current == target:
        return enrollment, False

    if target not in ENROLLMENT_TRANSITIONS[current]:
        raise InvalidTransitionError("enrollment", enrollment.id, current.value, target.value)

    paid = False
    if target == EnrollmentStatus.CANCELLED:
        paid = await has_paid_payments(session, enrollment.id)
        enrollment.cancellation_reason = reason

    enrollment.status = target
    await session.commit()
    enrollment = await get_enrollment_by_id(session, enrollment.id)

    log_business_event(
        "enrollment_status_changed",
        "enrollment",
        enrollment.id,
        {"from": current.value, "to": target.value, "reason": reason, "has_paid_payments": paid},
    )
    if paid:
        logger.warning(
            f"Enrollment {enrollment.id} cancelled with paid payments",
            extra={"enrollment_id": enrollment.id},
        )
    return enrollment, paid


async def cancel_enrollment(
    session: AsyncSession, enrollment_id: int, reason: Optional[str] = None
) -> Tuple[Enrollment, bool]:
    return await change_status(session, enrollment_id, EnrollmentStatus.CANCELLED, reason)


def cancellation_warning(has_paid: bool) -> Optional[str]:
    return PAID_PAYMENTS_WARNING if has_paid else None


enrollment_orchestrator = EnrollmentOrchestrator()


def get_enrollment_orchestrator() -> EnrollmentOrchestrator:
    """FastAPI dependency"""
    return enrollment_orchestrator
