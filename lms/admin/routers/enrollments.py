import math
from typing import Optional
from fastapi import APIRouter, Depends, Query, status, Request, Path
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.database import get_session
from lms.core.limits import limiter
from lms.admin.crud.enrollments import get_enrollment_by_id, get_enrollments
from lms.admin.crud.payments import get_enrollment_payments
from lms.admin.models.enrollments import EnrollmentFormat, EnrollmentStatus
from lms.admin.models.payments import PaymentStatus
from lms.admin.schemas.enrollments import (
    EnrollmentCreate,
    EnrollmentCreateResponse,
    EnrollmentDetail,
    EnrollmentListResponse,
    EnrollmentQuoteRequest,
    EnrollmentQuoteResponse,
    EnrollmentRead,
    EnrollmentStatusResponse,
    EnrollmentStatusUpdate,
)
from lms.admin.schemas.payments import (
    EnrollmentPaymentsResponse,
    PaymentCreate,
    PaymentRead,
    PaymentSummaryRead,
)
from lms.admin.services import payment_ledger
from lms.admin.services.enrollment_orchestrator import (
    EnrollmentOrchestrator,
    cancel_enrollment,
    cancellation_warning,
    change_status,
    get_enrollment_orchestrator,
)

router = APIRouter(prefix="/enrollments", tags=["Enrollments"])


async def _enrollment_detail(db: AsyncSession, enrollment_id: int) -> EnrollmentDetail:
    enrollment = await get_enrollment_by_id(db, enrollment_id)
    payments = await get_enrollment_payments(db, enrollment.id)
    summary = payment_ledger.summarize_payments(enrollment.final_price, payments, enrollment.currency)
    return EnrollmentDetail(
        enrollment=EnrollmentRead.model_validate(enrollment),
        payments=[PaymentRead.model_validate(p) for p in payments],
        summary=PaymentSummaryRead(**summary.model_dump()),
    )


@router.post("", response_model=EnrollmentCreateResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_enrollment(
    request: Request,
    data: EnrollmentCreate,
    db: AsyncSession = Depends(get_session),
    orchestrator: EnrollmentOrchestrator = Depends(get_enrollment_orchestrator),
):
    """
    Enroll a student in a course.

    - **student_id** or **new_student**: exactly one; a new student's email must not be registered
    - **course_id**: Course to enroll in
    - **format**: ONE_TO_ONE or GROUP; optional when the course offers exactly one
    - **discount**: NONE, PERCENTAGE (0-100) or AMOUNT
    - **payment_plan**: FULL, or INSTALLMENTS with 2-12 installments (default 3)
    - **first_payment**: method, and mark_paid to record installment 1 as paid now
    """
    result = await orchestrator.create(db, data)
    return EnrollmentCreateResponse(
        enrollment=EnrollmentRead.model_validate(result.enrollment),
        payments=[PaymentRead.model_validate(p) for p in result.payments],
        summary=PaymentSummaryRead(**result.summary.model_dump()),
        student_created=result.student_created,
        steps=result.steps,
    )


@router.post("/quote", response_model=EnrollmentQuoteResponse)
@limiter.limit("60/minute")
async def quote_enrollment(
    request: Request,
    data: EnrollmentQuoteRequest,
    db: AsyncSession = Depends(get_session),
    orchestrator: EnrollmentOrchestrator = Depends(get_enrollment_orchestrator),
):
    """Price breakdown and payment schedule for a prospective enrollment, without saving it"""
    return await orchestrator.quote(db, data)


@router.get("", response_model=EnrollmentListResponse)
@limiter.limit("60/minute")
async def list_enrollments(
    request: Request,
    page: int = Query(1, ge=1, description="Page number starting from 1"),
    size: int = Query(20, ge=1, le=100, description="Number of items per page"),
    search: Optional[str] = Query(None, description="Student name, email or course title"),
    status: Optional[EnrollmentStatus] = Query(None, description="Filter by status"),
    format: Optional[EnrollmentFormat] = Query(None, description="Filter by format"),
    student_id: Optional[int] = Query(None, gt=0),
    course_id: Optional[int] = Query(None, gt=0),
    db: AsyncSession = Depends(get_session),
):
    skip = (page - 1) * size

    enrollments, total = await get_enrollments(
        db,
        skip=skip,
        limit=size,
        search=search,
        status=status,
        format=format,
        student_id=student_id,
        course_id=course_id,
    )

    pages = math.ceil(total / size) if total > 0 else 1

    filters = {}
    if search:
        filters["search"] = search
    if status:
        filters["status"] = status.value
    if format:
        filters["format"] = format.value
    if student_id:
        filters["student_id"] = student_id
    if course_id:
        filters["course_id"] = course_id

    return EnrollmentListResponse(
        enrollments=[EnrollmentRead.model_validate(e) for e in enrollments],
        total=total,
        page=page,
        size=size,
        pages=pages,
        filters=filters if filters else None,
    )


@router.get("/{enrollment_id}", response_model=EnrollmentDetail)
@limiter.limit("60/minute")
async def get_enrollment(
    request: Request,
    enrollment_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_session),
):
    """Enrollment with its payments and payment summary"""
    return await _enrollment_detail(db, enrollment_id)


@router.put("/{enrollment_id}/status", response_model=EnrollmentStatusResponse)
@limiter.limit("20/minute")
async def update_enrollment_status(
    request: Request,
    data: EnrollmentStatusUpdate,
    enrollment_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_session),
):
    """
    Change enrollment status.

    PENDING -> ACTIVE | CANCELLED, ACTIVE -> COMPLETED | SUSPENDED | CANCELLED,
    SUSPENDED -> ACTIVE | CANCELLED. Other moves return 409 INVALID_TRANSITION.
    """
    enrollment, has_paid = await change_status(db, enrollment_id, data.status, data.reason)
    return EnrollmentStatusResponse(
        enrollment=EnrollmentRead.model_validate(enrollment),
        has_paid_payments=has_paid,
        warning=cancellation_warning(has_paid),
    )


@router.delete("/{enrollment_id}", response_model=EnrollmentStatusResponse)
@limiter.limit("20/minute")
async def delete_enrollment(
    request: Request,
    enrollment_id: int = Path(..., gt=0),
    reason: Optional[str] = Query(None, max_length=1000, description="Cancellation reason"),
    db: AsyncSession = Depends(get_session),
):
    """
    Cancel an enrollment. Enrollments are never removed; a warning is returned
    when paid payments exist.
    """
    enrollment, has_paid = await cancel_enrollment(db, enrollment_id, reason)
    return EnrollmentStatusResponse(
        enrollment=EnrollmentRead.model_validate(enrollment),
        has_paid_payments=has_paid,
        warning=cancellation_warning(has_paid),
    )


@router.post(
    "/{enrollment_id}/payments",
    response_model=PaymentRead,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("20/minute")
async def add_enrollment_payment(
    request: Request,
    data: PaymentCreate,
    enrollment_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_session),
):
    """
    Add an ad-hoc payment in the enrollment's currency.

    - **status**: PENDING, or PAID to record it as received now
    """
    payment = await payment_ledger.add_payment(
        db,
        enrollment_id,
        data.amount,
        method=data.method,
        due_date=data.due_date,
        initial_status=PaymentStatus(data.status),
        transaction_id=data.transaction_id,
        description=data.description,
    )
    return payment


@router.get("/{enrollment_id}/payments", response_model=EnrollmentPaymentsResponse)
@limiter.limit("60/minute")
async def get_enrollment_payment_list(
    request: Request,
    enrollment_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_session),
):
    payments = await payment_ledger.list_payments(db, enrollment_id)
    summary = await payment_ledger.summarize(db, enrollment_id)
    return EnrollmentPaymentsResponse(
        enrollment_id=enrollment_id,
        payments=[PaymentRead.model_validate(p) for p in payments],
        summary=PaymentSummaryRead(**summary.model_dump()),
    )
