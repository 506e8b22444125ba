import math
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, Path
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.database import get_session
from lms.core.limits import limiter
from lms.admin.crud.payments import get_payment_by_id, get_payments
from lms.admin.models.payments import PaymentMethod, PaymentStatus
from lms.admin.schemas.payments import PaymentListResponse, PaymentRead, PaymentStatusUpdate
from lms.admin.services import payment_ledger

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("", response_model=PaymentListResponse)
@limiter.limit("60/minute")
async def list_payments(
    request: Request,
    page: int = Query(1, ge=1, description="Page number starting from 1"),
    size: int = Query(20, ge=1, le=100, description="Number of items per page"),
    status: Optional[PaymentStatus] = Query(None, description="Filter by status"),
    method: Optional[PaymentMethod] = Query(None, description="Filter by method"),
    enrollment_id: Optional[int] = Query(None, gt=0),
    db: AsyncSession = Depends(get_session),
):
    skip = (page - 1) * size

    payments, total = await get_payments(
        db,
        skip=skip,
        limit=size,
        status=status,
        method=method,
        enrollment_id=enrollment_id,
    )

    pages = math.ceil(total / size) if total > 0 else 1

    filters = {}
    if status:
        filters["status"] = status.value
    if method:
        filters["method"] = method.value
    if enrollment_id:
        filters["enrollment_id"] = enrollment_id

    return PaymentListResponse(
        payments=[PaymentRead.model_validate(p) for p in payments],
        total=total,
        page=page,
        size=size,
        pages=pages,
        filters=filters if filters else None,
    )


@router.get("/{payment_id}", response_model=PaymentRead)
@limiter.limit("60/minute")
async def get_payment(
    request: Request,
    payment_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_session),
):
    return await get_payment_by_id(db, payment_id)


@router.put("/{payment_id}", response_model=PaymentRead)
@limiter.limit("20/minute")
async def update_payment_status(
    request: Request,
    data: PaymentStatusUpdate,
    payment_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_session),
):
    """
    Change payment status.

    - PENDING -> PAID (stamps paid_at, stores **transaction_id**) or FAILED
    - PAID -> REFUNDED
    - Repeating the current status returns the payment unchanged
    - FAILED and REFUNDED are final; other moves return 409 INVALID_TRANSITION
    """
    return await payment_ledger.transition(db, payment_id, data.status, data.transaction_id)
