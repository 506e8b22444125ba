"""Payment CRUD - reads only; every write goes through the payment ledger"""
from typing import List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.database import db_operation
from lms.core.exceptions import NotFoundError
from lms.admin.models.payments import Payment, PaymentMethod, PaymentStatus


@db_operation
async def get_payment_by_id(session: AsyncSession, payment_id: int) -> Payment:
    result = await session.execute(select(Payment).where(Payment.id == payment_id))
    payment = result.scalar_one_or_none()

    if not payment:
        raise NotFoundError("Payment", str(payment_id))

    return payment


@db_operation
async def get_enrollment_payments(session: AsyncSession, enrollment_id: int) -> List[Payment]:
    """All payments of an enrollment in schedule order"""
    result = await session.execute(
        select(Payment)
        .where(Payment.enrollment_id == enrollment_id)
        .order_by(Payment.due_date, Payment.id)
    )
    return list(result.scalars().all())


@db_operation
async def has_paid_payments(session: AsyncSession, enrollment_id: int) -> bool:
    result = await session.execute(
        select(func.count(Payment.id)).where(
            Payment.enrollment_id == enrollment_id,
            Payment.status == PaymentStatus.PAID,
        )
    )
    return (result.scalar() or 0) > 0


@db_operation
async def get_payments(
    session: AsyncSession,
    skip: int = 0,
    limit: int = 20,
    status: Optional[PaymentStatus] = None,
    method: Optional[PaymentMethod] = None,
    enrollment_id: Optional[int] = None,
) -> Tuple[List[Payment], int]:
    """Paginated payments across enrollments"""
    base_query = select(Payment)

    if status:
        base_query = base_query.where(Payment.status == status)
    if method:
        base_query = base_query.where(Payment.method == method)
    if enrollment_id:
        base_query = base_query.where(Payment.enrollment_id == enrollment_id)

    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await session.execute(count_query)).scalar() or 0

    query = base_query.order_by(Payment.due_date.desc(), Payment.id.desc()).offset(skip).limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all()), total
