"""Enrollment CRUD - lookups and listings; creation goes through the orchestrator"""
from typing import List, Optional, Tuple
from sqlalchemy import and_, func, or_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.database import db_operation
from lms.core.exceptions import NotFoundError
from lms.admin.models.courses import Course
from lms.admin.models.enrollments import Enrollment, EnrollmentFormat, EnrollmentStatus
from lms.admin.models.students import Student

# Statuses that block a second enrollment for the same student, course and format
OPEN_ENROLLMENT_STATUSES = (EnrollmentStatus.PENDING, EnrollmentStatus.ACTIVE)


@db_operation
async def get_enrollment_by_id(session: AsyncSession, enrollment_id: int) -> Enrollment:
    """Get enrollment by ID with student and course loaded"""
    result = await session.execute(
        select(Enrollment)
        .where(Enrollment.id == enrollment_id)
        .execution_options(populate_existing=True)
    )
    enrollment = result.scalar_one_or_none()

    if not enrollment:
        raise NotFoundError("Enrollment", str(enrollment_id))

    return enrollment


@db_operation
async def find_open_enrollment(
    session: AsyncSession,
    student_id: int,
    course_id: int,
    format: EnrollmentFormat,
) -> Optional[Enrollment]:
    result = await session.execute(
        select(Enrollment).where(
            and_(
                Enrollment.student_id == student_id,
                Enrollment.course_id == course_id,
                Enrollment.format == format,
                Enrollment.status.in_(OPEN_ENROLLMENT_STATUSES),
            )
        )
    )
    return result.scalars().first()


@db_operation
async def get_enrollments(
    session: AsyncSession,
    skip: int = 0,
    limit: int = 20,
    search: Optional[str] = None,
    status: Optional[EnrollmentStatus] = None,
    format: Optional[EnrollmentFormat] = None,
    student_id: Optional[int] = None,
    course_id: Optional[int] = None,
) -> Tuple[List[Enrollment], int]:
    """Paginated enrollments; search matches student name/email or course title"""
    base_query = (
        select(Enrollment)
        .join(Student, Enrollment.student_id == Student.id)
        .join(Course, Enrollment.course_id == Course.id)
    )

    if search:
        pattern = f"%{search.strip()}%"
        base_query = base_query.where(
            or_(
                Student.name.ilike(pattern),
                Student.email.ilike(pattern),
                Course.title.ilike(pattern),
            )
        )
    if status:
        base_query = base_query.where(Enrollment.status == status)
    if format:
        base_query = base_query.where(Enrollment.format == format)
    if student_id:
        base_query = base_query.where(Enrollment.student_id == student_id)
    if course_id:
        base_query = base_query.where(Enrollment.course_id == course_id)

    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await session.execute(count_query)).scalar() or 0

    query = (
        base_query.order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
        .offset(skip)
        .limit(limit)
    )
    result = await session.execute(query)
    return list(result.scalars().all()), total
