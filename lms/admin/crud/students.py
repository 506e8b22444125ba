"""Student directory CRUD"""
from typing import List, Optional, Tuple
from sqlalchemy import func, or_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.database import db_operation
from lms.core.exceptions import NotFoundError
from lms.admin.models.students import Student
from lms.admin.schemas.students import StudentCreate


@db_operation
async def get_student_by_id(session: AsyncSession, student_id: int) -> Student:
    result = await session.execute(select(Student).where(Student.id == student_id))
    student = result.scalar_one_or_none()

    if not student:
        raise NotFoundError("Student", str(student_id))

    return student


@db_operation
async def get_student_by_email(session: AsyncSession, email: str) -> Optional[Student]:
    """Lookup by normalized email"""
    result = await session.execute(
        select(Student).where(Student.email == email.strip().lower())
    )
    return result.scalar_one_or_none()


@db_operation
async def get_students(
    session: AsyncSession,
    skip: int = 0,
    limit: int = 20,
    search: Optional[str] = None,
) -> Tuple[List[Student], int]:
    """Paginated students, optionally filtered by name or email"""
    base_query = select(Student)

    if search:
        pattern = f"%{search.strip()}%"
        base_query = base_query.where(
            or_(Student.name.ilike(pattern), Student.email.ilike(pattern))
        )

    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await session.execute(count_query)).scalar() or 0

    query = base_query.order_by(Student.name).offset(skip).limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all()), total


@db_operation
async def insert_student(session: AsyncSession, data: StudentCreate) -> Student:
    """
    Add and flush a new student. Commit is left to the caller; a unique
    violation on the email surfaces here as IntegrityError.
    """
    student = Student(**data.model_dump())
    session.add(student)
    await session.flush()
    return student
