from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.database import db_operation
from lms.core.exceptions import NotFoundError
from lms.admin.models.courses import Course


@db_operation
async def get_course_by_id(session: AsyncSession, course_id: int) -> Course:
    """Get course by ID"""
    result = await session.execute(select(Course).where(Course.id == course_id))
    course = result.scalar_one_or_none()

    if not course:
        raise NotFoundError("Course", str(course_id))

    return course
