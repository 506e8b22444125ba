"""Resolve an enrollment's student: an existing id, or new details keyed by email"""
import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.database import is_unique_violation
from lms.core.exceptions import DuplicateEmailError, ValidationError
from lms.core.logging_utils import log_business_event
from lms.core.validations import normalize_email
from lms.admin.crud.students import get_student_by_email, get_student_by_id, insert_student
from lms.admin.models.students import Student
from lms.admin.schemas.students import StudentCreate

logger = logging.getLogger(__name__)


async def check_email(session: AsyncSession, email: str) -> Optional[Student]:
    """Advisory lookup; the unique constraint on students.email is the authority"""
    return await get_student_by_email(session, normalize_email(email))


async def create_student(
    session: AsyncSession, data: StudentCreate, commit: bool = True
) -> Student:
    """
    Create a student, refusing an email that is already registered.

    Raises:
        DuplicateEmailError: with the existing student's identity, both when
            the pre-check finds it and when a concurrent insert wins the race
    """
    existing = await check_email(session, data.email)
    if existing:
        raise DuplicateEmailError(data.email, existing.to_identity())

    try:
        student = await insert_student(session, data)
        if commit:
            await session.commit()
    except IntegrityError as e:
        await session.rollback()
        if not is_unique_violation(e):
            raise
        logger.warning(
            f"Concurrent student creation for {data.email}",
            extra={"email": data.email},
        )
        existing = await get_student_by_email(session, data.email)
        raise DuplicateEmailError(
            data.email, existing.to_identity() if existing else None
        ) from e

    log_business_event("student_created", "student", student.id, {"email": student.email})
    return student


async def resolve_student(
    session: AsyncSession,
    student_id: Optional[int] = None,
    new_student: Optional[StudentCreate] = None,
    commit: bool = True,
) -> Tuple[Student, bool]:
    """
    Returns (student, created). Exactly one of student_id / new_student must
    be given; an unknown id raises NotFoundError.
    """
    if (student_id is None) == (new_student is None):
        raise ValidationError("Provide exactly one of student_id or new_student")

    if student_id is not None:
        return await get_student_by_id(session, student_id), False

    return await create_student(session, new_student, commit=commit), True
