import math
from typing import Optional
from fastapi import APIRouter, Depends, Query, status, Request
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.database import get_session
from lms.core.limits import limiter
from lms.core.validations import normalize_email
from lms.admin.crud.students import get_students
from lms.admin.schemas.students import (
    EmailCheckResponse,
    StudentCreate,
    StudentIdentity,
    StudentListResponse,
    StudentRead,
)
from lms.admin.services.student_resolver import check_email, create_student

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("/check-email", response_model=EmailCheckResponse)
@limiter.limit("60/minute")
async def check_student_email(
    request: Request,
    email: str = Query(..., min_length=3, max_length=255),
    db: AsyncSession = Depends(get_session),
):
    """
    Check whether an email already belongs to a student.

    Advisory only: creation still fails with 409 DUPLICATE_EMAIL when the
    email is taken in the meantime. A malformed address is a 400.
    """
    email = normalize_email(email)
    student = await check_email(db, email)
    return EmailCheckResponse(
        email=email,
        exists=student is not None,
        student=StudentIdentity.model_validate(student) if student else None,
    )


@router.get("", response_model=StudentListResponse)
@limiter.limit("60/minute")
async def list_students(
    request: Request,
    page: int = Query(1, ge=1, description="Page number starting from 1"),
    size: int = Query(20, ge=1, le=100, description="Number of items per page"),
    search: Optional[str] = Query(None, description="Name or email (partial match)"),
    db: AsyncSession = Depends(get_session),
):
    skip = (page - 1) * size
    students, total = await get_students(db, skip=skip, limit=size, search=search)
    pages = math.ceil(total / size) if total > 0 else 1

    return StudentListResponse(
        students=[StudentRead.model_validate(s) for s in students],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


@router.post("", response_model=StudentRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_new_student(
    request: Request,
    data: StudentCreate,
    db: AsyncSession = Depends(get_session),
):
    """Register a student; 409 DUPLICATE_EMAIL carries the existing student"""
    return await create_student(db, data)
