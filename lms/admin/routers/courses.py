from fastapi import APIRouter, Depends, Request, Path
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.database import get_session
from lms.core.limits import limiter
from lms.core.money import format_money
from lms.admin.crud.courses import get_course_by_id
from lms.admin.schemas.courses import CourseFormatsResponse, FormatOption
from lms.admin.services import format_resolver
from lms.admin.services.settings_provider import SettingsProvider, get_settings_provider

router = APIRouter(prefix="/courses", tags=["Courses"])


@router.get("/{course_id}/formats", response_model=CourseFormatsResponse)
@limiter.limit("60/minute")
async def get_course_formats(
    request: Request,
    course_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_session),
    provider: SettingsProvider = Depends(get_settings_provider),
):
    """
    Purchasable formats of a course with their base prices.

    An empty list means the course has no pricing configured and cannot be
    enrolled in yet.
    """
    course = await get_course_by_id(db, course_id)
    settings = await provider.get_billing_settings(db)

    formats = sorted(format_resolver.available_formats(course), key=lambda f: f.value)
    options = []
    for fmt in formats:
        price = format_resolver.base_price_for(course, fmt)
        options.append(
            FormatOption(
                format=fmt,
                base_price=price,
                formatted_price=format_money(price, settings.currency),
            )
        )

    return CourseFormatsResponse(
        course_id=course.id,
        title=course.title,
        currency=settings.currency,
        formats=options,
        auto_selected_format=format_resolver.auto_select_format(course),
    )
