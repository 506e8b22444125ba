from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel

from lms.admin.models.enrollments import EnrollmentFormat


class FormatOption(BaseModel):
    format: EnrollmentFormat
    base_price: Decimal
    formatted_price: str


class CourseFormatsResponse(BaseModel):
    """Purchasable formats of a course"""
    course_id: int
    title: str
    currency: str
    formats: List[FormatOption]
    auto_selected_format: Optional[EnrollmentFormat] = None
