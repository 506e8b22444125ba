"""Which enrollment formats of a course are purchasable, and at what base price"""
from decimal import Decimal
from typing import Optional, Set

from lms.core.exceptions import FormatNotAvailableError, NoPricingConfiguredError
from lms.core.money import to_decimal
from lms.admin.models.courses import Course
from lms.admin.models.enrollments import EnrollmentFormat

# Course attribute pairs (price, active flag) per format
_FORMAT_FIELDS = {
    EnrollmentFormat.ONE_TO_ONE: ("one_to_one_price", "one_to_one_active"),
    EnrollmentFormat.GROUP: ("group_price", "group_active"),
}


def _configured_price(course: Course, format: EnrollmentFormat) -> Optional[Decimal]:
    price_field, active_field = _FORMAT_FIELDS[format]
    price = getattr(course, price_field, None)
    if price is None or not getattr(course, active_field, False):
        return None
    price = to_decimal(price)
    return price if price > 0 else None


def available_formats(course: Course) -> Set[EnrollmentFormat]:
    """Formats with a positive price that are flagged active"""
    return {fmt for fmt in EnrollmentFormat if _configured_price(course, fmt) is not None}


def require_pricing(course: Course) -> Set[EnrollmentFormat]:
    """Available formats, or NoPricingConfiguredError when there are none"""
    formats = available_formats(course)
    if not formats:
        raise NoPricingConfiguredError(course.id)
    return formats


def auto_select_format(course: Course) -> Optional[EnrollmentFormat]:
    """The only available format, if exactly one is available"""
    formats = available_formats(course)
    if len(formats) == 1:
        return next(iter(formats))
    return None


def base_price_for(course: Course, format: EnrollmentFormat) -> Decimal:
    """
    Base price of a format.

    Raises:
        NoPricingConfiguredError: the course has no available format at all
        FormatNotAvailableError: the requested format has no positive active price
    """
    formats = require_pricing(course)
    price = _configured_price(course, EnrollmentFormat(format))
    if price is None:
        raise FormatNotAvailableError(
            course.id, EnrollmentFormat(format).value, sorted(f.value for f in formats)
        )
    return price
