"""Unit tests for course format availability and base prices."""

from decimal import Decimal

import pytest

from lms.core.exceptions import FormatNotAvailableError, NoPricingConfiguredError, ValidationError
from lms.admin.models.courses import Course
from lms.admin.models.enrollments import EnrollmentFormat
from lms.admin.services import format_resolver
from lms.admin.services.enrollment_orchestrator import select_format


def make_course(one_to_one=None, one_to_one_active=True, group=None, group_active=True):
    return Course(
        id=7,
        title="Course",
        one_to_one_price=Decimal(one_to_one) if one_to_one is not None else None,
        one_to_one_active=one_to_one_active,
        group_price=Decimal(group) if group is not None else None,
        group_active=group_active,
    )


class TestAvailableFormats:
    def test_both_formats(self):
        course = make_course("1000", True, "400", True)

        assert format_resolver.available_formats(course) == {
            EnrollmentFormat.ONE_TO_ONE,
            EnrollmentFormat.GROUP,
        }

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"one_to_one": None},
            {"one_to_one": "0"},
            {"one_to_one": "-5"},
            {"one_to_one": "100", "one_to_one_active": False},
        ],
    )
    def test_unavailable_one_to_one(self, kwargs):
        course = make_course(group="400", **kwargs)

        assert format_resolver.available_formats(course) == {EnrollmentFormat.GROUP}

    def test_no_formats(self):
        assert format_resolver.available_formats(make_course()) == set()


class TestBasePrice:
    def test_price_for_format(self):
        course = make_course("1000", True, "400", True)

        assert format_resolver.base_price_for(course, EnrollmentFormat.GROUP) == Decimal("400")
        assert format_resolver.base_price_for(course, "ONE_TO_ONE") == Decimal("1000")

    def test_inactive_format_not_available(self):
        """Only GROUP configured; requesting ONE_TO_ONE fails."""
        course = make_course(group="400")

        with pytest.raises(FormatNotAvailableError) as exc_info:
            format_resolver.base_price_for(course, EnrollmentFormat.ONE_TO_ONE)

        assert exc_info.value.status_code == 422
        assert exc_info.value.details["available_formats"] == ["GROUP"]

    def test_no_pricing_configured(self):
        course = make_course("0", True, "300", False)

        with pytest.raises(NoPricingConfiguredError) as exc_info:
            format_resolver.base_price_for(course, EnrollmentFormat.GROUP)

        assert exc_info.value.error_code == "NO_PRICING_CONFIGURED"
        assert exc_info.value.details["course_id"] == 7


class TestFormatSelection:
    def test_auto_select_single_format(self):
        course = make_course(group="400")

        assert format_resolver.auto_select_format(course) == EnrollmentFormat.GROUP
        assert select_format(course, None) == EnrollmentFormat.GROUP

    def test_no_auto_select_with_two_formats(self):
        course = make_course("1000", True, "400", True)

        assert format_resolver.auto_select_format(course) is None
        with pytest.raises(ValidationError):
            select_format(course, None)

    def test_explicit_format_wins(self):
        course = make_course("1000", True, "400", True)

        assert select_format(course, EnrollmentFormat.ONE_TO_ONE) == EnrollmentFormat.ONE_TO_ONE

    def test_select_without_pricing(self):
        with pytest.raises(NoPricingConfiguredError):
            select_format(make_course(), None)
