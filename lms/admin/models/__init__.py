from lms.core.database import Base
from .students import Student
from .courses import Course
from .settings import InstitutionSettings
from .enrollments import Enrollment, EnrollmentFormat, EnrollmentStatus
from .payments import Payment, PaymentMethod, PaymentStatus

__all__ = [
    "Base",
    "Student",
    "Course",
    "InstitutionSettings",
    "Enrollment",
    "EnrollmentFormat",
    "EnrollmentStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
]
