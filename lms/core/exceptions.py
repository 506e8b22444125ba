"""
Application exceptions for centralized error handling
"""

from typing import Optional, Dict, Any


class BaseAppException(Exception):
    """Base application exception"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


# === Validation errors ===
class ValidationError(BaseAppException):
    """Invalid request data"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 400, "VALIDATION_ERROR", details)


class InvalidInputError(BaseAppException):
    """Out-of-range input to a pricing computation"""

    def __init__(self, field: str, message: str, value: Any = None):
        details = {"field": field}
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, 400, "INVALID_INPUT", details)


# === Conflict errors ===
class DuplicateEmailError(BaseAppException):
    """A student with this email already exists.

    Carries the existing student's identity so the caller can switch to
    "use existing student" instead of retrying blindly.
    """

    def __init__(self, email: str, existing_student: Optional[Dict[str, Any]] = None):
        message = f"Email '{email}' is already registered"
        if existing_student and existing_student.get("name"):
            message += f" to {existing_student['name']}"
        details = {"email": email, "existing_student": existing_student}
        super().__init__(message, 409, "DUPLICATE_EMAIL", details)


class DuplicateEnrollmentError(BaseAppException):
    """Student already has an open enrollment for the course and format"""

    def __init__(self, student_id: int, course_id: int, format: str, enrollment_id: int):
        message = "Student is already enrolled in this course with the same format"
        details = {
            "student_id": student_id,
            "course_id": course_id,
            "format": format,
            "enrollment_id": enrollment_id,
        }
        super().__init__(message, 409, "DUPLICATE_ENROLLMENT", details)


# === Resource errors ===
class NotFoundError(BaseAppException):
    """Resource not found"""

    def __init__(self, resource: str, identifier: str = None):
        if identifier:
            message = f"{resource} with identifier '{identifier}' not found"
            details = {"resource": resource, "identifier": identifier}
        else:
            message = f"{resource} not found"
            details = {"resource": resource}
        super().__init__(message, 404, "NOT_FOUND", details)


# === Course configuration errors ===
class CoursePricingError(BaseAppException):
    """The course, not the request, is misconfigured"""

    def __init__(self, message: str, error_code: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 422, error_code, details)


class NoPricingConfiguredError(CoursePricingError):
    """No enrollment format of the course is purchasable"""

    def __init__(self, course_id: int):
        super().__init__(
            "No pricing configured for this course. Configure a format price in the course settings.",
            "NO_PRICING_CONFIGURED",
            {"course_id": course_id},
        )


class FormatNotAvailableError(CoursePricingError):
    """Requested format has no positive active price"""

    def __init__(self, course_id: int, format: str, available: Optional[list] = None):
        super().__init__(
            f"Format '{format}' is not available for this course",
            "FORMAT_NOT_AVAILABLE",
            {"course_id": course_id, "format": format, "available_formats": available or []},
        )


# === State errors ===
class InvalidTransitionError(BaseAppException):
    """Illegal status change"""

    def __init__(self, resource: str, identifier: Any, current: str, target: str):
        message = f"Cannot move {resource} {identifier} from {current} to {target}"
        details = {
            "resource": resource,
            "identifier": str(identifier),
            "current_status": current,
            "requested_status": target,
        }
        super().__init__(message, 409, "INVALID_TRANSITION", details)


# === Business logic ===
class BusinessLogicError(BaseAppException):
    """Business rule violation"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 400, "BUSINESS_LOGIC_ERROR", details)


# === Database errors ===
class DatabaseError(BaseAppException):
    """Database error"""

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 500, "DATABASE_ERROR", details)


class DatabaseConnectionError(BaseAppException):
    """Database connection failure"""

    def __init__(self, message: str = "Database connection failed"):
        super().__init__(message, 503, "DATABASE_CONNECTION_ERROR")


class DatabaseTimeoutError(BaseAppException):
    """Database operation timeout"""

    def __init__(self, operation: str, timeout: int):
        message = f"Database operation '{operation}' timed out after {timeout}s"
        details = {"operation": operation, "timeout": timeout}
        super().__init__(message, 504, "DATABASE_TIMEOUT", details)


class DatabaseIntegrityError(BaseAppException):
    """Integrity constraint violation"""

    def __init__(self, constraint: str, details: Optional[Dict[str, Any]] = None):
        message = f"Database integrity constraint violated: {constraint}"
        error_details = {"constraint": constraint}
        if details:
            error_details.update(details)
        super().__init__(message, 409, "DATABASE_INTEGRITY_ERROR", error_details)


# === Configuration errors ===
class ConfigurationError(BaseAppException):
    """Invalid or missing configuration"""

    def __init__(self, parameter: str, message: str = None):
        message = (
            message or f"Configuration parameter '{parameter}' is invalid or missing"
        )
        details = {"parameter": parameter}
        super().__init__(message, 500, "CONFIGURATION_ERROR", details)
