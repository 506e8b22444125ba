import re
from typing import Annotated

from pydantic import AfterValidator, BeforeValidator, EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from lms.core.exceptions import ValidationError


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _lower(value: str) -> str:
    return value.lower()


# Student uniqueness is enforced on this normalized form
NormalizedEmail = Annotated[EmailStr, BeforeValidator(_strip), AfterValidator(_lower)]

_email_adapter = TypeAdapter(NormalizedEmail)


def normalize_email(email: str) -> str:
    """
    Validates an email address outside of a request model and returns its
    lower-cased, trimmed form.
    """
    if not email or not email.strip():
        raise ValidationError("Email cannot be empty", {"field": "email"})

    try:
        return _email_adapter.validate_python(email)
    except PydanticValidationError:
        raise ValidationError("Email address is not valid", {"field": "email"})


def clean_phone_number(phone: str) -> str:
    """
    Strips a phone number down to its digits and validates length.
    """
    if not phone:
        raise ValidationError("Phone number cannot be empty", {"field": "phone"})

    clean_phone = re.sub(r"\D", "", phone)

    if not clean_phone:
        raise ValidationError("Phone number must contain digits", {"field": "phone"})

    if len(clean_phone) < 7 or len(clean_phone) > 20:
        raise ValidationError(
            "Phone number must be between 7 and 20 digits", {"field": "phone"}
        )

    return clean_phone
