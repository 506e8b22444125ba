from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from lms.core.exceptions import ValidationError
from lms.core.validations import NormalizedEmail, clean_phone_number


class StudentBase(BaseModel):
    """Base student schema"""
    name: str = Field(..., min_length=1, max_length=200)
    email: NormalizedEmail
    phone: Optional[str] = Field(None, max_length=20)
    age_group: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    parent_name: Optional[str] = Field(None, max_length=200)
    parent_email: Optional[NormalizedEmail] = None
    parent_phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=1000)
    emergency_contact: Optional[str] = Field(None, max_length=200)


class StudentCreate(StudentBase):
    """New student details; the email is normalized before any lookup"""

    @field_validator("phone", "parent_phone")
    @classmethod
    def validate_phone(cls, v):
        if not v:
            return None
        try:
            return clean_phone_number(v)
        except ValidationError as e:
            raise ValueError(e.message)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v


class StudentRead(StudentBase):
    id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StudentIdentity(BaseModel):
    """Minimal identity of an existing student"""
    id: int
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class EmailCheckResponse(BaseModel):
    email: str
    exists: bool
    student: Optional[StudentIdentity] = None


class StudentListResponse(BaseModel):
    """Paginated list of students"""
    students: List[StudentRead]
    total: int
    page: int
    size: int
    pages: int
