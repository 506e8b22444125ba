"""Student directory model - one identity per email address"""
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lms.core.database import Base

STUDENT_EMAIL_CONSTRAINT = "uq_students_email"


class Student(Base):
    __tablename__ = "students"
    __table_args__ = (UniqueConstraint("email", name=STUDENT_EMAIL_CONSTRAINT),)
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)

    # Stored normalized (trimmed, lower-case); the constraint is the authority
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    age_group = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)

    # Parent/guardian contact (optional)
    parent_name = Column(String(200), nullable=True)
    parent_email = Column(String(255), nullable=True)
    parent_phone = Column(String(20), nullable=True)

    address = Column(Text, nullable=True)
    emergency_contact = Column(String(200), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    enrollments = relationship("Enrollment", back_populates="student")

    def to_identity(self) -> dict:
        """Minimal identity used in conflict responses"""
        return {"id": self.id, "name": self.name, "email": self.email}

    def __repr__(self):
        return f"<Student(id={self.id}, email='{self.email}')>"
