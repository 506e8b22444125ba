"""Course model - read-only from the billing core's perspective"""
from sqlalchemy import Column, Integer, String, Text, Boolean, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lms.core.database import Base


class Course(Base):
    __tablename__ = "courses"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    short_description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="PUBLISHED")

    # Per-format base prices; a format is purchasable only with a positive
    # price and the active flag set
    one_to_one_price = Column(Numeric(12, 2), nullable=True)
    one_to_one_active = Column(Boolean, nullable=False, default=True)
    group_price = Column(Numeric(12, 2), nullable=True)
    group_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    enrollments = relationship("Enrollment", back_populates="course")

    def __repr__(self):
        return f"<Course(id={self.id}, title='{self.title}')>"
