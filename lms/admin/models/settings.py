"""Institution billing settings consumed through the SettingsProvider"""
from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime
from sqlalchemy.sql import func
from lms.core.database import Base


class InstitutionSettings(Base):
    __tablename__ = "institution_settings"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True)
    primary_currency = Column(String(3), nullable=False, default="GBP")
    # Fraction, e.g. 0.18 for 18%
    tax_rate = Column(Numeric(6, 4), nullable=False, default=0)
    default_timezone = Column(String(64), nullable=False, default="Europe/London")
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self):
        return f"<InstitutionSettings(id={self.id}, currency='{self.primary_currency}', tax_rate={self.tax_rate})>"
