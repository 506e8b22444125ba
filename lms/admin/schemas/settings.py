from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


class BillingSettings(BaseModel):
    """Tax rate, currency and timezone used when pricing a new enrollment"""
    currency: str
    tax_rate: Decimal
    timezone: str
    source: str = Field("database", description="'database' or 'defaults'")
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)


class SettingsUpdate(BaseModel):
    primary_currency: Optional[str] = Field(None, min_length=3, max_length=3)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    default_timezone: Optional[str] = Field(None, min_length=1, max_length=64)

    @field_validator("primary_currency")
    @classmethod
    def upper_currency(cls, v):
        if v is None:
            return v
        if not v.isalpha():
            raise ValueError("Currency must be a 3-letter ISO code")
        return v.upper()
