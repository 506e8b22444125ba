from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.database import get_session
from lms.core.limits import limiter
from lms.admin.schemas.settings import BillingSettings, SettingsUpdate
from lms.admin.services.settings_provider import SettingsProvider, get_settings_provider

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("", response_model=BillingSettings)
@limiter.limit("60/minute")
async def get_billing_settings(
    request: Request,
    db: AsyncSession = Depends(get_session),
    provider: SettingsProvider = Depends(get_settings_provider),
):
    """Currency, tax rate and timezone applied to new enrollments"""
    return await provider.get_billing_settings(db)


@router.put("", response_model=BillingSettings)
@limiter.limit("10/minute")
async def update_billing_settings(
    request: Request,
    data: SettingsUpdate,
    db: AsyncSession = Depends(get_session),
    provider: SettingsProvider = Depends(get_settings_provider),
):
    """
    Update institution billing settings.

    Existing enrollments keep the tax rate and currency they were priced with.
    """
    return await provider.update_settings(db, data)
