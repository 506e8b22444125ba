from decimal import Decimal
from typing import Optional
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.config import DEFAULT_CURRENCY, DEFAULT_TAX_RATE, DEFAULT_TIMEZONE
from lms.core.database import db_operation
from lms.admin.models.settings import InstitutionSettings
from lms.admin.schemas.settings import SettingsUpdate


@db_operation
async def get_active_settings(session: AsyncSession) -> Optional[InstitutionSettings]:
    """The active institution settings row, if one exists"""
    result = await session.execute(
        select(InstitutionSettings)
        .where(InstitutionSettings.is_active == True)
        .order_by(InstitutionSettings.id.desc())
    )
    return result.scalars().first()


@db_operation
async def upsert_settings(session: AsyncSession, data: SettingsUpdate) -> InstitutionSettings:
    """Update the active row, creating it from the configured defaults if missing"""
    settings = await get_active_settings(session)
    if settings is None:
        settings = InstitutionSettings(
            primary_currency=DEFAULT_CURRENCY,
            tax_rate=Decimal(DEFAULT_TAX_RATE),
            default_timezone=DEFAULT_TIMEZONE,
            is_active=True,
        )
        session.add(settings)

    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(settings, field, value)

    await session.commit()
    await session.refresh(settings)
    return settings
