"""
Institution billing settings (currency, tax rate, timezone) behind a TTL cache.

The cache is an explicit ``CachedValue`` owned by the provider instance;
``update_settings`` writes through and invalidates it. Every enrollment
snapshots the values it was priced with, so a stale read affects only
enrollments created inside the TTL window.
"""
import logging
import time
from decimal import Decimal
from typing import Callable, Generic, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.config import (
    DEFAULT_CURRENCY,
    DEFAULT_TAX_RATE,
    DEFAULT_TIMEZONE,
    SETTINGS_CACHE_TTL_SECONDS,
)
from lms.core.logging_utils import log_business_event
from lms.admin.crud.settings import get_active_settings, upsert_settings
from lms.admin.schemas.settings import BillingSettings, SettingsUpdate

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CachedValue(Generic[T]):
    """A single value with an expiry time"""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Optional[T] = None
        self._expires_at = 0.0

    def get(self) -> Optional[T]:
        if self._value is None or self._clock() >= self._expires_at:
            return None
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        self._expires_at = self._clock() + self.ttl_seconds

    def invalidate(self) -> None:
        self._value = None
        self._expires_at = 0.0


def default_billing_settings() -> BillingSettings:
    return BillingSettings(
        currency=DEFAULT_CURRENCY,
        tax_rate=Decimal(DEFAULT_TAX_RATE),
        timezone=DEFAULT_TIMEZONE,
        source="defaults",
    )


class SettingsProvider:
    def __init__(self, ttl_seconds: float = SETTINGS_CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self._cache: CachedValue[BillingSettings] = CachedValue(ttl_seconds, clock)

    async def get_billing_settings(self, session: AsyncSession) -> BillingSettings:
        cached = self._cache.get()
        if cached is not None:
            return cached

        row = await get_active_settings(session)
        if row is None:
            logger.info("No active institution settings, using configured defaults")
            settings = default_billing_settings()
        else:
            settings = BillingSettings(
                currency=row.primary_currency.upper(),
                tax_rate=Decimal(str(row.tax_rate)),
                timezone=row.default_timezone,
                source="database",
                updated_at=row.updated_at,
            )

        self._cache.set(settings)
        return settings

    async def update_settings(self, session: AsyncSession, data: SettingsUpdate) -> BillingSettings:
        row = await upsert_settings(session, data)
        self.invalidate()

        log_business_event(
            "settings_updated",
            "settings",
            row.id,
            data.model_dump(exclude_unset=True, exclude_none=True),
        )
        return await self.get_billing_settings(session)

    def invalidate(self) -> None:
        self._cache.invalidate()


settings_provider = SettingsProvider()


def get_settings_provider() -> SettingsProvider:
    """FastAPI dependency"""
    return settings_provider
