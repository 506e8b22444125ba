"""
Schema bootstrap.

    python -m lms.core.init_db init    # create tables and the settings row
    python -m lms.core.init_db reset   # drop everything first (development/test only)
"""
import asyncio
import logging
import sys
from decimal import Decimal

from sqlalchemy import select
from lms.core.config import DEFAULT_CURRENCY, DEFAULT_TAX_RATE, DEFAULT_TIMEZONE, ENVIRONMENT
from lms.core.database import async_session, db_manager
from lms.core.exceptions import DatabaseError, ConfigurationError

# Registers every table on Base.metadata
from lms.admin.models import InstitutionSettings

logger = logging.getLogger(__name__)

RESETTABLE_ENVIRONMENTS = ("development", "dev", "test")


async def create_default_settings() -> bool:
    """Seed the institution settings row from configured defaults; False if one exists"""
    async with async_session() as session:
        existing = await session.execute(select(InstitutionSettings.id).limit(1))
        if existing.scalar_one_or_none() is not None:
            logger.info("Institution settings already exist")
            return False

        session.add(
            InstitutionSettings(
                primary_currency=DEFAULT_CURRENCY,
                tax_rate=Decimal(DEFAULT_TAX_RATE),
                default_timezone=DEFAULT_TIMEZONE,
                is_active=True,
            )
        )
        await session.commit()

    logger.info(
        f"Default institution settings created: {DEFAULT_CURRENCY}, tax rate {DEFAULT_TAX_RATE}"
    )
    return True


async def init_database():
    """Create tables and initial data"""
    try:
        await db_manager.create_tables()
        await create_default_settings()
    except DatabaseError:
        raise
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise DatabaseError(f"Database initialization failed: {str(e)}") from e

    logger.info("✅ Database initialized")


async def reset_database():
    """Drop and recreate every table"""
    if ENVIRONMENT not in RESETTABLE_ENVIRONMENTS:
        raise ConfigurationError(
            "ENVIRONMENT",
            "Database reset is only allowed in development or test environments",
        )

    logger.warning("🚨 Resetting database, all enrollments and payments will be lost")
    await db_manager.drop_tables()
    await init_database()


COMMANDS = {"init": init_database, "reset": reset_database}


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else "init"
    if command not in COMMANDS:
        print(f"Unknown command: {command}. Available: {', '.join(COMMANDS)}")
        sys.exit(1)

    try:
        asyncio.run(COMMANDS[command]())
    except KeyboardInterrupt:
        logger.info("Cancelled")
    except Exception as e:
        logger.error(f"{command} failed: {e}")
        sys.exit(1)
