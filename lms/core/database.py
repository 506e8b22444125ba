import asyncio
import logging
import time
from functools import wraps
from typing import Callable, TypeVar, Any, AsyncGenerator, Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import text
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DisconnectionError,
    TimeoutError,
)
from asyncpg.exceptions import (
    ConnectionFailureError,
    ConnectionDoesNotExistError,
)

from .config import DATABASE_URL, DB_RETRY_ATTEMPTS, DB_RETRY_DELAY, DB_RETRY_BACKOFF_FACTOR
from .exceptions import DatabaseConnectionError, DatabaseTimeoutError

logger = logging.getLogger(__name__)


def build_engine(url: str = DATABASE_URL, **overrides):
    """Create the async engine; pool sizing only applies to server databases"""
    options = {"echo": False, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=20,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=3600,
        )
    options.update(overrides)
    return create_async_engine(url, **options)


engine = build_engine()

# expire_on_commit=False: committed enrollments and payments are returned to
# callers and serialized after the transaction ends
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()

F = TypeVar("F", bound=Callable[..., Any])

CONNECTION_EXCEPTIONS = (
    DisconnectionError,
    ConnectionFailureError,
    ConnectionDoesNotExistError,
)
RETRYABLE_EXCEPTIONS = CONNECTION_EXCEPTIONS + (OperationalError, TimeoutError)

UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: IntegrityError, constraint: Optional[str] = None) -> bool:
    """
    Check whether an IntegrityError was raised by a unique constraint.

    Works for asyncpg (sqlstate 23505) and SQLite ("UNIQUE constraint failed").
    When ``constraint`` is given, the constraint or column name must appear
    in the driver error as well.
    """
    orig = getattr(exc, "orig", None)
    cause = getattr(orig, "__cause__", None)
    message = str(orig if orig is not None else exc)

    sqlstates = {
        getattr(orig, "sqlstate", None),
        getattr(orig, "pgcode", None),
        getattr(cause, "sqlstate", None),
    }
    if UNIQUE_VIOLATION_SQLSTATE not in sqlstates and "UNIQUE constraint failed" not in message:
        return False
    if constraint is None:
        return True

    name = getattr(orig, "constraint_name", None) or getattr(cause, "constraint_name", None)
    return constraint == name or constraint in message


def db_retry(
    max_attempts: int = None,
    delay: float = None,
    backoff_factor: float = DB_RETRY_BACKOFF_FACTOR,
    exceptions: tuple = RETRYABLE_EXCEPTIONS,
) -> Callable[[F], F]:
    """
    Retry transient connection failures with exponential backoff.

    Only infrastructure calls (schema creation, connection checks) use this;
    business operations are never retried.
    """
    max_attempts = max_attempts or DB_RETRY_ATTEMPTS
    delay = DB_RETRY_DELAY if delay is None else delay

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            wait = delay
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        logger.error(
                            f"{func.__name__} failed after {max_attempts} attempts: {str(e)}",
                            extra={"function": func.__name__, "exception_type": type(e).__name__},
                        )
                        if isinstance(e, CONNECTION_EXCEPTIONS):
                            raise DatabaseConnectionError(
                                f"Database connection failed after {max_attempts} attempts"
                            ) from e
                        if isinstance(e, TimeoutError):
                            raise DatabaseTimeoutError(func.__name__, 30) from e
                        raise

                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt}/{max_attempts}), retrying in {wait}s",
                        extra={"function": func.__name__, "attempt": attempt},
                    )
                    await asyncio.sleep(wait)
                    wait *= backoff_factor

        return wrapper

    return decorator


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency; one session per request"""
    async with async_session() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.debug(f"Session rolled back: {type(e).__name__}")
            raise


class DatabaseManager:
    """Schema and connection lifecycle for the configured engine"""

    @staticmethod
    @db_retry()
    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    @staticmethod
    async def drop_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.warning("Database tables dropped")

    @staticmethod
    @db_retry()
    async def check_connection():
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            if isinstance(e, RETRYABLE_EXCEPTIONS):
                raise
            logger.error(f"Database connection check failed: {str(e)}")
            raise DatabaseConnectionError("Database connection check failed") from e
        return True

    @staticmethod
    async def close_connections():
        try:
            await engine.dispose()
            logger.info("Database connections closed")
        except Exception as e:
            logger.error(f"Error closing database connections: {str(e)}")


db_manager = DatabaseManager()


def db_operation(func: F) -> F:
    """
    Decorator for CRUD functions: debug timing plus error logging.
    Errors propagate unchanged so services can react to IntegrityError.
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        started = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(
                f"Database error in {func.__name__}: {str(e)}",
                extra={"operation": func.__name__, "exception_type": type(e).__name__},
            )
            raise
        logger.debug(
            f"{func.__name__} completed",
            extra={
                "operation": func.__name__,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return result

    return wrapper
