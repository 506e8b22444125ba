"""Pytest configuration and shared fixtures.

Service tests run against an in-memory SQLite database built from the model
metadata; API tests drive the FastAPI app over httpx with the session
dependency pointed at that database.
"""

import os

# Must be set before any lms module reads its configuration
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["VALIDATE_CONFIG_ON_IMPORT"] = "false"
os.environ["NOTIFICATION_WEBHOOK_URL"] = ""
os.environ.setdefault("LOG_FORMAT", "text")

from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lms.admin.models import Base, Course, Student
from lms.admin.services.enrollment_orchestrator import EnrollmentOrchestrator
from lms.admin.services.settings_provider import SettingsProvider

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (database or HTTP)"
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# =============================================================================
# Domain Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def course(session) -> Course:
    """Course offering both formats."""
    course = Course(
        title="Algebra Foundations",
        one_to_one_price=Decimal("1000.00"),
        one_to_one_active=True,
        group_price=Decimal("400.00"),
        group_active=True,
    )
    session.add(course)
    await session.commit()
    return course


@pytest_asyncio.fixture
async def group_only_course(session) -> Course:
    """Course with only GROUP purchasable."""
    course = Course(
        title="Chemistry Club",
        one_to_one_price=None,
        one_to_one_active=True,
        group_price=Decimal("250.00"),
        group_active=True,
    )
    session.add(course)
    await session.commit()
    return course


@pytest_asyncio.fixture
async def unpriced_course(session) -> Course:
    """Course with no purchasable format."""
    course = Course(
        title="Draft Course",
        one_to_one_price=Decimal("0"),
        one_to_one_active=True,
        group_price=Decimal("300.00"),
        group_active=False,
    )
    session.add(course)
    await session.commit()
    return course


@pytest_asyncio.fixture
async def student(session) -> Student:
    student = Student(name="Jane Doe", email="jane.doe@example.com", age_group="ADULT")
    session.add(student)
    await session.commit()
    return student


@pytest.fixture
def settings_provider() -> SettingsProvider:
    """Provider with its own cache so tests never share settings."""
    return SettingsProvider(ttl_seconds=300)


@pytest.fixture
def orchestrator(settings_provider) -> EnrollmentOrchestrator:
    return EnrollmentOrchestrator(
        settings=settings_provider,
        initial_status="PENDING",
        atomic=False,
        clamp_amount_discount=True,
    )


# =============================================================================
# HTTP Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """API client bound to the test database."""
    from lms.core.database import get_session
    from lms.admin.services.settings_provider import settings_provider as app_settings
    from lms.main import app

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app_settings.invalidate()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    app_settings.invalidate()
