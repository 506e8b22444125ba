from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded

from lms.core.limits import limiter, rate_limit_handler
from lms.core.init_db import init_database
from lms.core.error_handlers import setup_exception_handlers
from lms.core.database import db_manager
from lms.core.middleware import setup_middleware
from lms.core.logging_utils import (
    setup_logging,
    get_logger,
    log_business_event,
    error_tracker,
)
from lms.core.config import (
    validate_config,
    APP_NAME,
    APP_VERSION,
    CORS_ORIGINS,
    DEBUG,
    DEFAULT_CURRENCY,
    ENROLLMENT_ATOMIC,
    ENROLLMENT_INITIAL_STATUS,
    ENVIRONMENT,
    LOG_LEVEL,
    LOG_FORMAT,
)

from lms.admin.routers import courses, enrollments, payments, settings, students

API_PREFIX = "/api/v1"

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {APP_NAME} v{APP_VERSION} ({ENVIRONMENT})")

    try:
        validate_config()
        await db_manager.check_connection()
        await init_database()
    except Exception as e:
        logger.error(f"❌ Application startup failed: {str(e)}")
        error_tracker.track_error(
            "STARTUP_ERROR", str(e), {"component": "application_startup", "version": APP_VERSION}
        )
        raise

    log_business_event(
        "application_started",
        "system",
        0,
        {
            "version": APP_VERSION,
            "environment": ENVIRONMENT,
            "default_currency": DEFAULT_CURRENCY,
            "enrollment_initial_status": ENROLLMENT_INITIAL_STATUS,
            "enrollment_atomic": ENROLLMENT_ATOMIC,
        },
    )
    logger.info("🚀 Application startup completed")

    yield

    await db_manager.close_connections()
    logger.info("👋 Application shutdown completed")


app = FastAPI(
    title=APP_NAME,
    description="Enrollment pricing and payment lifecycle",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

setup_exception_handlers(app)
setup_middleware(app, {"slow_request_threshold": 5.0})

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

for module in (enrollments, payments, students, courses, settings):
    app.include_router(module.router, prefix=API_PREFIX)


@app.get(f"{API_PREFIX}/health", tags=["Health"])
@app.get("/health", tags=["Health"], include_in_schema=False)
async def health_check():
    """Service and database health"""
    try:
        await db_manager.check_connection()
        database = "connected"
    except Exception as e:
        logger.error(f"Health check database error: {str(e)}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "version": APP_VERSION,
        "database": database,
        "errors": error_tracker.get_stats()["total_errors"],
    }
