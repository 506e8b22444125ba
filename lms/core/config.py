import os

# PostgreSQL settings
POSTGRES_USER = os.getenv("POSTGRES_USER", "postgres")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
POSTGRES_DB = os.getenv("POSTGRES_DB", "lms")
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "db")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}",
)

# Environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "production").lower()
DEBUG = ENVIRONMENT in ["development", "dev"]

# Database retry settings
DB_RETRY_ATTEMPTS = int(os.getenv("DB_RETRY_ATTEMPTS", "3"))
DB_RETRY_DELAY = float(os.getenv("DB_RETRY_DELAY", "1.0"))
DB_RETRY_BACKOFF_FACTOR = float(os.getenv("DB_RETRY_BACKOFF_FACTOR", "2.0"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json" if not DEBUG else "text")

# Application
APP_NAME = os.getenv("APP_NAME", "LMS Enrollment Billing API")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# Institution settings fallbacks (used when no active settings row exists)
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "GBP").upper()
DEFAULT_TAX_RATE = os.getenv("DEFAULT_TAX_RATE", "0.18")
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "Europe/London")
SETTINGS_CACHE_TTL_SECONDS = float(os.getenv("SETTINGS_CACHE_TTL_SECONDS", "300"))

# Enrollment policy
ENROLLMENT_INITIAL_STATUS = os.getenv("ENROLLMENT_INITIAL_STATUS", "PENDING").upper()
ENROLLMENT_ATOMIC = os.getenv("ENROLLMENT_ATOMIC", "false").lower() == "true"
PRICING_CLAMP_AMOUNT_DISCOUNT = (
    os.getenv("PRICING_CLAMP_AMOUNT_DISCOUNT", "true").lower() == "true"
)
INSTALLMENT_INTERVAL_DAYS = int(os.getenv("INSTALLMENT_INTERVAL_DAYS", "30"))
MIN_INSTALLMENTS = 2
MAX_INSTALLMENTS = 12

# Outbound notifications ("send a notification for event X")
NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL")
NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10"))


def validate_config():
    """Validate configuration at startup"""
    errors = []

    if not DATABASE_URL:
        errors.append("DATABASE_URL is required")

    if DB_RETRY_ATTEMPTS < 1:
        errors.append("DB_RETRY_ATTEMPTS must be >= 1")

    if DB_RETRY_DELAY < 0:
        errors.append("DB_RETRY_DELAY must be >= 0")

    if ENROLLMENT_INITIAL_STATUS not in ("PENDING", "ACTIVE"):
        errors.append("ENROLLMENT_INITIAL_STATUS must be PENDING or ACTIVE")

    try:
        tax_rate = float(DEFAULT_TAX_RATE)
        if not 0 <= tax_rate <= 1:
            errors.append("DEFAULT_TAX_RATE must be between 0 and 1")
    except ValueError:
        errors.append("DEFAULT_TAX_RATE must be a number")

    if SETTINGS_CACHE_TTL_SECONDS < 0:
        errors.append("SETTINGS_CACHE_TTL_SECONDS must be >= 0")

    if INSTALLMENT_INTERVAL_DAYS < 1:
        errors.append("INSTALLMENT_INTERVAL_DAYS must be >= 1")

    if errors:
        raise ValueError(f"Configuration errors: {'; '.join(errors)}")


# Validate on import unless explicitly disabled
if os.getenv("VALIDATE_CONFIG_ON_IMPORT", "true").lower() == "true":
    try:
        validate_config()
    except ValueError as e:
        print(f"⚠️  Configuration warning: {e}")
