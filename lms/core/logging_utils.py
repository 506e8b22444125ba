"""
Logging setup, request correlation and domain event logging.

Every record emitted while a request is being served carries that request's
id (``request_id``), so the individual enrollment workflow steps of one
request can be followed in the log stream.
"""
import json
import logging
import time
from collections import Counter, deque
from contextvars import ContextVar
from decimal import Decimal
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"

# LogRecord attributes that are not user-supplied "extra" fields
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}

_NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "httpx", "httpcore")


class RequestContextFilter(logging.Filter):
    """Stamps records with the id of the request being served"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get() or "-"
        return True


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        # Money stays exact in logs
        return str(value)
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra`` fields are merged into it"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS:
                entry[key] = _json_safe(value)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


def setup_logging(log_level: str = "INFO", log_format: str = "text"):
    """
    Configure the root logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR
        log_format: "json" for production, "text" for development
    """
    if log_format.lower() == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"Logging configured: level={log_level}, format={log_format}")


class ErrorTracker:
    """Per-process error counts by error code, with a short recent history"""

    def __init__(self, max_history: int = 100):
        self.counts: Counter = Counter()
        self.recent: deque = deque(maxlen=max_history)

    def track_error(self, error_type: str, error_message: str, context: Dict[str, Any] = None):
        self.counts[error_type] += 1
        self.recent.append(
            {
                "timestamp": time.time(),
                "type": error_type,
                "message": error_message,
                "request_id": request_id_var.get(),
                "context": context or {},
            }
        )
        logger.warning(
            f"Error tracked: {error_type}",
            extra={"error_type": error_type, "total_count": self.counts[error_type]},
        )

    def get_stats(self) -> Dict[str, Any]:
        return {
            "error_counts": dict(self.counts),
            "total_errors": sum(self.counts.values()),
            "last_errors": list(self.recent)[-10:],
        }


error_tracker = ErrorTracker()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_business_event(
    event: str, entity_type: str, entity_id: int, details: Dict[str, Any] = None
):
    """
    Log a domain event such as enrollment_created or payment_status_changed.

    entity_type is one of enrollment, payment, student, settings or system.
    """
    logger.info(
        f"Business event: {event}",
        extra={
            "event": event,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "details": _json_safe(details or {}),
            "category": "business_event",
        },
    )
