"""
Structured Logging Configuration Module

JSON-formatted structured logging for ledger operations. A correlation id can
be bound to the current context (one per HTTP request); every record emitted
inside that context carries it.
"""

import contextvars
import logging
import json
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional


TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(correlation_id)s %(message)s"

# Correlation id for the current request context
_correlation_id = contextvars.ContextVar('correlation_id', default=None)


def get_correlation_id() -> Optional[str]:
    """Get the correlation id bound to this context"""
    return _correlation_id.get()


@contextmanager
def correlation_context(correlation_id: Optional[str] = None):
    """Bind a correlation id (a new one if not given) for the duration of the block"""
    correlation_id = correlation_id or str(uuid.uuid4())
    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)


class CorrelationFilter(logging.Filter):
    """Stamps records with the context correlation id unless they carry one"""

    def filter(self, record):
        if getattr(record, 'correlation_id', None) is None:
            record.correlation_id = get_correlation_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    FIELDS = ("correlation_id", "user_id", "action", "resource", "extra")

    def format(self, record):
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in self.FIELDS:
            value = getattr(record, field, None)
            if field == "correlation_id" and value in (None, "-"):
                value = get_correlation_id()
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json",
                  logger_name: str = "bank_ledger") -> logging.Logger:
    """
    Configure the application logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        fmt: "json" for structured output, "text" for plain lines
        logger_name: Name of the root application logger

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Replace handlers so repeated setup does not duplicate output
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.addFilter(CorrelationFilter())
    if fmt.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    return logger


def get_logger(name: str = "bank_ledger") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, correlation_id: Optional[str] = None,
               extra: Optional[dict] = None):
    """
    Log an action with structured data.

    Args:
        logger: Logger instance
        level: Log level name (info, warning, error, ...)
        message: Log message
        user_id: ID of the user performing the action
        action: Action being performed
        resource: Resource being acted upon, e.g. "account:1234567890"
        correlation_id: Overrides the context correlation id
        extra: Additional structured data
    """
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    fields = {
        "user_id": user_id,
        "action": action,
        "resource": resource,
        "correlation_id": correlation_id or get_correlation_id(),
        "extra": extra,
    }
    logger.log(levelno, message, extra={k: v for k, v in fields.items() if v})
