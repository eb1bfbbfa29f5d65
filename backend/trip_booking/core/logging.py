"""
Structured logging configuration using structlog.

Log lines are events (`booking_created`, `payment_event_stale`, ...) with
key/value context. JSON in production, console rendering elsewhere.
Fields bound with `bind_context` (request id, sweeper tick) are merged into
every line emitted from the same task, engines included.
"""

import logging
import sys
from typing import Any, Optional

import structlog

from trip_booking.core.config import get_settings

_configured = False


def _shared_processors(json_logs: bool) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
    return processors


def setup_logging(json_logs: Optional[bool] = None, level: Optional[str] = None) -> None:
    """Configure structlog and the stdlib root logger once per process."""
    global _configured
    if _configured:
        return

    settings = get_settings()
    if json_logs is None:
        json_logs = settings.ENVIRONMENT == "production"
    level_name = (level or settings.LOG_LEVEL).upper()

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=settings.DEBUG)
    )

    structlog.configure(
        processors=[
            *_shared_processors(json_logs),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ]
        )
    )

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Pool checkouts and access lines drown out the booking events
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

    _configured = True


def bind_context(**fields: Any) -> None:
    """Start a fresh logging context for the current task."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**fields)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
