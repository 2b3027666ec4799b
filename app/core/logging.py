"""Structured logging configuration.

All modules log through the shared ``logger`` using an event name followed by
key-value context, e.g. ``logger.info("step_execution_started", step_id=...)``.
Development renders human-readable console output, every other environment
renders one JSON object per line.
"""

import logging
import sys
from typing import (
    Any,
    List,
)

import structlog

from app.core.config import settings


def get_structlog_processors(include_file_info: bool = True) -> List[Any]:
    """Build the shared structlog processor chain.

    Args:
        include_file_info: Whether to add module/function/line information.

    Returns:
        List[Any]: Processors applied before rendering.
    """
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_file_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                {
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                }
            )
        )

    processors.append(lambda _, __, event_dict: {**event_dict, "environment": settings.ENVIRONMENT.value})
    return processors


def setup_logging() -> None:
    """Configure structlog and the stdlib root logger."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    )

    processors = get_structlog_processors(include_file_info=settings.DEBUG)
    if settings.LOG_FORMAT == "console":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


setup_logging()

logger = structlog.get_logger()
logger.info(
    "logging_initialized",
    environment=settings.ENVIRONMENT.value,
    log_level=settings.LOG_LEVEL,
    log_format=settings.LOG_FORMAT,
)
