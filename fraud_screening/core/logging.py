"""Logging configuration and utilities.

Modules log through the standard library (``logging.getLogger(__name__)``
with ``extra={...}`` context); structlog renders both its own and the
standard library's records so ``extra`` keys land in the output.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.processors import JSONRenderer, TimeStamper, add_log_level
from structlog.stdlib import ExtraAdder, ProcessorFormatter, add_logger_name, filter_by_level

from fraud_screening.core.config import Settings


def setup_logging(settings: Settings) -> None:
    """Configure structured logging."""
    log_level = settings.app.log_level.upper()

    shared_processors: list[Any] = [
        add_log_level,
        add_logger_name,
        TimeStamper(fmt="iso"),
    ]

    renderer: Any
    if settings.observability.log_record_format == "json":
        renderer = JSONRenderer()
        render_chain: list[Any] = [structlog.processors.format_exc_info, renderer]
    else:
        renderer = structlog.dev.ConsoleRenderer()
        render_chain = [renderer]

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            filter_by_level,
            *shared_processors,
            structlog.processors.StackInfoRenderer(),
            ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ProcessorFormatter(
            foreign_pre_chain=[*shared_processors, ExtraAdder()],
            processors=[ProcessorFormatter.remove_processors_meta, *render_chain],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for a module."""
    return structlog.get_logger(name)
