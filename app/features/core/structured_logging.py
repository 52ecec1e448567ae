"""
Structured logging configuration.
Provides console/JSON rendering, context binding and performance logging.
"""
import logging
import sys
import os
import time
from typing import Optional
from contextlib import contextmanager

import structlog
from structlog.stdlib import LoggerFactory


def configure_logging(
    level: Optional[str] = None,
    format_type: Optional[str] = None,  # "console", "json" or "auto"
    enable_json: Optional[bool] = None,
    log_file: Optional[str] = None,
):
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Format type ('json', 'console', 'auto')
        enable_json: Force enable/disable JSON logging
        log_file: Optional file to mirror log output to
    """

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()

    if format_type is None:
        format_type = os.getenv("LOG_FORMAT", "auto")

    if enable_json is None:
        # Auto-detect: use JSON in production, console in development
        environment = os.getenv("ENVIRONMENT", "development").lower()
        enable_json = environment == "production"

    if format_type == "auto":
        format_type = "json" if enable_json else "console"

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if format_type == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(getattr(logging, level))

    _configure_application_loggers(level)

    logger = structlog.get_logger(__name__)
    logger.info(
        "Structured logging initialized",
        log_level=level,
        format_type=format_type,
        json_enabled=enable_json,
    )


def _configure_application_loggers(level: str):
    """Configure application and third-party logger levels."""

    for logger_name in ("app", "app.features", "celery"):
        logging.getLogger(logger_name).setLevel(getattr(logging, level))

    third_party_loggers = {
        "sqlalchemy.engine": "WARNING",
        "sqlalchemy.pool": "WARNING",
        "aiosqlite": "WARNING",
        "httpx": "WARNING",
        "openai": "WARNING",
    }

    for logger_name, logger_level in third_party_loggers.items():
        logging.getLogger(logger_name).setLevel(getattr(logging, logger_level))


@contextmanager
def log_performance(operation_name: str, logger: Optional[structlog.BoundLogger] = None,
                    **context):
    """
    Context manager to log operation duration and outcome.

    Usage:
        with log_performance("sequence_execution", sequence_id=sequence_id):
            summary = await driver.execute(sequence_id)
    """
    if logger is None:
        logger = structlog.get_logger("performance")

    start = time.perf_counter()
    success = False

    try:
        yield
        success = True
    except Exception as e:
        logger.error(
            f"Operation {operation_name} failed",
            operation=operation_name,
            error=str(e),
            **context
        )
        raise
    finally:
        logger.info(
            f"Operation {operation_name} completed",
            operation=operation_name,
            duration_seconds=round(time.perf_counter() - start, 4),
            success=success,
            **context
        )
