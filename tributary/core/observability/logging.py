"""
Structured Logging Configuration
================================

Unified logging for the API and the workers using ``structlog``.

- **Dev / human**: coloured console output.
- **Prod / json**: machine-readable JSON lines.

Environment variables
~~~~~~~~~~~~~~~~~~~~~
- ``LOG_LEVEL``  – DEBUG | INFO | WARNING | ERROR | CRITICAL  (default: INFO)
- ``LOG_FORMAT`` – ``json`` | ``human``

Standard-library loggers are routed through structlog, so module loggers
created with ``logging.getLogger(__name__)`` carry the context bound by the
activity runtime (connector id, provider, activity, attempt).
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

_NOISY_LOGGERS: dict[str, int] = {
    # HTTP clients
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    # Database drivers
    "asyncpg": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "snowflake.connector": logging.WARNING,
    # Web server internals
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.WARNING,
    # Celery internals
    "celery.worker.strategy": logging.WARNING,
    "celery.app.trace": logging.WARNING,
}


def configure_logging(
    log_level: str = "INFO",
    json_format: bool | None = None,
) -> None:
    """Configure application-wide structured logging.

    Parameters
    ----------
    log_level:
        Minimum severity.  Overridden by ``LOG_LEVEL`` env var if set.
    json_format:
        ``True`` → JSON lines, ``False`` → console output. When *None* the
        ``LOG_FORMAT`` env var decides, defaulting to console output.
    """
    level_name = os.getenv("LOG_LEVEL", log_level).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    if json_format is None:
        json_format = os.getenv("LOG_FORMAT", "").lower() == "json"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    for logger_name, level in _NOISY_LOGGERS.items():
        # Only raise the level, never below the configured one
        logging.getLogger(logger_name).setLevel(max(level, numeric_level))
