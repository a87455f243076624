"""
Structured Logging with structlog
=============================================================================
CONCEPT: Structured (key/value) logs instead of free text

Plain text:
    2025-01-15 10:30:45 INFO Bulk import added 12 tasks, skipped 3

Structured:
    {"timestamp": "2025-01-15T10:30:45Z", "level": "info",
     "logger": "tracker.services.reconciliation",
     "event": "bulk_tasks_imported", "added": 12, "duplicates": 3}

The second form can be filtered and aggregated by field
(`event == "access_denied" and resource == "roles"`) without regexes.

PIPELINE:
    logger.info("event", key=value)
      -> merge_contextvars -> filter_by_level -> add_logger_name
      -> add_log_level -> TimeStamper -> format_exc_info
      -> ConsoleRenderer (debug) | JSONRenderer (production)

structlog is wired through the stdlib `logging` module, so third-party
libraries (uvicorn, SQLAlchemy) end up in the same output.
=============================================================================
"""

import logging
import sys

import structlog

from tracker.config import settings


_logging_configured: bool = False


def setup_logging() -> None:
    """
    Configure structlog for structured logging. Idempotent.

    Called once from the application lifespan (tracker/main.py) and from the
    operational scripts.
    """
    global _logging_configured

    if _logging_configured:
        return

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=shared_processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer()
        if settings.debug
        else structlog.processors.JSONRenderer(),
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # Keep library chatter at WARNING
    for noisy_logger in ["uvicorn", "uvicorn.access", "sqlalchemy.engine", "aiosqlite"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    _logging_configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a named structured logger. Use the module's __name__:

        logger = get_logger(__name__)
        logger.info("role_changed", role="manager")

    For request-scoped fields use structlog.contextvars.bind_contextvars();
    the access-control dependency binds `role` that way so every log line
    emitted while handling the request carries it.
    """
    return structlog.get_logger(name)
