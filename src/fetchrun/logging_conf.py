"""Logging configuration built around structlog."""

import logging
import sys

import structlog

_LOGGING_INITIALISED = False


def configure_logging(level: str = "INFO") -> structlog.stdlib.BoundLogger:
    """Configure structlog + stdlib console logging and return the app logger."""
    global _LOGGING_INITIALISED

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    if not _LOGGING_INITIALISED:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(colors=False),
                foreign_pre_chain=[
                    structlog.stdlib.add_log_level,
                    structlog.processors.TimeStamper(fmt="iso"),
                ],
            )
        )
        root = logging.getLogger("fetchrun")
        root.addHandler(handler)
        root.propagate = False

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.filter_by_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True

    logging.getLogger("fetchrun").setLevel(numeric_level)
    return structlog.get_logger("fetchrun")
