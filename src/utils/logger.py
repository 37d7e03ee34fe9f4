"""
HotSwap Structured Logging Module.

Provides consistent, structured logging throughout the tool.
Requires Python 3.11+.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import FilteringBoundLogger, Processor

from utils.config import get_settings


def _add_app_context(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add application context to all log entries."""
    settings = get_settings()
    event_dict["app"] = settings.app_name
    event_dict["version"] = settings.app_version
    return event_dict


def configure_logging(verbose: bool = False) -> None:
    """
    Configure structured logging for the tool.

    Call this once at startup.

    Args:
        verbose: Force DEBUG level regardless of LOG_LEVEL
    """
    settings = get_settings()
    level = logging.DEBUG if verbose else getattr(logging, settings.logging.level.upper())

    # Common processors for all output formats
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_app_context,
    ]

    if settings.logging.format == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # Console format, colored severity tags
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )

    # Suppress noisy loggers
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


# Pre-configured logger for quick imports
logger = get_logger("hotswap")


class LoggerMixin:
    """
    Mixin class to add logging capability to any class.

    Usage:
        class MyClass(LoggerMixin):
            def my_method(self):
                self.log.info("doing something", key="value")
    """

    @property
    def log(self) -> FilteringBoundLogger:
        """Get logger bound to this class name."""
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger
