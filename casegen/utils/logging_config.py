"""
Logging configuration using structlog for structured, JSON-based logging.

Every casegen module logs through ``structlog.get_logger(__name__)``; this
module wires up the processor pipeline once, from the CLI entry point.
Events go to stderr so they never mix with command output.
"""

import sys

import structlog


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured logging with JSON output.

    Sets up structlog with a pipeline of processors that add timestamps, log
    levels, stack traces and context variables to every event.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level.upper()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
