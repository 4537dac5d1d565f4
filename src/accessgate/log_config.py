"""structlog setup.

Learn: every module does `logger = structlog.get_logger()` and logs
dotted event names with key/value fields. This module wires the
processor chain once at startup: contextvars first (so the request_id
bound by RequestIdMiddleware shows up everywhere), then level filtering,
then a console renderer in development or JSON elsewhere.
"""

import logging

import structlog


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog for the whole process.

    Raises ValueError for a level name the logging module doesn't know.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
    )
