"""Structured logging configuration using *structlog*."""

from __future__ import annotations

import logging
import sys

import structlog


def setup_logging(level: str = "INFO", json_logs: bool | None = None) -> None:
    """Configure *structlog* and route stdlib loggers (uvicorn) to the same stream.

    Everything goes to stderr so ``ambient-context evaluate`` can print
    its result on stdout.  ``json_logs=None`` picks the console renderer
    on a TTY and JSON lines otherwise.
    """
    log_level = getattr(logging, level, logging.INFO)
    if json_logs is None:
        json_logs = not sys.stderr.isatty()

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level, force=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info if json_logs else structlog.dev.set_exc_info,
            structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
