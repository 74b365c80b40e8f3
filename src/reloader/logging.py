"""Structured logging configuration using structlog."""

import logging
import sys
from typing import Any

import structlog


def configure_logging(debug: bool = False) -> None:
    """Configure structlog for JSON output.

    Args:
        debug: Enable debug-level logging when True.
    """
    level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True


def _drop_event(logger: Any, method_name: str, event_dict: Any) -> Any:
    raise structlog.DropEvent


def get_diagnostic_logger(enabled: bool, **context: Any) -> Any:
    """Return the logger used for runtime diagnostics.

    When disabled, the returned logger discards every entry before it
    reaches a renderer, so a silent reloader produces no output at all.

    Args:
        enabled: Whether diagnostics should be emitted.
        **context: Key/value pairs bound to every entry.

    Returns:
        A structlog bound logger.
    """
    if enabled:
        return structlog.get_logger().bind(**context)
    return structlog.wrap_logger(
        structlog.ReturnLogger(),
        processors=[_drop_event],
        **context,
    )
