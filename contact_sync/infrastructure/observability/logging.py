"""
Structured logging setup for the contact sync pipeline.
Provides JSON-formatted logs with consistent fields for batch and remote call tracing.
"""

import asyncio
import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_task_context,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _add_task_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Tag entries with the asyncio task name when logged from inside a task."""
    try:
        task = asyncio.current_task()
    except RuntimeError:
        task = None
    if task is not None and "task" not in event_dict:
        event_dict["task"] = task.get_name()
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_remote_call(
    operation: str, status_code: int | None, duration_ms: float, error: str = None, **context
):
    """Log a directory API call with consistent fields."""
    logger = get_logger("directory")

    log_data = {
        "operation": operation,
        "status_code": status_code,
        "duration_ms": round(duration_ms, 2),
        **context,
    }

    if error:
        log_data["error"] = error

    if error or (status_code is not None and status_code >= 300):
        logger.warning("Directory call failed", **log_data)
    else:
        logger.info("Directory call completed", **log_data)
