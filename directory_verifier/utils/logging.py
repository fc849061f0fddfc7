"""Structured logging utilities using structlog for pipeline context and tracing."""

import sys
import uuid
from typing import Any, Optional

import structlog
from structlog.contextvars import merge_contextvars
from structlog.processors import JSONRenderer

from directory_verifier.config.settings import settings

IS_TTY = sys.stderr.isatty()


def configure_structured_logging(level: Optional[str] = None) -> None:
    """
    Configure structured logging with appropriate processors and renderers.

    Args:
        level: Overrides LOG_LEVEL

    Uses:
    - Console renderer for development (colorized, human-readable)
    - JSON renderer for production (structured, machine-readable)
    - Context binding for batch_id and resource_id
    """
    processors = [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if IS_TTY and settings.log_format.lower() == "console":
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger((level or settings.log_level).upper()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_correlation_id() -> str:
    """Generate a correlation ID that ties together the log lines of one batch run."""
    return str(uuid.uuid4())


def bind_batch_context(batch_id: str, dry_run: Optional[bool] = None) -> None:
    """
    Bind batch context into structlog contextvars for the running task.

    Args:
        batch_id: Correlation ID for the batch
        dry_run: Whether the batch suppresses persistence
    """
    context: dict[str, Any] = {"batch_id": batch_id}
    if dry_run is not None:
        context["dry_run"] = dry_run
    structlog.contextvars.bind_contextvars(**context)


def clear_batch_context() -> None:
    """Remove batch context bound by bind_batch_context."""
    structlog.contextvars.unbind_contextvars("batch_id", "dry_run")


configure_structured_logging()


__all__ = [
    "get_correlation_id",
    "bind_batch_context",
    "clear_batch_context",
    "configure_structured_logging",
]
