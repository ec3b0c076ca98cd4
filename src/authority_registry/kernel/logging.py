"""
Structured operational logging (structlog).

The audit log records *who* changed the authorization set; the operational
log records *that* something happened, how long it took and whether it
failed. Principal identities are redacted from the latter, and a
correlation id ties the lines of one operation together.
"""

import contextvars
import logging
import os
import secrets
import sys
import time
from typing import Any

import structlog

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

REDACTED = "***REDACTED***"

# Every keyword the registry uses to log a principal
PRINCIPAL_FIELDS = frozenset(
    {"actor", "caller", "creator", "principal", "subject"}
)


def get_correlation_id() -> str:
    """Correlation id of the current context, created on first use."""
    cid = correlation_id_var.get()
    if not cid:
        cid = secrets.token_urlsafe(16)
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def _add_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


def configure_logging(*, json_output: bool = False, log_level: str = "INFO") -> None:
    """
    Route structlog through stdlib logging on stderr.

    Args:
        json_output: One JSON object per line (production) instead of
            the plain console renderer
        log_level: Name of the minimum stdlib level
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )
    # Flask's request log would otherwise repeat every health probe
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    renderer: list[structlog.types.Processor]
    if json_output:
        renderer = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderer = [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_correlation_id,
            *renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def is_production() -> bool:
    """ENVIRONMENT=production selects JSON logs and hides stack traces."""
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Copy of context with principal fields masked.

    >>> redact_context({"caller": "alice", "operation": "grant"})
    {'caller': '***REDACTED***', 'operation': 'grant'}
    """
    return {k: REDACTED if k in PRINCIPAL_FIELDS else v for k, v in context.items()}


class LogOperation:
    """Time a block and log it as started / completed / failed."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.context = redact_context(context)
        self.start_time = 0.0

    def __enter__(self) -> "LogOperation":
        self.start_time = time.perf_counter()
        self.logger.debug(f"{self.operation} started", operation=self.operation, **self.context)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)

        if exc_type is None:
            self.logger.info(
                f"{self.operation} completed",
                operation=self.operation,
                duration_ms=duration_ms,
                **self.context,
            )
        else:
            self.logger.error(
                f"{self.operation} failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error=str(exc_val),
                error_type=exc_type.__name__,
                exc_info=not is_production(),
                **self.context,
            )
