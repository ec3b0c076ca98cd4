"""
Retry logic with exponential backoff for SQLite lock contention.

Only storage-level transient failures are retried. Domain failures such as
NotAuthorized are never retried internally - resubmission is the host's call.
"""

import sqlite3
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from authority_registry.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _log_retry(message: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        logger.warning(
            message,
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )

    return before_sleep


def retry_on_sqlite_lock(
    max_attempts: int = 3,
    min_wait_ms: int = 100,
    max_wait_ms: int = 1000,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for SQLite lock contention (OperationalError).

    SQLite uses file-based locking and can raise "database is locked"
    when another process holds the write lock. This retries with
    exponential backoff and re-raises the last error when attempts run out.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait_ms: Minimum wait time in milliseconds (default: 100)
        max_wait_ms: Maximum wait time in milliseconds (default: 1000)

    Returns:
        Decorator retrying on sqlite3.OperationalError

    Example:
        @retry_on_sqlite_lock()
        def append(...):
            cursor.execute(...)
    """
    return retry(
        retry=retry_if_exception_type(sqlite3.OperationalError),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=_log_retry("SQLite lock detected, retrying"),
        reraise=True,
    )


def retry_projection_rebuild(
    max_attempts: int = 3,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for rebuilding the authorization projection.

    Rebuilds read the whole stream plus the snapshot and can hit lock
    contention or transient I/O errors while another process writes.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
    """
    return retry(
        retry=retry_if_exception_type((sqlite3.OperationalError, OSError)),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=0.5, max=5.0),
        before_sleep=_log_retry("Projection rebuild failed, retrying"),
        reraise=True,
    )
