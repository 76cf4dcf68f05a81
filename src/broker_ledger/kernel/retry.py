"""
Retry policies for transient write failures.

Two kinds of failure are worth retrying: SQLite lock contention and losing
an optimistic-locking race on a stream. Both are safe to retry because the
retried unit re-reads state before deciding anything.
"""

import sqlite3
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)

from broker_ledger.kernel.errors import StreamVersionConflict
from broker_ledger.kernel.logging import get_logger
from broker_ledger.kernel.metrics import stream_version_conflicts_total

logger = get_logger(__name__)

T = TypeVar("T")


def retry_on_sqlite_lock(
    max_attempts: int = 3,
    min_wait_ms: int = 50,
    max_wait_ms: int = 1000,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for "database is locked" (sqlite3.OperationalError).

    Example:
        @retry_on_sqlite_lock()
        def append_atomic(...):
            ...
    """
    return retry(
        retry=retry_if_exception_type(sqlite3.OperationalError),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=lambda retry_state: logger.warning(
            "SQLite lock detected, retrying",
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        ),
        reraise=True,
    )


def _log_conflict(retry_state) -> None:
    stream_version_conflicts_total.inc()
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.info(
        "Stream changed underneath the write, reloading",
        attempt=retry_state.attempt_number,
        stream_id=getattr(exc, "stream_id", None),
    )


def retry_on_version_conflict(
    max_attempts: int = 10,
    max_wait_ms: int = 200,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for StreamVersionConflict.

    The decorated callable must reload state and re-run validation on every
    attempt; a retried write is then judged against the winner's balance.
    Waits between attempts are jittered exponential, capped at max_wait_ms.
    """
    return retry(
        retry=retry_if_exception_type(StreamVersionConflict),
        stop=stop_after_attempt(max_attempts),
        wait=wait_random_exponential(multiplier=0.005, max=max_wait_ms / 1000.0),
        before_sleep=_log_conflict,
        reraise=True,
    )
