"""
Database resilience helpers.

Wraps ORM work in the retry executor so that dropped connections,
failovers and timeouts are retried while integrity or programming
errors surface immediately.

Usage:
    from core.database import run_with_db_retry

    def mark_booked():
        return Session.objects.filter(pk=session_id).update(status="booked")

    updated = await run_with_db_retry(mark_booked)

    # From synchronous code
    from asgiref.sync import async_to_sync
    updated = async_to_sync(run_with_db_retry)(mark_booked)

Design Notes:
    - The operation runs in Django's thread-sensitive executor, so it may
      use the ORM freely
    - A connection that errored is discarded before the next attempt,
      letting Django reconnect on demand
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar

from asgiref.sync import sync_to_async
from django.db import connections

from core.retry import ErrorClassifier, RetryExecutor, RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from core.retry import AttemptRecord, ErrorClassification

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATEs for lost or refused connections (class 08)
# and server shutdown (57P01-57P03)
CONNECTION_SQLSTATES = frozenset(
    {"08000", "08001", "08003", "08004", "08006", "57P01", "57P02", "57P03"}
)

CONNECTION_ERRNO_CODES = frozenset({"ETIMEDOUT", "ECONNREFUSED", "ECONNRESET", "EPIPE"})

DATABASE_CLASSIFIER = ErrorClassifier(
    retryable_kinds=frozenset(
        {"TransientDependencyError", "ConnectionError", "TimeoutError"}
    ),
    retryable_codes=CONNECTION_SQLSTATES | CONNECTION_ERRNO_CODES,
    coded_kinds=frozenset({"OperationalError", "InterfaceError", "OSError"}),
    retryable_messages=(
        "connect ECONNREFUSED",
        "connection refused",
        "connection timed out",
        "server closed the connection unexpectedly",
    ),
)


def database_retry_policy() -> RetryPolicy:
    """Retry policy for ORM operations, from DATABASE_RETRY_* settings."""
    return RetryPolicy.from_settings("DATABASE_RETRY")


def connection_state(using: str = "default") -> str:
    """
    Report whether the connection alias currently holds a usable connection.

    Returns "connected" or "disconnected". Must be called from sync code,
    since checking usability may round-trip to the server.
    """
    connection = connections[using]
    if connection.connection is None:
        return "disconnected"
    return "connected" if connection.is_usable() else "disconnected"


def discard_broken_connection(using: str = "default") -> bool:
    """
    Close the alias connection if it errored or outlived CONN_MAX_AGE.

    Django reconnects lazily on the next query. Returns True if an open
    connection was discarded.
    """
    connection = connections[using]
    was_open = connection.connection is not None
    connection.close_if_unusable_or_obsolete()
    if was_open and connection.connection is None:
        logger.warning("Database disconnected", extra={"alias": using})
        return True
    return False


async def run_with_db_retry(
    operation: Callable[[], T],
    *,
    using: str = "default",
    policy: RetryPolicy | None = None,
    classify: Callable[[BaseException], ErrorClassification] | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    on_attempt: Callable[[AttemptRecord], None] | None = None,
) -> T:
    """
    Run a synchronous ORM operation with retries on connectivity errors.

    Args:
        operation: Zero-argument callable doing the ORM work
        using: Database alias whose connection is checked between attempts
        policy: Retry policy (defaults to DATABASE_RETRY_* settings)
        classify: Error classifier (defaults to DATABASE_CLASSIFIER)
        sleep: Backoff sleep override (tests)
        on_attempt: Per-attempt hook

    Returns:
        The operation's result

    Raises:
        FatalDependencyError: Non-connectivity database error
        RetryExhaustedError: Connectivity error persisted on every attempt
        asyncio.CancelledError: Caller cancelled the retry sequence
    """

    def run_once() -> T:
        discard_broken_connection(using)
        return operation()

    executor_kwargs = {}
    if sleep is not None:
        executor_kwargs["sleep"] = sleep

    executor: RetryExecutor[T] = RetryExecutor(
        policy=policy or database_retry_policy(),
        classify=classify or DATABASE_CLASSIFIER,
        on_attempt=on_attempt,
        name=getattr(operation, "__name__", "database_operation"),
        **executor_kwargs,
    )
    return await executor.execute(sync_to_async(run_once, thread_sensitive=True))


__all__ = [
    "CONNECTION_ERRNO_CODES",
    "CONNECTION_SQLSTATES",
    "DATABASE_CLASSIFIER",
    "connection_state",
    "database_retry_policy",
    "discard_broken_connection",
    "run_with_db_retry",
]
