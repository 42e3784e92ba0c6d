"""
Retry executor for operations against unreliable dependencies.

This module provides a domain-agnostic wrapper that runs a zero-argument
operation, classifies its failures as retryable or fatal, and applies an
exponential backoff between attempts. It is shared by the database helpers
(core.database) and the payment gateway (payments.resilience).

Components:
    - ErrorClassification: RETRYABLE / FATAL tag
    - ErrorClassifier: Pure allow-list classifier configured with data
    - RetryPolicy: Immutable attempt/backoff configuration
    - AttemptRecord: Per-attempt record handed to the on_attempt hook
    - RetryExecutor: Runs an operation under a policy

Usage:
    from core.retry import ErrorClassifier, RetryExecutor, RetryPolicy

    classifier = ErrorClassifier(
        retryable_kinds=frozenset({"ConnectionError"}),
        retryable_codes=frozenset({"ECONNRESET"}),
    )
    executor = RetryExecutor(RetryPolicy(max_attempts=3), classifier)

    document = await executor.execute(lambda: store.write(document))

Design Notes:
    - Only known-transient conditions are retried; anything else is fatal
    - The delay sequence depends only on the attempt number and the policy
    - Backoff waits are asyncio suspension points and honour cancellation
"""

from __future__ import annotations

import asyncio
import errno
import inspect
import logging
import math
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

from django.conf import settings

from core.exceptions import (
    FatalDependencyError,
    RetryExhaustedError,
    RetryPolicyError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Attributes consulted, in order, for a driver or gateway error code
CODE_ATTRIBUTES = ("code", "stripe_code", "sqlstate", "pgcode")


class ErrorClassification(str, Enum):
    """Whether an error is worth retrying."""

    RETRYABLE = "retryable"
    FATAL = "fatal"


def errno_name(error: BaseException) -> str | None:
    """Return the symbolic errno name (e.g. 'ECONNRESET') of an OSError."""
    number = getattr(error, "errno", None)
    if isinstance(error, OSError) and isinstance(number, int):
        return errno.errorcode.get(number)
    return None


def error_kinds(error: BaseException) -> frozenset[str]:
    """
    Collect every kind name an error reports.

    Includes the class names of the error's MRO plus an explicit
    `kind` or `name` string attribute, if the error carries one.
    """
    kinds = {cls.__name__ for cls in type(error).__mro__}
    for attribute in ("kind", "name"):
        value = getattr(error, attribute, None)
        if isinstance(value, str) and value:
            kinds.add(value)
    return frozenset(kinds)


def error_code(error: BaseException) -> str | None:
    """
    Extract a driver or gateway error code.

    Looks at code-like attributes first, then at the errno name,
    then repeats the lookup on the explicit cause (`raise ... from`).
    """
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        for attribute in CODE_ATTRIBUTES:
            value = getattr(current, attribute, None)
            if isinstance(value, str) and value:
                return value
        name = errno_name(current)
        if name:
            return name
        current = current.__cause__
    return None


@dataclass(frozen=True)
class ErrorClassifier:
    """
    Allow-list classifier for dependency errors.

    An error is retryable only when its kind, its code or its message
    is explicitly listed. Everything else is fatal.

    Attributes:
        retryable_kinds: Kind/class names that are always retryable
        retryable_codes: Codes denoting connectivity problems
        coded_kinds: If set, codes only count for errors of these kinds
        retryable_messages: Case-insensitive message fragments
    """

    retryable_kinds: frozenset[str] = frozenset()
    retryable_codes: frozenset[str] = frozenset()
    coded_kinds: frozenset[str] = frozenset()
    retryable_messages: tuple[str, ...] = ()

    def __call__(self, error: BaseException) -> ErrorClassification:
        return self.classify(error)

    def classify(self, error: BaseException) -> ErrorClassification:
        """Classify an error from its kind, code and message only."""
        kinds = error_kinds(error)

        if kinds & self.retryable_kinds:
            return ErrorClassification.RETRYABLE

        code = error_code(error)
        if code and code in self.retryable_codes:
            if not self.coded_kinds or kinds & self.coded_kinds:
                return ErrorClassification.RETRYABLE

        if self.retryable_messages:
            message = str(error).lower()
            if any(fragment.lower() in message for fragment in self.retryable_messages):
                return ErrorClassification.RETRYABLE

        return ErrorClassification.FATAL

    def with_kinds(self, *kinds: str) -> ErrorClassifier:
        """Return a copy that also retries the given kinds."""
        return replace(self, retryable_kinds=self.retryable_kinds | frozenset(kinds))

    def with_codes(self, *codes: str) -> ErrorClassifier:
        """Return a copy that also retries the given codes."""
        return replace(self, retryable_codes=self.retryable_codes | frozenset(codes))


def _is_real_number(value: object) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


@dataclass(frozen=True)
class RetryPolicy:
    """
    Immutable retry configuration.

    Attributes:
        max_attempts: Total invocations allowed, including the first
        base_delay: Delay in seconds before the second attempt
        backoff_multiplier: Growth factor of successive delays
        max_delay: Upper bound for a single delay (None = uncapped)
        jitter: Random extra delay as a fraction of the delay (0 = none)

    Example:
        policy = RetryPolicy(max_attempts=3, base_delay=0.1)
        policy.delays()  # [0.1, 0.2]
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: float | None = None
    jitter: float = 0.0

    def __post_init__(self) -> None:
        """Validate configuration eagerly."""
        if (
            not isinstance(self.max_attempts, int)
            or isinstance(self.max_attempts, bool)
            or self.max_attempts < 1
        ):
            raise RetryPolicyError(
                "max_attempts must be a positive integer",
                details={"max_attempts": self.max_attempts},
            )
        for field_name in ("base_delay", "backoff_multiplier", "max_delay", "jitter"):
            value = getattr(self, field_name)
            if field_name == "max_delay" and value is None:
                continue
            if not _is_real_number(value):
                raise RetryPolicyError(
                    f"{field_name} must be a finite number",
                    details={field_name: repr(value)},
                )
        if self.base_delay < 0:
            raise RetryPolicyError(
                "base_delay must not be negative",
                details={"base_delay": self.base_delay},
            )
        if self.backoff_multiplier < 1:
            raise RetryPolicyError(
                "backoff_multiplier must be at least 1",
                details={"backoff_multiplier": self.backoff_multiplier},
            )
        if self.max_delay is not None and self.max_delay < 0:
            raise RetryPolicyError(
                "max_delay must not be negative",
                details={"max_delay": self.max_delay},
            )
        if not 0 <= self.jitter <= 1:
            raise RetryPolicyError(
                "jitter must be between 0 and 1",
                details={"jitter": self.jitter},
            )

    @classmethod
    def from_settings(cls, prefix: str) -> RetryPolicy:
        """
        Build a policy from Django settings.

        Reads `<prefix>_MAX_ATTEMPTS`, `<prefix>_BASE_DELAY_SECONDS`,
        `<prefix>_BACKOFF_MULTIPLIER`, `<prefix>_MAX_DELAY_SECONDS` and
        `<prefix>_JITTER`, falling back to the class defaults.
        """
        return cls(
            max_attempts=getattr(settings, f"{prefix}_MAX_ATTEMPTS", cls.max_attempts),
            base_delay=getattr(
                settings, f"{prefix}_BASE_DELAY_SECONDS", cls.base_delay
            ),
            backoff_multiplier=getattr(
                settings, f"{prefix}_BACKOFF_MULTIPLIER", cls.backoff_multiplier
            ),
            max_delay=getattr(settings, f"{prefix}_MAX_DELAY_SECONDS", cls.max_delay),
            jitter=getattr(settings, f"{prefix}_JITTER", cls.jitter),
        )

    def delay_for(self, attempt: int) -> float:
        """
        Delay in seconds after the given (1-indexed) failed attempt.

        Attempt 1: base_delay
        Attempt 2: base_delay * multiplier
        Attempt k: base_delay * multiplier ** (k - 1)
        """
        delay = self.base_delay * self.backoff_multiplier ** (attempt - 1)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        if self.jitter:
            delay += delay * random.uniform(0, self.jitter)
        return delay

    def delays(self) -> list[float]:
        """Delays between all attempts (jitter-free policies only are deterministic)."""
        return [self.delay_for(attempt) for attempt in range(1, self.max_attempts)]


@dataclass(frozen=True)
class AttemptRecord:
    """
    Outcome of a single invocation inside one executor call.

    Attributes:
        attempt: 1-indexed attempt number
        error: Error raised by the invocation (None on success)
        classification: Classification of the error (None on success)
        delay: Seconds before the next attempt (None if none follows)
        cancelled: The call was cancelled during this attempt or the
            backoff after it; error is then the attempt's error, if any
    """

    attempt: int
    error: BaseException | None = None
    classification: ErrorClassification | None = None
    delay: float | None = None
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.cancelled


async def _default_sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


@dataclass
class RetryExecutor(Generic[T]):
    """
    Runs fallible operations under a retry policy.

    Instances hold configuration only; every `execute` call keeps its
    attempt state on the stack, so one executor can serve concurrent calls.

    Attributes:
        policy: Attempt budget and backoff
        classify: Maps an error to RETRYABLE or FATAL
        sleep: Awaitable sleep used for backoff (inject a fake in tests)
        on_attempt: Optional hook receiving an AttemptRecord per attempt
        name: Operation name used in log records

    Example:
        executor = RetryExecutor(policy, classifier, name="confirm_intent")
        confirmation = await executor.execute(
            lambda: gateway.confirm(intent_id, idempotency_key)
        )
    """

    policy: RetryPolicy
    classify: Callable[[BaseException], ErrorClassification]
    sleep: Callable[[float], Awaitable[None]] = field(default=_default_sleep)
    on_attempt: Callable[[AttemptRecord], None] | None = None
    name: str = "operation"

    async def execute(self, operation: Callable[[], T | Awaitable[T]]) -> T:
        """
        Run `operation` until it succeeds, fails fatally or runs out of attempts.

        Args:
            operation: Zero-argument callable returning a value or an awaitable

        Returns:
            The operation's result

        Raises:
            FatalDependencyError: First error classified fatal
            RetryExhaustedError: Retryable error on the last attempt
            asyncio.CancelledError: Cancelled during an attempt or a backoff
        """
        log_context = {
            "operation": self.name,
            "max_attempts": self.policy.max_attempts,
        }

        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
            except asyncio.CancelledError:
                self._notify(AttemptRecord(attempt, cancelled=True))
                logger.info(
                    "Operation cancelled during attempt",
                    extra={**log_context, "attempt": attempt},
                )
                raise
            except (FatalDependencyError, RetryExhaustedError) as e:
                # Already terminal (raised by a nested executor)
                self._notify(AttemptRecord(attempt, e, ErrorClassification.FATAL))
                raise
            except Exception as e:
                classification = self.classify(e)

                if classification is ErrorClassification.FATAL:
                    self._notify(AttemptRecord(attempt, e, classification))
                    logger.error(
                        "Operation failed with non-retryable error",
                        extra={
                            **log_context,
                            "attempt": attempt,
                            "error_type": type(e).__name__,
                        },
                    )
                    raise FatalDependencyError(
                        f"{self.name} failed: {type(e).__name__}",
                        attempts=attempt,
                        last_error=e,
                    ) from e

                if attempt == self.policy.max_attempts:
                    self._notify(AttemptRecord(attempt, e, classification))
                    logger.error(
                        f"Operation failed after {attempt} attempts",
                        extra={
                            **log_context,
                            "attempt": attempt,
                            "error_type": type(e).__name__,
                        },
                    )
                    raise RetryExhaustedError(
                        f"{self.name} failed after {attempt} attempts",
                        attempts=attempt,
                        last_error=e,
                    ) from e

                delay = self.policy.delay_for(attempt)
                self._notify(AttemptRecord(attempt, e, classification, delay))
                logger.warning(
                    f"Retrying operation in {delay:.3f}s "
                    f"(attempt {attempt}/{self.policy.max_attempts})",
                    extra={
                        **log_context,
                        "attempt": attempt,
                        "delay_seconds": delay,
                        "error_type": type(e).__name__,
                    },
                )

                try:
                    await self.sleep(delay)
                except asyncio.CancelledError:
                    self._notify(AttemptRecord(attempt, e, cancelled=True))
                    logger.info(
                        "Operation cancelled during backoff",
                        extra={**log_context, "attempt": attempt},
                    )
                    raise
            else:
                self._notify(AttemptRecord(attempt))
                if attempt > 1:
                    logger.info(
                        "Operation succeeded after retry",
                        extra={**log_context, "attempt": attempt},
                    )
                return result

        # Unreachable: the loop either returns or raises
        raise AssertionError("retry loop exited without a result")

    def _notify(self, record: AttemptRecord) -> None:
        if self.on_attempt is not None:
            self.on_attempt(record)


async def execute(
    operation: Callable[[], T | Awaitable[T]],
    classify: Callable[[BaseException], ErrorClassification],
    policy: RetryPolicy | None = None,
    **kwargs,
) -> T:
    """
    Run `operation` once through a throwaway RetryExecutor.

    Example:
        user = await execute(load_user, DATABASE_CLASSIFIER, RetryPolicy())
    """
    executor: RetryExecutor[T] = RetryExecutor(
        policy=policy or RetryPolicy(), classify=classify, **kwargs
    )
    return await executor.execute(operation)


__all__ = [
    "AttemptRecord",
    "ErrorClassification",
    "ErrorClassifier",
    "RetryExecutor",
    "RetryPolicy",
    "error_code",
    "error_kinds",
    "errno_name",
    "execute",
]
