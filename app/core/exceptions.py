"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error reporting across the application
- Machine-readable error codes for client handling
- A shared taxonomy for failures of external dependencies

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input or configuration validation failures
    │   └── RetryPolicyError - Invalid retry policy configuration
    ├── ConflictError - State conflicts (concurrent submissions, transitions)
    └── ExternalServiceError - Third-party service failures
        └── DependencyError - Failures of a database or gateway call
            ├── TransientDependencyError - Network/timeout, retried per policy
            ├── FatalDependencyError - Never retried, surfaced immediately
            └── RetryExhaustedError - Transient failure outlived the retry budget

    Cancellation is not part of the hierarchy: a cancelled retry sequence
    raises the task's own asyncio.CancelledError.

Usage:
    from core.exceptions import FatalDependencyError, RetryExhaustedError

    try:
        result = await execute(operation, classify, policy)
    except RetryExhaustedError as e:
        logger.error(f"Dependency down after {e.attempts} attempts")
    except FatalDependencyError as e:
        logger.error(f"Request rejected: {e.last_error!r}")

Note:
    These exceptions are for domain/business logic errors.
    Never echo `details` or `last_error` to end users.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Provides a consistent interface for error handling across the application.
    All custom exceptions should inherit from this class.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging or API responses.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "Retry budget exhausted",
                "error_code": "RETRY_EXHAUSTED",
                "details": {"attempts": 3}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input or configuration validation fails.

    Example:
        raise ValidationError(
            "Currency must be a lowercase ISO code",
            details={"currency": "USD"},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"


class ConflictError(BaseApplicationError):
    """
    Raised when operation conflicts with current resource state.

    Use for:
    - Concurrent submissions for the same resource
    - Invalid state transitions
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Note:
        Log the original error for debugging but don't expose
        internal details to clients in production.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"


# =============================================================================
# Dependency Failure Taxonomy
# =============================================================================


class DependencyError(ExternalServiceError):
    """
    Base for failures of a call against a database or payment gateway.

    Attributes:
        attempts: Number of invocations made before this error was raised
        last_error: The underlying error of the final invocation, if any
    """

    default_error_code: str = "DEPENDENCY_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        attempts: int | None = None,
        last_error: BaseException | None = None,
    ):
        details = details or {}
        if attempts is not None:
            details["attempts"] = attempts
        if last_error is not None:
            details["last_error_kind"] = type(last_error).__name__
        super().__init__(message, error_code=error_code, details=details)
        self.attempts = attempts
        self.last_error = last_error


class TransientDependencyError(DependencyError):
    """
    Network, timeout or connection-reset failure of a dependency.

    Every default classifier treats this kind as retryable.
    """

    default_error_code: str = "DEPENDENCY_UNAVAILABLE"


class FatalDependencyError(DependencyError):
    """
    Malformed request, authentication failure or declined payment.

    Raised by the retry executor the first time an error is classified
    fatal. The original error is available as `last_error` and `__cause__`.
    """

    default_error_code: str = "DEPENDENCY_FATAL"


class RetryExhaustedError(DependencyError):
    """
    A transient condition persisted beyond the retry budget.

    Distinct from FatalDependencyError so operators can tell
    "dependency is down" from "request is invalid".
    """

    default_error_code: str = "RETRY_EXHAUSTED"


class RetryPolicyError(ValidationError):
    """Raised when a retry policy is constructed with invalid values."""

    default_error_code: str = "INVALID_RETRY_POLICY"


__all__ = [
    "BaseApplicationError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DependencyError",
    "TransientDependencyError",
    "FatalDependencyError",
    "RetryExhaustedError",
    "RetryPolicyError",
]
