"""
Payment-specific exceptions for payment operations.

This module provides a hierarchy of exceptions for payment operations,
including payment domain errors, state machine errors, and
Stripe-specific errors.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentValidationError - Payment validation failures
    └── PaymentProcessingError - Payment processing failures
        └── StripeError - Base for all Stripe errors
            ├── StripeCardDeclinedError - Card declined (permanent)
            ├── StripeInsufficientFundsError - Insufficient funds (permanent)
            ├── StripeInvalidRequestError - Invalid request params (permanent)
            ├── StripeIdempotencyError - Idempotency key reused (permanent)
            ├── StripeRateLimitError - Rate limited (transient, retry)
            ├── StripeAPIUnavailableError - API unavailable (transient, retry)
            └── StripeTimeoutError - Request timeout (transient, retry)

    InvalidStateTransitionError - Transition not allowed (inherits ConflictError)
    ConcurrentSubmissionError - Submission already in flight (inherits ConflictError)

The transient Stripe errors also inherit core.exceptions.TransientDependencyError,
which is the kind every default retry classifier treats as retryable.

Usage:
    from payments.exceptions import (
        ConcurrentSubmissionError,
        InvalidStateTransitionError,
        StripeCardDeclinedError,
    )

    # Invalid state transition
    raise InvalidStateTransitionError(
        "Cannot move payment attempt from 'succeeded' to 'processing'",
        details={"current_state": "succeeded", "target_state": "processing"}
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError, TransientDependencyError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    All payment-specific exceptions inherit from this class,
    which itself inherits from BaseApplicationError for
    consistent error reporting.
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentValidationError(PaymentError):
    """
    Raised when payment validation fails.

    Use for:
    - Non-positive amounts
    - Currency codes that are not lowercase ISO 4217
    - Missing required fields

    Example:
        if amount_cents <= 0:
            raise PaymentValidationError(
                "Payment amount must be positive",
                details={"amount_cents": amount_cents}
            )
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class PaymentProcessingError(PaymentError):
    """
    Raised when payment processing fails.

    Use for:
    - Stripe API errors
    - Payment gateway failures
    - Processing timeouts
    """

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(PaymentProcessingError):
    """
    Base exception for all Stripe-related errors.

    Provides common attributes for Stripe error handling:
    - stripe_code: Stripe's internal error code
    - decline_code: Card decline code (if applicable)
    - is_retryable: Whether the operation can be retried

    Note:
        Retry decisions are made by payments.resilience.gateway_classifier,
        which matches on the error kind. is_retryable mirrors that decision
        for callers that only hold the exception.
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeCardDeclinedError(StripeError):
    """
    Card was declined by the issuing bank.

    This is a permanent error - do not retry with the same card.
    The decline_code attribute contains the specific reason
    (generic_decline, lost_card, expired_card, incorrect_cvc, ...).
    Decline codes are for logs only, never for end-user messages.
    """

    default_error_code: str = "CARD_DECLINED"
    is_retryable: bool = False


class StripeInsufficientFundsError(StripeError):
    """
    Insufficient funds on the payment method.

    Note:
        This is a permanent error - do not retry automatically.
        User action is required before retry can succeed.
    """

    default_error_code: str = "INSUFFICIENT_FUNDS"
    is_retryable: bool = False


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe.

    This is a permanent error - the request itself is malformed
    and will never succeed with the same parameters. Also raised
    for authentication and permission failures.

    Note:
        This usually indicates a bug in our code, not a user error.
        Log these errors for developer investigation.
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"
    is_retryable: bool = False


class StripeIdempotencyError(StripeError):
    """
    An idempotency key was reused with different parameters.

    Fatal by default. Deployments that want to retry it can add
    "idempotency_error" to STRIPE_RETRYABLE_CODES.
    """

    default_error_code: str = "STRIPE_IDEMPOTENCY_CONFLICT"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError, TransientDependencyError):
    """
    Rate limited by Stripe API.

    Retry Strategy:
    - Exponential backoff starting at STRIPE_RETRY_BASE_DELAY_SECONDS
    - At most STRIPE_RETRY_MAX_ATTEMPTS attempts in total
    """

    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError, TransientDependencyError):
    """
    Stripe API is temporarily unavailable.

    This covers:
    - Network connectivity issues
    - Stripe server errors (5xx)
    - DNS resolution failures
    - SSL/TLS errors
    """

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError, TransientDependencyError):
    """
    Stripe API call timed out.

    IMPORTANT: The operation may have succeeded on Stripe's side.
    Retries reuse the same idempotency key, so Stripe returns the
    original response instead of repeating the operation.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# State Machine Exceptions
# =============================================================================


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    Attributes:
        details: Contains current_state and target_state

    Example:
        raise InvalidStateTransitionError(
            "Cannot move confirmation from 'idle' to 'succeeded'",
            details={"current_state": "idle", "target_state": "succeeded"},
        )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


class ConcurrentSubmissionError(ConflictError):
    """
    Raised when a payment attempt is submitted while a submission is in flight.

    The second submission is rejected, not queued, so a single payment
    attempt never produces two concurrent gateway calls.
    """

    default_error_code: str = "CONCURRENT_SUBMISSION"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentValidationError",
    "PaymentProcessingError",
    # Stripe-specific
    "StripeError",
    "StripeCardDeclinedError",
    "StripeInsufficientFundsError",
    "StripeInvalidRequestError",
    "StripeIdempotencyError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StripeTimeoutError",
    # State machines
    "InvalidStateTransitionError",
    "ConcurrentSubmissionError",
]
