"""
Stripe API adapter for payment operations.

This module provides the StripeAdapter class which encapsulates all
Stripe API interactions. All Stripe calls should go through this
adapter to ensure consistent error handling, timeouts, idempotency,
and observability.

Features:
- Configurable timeouts on all API calls
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Idempotency support for safe retries
- SDK-level network retries disabled; retries belong to core.retry

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from payments.adapters import StripeAdapter, CreatePaymentIntentParams

    # Create a PaymentIntent
    result = StripeAdapter.create_payment_intent(
        CreatePaymentIntentParams(
            amount_cents=5000,
            currency='usd',
            metadata={'payment_attempt_id': str(attempt.id)},
            idempotency_key='create_intent:attempt_123:1',
        )
    )

    # Confirm it
    result = StripeAdapter.confirm_payment_intent(
        payment_intent_id=result.id,
        idempotency_key='confirm_intent:attempt_123:1',
        payment_method='pm_card_visa',
    )
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeError,
    StripeIdempotencyError,
    StripeInsufficientFundsError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreatePaymentIntentParams:
    """
    Parameters for creating a Stripe PaymentIntent.

    Attributes:
        amount_cents: Payment amount in smallest currency unit (e.g., cents)
        currency: Lowercase ISO 4217 currency code
        idempotency_key: Unique key for idempotent creation
        metadata: Key-value pairs to attach to the PaymentIntent
        customer_id: Optional Stripe Customer ID
        payment_method_types: Allowed payment methods (default: ['card'])
    """

    amount_cents: int
    currency: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)
    customer_id: str | None = None
    payment_method_types: list[str] = field(default_factory=lambda: ["card"])

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if not isinstance(self.amount_cents, int) or self.amount_cents <= 0:
            raise ValueError("amount_cents must be a positive integer")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if not self.currency:
            raise ValueError("currency is required")
        if self.currency != self.currency.lower():
            raise ValueError("currency must be a lowercase ISO code")


@dataclass
class CreateCustomerParams:
    """
    Parameters for creating a Stripe Customer.

    Attributes:
        email: Customer email address
        idempotency_key: Unique key for idempotent creation
        payment_method_id: Optional PaymentMethod set as invoice default
        metadata: Key-value pairs to attach to the Customer
    """

    email: str
    idempotency_key: str
    payment_method_id: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if not self.email:
            raise ValueError("email is required")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")


@dataclass
class PaymentIntentResult:
    """
    Result from Stripe PaymentIntent operations.

    Attributes:
        id: PaymentIntent ID (pi_xxx)
        status: Current status (requires_payment_method, requires_action,
            processing, succeeded, canceled, ...)
        amount_cents: Amount in cents
        currency: Currency code
        client_secret: Secret for client-side confirmation
        next_action: Action the customer must complete (3-D Secure, redirect)
        last_payment_error: Error of the last failed confirmation, if any
        metadata: Attached metadata
        raw_response: Full Stripe response dict (for debugging)
    """

    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str | None = None
    next_action: dict[str, Any] | None = None
    last_payment_error: dict[str, Any] | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class CustomerResult:
    """
    Result from Stripe Customer operations.

    Attributes:
        id: Customer ID (cus_xxx)
        email: Customer email
        default_payment_method: Invoice default PaymentMethod ID
        raw_response: Full Stripe response dict
    """

    id: str
    email: str | None = None
    default_payment_method: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The hash component provides uniqueness across service restarts
    while the structured format aids debugging and correlation.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation='confirm_intent',
            entity_id=payment_attempt.id,
            attempt=1,
        )
        # Result: "confirm_intent:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        """
        Generate a unique idempotency key.

        Args:
            operation: The Stripe operation (create_intent, confirm_intent, etc.)
            entity_id: The domain entity ID (payment_attempt_id, etc.)
            attempt: Submission number (default: 1)

        Returns:
            Formatted idempotency key string
        """
        entity_str = str(entity_id)
        # Create a short hash for uniqueness using SECRET_KEY
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are class methods - no instance state is maintained.
    Thread-safe; the async gateway calls it from worker threads.

    Usage:
        result = StripeAdapter.create_payment_intent(params)
        result = StripeAdapter.confirm_payment_intent(pi_id, idem_key)
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key and timeout."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        # Retries are driven by core.retry, never by the SDK
        stripe.max_network_retries = 0
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # PaymentIntent Operations
    # =========================================================================

    @classmethod
    def create_payment_intent(
        cls,
        params: CreatePaymentIntentParams,
        trace_id: str | None = None,
    ) -> PaymentIntentResult:
        """
        Create a Stripe PaymentIntent.

        Args:
            params: Parameters for creating the PaymentIntent
            trace_id: Optional trace ID for distributed tracing

        Returns:
            PaymentIntentResult with PaymentIntent details including client_secret

        Raises:
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError: Stripe service unavailable
            StripeTimeoutError: Request timed out
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_payment_intent",
            "amount_cents": params.amount_cents,
            "currency": params.currency,
            "idempotency_key": params.idempotency_key,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            create_params: dict[str, Any] = {
                "amount": params.amount_cents,
                "currency": params.currency,
                "metadata": params.metadata,
                "payment_method_types": params.payment_method_types,
            }
            if params.customer_id:
                create_params["customer"] = params.customer_id

            intent = stripe.PaymentIntent.create(
                idempotency_key=params.idempotency_key,
                **create_params,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "payment_intent_id": intent.id,
                    "status": intent.status,
                    "duration_ms": duration_ms,
                },
            )

            return cls._to_intent_result(intent)

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise  # Never reached, but satisfies type checker

    @classmethod
    def confirm_payment_intent(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        payment_method: str | None = None,
        return_url: str | None = None,
        trace_id: str | None = None,
    ) -> PaymentIntentResult:
        """
        Confirm a PaymentIntent.

        A declined card is reported by Stripe as a CardError and
        translated to StripeCardDeclinedError; a PaymentIntent needing
        3-D Secure comes back with status 'requires_action'.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx)
            idempotency_key: Unique key for idempotent confirmation
            payment_method: Optional PaymentMethod ID to confirm with
            return_url: Redirect target for redirect-based authentication
            trace_id: Optional trace ID for distributed tracing

        Returns:
            PaymentIntentResult with the confirmed PaymentIntent

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInsufficientFundsError: Insufficient funds
            StripeInvalidRequestError: PaymentIntent not confirmable
            StripeAPIUnavailableError: Stripe service unavailable
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "confirm_payment_intent",
            "payment_intent_id": payment_intent_id,
            "idempotency_key": idempotency_key,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            confirm_params: dict[str, Any] = {}
            if payment_method:
                confirm_params["payment_method"] = payment_method
            if return_url:
                confirm_params["return_url"] = return_url

            intent = stripe.PaymentIntent.confirm(
                payment_intent_id,
                idempotency_key=idempotency_key,
                **confirm_params,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "status": intent.status,
                    "duration_ms": duration_ms,
                },
            )

            return cls._to_intent_result(intent)

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def retrieve_payment_intent(
        cls,
        payment_intent_id: str,
        trace_id: str | None = None,
    ) -> PaymentIntentResult:
        """
        Retrieve a PaymentIntent by ID.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx)
            trace_id: Optional trace ID for distributed tracing

        Returns:
            PaymentIntentResult with PaymentIntent details

        Raises:
            StripeInvalidRequestError: PaymentIntent not found
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "retrieve_payment_intent",
            "payment_intent_id": payment_intent_id,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.debug("Starting Stripe operation", extra=log_context)

        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)

            duration_ms = (time.time() - start_time) * 1000
            logger.debug(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "status": intent.status,
                    "duration_ms": duration_ms,
                },
            )

            return cls._to_intent_result(intent)

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Customer Operations
    # =========================================================================

    @classmethod
    def create_customer(
        cls,
        params: CreateCustomerParams,
        trace_id: str | None = None,
    ) -> CustomerResult:
        """
        Create a Stripe Customer, optionally with a default payment method.

        Args:
            params: Parameters for creating the Customer
            trace_id: Optional trace ID for distributed tracing

        Returns:
            CustomerResult with the new Customer
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_customer",
            "idempotency_key": params.idempotency_key,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            customer_params: dict[str, Any] = {
                "email": params.email,
                "metadata": params.metadata,
            }
            if params.payment_method_id:
                customer_params["payment_method"] = params.payment_method_id
                customer_params["invoice_settings"] = {
                    "default_payment_method": params.payment_method_id,
                }

            customer = stripe.Customer.create(
                idempotency_key=params.idempotency_key,
                **customer_params,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "customer_id": customer.id,
                    "duration_ms": duration_ms,
                },
            )

            raw = customer.to_dict()
            invoice_settings = raw.get("invoice_settings") or {}
            return CustomerResult(
                id=customer.id,
                email=raw.get("email"),
                default_payment_method=invoice_settings.get("default_payment_method"),
                raw_response=raw,
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def attach_payment_method(
        cls,
        payment_method_id: str,
        customer_id: str,
        idempotency_key: str,
        trace_id: str | None = None,
    ) -> None:
        """
        Attach a PaymentMethod to a Customer.

        Args:
            payment_method_id: Stripe PaymentMethod ID (pm_xxx)
            customer_id: Stripe Customer ID (cus_xxx)
            idempotency_key: Unique key for idempotent attachment
            trace_id: Optional trace ID for distributed tracing
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "attach_payment_method",
            "payment_method_id": payment_method_id,
            "customer_id": customer_id,
            "idempotency_key": idempotency_key,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            stripe.PaymentMethod.attach(
                payment_method_id,
                customer=customer_id,
                idempotency_key=idempotency_key,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={**log_context, "duration_ms": duration_ms},
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _to_intent_result(intent: Any) -> PaymentIntentResult:
        """Build a PaymentIntentResult from a Stripe PaymentIntent object."""
        raw = intent.to_dict()
        return PaymentIntentResult(
            id=raw["id"],
            status=raw["status"],
            amount_cents=raw.get("amount", 0),
            currency=raw.get("currency", ""),
            client_secret=raw.get("client_secret"),
            next_action=raw.get("next_action"),
            last_payment_error=raw.get("last_payment_error"),
            metadata=dict(raw.get("metadata") or {}),
            raw_response=raw,
        )

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Maps Stripe SDK errors to appropriate domain exceptions
        with proper error categorization for retry decisions.

        Args:
            error: The Stripe exception
            log_context: Logging context dict
            duration_ms: Operation duration for logging

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInsufficientFundsError: Insufficient funds
            StripeInvalidRequestError: Invalid request parameters
            StripeIdempotencyError: Idempotency key reused
            StripeRateLimitError: Rate limited
            StripeAPIUnavailableError: API unavailable
            StripeTimeoutError: Request timed out
        """
        logger = cls.get_logger()

        # Add timing to context
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            # Card declined or insufficient funds
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )

            if decline_code == "insufficient_funds":
                raise StripeInsufficientFundsError(
                    str(error.user_message or error),
                    stripe_code=error.code,
                    decline_code=decline_code,
                ) from error

            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            ) from error

        elif isinstance(error, stripe.IdempotencyError):
            logger.error(
                "Idempotency key conflict at Stripe",
                extra=log_context,
            )
            raise StripeIdempotencyError(
                str(error),
                stripe_code="idempotency_error",
            ) from error

        elif isinstance(error, stripe.InvalidRequestError):
            # Invalid parameters or resource not found
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise StripeInvalidRequestError(
                str(error),
                stripe_code=error.code,
            ) from error

        elif isinstance(error, stripe.RateLimitError):
            # Rate limited - retry with backoff
            logger.warning(
                "Rate limited by Stripe",
                extra=log_context,
            )
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        elif isinstance(error, stripe.APIConnectionError):
            # Network error - retry with backoff
            if "timed out" in str(error).lower():
                logger.error(
                    "Timed out waiting for Stripe",
                    extra=log_context,
                )
                raise StripeTimeoutError(
                    "Stripe request timed out. Please retry.",
                    stripe_code="timeout",
                ) from error

            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        elif isinstance(error, stripe.AuthenticationError):
            # Invalid API key - permanent, operational issue
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        elif isinstance(error, stripe.APIError):
            # Stripe server error - retry with backoff
            logger.error(
                "Stripe API error",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        else:
            # Unknown error - log and wrap; never retried
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise StripeError(
                f"Unexpected Stripe error: {type(error).__name__}",
                stripe_code="unknown_error",
            ) from error
