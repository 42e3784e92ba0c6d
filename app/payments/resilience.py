"""
Retry configuration for payment gateway calls.

Gateway errors are retried only when they are known to be transient:
rate limiting, an unreachable API and timeouts. Declines, invalid
requests, authentication failures and idempotency-key conflicts are
fatal unless their Stripe code is listed in STRIPE_RETRYABLE_CODES.

Settings:
    STRIPE_RETRY_MAX_ATTEMPTS: Total attempts per gateway call (default: 3)
    STRIPE_RETRY_BASE_DELAY_SECONDS: First backoff delay (default: 1.0)
    STRIPE_RETRY_BACKOFF_MULTIPLIER: Backoff growth factor (default: 2.0)
    STRIPE_RETRY_MAX_DELAY_SECONDS: Cap for a single delay (default: 5.0)
    STRIPE_RETRY_JITTER: Random extra delay fraction (default: 0.0)
    STRIPE_RETRYABLE_CODES: Extra Stripe codes to retry (default: [])

Usage:
    from payments.resilience import gateway_classifier, gateway_retry_policy

    executor = RetryExecutor(gateway_retry_policy(), gateway_classifier())
"""

from __future__ import annotations

from django.conf import settings

from core.retry import ErrorClassifier, RetryPolicy

GATEWAY_RETRYABLE_KINDS = frozenset({"TransientDependencyError"})


def gateway_classifier() -> ErrorClassifier:
    """Classifier for gateway errors, extended by STRIPE_RETRYABLE_CODES."""
    codes = getattr(settings, "STRIPE_RETRYABLE_CODES", None) or []
    return ErrorClassifier(
        retryable_kinds=GATEWAY_RETRYABLE_KINDS,
        retryable_codes=frozenset(codes),
    )


def gateway_retry_policy() -> RetryPolicy:
    """Retry policy for gateway calls, from STRIPE_RETRY_* settings."""
    return RetryPolicy.from_settings("STRIPE_RETRY")


__all__ = [
    "GATEWAY_RETRYABLE_KINDS",
    "gateway_classifier",
    "gateway_retry_policy",
]
