"""
Payment adapters for external services.

This module provides adapters for external payment services like Stripe.
All external payment API calls should go through these adapters to ensure
consistent error handling, timeouts, idempotency, and observability.

Usage:
    from payments.adapters import StripeAdapter, CreatePaymentIntentParams

    # Create a PaymentIntent
    result = StripeAdapter.create_payment_intent(
        CreatePaymentIntentParams(
            amount_cents=5000,
            currency='usd',
            idempotency_key='create_intent:attempt_123:1',
        )
    )
"""

from payments.adapters.stripe_adapter import (
    CreateCustomerParams,
    CreatePaymentIntentParams,
    CustomerResult,
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    StripeAdapter,
)

__all__ = [
    "CreateCustomerParams",
    "CreatePaymentIntentParams",
    "CustomerResult",
    "IdempotencyKeyGenerator",
    "PaymentIntentResult",
    "StripeAdapter",
]
