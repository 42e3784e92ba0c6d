"""
Payment services for coordinating payment operations.

This module provides:
- PaymentConfirmationCoordinator: Drives one PaymentAttempt to an outcome
- ConfirmationOutcome: Discriminated result returned to the UI layer

Usage:
    from payments.services import PaymentConfirmationCoordinator

    coordinator = PaymentConfirmationCoordinator(attempt)
    outcome = await coordinator.submit(payment_method="pm_card_visa")
"""

from payments.services.payment_confirmation import (
    ConfirmationOutcome,
    PaymentConfirmationCoordinator,
)

__all__ = [
    "ConfirmationOutcome",
    "PaymentConfirmationCoordinator",
]
