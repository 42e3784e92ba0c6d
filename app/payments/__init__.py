"""
Payments app for Stripe integration.

This app handles:
- Stripe PaymentIntent creation and confirmation
- Stripe customer and payment method setup
- Retrying transient gateway failures
- The payment confirmation state machine shown to the UI

Related apps:
    - core: Retry executor and shared exception hierarchy

Usage:
    from payments.services import PaymentConfirmationCoordinator
    from payments.types import PaymentAttempt

    coordinator = PaymentConfirmationCoordinator(
        PaymentAttempt(amount_cents=5000, currency="usd")
    )
    outcome = await coordinator.submit(payment_method="pm_card_visa")
"""
