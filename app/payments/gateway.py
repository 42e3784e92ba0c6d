"""
Async payment gateway interface and its Stripe implementation.

The confirmation coordinator talks to the payment provider only through
the PaymentGateway protocol, so tests can drive it with an in-memory
fake and the retry executor can wrap each call as a zero-argument
operation.

Gateway statuses are normalized to four values:
    succeeded        - Payment captured
    requires_action  - Customer must authenticate (3-D Secure, redirect)
    processing       - Provider has not settled yet; retrieve later
    failed           - Declined or otherwise unrecoverable

Usage:
    from payments.gateway import StripeGateway

    gateway = StripeGateway()
    handle = await gateway.create_intent(5000, "usd", idempotency_key=key)
    confirmation = await gateway.confirm(handle.intent_id, idempotency_key=key2)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from asgiref.sync import sync_to_async

from payments.adapters import CreatePaymentIntentParams, StripeAdapter
from payments.exceptions import StripeCardDeclinedError, StripeInsufficientFundsError
from payments.types import GatewayConfirmation, IntentHandle

if TYPE_CHECKING:
    from typing import Any

    from payments.adapters import PaymentIntentResult


logger = logging.getLogger(__name__)


# Gateway statuses after normalization
SUCCEEDED = "succeeded"
REQUIRES_ACTION = "requires_action"
PROCESSING = "processing"
FAILED = "failed"

GATEWAY_STATUSES = frozenset({SUCCEEDED, REQUIRES_ACTION, PROCESSING, FAILED})


@runtime_checkable
class PaymentGateway(Protocol):
    """
    Protocol for payment providers used by the confirmation coordinator.

    Implementations raise domain exceptions for dependency failures
    (transient ones inherit TransientDependencyError) and report card
    declines as a `failed` GatewayConfirmation.
    """

    async def create_intent(
        self,
        amount_cents: int,
        currency: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> IntentHandle:
        """Create a payment intent for the given amount."""
        ...

    async def confirm(
        self,
        intent_id: str,
        idempotency_key: str,
        payment_method: str | None = None,
        return_url: str | None = None,
    ) -> GatewayConfirmation:
        """Confirm a payment intent."""
        ...

    async def retrieve(self, intent_id: str) -> GatewayConfirmation:
        """Fetch the current status of a payment intent."""
        ...


def normalize_intent(result: PaymentIntentResult) -> GatewayConfirmation:
    """
    Map a Stripe PaymentIntent to a GatewayConfirmation.

    Stripe statuses:
        succeeded, requires_capture -> succeeded
        requires_action             -> requires_action
        processing                  -> processing
        requires_payment_method,
        canceled, anything else     -> failed
    """
    status = result.status

    if status in ("succeeded", "requires_capture"):
        return GatewayConfirmation(intent_id=result.id, status=SUCCEEDED)

    if status == "requires_action":
        return GatewayConfirmation(
            intent_id=result.id,
            status=REQUIRES_ACTION,
            next_action=result.next_action or {},
        )

    if status == "processing":
        return GatewayConfirmation(intent_id=result.id, status=PROCESSING)

    error = result.last_payment_error or {}
    error_kind = error.get("code") or error.get("type") or status
    return GatewayConfirmation(intent_id=result.id, status=FAILED, error_kind=error_kind)


class StripeGateway:
    """
    PaymentGateway backed by the synchronous StripeAdapter.

    Each call runs in a worker thread via sync_to_async so backoff waits
    and other coroutines are never blocked by Stripe's HTTP client.
    """

    def __init__(self, adapter: type[StripeAdapter] = StripeAdapter):
        self.adapter = adapter

    async def create_intent(
        self,
        amount_cents: int,
        currency: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> IntentHandle:
        params = CreatePaymentIntentParams(
            amount_cents=amount_cents,
            currency=currency,
            idempotency_key=idempotency_key,
            metadata=metadata or {},
        )
        result = await sync_to_async(
            self.adapter.create_payment_intent, thread_sensitive=False
        )(params)
        return IntentHandle(intent_id=result.id, client_secret=result.client_secret)

    async def confirm(
        self,
        intent_id: str,
        idempotency_key: str,
        payment_method: str | None = None,
        return_url: str | None = None,
    ) -> GatewayConfirmation:
        try:
            result = await sync_to_async(
                self.adapter.confirm_payment_intent, thread_sensitive=False
            )(
                intent_id,
                idempotency_key,
                payment_method=payment_method,
                return_url=return_url,
            )
        except (StripeCardDeclinedError, StripeInsufficientFundsError) as e:
            # Stripe reports declines as errors; callers get a failed status
            error_kind = e.stripe_code or "card_declined"
            logger.info(
                "Payment declined",
                extra={
                    "payment_intent_id": intent_id,
                    "error_kind": error_kind,
                    "decline_code": e.decline_code,
                },
            )
            return GatewayConfirmation(
                intent_id=intent_id, status=FAILED, error_kind=error_kind
            )
        return normalize_intent(result)

    async def retrieve(self, intent_id: str) -> GatewayConfirmation:
        result = await sync_to_async(
            self.adapter.retrieve_payment_intent, thread_sensitive=False
        )(intent_id)
        return normalize_intent(result)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(adapter={self.adapter.__name__})"


def describe(confirmation: GatewayConfirmation) -> dict[str, Any]:
    """Log-safe summary of a confirmation."""
    return {
        "payment_intent_id": confirmation.intent_id,
        "gateway_status": confirmation.status,
        "error_kind": confirmation.error_kind,
    }


__all__ = [
    "FAILED",
    "GATEWAY_STATUSES",
    "PROCESSING",
    "PaymentGateway",
    "REQUIRES_ACTION",
    "SUCCEEDED",
    "StripeGateway",
    "describe",
    "normalize_intent",
]
