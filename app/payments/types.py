"""
Data types for payment confirmation.

This module defines dataclasses used between the gateway, the
confirmation coordinator and callers.

Types:
    PaymentAttempt: One logical charge from creation to success/failure
    IntentHandle: Gateway-assigned identifiers of a created intent
    GatewayConfirmation: Normalized gateway response to confirm/retrieve

Usage:
    from payments.types import PaymentAttempt

    attempt = PaymentAttempt(amount_cents=5000, currency="usd")
    attempt.transition_to(PaymentAttemptStatus.PROCESSING)
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from typing import Any

from payments.exceptions import InvalidStateTransitionError, PaymentValidationError
from payments.state_machines import (
    PAYMENT_ATTEMPT_TRANSITIONS,
    TERMINAL_ATTEMPT_STATUSES,
    PaymentAttemptStatus,
    can_transition,
)

CURRENCY_PATTERN = re.compile(r"^[a-z]{3}$")


@dataclass(frozen=True)
class IntentHandle:
    """
    Identifiers returned when the gateway creates a payment intent.

    Attributes:
        intent_id: Gateway intent ID (pi_xxx)
        client_secret: Secret the client uses to confirm or authenticate
    """

    intent_id: str
    client_secret: str | None = None


@dataclass(frozen=True)
class GatewayConfirmation:
    """
    Gateway response to a confirm or retrieve call.

    Attributes:
        intent_id: Gateway intent ID
        status: One of succeeded, requires_action, processing, failed
        next_action: Action the customer must complete (requires_action only)
        error_kind: Machine-readable failure kind, e.g. "card_declined"
    """

    intent_id: str
    status: str
    next_action: dict[str, Any] | None = None
    error_kind: str | None = None


@dataclass
class PaymentAttempt:
    """
    One logical charge lifecycle.

    The status is mutated only through transition_to(), which enforces
    PAYMENT_ATTEMPT_TRANSITIONS. Terminal statuses never change again.

    Attributes:
        amount_cents: Positive amount in minor currency units
        currency: Lowercase ISO 4217 code
        id: Local identifier, used to derive idempotency keys
        intent_id: Gateway-assigned intent ID once created
        client_secret: Gateway client secret once created
        status: Current PaymentAttemptStatus
        next_action: Pending customer action while requires_action
        error_kind: Failure kind once failed
        metadata: Key-value pairs forwarded to the gateway
    """

    amount_cents: int
    currency: str = "usd"
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    intent_id: str | None = None
    client_secret: str | None = None
    status: str = PaymentAttemptStatus.CREATED
    next_action: dict[str, Any] | None = None
    error_kind: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate amount and currency."""
        if (
            isinstance(self.amount_cents, bool)
            or not isinstance(self.amount_cents, int)
            or self.amount_cents <= 0
        ):
            raise PaymentValidationError(
                "Payment amount must be a positive integer of minor units",
                details={"amount_cents": self.amount_cents},
            )
        if not isinstance(self.currency, str) or not CURRENCY_PATTERN.match(
            self.currency
        ):
            raise PaymentValidationError(
                "Currency must be a lowercase ISO 4217 code",
                details={"currency": self.currency},
            )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ATTEMPT_STATUSES

    def transition_to(
        self,
        status: str,
        *,
        next_action: dict[str, Any] | None = None,
        error_kind: str | None = None,
    ) -> None:
        """
        Move to a new status.

        Raises:
            InvalidStateTransitionError: If the transition is not allowed
        """
        if not can_transition(PAYMENT_ATTEMPT_TRANSITIONS, self.status, status):
            raise InvalidStateTransitionError(
                f"Cannot move payment attempt from '{self.status}' to '{status}'",
                details={
                    "payment_attempt_id": str(self.id),
                    "current_state": str(self.status),
                    "target_state": str(status),
                },
            )
        self.status = PaymentAttemptStatus(status)
        self.next_action = (
            next_action if status == PaymentAttemptStatus.REQUIRES_ACTION else None
        )
        self.error_kind = error_kind if status == PaymentAttemptStatus.FAILED else None

    def restore(
        self, status: str, next_action: dict[str, Any] | None = None
    ) -> None:
        """
        Undo a PROCESSING transition that received no gateway response.

        Used when a submission is cancelled before the gateway answered.
        """
        if self.status != PaymentAttemptStatus.PROCESSING or status in (
            TERMINAL_ATTEMPT_STATUSES
        ):
            raise InvalidStateTransitionError(
                f"Cannot restore payment attempt from '{self.status}' to '{status}'",
                details={
                    "payment_attempt_id": str(self.id),
                    "current_state": str(self.status),
                    "target_state": str(status),
                },
            )
        self.status = PaymentAttemptStatus(status)
        self.next_action = (
            next_action if status == PaymentAttemptStatus.REQUIRES_ACTION else None
        )

    def record_intent(self, handle: IntentHandle) -> None:
        """Attach the gateway intent. An attempt keeps its first intent."""
        if self.intent_id is not None and self.intent_id != handle.intent_id:
            raise InvalidStateTransitionError(
                "Payment attempt already has a gateway intent",
                details={
                    "payment_attempt_id": str(self.id),
                    "intent_id": self.intent_id,
                },
            )
        self.intent_id = handle.intent_id
        self.client_secret = handle.client_secret

    def to_dict(self, include_client_secret: bool = False) -> dict[str, Any]:
        """Serialize for the UI layer. The client secret is opt-in."""
        data: dict[str, Any] = {
            "id": str(self.id),
            "amount_cents": self.amount_cents,
            "currency": self.currency,
            "intent_id": self.intent_id,
            "status": str(self.status),
        }
        if self.next_action is not None:
            data["next_action"] = self.next_action
        if self.error_kind is not None:
            data["error_kind"] = self.error_kind
        if include_client_secret:
            data["client_secret"] = self.client_secret
        return data


__all__ = [
    "GatewayConfirmation",
    "IntentHandle",
    "PaymentAttempt",
]
