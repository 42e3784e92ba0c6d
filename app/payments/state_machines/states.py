"""
State enums and transition tables for payment confirmation.

These are Django TextChoices so the values can be stored on models
and shown in the admin if payment attempts are ever persisted.

State Machines Overview:

PaymentAttempt Status (driven by gateway responses):
    created → processing → succeeded
    created → processing → failed
    created → processing → requires_action → processing → ...
    processing → processing (status refresh while the gateway settles)

Confirmation State (driven by the coordinator):
    idle → submitting → succeeded | failed | awaiting_action
    awaiting_action → submitting → ...
    submitting → idle | awaiting_action (submission cancelled)
"""

from django.db import models


class PaymentAttemptStatus(models.TextChoices):
    """
    Status of one logical charge, as reported by the gateway.

    Terminal states: SUCCEEDED, FAILED
    """

    CREATED = "created", "Created"
    PROCESSING = "processing", "Processing"
    REQUIRES_ACTION = "requires_action", "Requires Action"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"


class ConfirmationState(models.TextChoices):
    """
    Client-visible state of the payment confirmation flow.

    Replaces a "processing" flag plus an "error" string: exactly one
    state holds at a time.

    Terminal states: SUCCEEDED, FAILED
    """

    IDLE = "idle", "Idle"
    SUBMITTING = "submitting", "Submitting"
    AWAITING_ACTION = "awaiting_action", "Awaiting Action"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"


PAYMENT_ATTEMPT_TRANSITIONS: dict[str, frozenset[str]] = {
    PaymentAttemptStatus.CREATED: frozenset({PaymentAttemptStatus.PROCESSING}),
    PaymentAttemptStatus.PROCESSING: frozenset(
        {
            PaymentAttemptStatus.PROCESSING,
            PaymentAttemptStatus.REQUIRES_ACTION,
            PaymentAttemptStatus.SUCCEEDED,
            PaymentAttemptStatus.FAILED,
        }
    ),
    PaymentAttemptStatus.REQUIRES_ACTION: frozenset({PaymentAttemptStatus.PROCESSING}),
    PaymentAttemptStatus.SUCCEEDED: frozenset(),
    PaymentAttemptStatus.FAILED: frozenset(),
}

CONFIRMATION_TRANSITIONS: dict[str, frozenset[str]] = {
    ConfirmationState.IDLE: frozenset({ConfirmationState.SUBMITTING}),
    ConfirmationState.SUBMITTING: frozenset(
        {
            ConfirmationState.AWAITING_ACTION,
            ConfirmationState.SUCCEEDED,
            ConfirmationState.FAILED,
            # Cancellation restores the state the submission started from
            ConfirmationState.IDLE,
        }
    ),
    ConfirmationState.AWAITING_ACTION: frozenset({ConfirmationState.SUBMITTING}),
    ConfirmationState.SUCCEEDED: frozenset(),
    ConfirmationState.FAILED: frozenset(),
}

TERMINAL_ATTEMPT_STATUSES = frozenset(
    {PaymentAttemptStatus.SUCCEEDED, PaymentAttemptStatus.FAILED}
)
TERMINAL_CONFIRMATION_STATES = frozenset(
    {ConfirmationState.SUCCEEDED, ConfirmationState.FAILED}
)


def can_transition(
    transitions: dict[str, frozenset[str]], current: str, target: str
) -> bool:
    """Return True if `target` is reachable from `current` in one step."""
    return target in transitions.get(current, frozenset())


__all__ = [
    "CONFIRMATION_TRANSITIONS",
    "ConfirmationState",
    "PAYMENT_ATTEMPT_TRANSITIONS",
    "PaymentAttemptStatus",
    "TERMINAL_ATTEMPT_STATUSES",
    "TERMINAL_CONFIRMATION_STATES",
    "can_transition",
]
