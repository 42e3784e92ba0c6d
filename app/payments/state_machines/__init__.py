"""
State machine enums and helpers for payment confirmation.

This module defines the state enums and transition tables used by
PaymentAttempt and the payment confirmation coordinator.
"""

from payments.state_machines.states import (
    CONFIRMATION_TRANSITIONS,
    PAYMENT_ATTEMPT_TRANSITIONS,
    TERMINAL_ATTEMPT_STATUSES,
    TERMINAL_CONFIRMATION_STATES,
    ConfirmationState,
    PaymentAttemptStatus,
    can_transition,
)

__all__ = [
    "CONFIRMATION_TRANSITIONS",
    "ConfirmationState",
    "PAYMENT_ATTEMPT_TRANSITIONS",
    "PaymentAttemptStatus",
    "TERMINAL_ATTEMPT_STATUSES",
    "TERMINAL_CONFIRMATION_STATES",
    "can_transition",
]
