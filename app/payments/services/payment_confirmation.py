"""
Payment confirmation coordinator.

This module drives a single PaymentAttempt from submission to a final
outcome. Gateway calls go through the retry executor; everything the
caller sees is a ConfirmationOutcome, so raw dependency errors never
reach the UI layer.

States (ConfirmationState):
    idle → submitting → succeeded | failed | awaiting_action
    awaiting_action → submitting → ...

Outcomes (ConfirmationOutcome.to_dict()):
    {"ok": True, "attempt": {...}}
    {"ok": False, "message": "..."}
    {"ok": "pending", "action": {...}}

Usage:
    from payments.services import PaymentConfirmationCoordinator
    from payments.types import PaymentAttempt

    coordinator = PaymentConfirmationCoordinator(
        PaymentAttempt(amount_cents=5000, currency="usd"),
    )
    outcome = await coordinator.submit(payment_method="pm_card_visa")

    if outcome.ok is True:
        show_receipt(outcome.attempt)
    elif outcome.is_pending:
        start_authentication(outcome.action)
    else:
        show_error(outcome.message)

Notes:
    - Only one submit() may be in flight; a second one raises
      ConcurrentSubmissionError instead of queueing
    - succeeded and failed are terminal; submit() then returns the
      cached outcome without calling the gateway
    - Each user submission gets its own confirm idempotency key, stable
      across the executor's retries of that submission
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from core.exceptions import FatalDependencyError, RetryExhaustedError
from core.retry import RetryExecutor, error_code

from payments.adapters import IdempotencyKeyGenerator
from payments.exceptions import ConcurrentSubmissionError, InvalidStateTransitionError
from payments.gateway import (
    FAILED,
    PROCESSING,
    REQUIRES_ACTION,
    SUCCEEDED,
    StripeGateway,
    describe,
)
from payments.resilience import gateway_classifier, gateway_retry_policy
from payments.state_machines import (
    CONFIRMATION_TRANSITIONS,
    TERMINAL_CONFIRMATION_STATES,
    ConfirmationState,
    PaymentAttemptStatus,
    can_transition,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from typing import Any

    from core.retry import AttemptRecord, ErrorClassification, RetryPolicy

    from payments.gateway import PaymentGateway
    from payments.types import GatewayConfirmation, PaymentAttempt


logger = logging.getLogger(__name__)


# User-facing messages never include gateway codes or decline reasons
DECLINED_MESSAGE = (
    "Your payment could not be completed. Please try a different payment method."
)
UNAVAILABLE_MESSAGE = (
    "The payment service is temporarily unavailable. Please try again later."
)
GENERIC_FAILURE_MESSAGE = "An unexpected error occurred."


# =============================================================================
# Outcome
# =============================================================================


@dataclass
class ConfirmationOutcome:
    """
    Result of a submission, as shown to the UI layer.

    Exactly one of the three shapes:
        ok=True       attempt is the finalized PaymentAttempt
        ok=False      message is a generic, user-readable error
        ok="pending"  action is what the customer must do next

    Attributes:
        ok: True, False or "pending"
        attempt: The payment attempt
        message: User-readable error message (failures only)
        action: Required customer action (pending only)
        error_code: Machine-readable code for client handling (failures only)
    """

    ok: bool | Literal["pending"]
    attempt: PaymentAttempt | None = None
    message: str | None = None
    action: dict[str, Any] | None = None
    error_code: str | None = None

    @classmethod
    def success(cls, attempt: PaymentAttempt) -> ConfirmationOutcome:
        return cls(ok=True, attempt=attempt)

    @classmethod
    def failure(
        cls,
        message: str,
        error_code: str,
        attempt: PaymentAttempt | None = None,
    ) -> ConfirmationOutcome:
        return cls(ok=False, attempt=attempt, message=message, error_code=error_code)

    @classmethod
    def pending(
        cls, action: dict[str, Any], attempt: PaymentAttempt | None = None
    ) -> ConfirmationOutcome:
        return cls(ok="pending", attempt=attempt, action=action)

    @property
    def is_pending(self) -> bool:
        return self.ok == "pending"

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize for the UI layer.

        The attempt's client secret is included only for pending outcomes,
        where the client needs it to complete authentication.
        """
        if self.ok is True:
            return {"ok": True, "attempt": self.attempt.to_dict()}
        if self.is_pending:
            data: dict[str, Any] = {"ok": "pending", "action": self.action}
            if self.attempt is not None and self.attempt.client_secret:
                data["client_secret"] = self.attempt.client_secret
            return data
        return {"ok": False, "message": self.message, "error_code": self.error_code}


# =============================================================================
# Coordinator
# =============================================================================


class PaymentConfirmationCoordinator:
    """
    State machine driving one PaymentAttempt through the gateway.

    One coordinator per PaymentAttempt. Coordinators share no state, so
    independent attempts can be submitted concurrently.

    Attributes:
        attempt: The payment attempt being confirmed
        gateway: PaymentGateway implementation (default: StripeGateway)
        policy: Retry policy per gateway call (default: STRIPE_RETRY_* settings)
        classify: Gateway error classifier (default: gateway_classifier())
    """

    PROCESSING_ACTION: dict[str, Any] = {"type": "wait_for_processing"}

    def __init__(
        self,
        attempt: PaymentAttempt,
        gateway: PaymentGateway | None = None,
        *,
        policy: RetryPolicy | None = None,
        classify: Callable[[BaseException], ErrorClassification] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        on_attempt: Callable[[AttemptRecord], None] | None = None,
    ):
        if attempt.is_terminal:
            raise InvalidStateTransitionError(
                "Cannot confirm a payment attempt that already finished",
                details={
                    "payment_attempt_id": str(attempt.id),
                    "current_state": str(attempt.status),
                },
            )

        self.attempt = attempt
        self.gateway = gateway or StripeGateway()
        self.policy = policy or gateway_retry_policy()
        self.classify = classify or gateway_classifier()
        self._sleep = sleep
        self._on_attempt = on_attempt

        if attempt.status in (
            PaymentAttemptStatus.REQUIRES_ACTION,
            PaymentAttemptStatus.PROCESSING,
        ):
            self._state = ConfirmationState.AWAITING_ACTION
        else:
            self._state = ConfirmationState.IDLE
        self._outcome: ConfirmationOutcome | None = None
        self._submissions = 0

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> str:
        return self._state

    @property
    def outcome(self) -> ConfirmationOutcome | None:
        """Last outcome produced by submit(), if any."""
        return self._outcome

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_CONFIRMATION_STATES

    def _transition(self, target: str) -> None:
        if not can_transition(CONFIRMATION_TRANSITIONS, self._state, target):
            raise InvalidStateTransitionError(
                f"Cannot move confirmation from '{self._state}' to '{target}'",
                details={
                    "payment_attempt_id": str(self.attempt.id),
                    "current_state": str(self._state),
                    "target_state": str(target),
                },
            )
        self._state = ConfirmationState(target)

    def _log_context(self) -> dict[str, Any]:
        return {
            "payment_attempt_id": str(self.attempt.id),
            "payment_intent_id": self.attempt.intent_id,
            "confirmation_state": str(self._state),
            "submission": self._submissions,
        }

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit(
        self,
        payment_method: str | None = None,
        return_url: str | None = None,
    ) -> ConfirmationOutcome:
        """
        Submit the payment attempt for confirmation.

        Args:
            payment_method: PaymentMethod to confirm with (e.g. pm_xxx)
            return_url: Redirect target for redirect-based authentication

        Returns:
            ConfirmationOutcome (cached once succeeded or failed)

        Raises:
            ConcurrentSubmissionError: A submission is already in flight
            asyncio.CancelledError: The submission was cancelled; the
                coordinator is back in its pre-submission state
        """
        if self.is_terminal:
            logger.info(
                "Submission ignored, confirmation already finished",
                extra=self._log_context(),
            )
            return self._outcome

        if self._state == ConfirmationState.SUBMITTING:
            logger.warning(
                "Rejected concurrent submission", extra=self._log_context()
            )
            raise ConcurrentSubmissionError(
                "A submission is already in progress for this payment",
                details={"payment_attempt_id": str(self.attempt.id)},
            )

        previous_state = self._state
        previous_status = self.attempt.status
        previous_action = self.attempt.next_action
        self._transition(ConfirmationState.SUBMITTING)
        self._submissions += 1

        logger.info("Submitting payment", extra=self._log_context())

        try:
            confirmation = await self._confirm(
                refresh=previous_status == PaymentAttemptStatus.PROCESSING,
                payment_method=payment_method,
                return_url=return_url,
            )
            self._outcome = self._resolve(confirmation)
        except asyncio.CancelledError:
            self._restore(previous_state, previous_status, previous_action)
            raise
        except (FatalDependencyError, RetryExhaustedError) as e:
            self._outcome = self._fail_from_error(e)
        except Exception as e:
            logger.exception(
                "Unexpected error during payment submission",
                extra={**self._log_context(), "error_type": type(e).__name__},
            )
            self._outcome = self._fail(GENERIC_FAILURE_MESSAGE, "PAYMENT_FAILED")

        return self._outcome

    async def _confirm(
        self,
        refresh: bool,
        payment_method: str | None,
        return_url: str | None,
    ) -> GatewayConfirmation:
        """Create the intent if needed, then confirm or refresh it."""
        attempt = self.attempt
        attempt.transition_to(PaymentAttemptStatus.PROCESSING)

        if attempt.intent_id is None:
            # One intent per attempt, whichever submission creates it
            create_key = IdempotencyKeyGenerator.generate("create_intent", attempt.id)
            handle = await self._executor("create_intent").execute(
                lambda: self.gateway.create_intent(
                    attempt.amount_cents,
                    attempt.currency,
                    create_key,
                    metadata={"payment_attempt_id": str(attempt.id), **attempt.metadata},
                )
            )
            attempt.record_intent(handle)

        intent_id = attempt.intent_id

        if refresh:
            return await self._executor("retrieve_intent").execute(
                lambda: self.gateway.retrieve(intent_id)
            )

        confirm_key = IdempotencyKeyGenerator.generate(
            "confirm_intent", attempt.id, attempt=self._submissions
        )
        return await self._executor("confirm_intent").execute(
            lambda: self.gateway.confirm(
                intent_id,
                confirm_key,
                payment_method=payment_method,
                return_url=return_url,
            )
        )

    def _executor(self, name: str) -> RetryExecutor:
        kwargs: dict[str, Any] = {"on_attempt": self._on_attempt, "name": name}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return RetryExecutor(policy=self.policy, classify=self.classify, **kwargs)

    # =========================================================================
    # Resolution
    # =========================================================================

    def _resolve(self, confirmation: GatewayConfirmation) -> ConfirmationOutcome:
        """Apply a gateway response to the attempt and the coordinator."""
        attempt = self.attempt
        log_context = {**self._log_context(), **describe(confirmation)}

        if confirmation.status == SUCCEEDED:
            attempt.transition_to(PaymentAttemptStatus.SUCCEEDED)
            self._transition(ConfirmationState.SUCCEEDED)
            logger.info("Payment succeeded", extra=log_context)
            return ConfirmationOutcome.success(attempt)

        if confirmation.status == REQUIRES_ACTION:
            action = confirmation.next_action or {}
            attempt.transition_to(
                PaymentAttemptStatus.REQUIRES_ACTION, next_action=action
            )
            self._transition(ConfirmationState.AWAITING_ACTION)
            logger.info("Payment requires customer action", extra=log_context)
            return ConfirmationOutcome.pending(action, attempt)

        if confirmation.status == PROCESSING:
            attempt.transition_to(PaymentAttemptStatus.PROCESSING)
            self._transition(ConfirmationState.AWAITING_ACTION)
            logger.info("Payment still processing", extra=log_context)
            return ConfirmationOutcome.pending(dict(self.PROCESSING_ACTION), attempt)

        if confirmation.status == FAILED:
            logger.warning("Payment declined by gateway", extra=log_context)
            return self._fail(
                DECLINED_MESSAGE,
                "PAYMENT_DECLINED",
                error_kind=confirmation.error_kind,
            )

        logger.error("Unknown gateway status", extra=log_context)
        return self._fail(GENERIC_FAILURE_MESSAGE, "PAYMENT_FAILED")

    def _fail_from_error(
        self, error: FatalDependencyError | RetryExhaustedError
    ) -> ConfirmationOutcome:
        last_error = error.last_error
        error_kind = None
        if last_error is not None:
            error_kind = error_code(last_error) or type(last_error).__name__

        logger.warning(
            "Payment submission failed",
            extra={
                **self._log_context(),
                "error_code": error.error_code,
                "attempts": error.attempts,
                "last_error_kind": type(last_error).__name__ if last_error else None,
            },
        )

        if isinstance(error, RetryExhaustedError):
            return self._fail(UNAVAILABLE_MESSAGE, error.error_code, error_kind=error_kind)
        return self._fail(GENERIC_FAILURE_MESSAGE, error.error_code, error_kind=error_kind)

    def _fail(
        self, message: str, code: str, error_kind: str | None = None
    ) -> ConfirmationOutcome:
        if self.attempt.status == PaymentAttemptStatus.PROCESSING:
            self.attempt.transition_to(PaymentAttemptStatus.FAILED, error_kind=error_kind)
        self._transition(ConfirmationState.FAILED)
        return ConfirmationOutcome.failure(message, code, self.attempt)

    def _restore(
        self, state: str, status: str, next_action: dict[str, Any] | None
    ) -> None:
        """Return to the pre-submission state after a cancellation."""
        if (
            self.attempt.status == PaymentAttemptStatus.PROCESSING
            and status != PaymentAttemptStatus.PROCESSING
        ):
            self.attempt.restore(status, next_action=next_action)
        self._transition(state)
        logger.info("Payment submission cancelled", extra=self._log_context())

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"attempt={self.attempt.id}, state={self._state!s})"
        )


__all__ = [
    "DECLINED_MESSAGE",
    "GENERIC_FAILURE_MESSAGE",
    "UNAVAILABLE_MESSAGE",
    "ConfirmationOutcome",
    "PaymentConfirmationCoordinator",
]
