"""
Tests for the PaymentAttempt value type.

Tests cover:
- Amount and currency validation
- Guarded status transitions
- Restoring after a cancelled submission
- Intent recording and serialization
"""

import uuid

import pytest

from payments.exceptions import InvalidStateTransitionError, PaymentValidationError
from payments.state_machines import PaymentAttemptStatus
from payments.tests.factories import IntentHandleFactory, PaymentAttemptFactory
from payments.types import IntentHandle, PaymentAttempt


# =============================================================================
# Validation
# =============================================================================


class TestPaymentAttemptValidation:
    """Tests for construction-time validation."""

    def test_defaults(self):
        attempt = PaymentAttempt(amount_cents=1999)

        assert attempt.currency == "usd"
        assert attempt.status == PaymentAttemptStatus.CREATED
        assert attempt.intent_id is None
        assert isinstance(attempt.id, uuid.UUID)

    def test_ids_are_unique(self):
        assert PaymentAttempt(amount_cents=100).id != PaymentAttempt(amount_cents=100).id

    @pytest.mark.parametrize("amount", [0, -100, 10.5, "5000", True, None])
    def test_rejects_invalid_amount(self, amount):
        with pytest.raises(PaymentValidationError) as exc_info:
            PaymentAttempt(amount_cents=amount)

        assert exc_info.value.details["amount_cents"] == amount

    @pytest.mark.parametrize("currency", ["USD", "us", "usdt", "", "u$d", None])
    def test_rejects_invalid_currency(self, currency):
        with pytest.raises(PaymentValidationError):
            PaymentAttempt(amount_cents=5000, currency=currency)

    def test_accepts_other_currencies(self):
        assert PaymentAttempt(amount_cents=5000, currency="eur").currency == "eur"


# =============================================================================
# Transitions
# =============================================================================


class TestPaymentAttemptTransitions:
    """Tests for transition_to()."""

    def test_full_success_path(self, created_attempt):
        created_attempt.transition_to(PaymentAttemptStatus.PROCESSING)
        created_attempt.transition_to(PaymentAttemptStatus.SUCCEEDED)

        assert created_attempt.status == PaymentAttemptStatus.SUCCEEDED
        assert created_attempt.is_terminal

    def test_requires_action_keeps_next_action(self, created_attempt):
        created_attempt.transition_to(PaymentAttemptStatus.PROCESSING)
        created_attempt.transition_to(
            PaymentAttemptStatus.REQUIRES_ACTION,
            next_action={"type": "use_stripe_sdk"},
        )

        assert created_attempt.next_action == {"type": "use_stripe_sdk"}
        assert not created_attempt.is_terminal

    def test_leaving_requires_action_clears_next_action(self, requires_action_attempt):
        requires_action_attempt.transition_to(PaymentAttemptStatus.PROCESSING)

        assert requires_action_attempt.next_action is None

    def test_failed_records_error_kind(self, created_attempt):
        created_attempt.transition_to(PaymentAttemptStatus.PROCESSING)
        created_attempt.transition_to(
            PaymentAttemptStatus.FAILED, error_kind="card_declined"
        )

        assert created_attempt.error_kind == "card_declined"

    def test_error_kind_ignored_for_other_statuses(self, created_attempt):
        created_attempt.transition_to(
            PaymentAttemptStatus.PROCESSING, error_kind="card_declined"
        )

        assert created_attempt.error_kind is None

    def test_cannot_skip_processing(self, created_attempt):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            created_attempt.transition_to(PaymentAttemptStatus.SUCCEEDED)

        assert exc_info.value.details["current_state"] == "created"
        assert exc_info.value.details["target_state"] == "succeeded"
        assert created_attempt.status == PaymentAttemptStatus.CREATED

    @pytest.mark.parametrize(
        "terminal", [PaymentAttemptStatus.SUCCEEDED, PaymentAttemptStatus.FAILED]
    )
    def test_terminal_status_never_changes(self, terminal):
        attempt = PaymentAttemptFactory(status=terminal)

        with pytest.raises(InvalidStateTransitionError):
            attempt.transition_to(PaymentAttemptStatus.PROCESSING)

        assert attempt.status == terminal


class TestPaymentAttemptRestore:
    """Tests for restore()."""

    def test_restore_to_created(self, created_attempt):
        created_attempt.transition_to(PaymentAttemptStatus.PROCESSING)

        created_attempt.restore(PaymentAttemptStatus.CREATED)

        assert created_attempt.status == PaymentAttemptStatus.CREATED

    def test_restore_to_requires_action_keeps_action(self, requires_action_attempt):
        action = requires_action_attempt.next_action
        requires_action_attempt.transition_to(PaymentAttemptStatus.PROCESSING)

        requires_action_attempt.restore(
            PaymentAttemptStatus.REQUIRES_ACTION, next_action=action
        )

        assert requires_action_attempt.status == PaymentAttemptStatus.REQUIRES_ACTION
        assert requires_action_attempt.next_action == action

    def test_restore_requires_processing(self, created_attempt):
        with pytest.raises(InvalidStateTransitionError):
            created_attempt.restore(PaymentAttemptStatus.CREATED)

    def test_cannot_restore_to_terminal(self, created_attempt):
        created_attempt.transition_to(PaymentAttemptStatus.PROCESSING)

        with pytest.raises(InvalidStateTransitionError):
            created_attempt.restore(PaymentAttemptStatus.SUCCEEDED)


# =============================================================================
# Intent and Serialization
# =============================================================================


class TestPaymentAttemptIntent:
    """Tests for record_intent() and to_dict()."""

    def test_record_intent(self, created_attempt):
        handle = IntentHandleFactory()

        created_attempt.record_intent(handle)

        assert created_attempt.intent_id == handle.intent_id
        assert created_attempt.client_secret == handle.client_secret

    def test_recording_same_intent_again_is_allowed(self, attempt_with_intent):
        handle = IntentHandle(
            intent_id=attempt_with_intent.intent_id, client_secret="new_secret"
        )

        attempt_with_intent.record_intent(handle)

        assert attempt_with_intent.client_secret == "new_secret"

    def test_cannot_replace_intent(self, attempt_with_intent):
        original = attempt_with_intent.intent_id

        with pytest.raises(InvalidStateTransitionError):
            attempt_with_intent.record_intent(IntentHandle(intent_id="pi_other"))

        assert attempt_with_intent.intent_id == original

    def test_to_dict_omits_client_secret(self, attempt_with_intent):
        data = attempt_with_intent.to_dict()

        assert data == {
            "id": str(attempt_with_intent.id),
            "amount_cents": 5000,
            "currency": "usd",
            "intent_id": attempt_with_intent.intent_id,
            "status": "created",
        }

    def test_to_dict_includes_secret_on_request(self, attempt_with_intent):
        data = attempt_with_intent.to_dict(include_client_secret=True)

        assert data["client_secret"] == attempt_with_intent.client_secret

    def test_to_dict_includes_next_action(self, requires_action_attempt):
        data = requires_action_attempt.to_dict()

        assert data["status"] == "requires_action"
        assert data["next_action"] == {"type": "use_stripe_sdk"}
