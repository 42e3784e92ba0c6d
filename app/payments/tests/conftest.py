"""
Pytest fixtures for payment tests.

This module provides fixtures for creating payment attempts in various
states and an in-memory gateway.

Usage:
    def test_submit(created_attempt, gateway):
        ...
"""

import pytest

from payments.tests.factories import PaymentAttemptFactory
from payments.tests.fakes import FakeGateway


# =============================================================================
# PaymentAttempt Fixtures
# =============================================================================


@pytest.fixture
def created_attempt():
    """A fresh attempt with no gateway intent."""
    return PaymentAttemptFactory()


@pytest.fixture
def attempt_with_intent():
    """An attempt whose intent has been created but not confirmed."""
    return PaymentAttemptFactory(with_intent=True)


@pytest.fixture
def requires_action_attempt():
    """An attempt waiting for customer authentication."""
    return PaymentAttemptFactory(requires_action=True)


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def gateway():
    """In-memory PaymentGateway."""
    return FakeGateway()
