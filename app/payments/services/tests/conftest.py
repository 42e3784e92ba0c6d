"""
Pytest fixtures for payment service tests.

Sections:
    - PaymentAttempt Fixtures
    - Gateway Fixtures
    - Coordinator Fixtures
"""

import pytest

from core.retry import RetryPolicy
from payments.services import PaymentConfirmationCoordinator
from payments.tests.factories import PaymentAttemptFactory
from payments.tests.fakes import FakeGateway


class FakeSleep:
    """Records requested delays instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# =============================================================================
# PaymentAttempt Fixtures
# =============================================================================


@pytest.fixture
def attempt():
    """A fresh attempt with no gateway intent."""
    return PaymentAttemptFactory()


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def gateway():
    """In-memory PaymentGateway."""
    return FakeGateway()


@pytest.fixture
def sleep():
    """Backoff sleep that returns immediately and records delays."""
    return FakeSleep()


# =============================================================================
# Coordinator Fixtures
# =============================================================================


@pytest.fixture
def make_coordinator(gateway, sleep):
    """Build a coordinator wired to the fake gateway and sleep."""

    def _create(attempt, policy: RetryPolicy | None = None, **kwargs):
        return PaymentConfirmationCoordinator(
            attempt, gateway, policy=policy, sleep=sleep, **kwargs
        )

    return _create


@pytest.fixture
def coordinator(make_coordinator, attempt):
    """Coordinator for a fresh attempt with default STRIPE_RETRY_* policy."""
    return make_coordinator(attempt)
