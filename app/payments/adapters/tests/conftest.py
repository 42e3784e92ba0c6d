"""
Pytest fixtures for Stripe adapter tests.

This module provides fixtures for testing the Stripe adapter, including
mock Stripe API responses, error conditions, and test data.

Sections:
    - Test Data Fixtures
    - Mock Stripe Response Fixtures
    - Mock Stripe Error Fixtures
    - Mock Stripe Client Fixtures
"""

import uuid
from dataclasses import dataclass
from typing import Any
from unittest.mock import patch

import pytest
import stripe


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def payment_attempt_id():
    """Generate a random UUID for testing."""
    return uuid.uuid4()


@pytest.fixture
def trace_id():
    """Generate a trace ID for testing."""
    return f"trace-{uuid.uuid4().hex[:16]}"


@pytest.fixture
def idempotency_key():
    """Generate an idempotency key for testing."""
    return f"test-{uuid.uuid4()}"


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with to_dict support."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def mock_payment_intent():
    """Create a mock PaymentIntent response."""

    def _create(
        id: str = "pi_test123456",
        status: str = "requires_payment_method",
        amount: int = 5000,
        currency: str = "usd",
        client_secret: str = "pi_test123456_secret_abc123",
        next_action: dict | None = None,
        last_payment_error: dict | None = None,
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "currency": currency,
                "client_secret": client_secret,
                "next_action": next_action,
                "last_payment_error": last_payment_error,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_customer():
    """Create a mock Customer response."""

    def _create(
        id: str = "cus_test123456",
        email: str = "payer@example.com",
        default_payment_method: str | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "customer",
                "email": email,
                "invoice_settings": {"default_payment_method": default_payment_method},
            }
        )

    return _create


# =============================================================================
# Mock Stripe Error Fixtures
# =============================================================================


@pytest.fixture
def card_error():
    """Create a Stripe CardError."""

    def _create(
        message: str = "Your card was declined.",
        code: str = "card_declined",
        decline_code: str | None = "generic_decline",
    ) -> stripe.CardError:
        error = stripe.CardError(message=message, param=None, code=code)
        # Set directly; the SDK only fills it from a JSON body
        error.decline_code = decline_code
        return error

    return _create


@pytest.fixture
def insufficient_funds_error(card_error):
    """Create a Stripe CardError for insufficient funds."""
    return card_error(
        message="Your card has insufficient funds.",
        decline_code="insufficient_funds",
    )


@pytest.fixture
def invalid_request_error():
    """Create a Stripe InvalidRequestError."""

    def _create(
        message: str = "Invalid payment intent ID",
        param: str | None = "payment_intent",
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(message=message, param=param, code=code)

    return _create


@pytest.fixture
def idempotency_error():
    """Create a Stripe IdempotencyError."""
    return stripe.IdempotencyError(
        message="Keys for idempotent requests can only be used with the same parameters.",
    )


@pytest.fixture
def rate_limit_error():
    """Create a Stripe RateLimitError."""
    return stripe.RateLimitError(
        message="Too many requests hit the API too quickly.",
    )


@pytest.fixture
def api_connection_error():
    """Create a Stripe APIConnectionError."""
    return stripe.APIConnectionError(
        message="Could not connect to Stripe.",
    )


@pytest.fixture
def api_timeout_error():
    """Create a Stripe APIConnectionError caused by a timeout."""
    return stripe.APIConnectionError(
        message="Request to Stripe timed out.",
    )


@pytest.fixture
def api_error():
    """Create a Stripe APIError."""
    return stripe.APIError(
        message="Something went wrong on Stripe's end.",
    )


@pytest.fixture
def authentication_error():
    """Create a Stripe AuthenticationError."""
    return stripe.AuthenticationError(
        message="Invalid API Key provided.",
    )


# =============================================================================
# Mock Stripe Client Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_payment_intent(mock_payment_intent):
    """Mock stripe.PaymentIntent API."""
    with patch("stripe.PaymentIntent") as mock:
        # Default: successful create, confirm and retrieve
        mock.create.return_value = mock_payment_intent()
        mock.confirm.return_value = mock_payment_intent(status="succeeded")
        mock.retrieve.return_value = mock_payment_intent(status="processing")
        yield mock


@pytest.fixture
def mock_stripe_customer(mock_customer):
    """Mock stripe.Customer API."""
    with patch("stripe.Customer") as mock:
        mock.create.return_value = mock_customer()
        yield mock


@pytest.fixture
def mock_stripe_payment_method():
    """Mock stripe.PaymentMethod API."""
    with patch("stripe.PaymentMethod") as mock:
        mock.attach.return_value = MockStripeObject(
            {"id": "pm_test123", "object": "payment_method"}
        )
        yield mock


@pytest.fixture
def mock_stripe_http_client():
    """Mock stripe.RequestsClient so no HTTP session is created."""
    with patch("stripe.RequestsClient") as mock:
        yield mock
