"""
Tests for payments app.

This package contains test modules for:
- test_payment_attempt.py: PaymentAttempt validation and transitions
- test_state_transitions.py: Transition tables
- test_gateway.py: StripeGateway status normalization
- test_resilience.py: Gateway retry classification and policy

Shared helpers:
- factories.py: Factory Boy factories for PaymentAttempt
- fakes.py: In-memory PaymentGateway

Usage:
    pytest payments/tests/
    pytest payments/tests/test_gateway.py
"""
