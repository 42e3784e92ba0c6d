"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os
import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full submission workflows)
    - test_payment_confirmation.py, test_gateway.py, test_database.py → integration
    - test_retry.py, test_error_classification.py, test_state_transitions.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    # Filename patterns for each category
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_payment_confirmation.py",
        "test_gateway.py",
        "test_database.py",
    ]

    unit_patterns = [
        "test_retry.py",
        "test_error_classification.py",
        "test_exceptions.py",
        "test_stripe_adapter.py",
        "test_state_transitions.py",
        "test_payment_attempt.py",
        "test_resilience.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filepath = str(item.fspath)
        filename = filepath.split("/")[-1]

        # Check patterns in priority order
        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def stripe_retry_settings(settings):
    """
    Keep gateway retry settings deterministic in every test.

    Tests that exercise backoff inject their own policy and sleep.
    """
    settings.STRIPE_RETRY_MAX_ATTEMPTS = 3
    settings.STRIPE_RETRY_BASE_DELAY_SECONDS = 1.0
    settings.STRIPE_RETRY_BACKOFF_MULTIPLIER = 2.0
    settings.STRIPE_RETRY_MAX_DELAY_SECONDS = 5.0
    settings.STRIPE_RETRY_JITTER = 0.0
    settings.STRIPE_RETRYABLE_CODES = []
    return settings
