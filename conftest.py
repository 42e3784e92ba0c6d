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
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_fake")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()


@pytest.fixture(scope="session")
def django_db_modify_db_settings():
    """Allow database modifications for testing."""
    pass
