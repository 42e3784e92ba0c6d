"""
Payments app configuration.

This app provides payment processing infrastructure including:
- Stripe adapter and async payment gateway
- Gateway retry configuration
- Payment confirmation coordinator
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
