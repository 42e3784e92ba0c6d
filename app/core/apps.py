"""
Django app configuration for core infrastructure.
"""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Configuration for the core application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "core"
    verbose_name = "Core"

    def ready(self):
        """
        Import signals when the app is ready.

        This ensures the connection-state receivers are connected when Django starts.
        """
        from core import signals  # noqa: F401
