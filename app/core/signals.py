"""
Django signals for core infrastructure.

This module logs database connection-state changes so that
reconnects performed between retry attempts are visible in the logs.

Related files:
    - database.py: Retry helpers that discard broken connections
    - apps.py: Signal registration
"""

from __future__ import annotations

import logging

from django.db.backends.signals import connection_created
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(connection_created)
def on_connection_created(sender, connection, **kwargs):
    """Log every new database connection with its alias and host."""
    settings_dict = connection.settings_dict
    logger.info(
        "Database connected",
        extra={
            "alias": connection.alias,
            "vendor": connection.vendor,
            "host": settings_dict.get("HOST") or "local",
        },
    )
