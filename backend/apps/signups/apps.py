"""
Signups app configuration.
"""

from django.apps import AppConfig


class SignupsConfig(AppConfig):
    """Configuration for signups app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.signups"
    verbose_name = "Signups & verification"
