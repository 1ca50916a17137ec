"""
Stripe client configuration.

Provides a configured Stripe module and tier/price lookups.
"""

from types import ModuleType

import stripe
from django.conf import settings as django_settings

from apps.core.exceptions import ValidationFailed
from config.settings.base import settings

STRIPE_API_VERSION = "2025-06-30.basil"

# Retries are safe due to automatic idempotency key generation.
STRIPE_MAX_NETWORK_RETRIES = 2


def configure_stripe() -> None:
    """Configure Stripe API with settings."""
    stripe.api_key = settings.STRIPE_SECRET_KEY
    stripe.api_version = STRIPE_API_VERSION
    stripe.max_network_retries = STRIPE_MAX_NETWORK_RETRIES
    stripe.default_http_client = stripe.RequestsClient(timeout=django_settings.STRIPE_TIMEOUT_SECONDS)


def get_stripe() -> ModuleType:
    """
    Get configured Stripe module.

    Ensures Stripe is configured before use.
    """
    configure_stripe()
    return stripe


def price_for_tier(tier: str | None) -> str:
    """
    Stripe price ID for a subscription tier.

    Raises:
        ValidationFailed: Unknown tier.
    """
    tier = tier or django_settings.STRIPE_DEFAULT_TIER
    price_id = django_settings.STRIPE_PRICES.get(tier)
    if not price_id:
        raise ValidationFailed(f"Unknown price tier '{tier}'.")
    return price_id


def tier_for_price(price_id: str | None) -> str:
    """Reverse lookup; empty string for prices not in STRIPE_PRICES."""
    for tier, configured in django_settings.STRIPE_PRICES.items():
        if configured == price_id:
            return tier
    return ""
