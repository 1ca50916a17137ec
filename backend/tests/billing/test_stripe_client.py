"""
Tests for Stripe configuration and tier lookups.
"""

import pytest
import stripe

from apps.billing.stripe_client import STRIPE_API_VERSION, get_stripe, price_for_tier, tier_for_price
from apps.core.exceptions import ValidationFailed


class TestPriceLookup:
    def test_price_for_known_tier(self) -> None:
        assert price_for_tier("professional") == "price_pro_test"

    def test_empty_tier_uses_default(self) -> None:
        assert price_for_tier("") == "price_starter_test"

    def test_unknown_tier(self) -> None:
        with pytest.raises(ValidationFailed):
            price_for_tier("platinum")

    def test_tier_for_price(self) -> None:
        assert tier_for_price("price_pro_test") == "professional"
        assert tier_for_price("price_unknown") == ""


def test_get_stripe_configures_module() -> None:
    module = get_stripe()

    assert module is stripe
    assert stripe.api_version == STRIPE_API_VERSION
    assert stripe.max_network_retries == 2
