"""
Tests for the setup_stripe management command.
"""

from io import StringIO
from unittest.mock import MagicMock, patch

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

COMMAND = "apps.billing.management.commands.setup_stripe"


@pytest.fixture
def stripe_module() -> MagicMock:
    module = MagicMock()
    module.Price.search.return_value = MagicMock(data=[])
    module.Product.create.return_value = MagicMock(id="prod_1")
    module.Price.create.side_effect = [MagicMock(id="price_a"), MagicMock(id="price_b")]
    return module


@pytest.fixture
def configured(stripe_module: MagicMock):
    with patch(f"{COMMAND}.settings") as mock_settings, patch(f"{COMMAND}.get_stripe", return_value=stripe_module):
        mock_settings.STRIPE_SECRET_KEY = "sk_test_123"
        yield stripe_module


class TestSetupStripeCommand:
    def test_creates_price_per_tier(self, configured: MagicMock) -> None:
        out = StringIO()

        call_command("setup_stripe", "--tier", "starter:2900", "--tier", "pro:9900", stdout=out)

        assert configured.Price.create.call_count == 2
        first = configured.Price.create.call_args_list[0].kwargs
        assert first["unit_amount"] == 2900
        assert first["recurring"] == {"interval": "month"}
        assert first["metadata"] == {"app": "sms-hub", "tier": "starter"}
        assert '{"starter": "price_a", "pro": "price_b"}' in out.getvalue()

    def test_reuses_existing_prices(self, configured: MagicMock) -> None:
        configured.Price.search.return_value = MagicMock(data=[MagicMock(id="price_existing")])
        out = StringIO()

        call_command("setup_stripe", "--tier", "starter:2900", stdout=out)

        configured.Price.create.assert_not_called()
        assert "price_existing" in out.getvalue()

    def test_force_skips_lookup(self, configured: MagicMock) -> None:
        call_command("setup_stripe", "--tier", "starter:2900", "--force", stdout=StringIO())

        configured.Price.search.assert_not_called()
        configured.Price.create.assert_called_once()

    def test_invalid_tier(self, configured: MagicMock) -> None:
        with pytest.raises(CommandError):
            call_command("setup_stripe", "--tier", "starter", stdout=StringIO())

    def test_requires_secret_key(self) -> None:
        with patch(f"{COMMAND}.settings") as mock_settings:
            mock_settings.STRIPE_SECRET_KEY = ""
            with pytest.raises(CommandError, match="STRIPE_SECRET_KEY"):
                call_command("setup_stripe", stdout=StringIO())
