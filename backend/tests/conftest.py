"""
Shared pytest fixtures for all tests.

Factories
---------
Import factories directly from their modules:

    from tests.signups.factories import SignupRequestFactory
    from tests.companies.factories import CompanyFactory
    from tests.accounts.factories import UserFactory, UserProfileFactory, MembershipFactory
    from tests.billing.factories import CustomerFactory, LeadFactory

Collaborators
-------------
External services are replaced by injected fakes rather than patched
globals: ``FakeChannel`` records messages instead of sending them, and
``sign_stripe_payload`` produces a valid Stripe-Signature header for a
payload so webhook tests go through real signature verification.
"""

import hashlib
import hmac
import json
import re
import time
from typing import Any

import pytest
from django.core.cache import cache
from django.test import Client

from apps.signups.channels import ChannelError, DeliveryReceipt
from apps.signups.services import SignupLedger

STRIPE_TEST_SECRET = "whsec_test_secret"


class FakeChannel:
    """
    In-memory message channel.

    Set ``fail = True`` to make every send raise ChannelError.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.sent: list[dict[str, Any]] = []
        self.fail = False

    def send(self, address: str, text: str, subject: str | None = None) -> DeliveryReceipt:
        if self.fail:
            raise ChannelError(f"{self.name} channel unavailable")
        self.sent.append({"address": address, "text": text, "subject": subject})
        return DeliveryReceipt(channel=self.name, message_id=f"{self.name}-msg-{len(self.sent)}")

    @property
    def last_code(self) -> str:
        """The code in the most recent message."""
        match = re.search(r"\b(\d{6})\b", self.sent[-1]["text"])
        assert match, "no code in last message"
        return match.group(1)


def sign_stripe_payload(payload: str, secret: str = STRIPE_TEST_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe does (HMAC-SHA256 over 't.payload')."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode()
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def build_stripe_event(
    event_type: str,
    data_object: dict,
    event_id: str = "evt_test_123",
    created: int = 1_700_000_000,
) -> str:
    """Serialized Stripe event payload."""
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": created,
            "data": {"object": data_object},
        }
    )


@pytest.fixture(autouse=True)
def _clear_cache():
    """Rate limit counters live in the cache; start every test from zero."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def sms_channel() -> FakeChannel:
    return FakeChannel("sms")


@pytest.fixture
def email_channel() -> FakeChannel:
    return FakeChannel("email")


@pytest.fixture
def ledger(sms_channel: FakeChannel, email_channel: FakeChannel) -> SignupLedger:
    """Signup ledger wired to recording channels."""
    return SignupLedger({"sms": sms_channel, "email": email_channel})


@pytest.fixture
def api_client() -> Client:
    """
    Django test client for full HTTP request/response cycle tests.

    Example:
        def test_api_returns_200(api_client):
            response = api_client.get("/api/v1/health")
            assert response.status_code == 200
    """
    return Client()
