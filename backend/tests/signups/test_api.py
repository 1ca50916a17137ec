"""
Tests for signup API endpoints.
"""

import uuid
from unittest.mock import patch

import pytest
from django.test import Client

from apps.signups.models import SignupRequest
from tests.signups.factories import KNOWN_CODE, SignupRequestFactory

SIGNUPS_URL = "/api/v1/signups"


@pytest.fixture(autouse=True)
def _use_fake_channels(ledger):
    with patch("apps.signups.api.get_ledger", return_value=ledger):
        yield


def signup_payload(**overrides) -> dict:
    payload = {
        "hub": 2,
        "first_name": "Jane",
        "last_name": "Doe",
        "email": "jane@example.com",
        "phone_number": "+15551234567",
        "company_name": "Acme Inc",
    }
    payload.update(overrides)
    return payload


@pytest.mark.django_db
class TestCreateSignupEndpoint:
    """Tests for POST /api/v1/signups."""

    def test_creates_signup(self, api_client: Client) -> None:
        response = api_client.post(
            SIGNUPS_URL,
            data=signup_payload(),
            content_type="application/json",
            HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1",
        )

        assert response.status_code == 201
        body = response.json()
        assert body["auth_method"] == "sms"
        assert body["message"] == "Verification code sent to your phone."
        assert "code" not in body
        signup = SignupRequest.objects.get(pk=body["signup_id"])
        assert signup.ip_address == "203.0.113.7"

    def test_invalid_fields_return_422(self, api_client: Client) -> None:
        response = api_client.post(
            SIGNUPS_URL,
            data=signup_payload(email="nope"),
            content_type="application/json",
        )

        assert response.status_code == 422
        assert response.json()["code"] == "validation_failed"

    def test_rate_limit_returns_429(self, api_client: Client) -> None:
        for _ in range(3):
            api_client.post(SIGNUPS_URL, data=signup_payload(), content_type="application/json")

        response = api_client.post(SIGNUPS_URL, data=signup_payload(), content_type="application/json")

        assert response.status_code == 429
        assert response["Retry-After"] == "3600"
        assert response.json()["retryable"] is True


@pytest.mark.django_db
class TestVerifyEndpoint:
    """Tests for POST /api/v1/signups/{id}/verify."""

    def test_correct_code(self, api_client: Client) -> None:
        signup = SignupRequestFactory()

        response = api_client.post(
            f"{SIGNUPS_URL}/{signup.id}/verify",
            data={"code": KNOWN_CODE},
            content_type="application/json",
        )

        assert response.status_code == 200
        assert response.json() == {
            "verified": True,
            "signup_id": str(signup.id),
            "hub": 2,
            "customer_type": "company",
        }

    def test_wrong_code(self, api_client: Client) -> None:
        signup = SignupRequestFactory()

        response = api_client.post(
            f"{SIGNUPS_URL}/{signup.id}/verify",
            data={"code": "000000"},
            content_type="application/json",
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_code"

    def test_already_verified(self, api_client: Client) -> None:
        signup = SignupRequestFactory()
        url = f"{SIGNUPS_URL}/{signup.id}/verify"
        api_client.post(url, data={"code": KNOWN_CODE}, content_type="application/json")

        response = api_client.post(url, data={"code": KNOWN_CODE}, content_type="application/json")

        assert response.status_code == 409
        assert response.json()["code"] == "already_verified"

    def test_unknown_signup(self, api_client: Client) -> None:
        response = api_client.post(
            f"{SIGNUPS_URL}/{uuid.uuid4()}/verify",
            data={"code": KNOWN_CODE},
            content_type="application/json",
        )

        assert response.status_code == 404


@pytest.mark.django_db
class TestResendEndpoint:
    """Tests for POST /api/v1/signups/{id}/resend."""

    def test_resend(self, api_client: Client, sms_channel) -> None:
        signup = SignupRequestFactory()

        response = api_client.post(f"{SIGNUPS_URL}/{signup.id}/resend")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert len(sms_channel.sent) == 1

    def test_resend_delivery_failure(self, api_client: Client, sms_channel) -> None:
        signup = SignupRequestFactory()
        sms_channel.fail = True

        response = api_client.post(f"{SIGNUPS_URL}/{signup.id}/resend")

        assert response.status_code == 503
        assert response.json()["code"] == "upstream_unavailable"
