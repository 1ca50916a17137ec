"""
Tests for API-level behaviour: health check and error rendering.
"""

from unittest.mock import MagicMock, patch

from django.test import Client

from apps.core.exceptions import (
    AttemptsExceeded,
    CompensationFailed,
    InvalidCode,
    PipelineError,
    RateLimited,
    UpstreamUnavailable,
)


class TestHealthCheck:
    def test_health_returns_ok(self, api_client: Client) -> None:
        response = api_client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_response_carries_request_id(self, api_client: Client) -> None:
        response = api_client.get("/api/v1/health", HTTP_X_REQUEST_ID="trace-123")

        assert response["X-Request-ID"] == "trace-123"


class TestErrorRendering:
    """Pipeline errors map to their status with {detail, code, retryable}."""

    def _verify_raising(self, api_client: Client, error: PipelineError):
        ledger = MagicMock()
        ledger.verify_code.side_effect = error
        with patch("apps.signups.api.get_ledger", return_value=ledger):
            return api_client.post(
                "/api/v1/signups/7a1e4f7c-0a33-4c36-9d8a-0f4b1b7b7c11/verify",
                data={"code": "123456"},
                content_type="application/json",
            )

    def test_terminal_error_not_retryable(self, api_client: Client) -> None:
        response = self._verify_raising(api_client, AttemptsExceeded())

        assert response.status_code == 403
        assert response.json() == {
            "detail": AttemptsExceeded.default_message,
            "code": "attempts_exceeded",
            "retryable": False,
        }

    def test_retryable_error(self, api_client: Client) -> None:
        response = self._verify_raising(api_client, InvalidCode("Invalid verification code. 2 attempts remaining."))

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "invalid_code"
        assert body["retryable"] is True
        assert "2 attempts remaining" in body["detail"]

    def test_rate_limited_sets_retry_after(self, api_client: Client) -> None:
        response = self._verify_raising(api_client, RateLimited(retry_after=3600))

        assert response.status_code == 429
        assert response["Retry-After"] == "3600"

    def test_upstream_unavailable_is_503(self, api_client: Client) -> None:
        response = self._verify_raising(api_client, UpstreamUnavailable())

        assert response.status_code == 503
        assert response.json()["retryable"] is True

    def test_compensation_failed_is_500(self, api_client: Client) -> None:
        response = self._verify_raising(api_client, CompensationFailed(orphaned_identity_id=7))

        assert response.status_code == 500
        assert response.json()["code"] == "compensation_failed"


class TestPipelineError:
    def test_default_message_used_when_none_given(self) -> None:
        assert UpstreamUnavailable().message == UpstreamUnavailable.default_message

    def test_extra_fields_kept(self) -> None:
        assert InvalidCode(remaining_attempts=3).remaining_attempts == 3
        assert RateLimited(retry_after=60).retry_after == 60
        assert CompensationFailed(orphaned_identity_id=5).orphaned_identity_id == 5
