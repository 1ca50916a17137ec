"""
Tests for the rate limiting utility.
"""

from unittest.mock import patch

import pytest
from django.core.cache import cache

from apps.core.throttling import RateLimitExceeded, check_rate_limit


class TestCheckRateLimit:
    """Tests for the check_rate_limit function."""

    def test_allows_requests_up_to_limit(self) -> None:
        for _ in range(3):
            check_rate_limit("signup:2:+15551234567", max_requests=3, window_seconds=3600)

    def test_blocks_request_over_limit(self) -> None:
        for _ in range(3):
            check_rate_limit("signup:2:+15551234567", max_requests=3, window_seconds=3600)

        with pytest.raises(RateLimitExceeded) as exc_info:
            check_rate_limit("signup:2:+15551234567", max_requests=3, window_seconds=3600)

        assert exc_info.value.retry_after == 3600
        assert "Too many requests" in str(exc_info.value)

    def test_keys_counted_independently(self) -> None:
        """Limits are per destination and hub."""
        for _ in range(3):
            check_rate_limit("signup:2:+15551234567", max_requests=3, window_seconds=3600)

        check_rate_limit("signup:1:+15551234567", max_requests=3, window_seconds=3600)
        check_rate_limit("signup:2:+15557654321", max_requests=3, window_seconds=3600)

        with pytest.raises(RateLimitExceeded):
            check_rate_limit("signup:2:+15551234567", max_requests=3, window_seconds=3600)

    def test_counter_stored_under_prefixed_key(self) -> None:
        check_rate_limit("k", max_requests=10, window_seconds=60)
        check_rate_limit("k", max_requests=10, window_seconds=60)

        assert cache.get("rate_limit:k") == 2

    def test_key_evicted_between_add_and_incr_restarts_count(self) -> None:
        with patch("apps.core.throttling.cache") as mock_cache:
            mock_cache.incr.side_effect = ValueError("missing key")

            check_rate_limit("k", max_requests=1, window_seconds=60)

        mock_cache.set.assert_called_once_with("rate_limit:k", 1, timeout=60)
