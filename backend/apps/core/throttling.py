"""
Cache-backed rate limiting.

Counters live in Django's cache (the database cache in deployed
environments) so limits hold across every worker.

Usage::

    from apps.core.throttling import check_rate_limit, RateLimitExceeded

    try:
        check_rate_limit(f"signup:{hub}:{phone_number}", max_requests=3, window_seconds=3600)
    except RateLimitExceeded as e:
        raise RateLimited(retry_after=e.retry_after) from e
"""

from django.core.cache import cache

from apps.core.logging import get_logger

logger = get_logger(__name__)


class RateLimitExceeded(Exception):
    """Raised when a rate limit is exceeded."""

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


def check_rate_limit(
    key: str,
    *,
    max_requests: int,
    window_seconds: int,
) -> None:
    """
    Count one request against ``key`` and raise once the window is full.

    ``cache.add()`` seeds the counter only when missing and ``cache.incr()``
    bumps it, so concurrent callers do not overwrite each other's counts.

    Raises:
        RateLimitExceeded: If more than ``max_requests`` were seen in the window.
    """
    cache_key = f"rate_limit:{key}"

    cache.add(cache_key, 0, timeout=window_seconds)

    try:
        current = cache.incr(cache_key)
    except ValueError:
        # Key expired between add() and incr()
        cache.set(cache_key, 1, timeout=window_seconds)
        return

    if current > max_requests:
        logger.warning("rate_limit_exceeded", key=key, limit=max_requests, window=window_seconds)
        raise RateLimitExceeded(
            "Too many requests. Please try again later.",
            retry_after=window_seconds,
        )
