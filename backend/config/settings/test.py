"""
Test settings.

In-memory SQLite and local-memory cache so the suite runs without services.
"""

from .base import *  # noqa: F403

DEBUG = False
SECRET_KEY = "test-secret-key"
ALLOWED_HOSTS = ["testserver", "localhost"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

LOG_JSON = False
LOG_LEVEL = "WARNING"

SIGNUP_CODE_LENGTH = 6
SIGNUP_CODE_EXPIRY_MINUTES = 15
SIGNUP_MAX_ATTEMPTS = 5
SIGNUP_MAX_RESENDS = 3
SIGNUP_RATE_LIMIT_PER_HOUR = 3

STRIPE_PRICES = {"starter": "price_starter_test", "professional": "price_pro_test"}
STRIPE_DEFAULT_TIER = "starter"
