"""
Base Django settings for the SMS Hub provisioning backend.

Shared configuration for all environments.
"""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment-based configuration using pydantic-settings."""

    SECRET_KEY: str = "django-insecure-change-me-in-production"
    DEBUG: bool = False
    ALLOWED_HOSTS: list[str] = []

    # Database
    DB_NAME: str = "smshub"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_HOST: str = "localhost"
    DB_PORT: str = "5432"

    # Logging
    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    # Subscription tier -> Stripe price ID, e.g. {"starter": "price_xxx"}
    STRIPE_PRICES: dict[str, str] = {}
    STRIPE_DEFAULT_TIER: str = "starter"
    STRIPE_TIMEOUT_SECONDS: int = 20

    # Message channels
    AWS_SMS_REGION: str = "us-east-1"
    AWS_SMS_ORIGINATION_IDENTITY: str = ""
    RESEND_API_KEY: str = ""
    CHANNEL_TIMEOUT_SECONDS: int = 10

    # Signup verification
    SIGNUP_CODE_LENGTH: int = 6
    SIGNUP_CODE_EXPIRY_MINUTES: int = 15
    SIGNUP_MAX_ATTEMPTS: int = 5
    SIGNUP_MAX_RESENDS: int = 3
    SIGNUP_RATE_LIMIT_PER_HOUR: int = 3

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = settings.SECRET_KEY

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = settings.DEBUG

ALLOWED_HOSTS = settings.ALLOWED_HOSTS

# Application definition
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Local apps
    "apps.core",
    "apps.companies",
    "apps.accounts",
    "apps.signups",
    "apps.billing",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "apps.core.middleware.RequestContextMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"

AUTH_USER_MODEL = "accounts.User"

# Database
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": settings.DB_NAME,
        "USER": settings.DB_USER,
        "PASSWORD": settings.DB_PASSWORD,
        "HOST": settings.DB_HOST,
        "PORT": settings.DB_PORT,
    }
}

# Rate limit counters live in the database cache so they are shared across tasks
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.db.DatabaseCache",
        "LOCATION": "rate_limit_cache",
    }
}

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = "static/"

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Logging is configured by apps.core on startup (structlog)
LOGGING_CONFIG = None
LOG_JSON = settings.LOG_JSON
LOG_LEVEL = settings.LOG_LEVEL

# Signup verification
SIGNUP_CODE_LENGTH = settings.SIGNUP_CODE_LENGTH
SIGNUP_CODE_EXPIRY_MINUTES = settings.SIGNUP_CODE_EXPIRY_MINUTES
SIGNUP_MAX_ATTEMPTS = settings.SIGNUP_MAX_ATTEMPTS
SIGNUP_MAX_RESENDS = settings.SIGNUP_MAX_RESENDS
SIGNUP_RATE_LIMIT_PER_HOUR = settings.SIGNUP_RATE_LIMIT_PER_HOUR

# Message channels
AWS_SMS_REGION = settings.AWS_SMS_REGION
AWS_SMS_ORIGINATION_IDENTITY = settings.AWS_SMS_ORIGINATION_IDENTITY
RESEND_API_KEY = settings.RESEND_API_KEY
CHANNEL_TIMEOUT_SECONDS = settings.CHANNEL_TIMEOUT_SECONDS

# Stripe
STRIPE_PRICES = settings.STRIPE_PRICES
STRIPE_DEFAULT_TIER = settings.STRIPE_DEFAULT_TIER
STRIPE_TIMEOUT_SECONDS = settings.STRIPE_TIMEOUT_SECONDS
