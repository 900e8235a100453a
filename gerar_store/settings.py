"""
Django settings for gerar_store project.

Runtime configuration is read from environment variables so the same
settings module serves development, CI and production.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "django-insecure-gerar-store-dev-key")
DEBUG = _env_bool("DJANGO_DEBUG", True)
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "apps.catalog.apps.CatalogConfig",
    "apps.orders.apps.OrdersConfig",
    "apps.payments.apps.PaymentsConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "gerar_store.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "gerar_store.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DJANGO_DB_PATH", str(BASE_DIR / "db.sqlite3")),
        "TEST": {"NAME": os.getenv("DJANGO_TEST_DB_PATH", str(BASE_DIR / "test_db.sqlite3"))},
        "OPTIONS": {"timeout": 20, "transaction_mode": "IMMEDIATE"},
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "Asia/Ulaanbaatar"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
}

# QPay merchant gateway
QPAY_GATEWAY = os.getenv("QPAY_GATEWAY", "sandbox")
QPAY_API_URL = os.getenv("QPAY_API_URL", "https://merchant.qpay.mn/v2")
QPAY_USERNAME = os.getenv("QPAY_USERNAME", "")
QPAY_PASSWORD = os.getenv("QPAY_PASSWORD", "")
QPAY_PERMANENT_TOKEN = os.getenv("QPAY_PERMANENT_TOKEN", "")
QPAY_INVOICE_CODE = os.getenv("QPAY_INVOICE_CODE", "")
QPAY_EBARIMT_INVOICE_CODE = os.getenv("QPAY_EBARIMT_INVOICE_CODE", "")
QPAY_CALLBACK_BASE_URL = os.getenv("QPAY_CALLBACK_BASE_URL", "http://localhost:8000/api")
QPAY_DISTRICT_CODE = os.getenv("QPAY_DISTRICT_CODE", "3505")
QPAY_BRANCH_CODE = os.getenv("QPAY_BRANCH_CODE", "")
QPAY_STAFF_CODE = os.getenv("QPAY_STAFF_CODE", "online")
QPAY_INVOICE_TTL_MINUTES = _env_int("QPAY_INVOICE_TTL_MINUTES", 60)
QPAY_TOKEN_EXPIRY_MARGIN_SECONDS = _env_int("QPAY_TOKEN_EXPIRY_MARGIN_SECONDS", 60)
QPAY_TOKEN_REUSE_MARGIN_SECONDS = _env_int("QPAY_TOKEN_REUSE_MARGIN_SECONDS", 120)
QPAY_TOKEN_EPOCH_SECONDS = _env_float("QPAY_TOKEN_EPOCH_SECONDS", 1.0)
QPAY_HTTP_TIMEOUT_SECONDS = _env_float("QPAY_HTTP_TIMEOUT_SECONDS", 10.0)
QPAY_INVOICE_TIMEOUT_SECONDS = _env_float("QPAY_INVOICE_TIMEOUT_SECONDS", 15.0)
QPAY_RETRY_MAX_ATTEMPTS = _env_int("QPAY_RETRY_MAX_ATTEMPTS", 3)
QPAY_RETRY_BASE_DELAY_SECONDS = _env_float("QPAY_RETRY_BASE_DELAY_SECONDS", 1.0)
QPAY_SAFE_RETRY_DELAY_SECONDS = _env_float("QPAY_SAFE_RETRY_DELAY_SECONDS", 2.0)

PAYMENT_STATUS_CACHE_TTL_SECONDS = _env_float("PAYMENT_STATUS_CACHE_TTL_SECONDS", 5.0)
PAYMENT_CHECK_MIN_INTERVAL_SECONDS = _env_float("PAYMENT_CHECK_MIN_INTERVAL_SECONDS", 15.0)
PAYMENT_IN_FLIGHT_TTL_SECONDS = _env_float("PAYMENT_IN_FLIGHT_TTL_SECONDS", 60.0)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "gerar": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "django.request": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}
