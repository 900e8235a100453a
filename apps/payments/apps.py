from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.payments"
    verbose_name = "Payments"

    def ready(self) -> None:
        from apps.payments.interfaces import signals  # noqa: F401

        env = (getattr(settings, "ENVIRONMENT", "") or "").strip().lower()
        if env in {"prod", "production"}:
            if getattr(settings, "DEBUG", False):
                raise ImproperlyConfigured("DEBUG must be False in production.")
            if (getattr(settings, "QPAY_GATEWAY", "") or "").strip().lower() != "qpay":
                raise ImproperlyConfigured("QPAY_GATEWAY must be 'qpay' in production.")
