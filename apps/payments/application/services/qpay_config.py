from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings


class QPayConfigMissing(Exception):
    pass


class QPayConfigInvalid(Exception):
    pass


@dataclass(frozen=True)
class QPaySettings:
    gateway: str
    api_url: str
    username: str
    password: str
    permanent_token: str
    invoice_code: str
    ebarimt_invoice_code: str
    callback_base_url: str
    district_code: str
    branch_code: str
    staff_code: str
    invoice_ttl_minutes: int
    token_expiry_margin_seconds: int
    token_reuse_margin_seconds: int
    token_epoch_seconds: float
    http_timeout_seconds: float
    invoice_timeout_seconds: float
    retry_max_attempts: int
    retry_base_delay_seconds: float
    safe_retry_delay_seconds: float

    def callback_url(self, order_id: str) -> str:
        return f"{self.callback_base_url.rstrip('/')}/orders/{order_id}/payment-callback/"


class QPayConfigService:
    @staticmethod
    def load() -> QPaySettings:
        invoice_code = (getattr(settings, "QPAY_INVOICE_CODE", "") or "").strip()
        return QPaySettings(
            gateway=(getattr(settings, "QPAY_GATEWAY", "qpay") or "qpay").strip().lower(),
            api_url=(getattr(settings, "QPAY_API_URL", "") or "https://merchant.qpay.mn/v2").strip(),
            username=(getattr(settings, "QPAY_USERNAME", "") or "").strip(),
            password=getattr(settings, "QPAY_PASSWORD", "") or "",
            permanent_token=(getattr(settings, "QPAY_PERMANENT_TOKEN", "") or "").strip(),
            invoice_code=invoice_code,
            ebarimt_invoice_code=(getattr(settings, "QPAY_EBARIMT_INVOICE_CODE", "") or "").strip() or invoice_code,
            callback_base_url=(getattr(settings, "QPAY_CALLBACK_BASE_URL", "") or "").strip(),
            district_code=str(getattr(settings, "QPAY_DISTRICT_CODE", "3505") or "3505"),
            branch_code=(getattr(settings, "QPAY_BRANCH_CODE", "") or "").strip() or "ONLINE",
            staff_code=(getattr(settings, "QPAY_STAFF_CODE", "") or "").strip() or "online",
            invoice_ttl_minutes=int(getattr(settings, "QPAY_INVOICE_TTL_MINUTES", 60)),
            token_expiry_margin_seconds=int(getattr(settings, "QPAY_TOKEN_EXPIRY_MARGIN_SECONDS", 60)),
            token_reuse_margin_seconds=int(getattr(settings, "QPAY_TOKEN_REUSE_MARGIN_SECONDS", 120)),
            token_epoch_seconds=float(getattr(settings, "QPAY_TOKEN_EPOCH_SECONDS", 1.0)),
            http_timeout_seconds=float(getattr(settings, "QPAY_HTTP_TIMEOUT_SECONDS", 10.0)),
            invoice_timeout_seconds=float(getattr(settings, "QPAY_INVOICE_TIMEOUT_SECONDS", 15.0)),
            retry_max_attempts=int(getattr(settings, "QPAY_RETRY_MAX_ATTEMPTS", 3)),
            retry_base_delay_seconds=float(getattr(settings, "QPAY_RETRY_BASE_DELAY_SECONDS", 1.0)),
            safe_retry_delay_seconds=float(getattr(settings, "QPAY_SAFE_RETRY_DELAY_SECONDS", 2.0)),
        )

    @staticmethod
    def validate_live(config: QPaySettings) -> None:
        if not config.api_url:
            raise QPayConfigMissing("QPAY_API_URL is not configured.")
        if not config.permanent_token and (not config.username or not config.password):
            raise QPayConfigMissing("QPay credentials are not configured.")
        if not config.invoice_code:
            raise QPayConfigMissing("QPAY_INVOICE_CODE is not configured.")
        if not config.callback_base_url.startswith(("http://", "https://")):
            raise QPayConfigInvalid("QPAY_CALLBACK_BASE_URL must be an absolute URL.")
