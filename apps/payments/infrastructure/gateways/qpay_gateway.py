from __future__ import annotations

import logging
import time
from collections.abc import Callable

import httpx

from apps.payments.application.services.qpay_config import QPaySettings
from apps.payments.domain.errors import AuthenticationFailedError, GatewayRequestError
from apps.payments.domain.ports import (
    AccessToken,
    CreatedInvoice,
    InvoiceLine,
    InvoiceRequest,
    PaymentCheckResult,
    ReceiptResult,
)
from apps.payments.infrastructure.qpay.executor import SafeRequestExecutor
from apps.payments.infrastructure.qpay.normalizers import normalize_payment_record, normalize_receipt_response
from apps.payments.infrastructure.qpay.token_cache import QPayTokenCache

logger = logging.getLogger("gerar.payments.qpay")

DEFAULT_TAX_PRODUCT_CODE = "6401"
VAT_TAX_TYPE = "1"
PAYMENT_CHECK_PAGE_LIMIT = 100
PAYMENT_CHECK_MAX_PAGES = 50


def _money(value) -> str:
    return f"{value:.2f}"


class QPayGateway:
    code = "qpay"
    name = "QPay"

    def __init__(
        self,
        *,
        config: QPaySettings,
        client: httpx.Client | None = None,
        executor: SafeRequestExecutor | None = None,
        token_cache: QPayTokenCache | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._client = client or httpx.Client(base_url=config.api_url, timeout=config.http_timeout_seconds)
        self._executor = executor or SafeRequestExecutor.from_settings(config, sleep=sleep)
        self._token_cache = token_cache or QPayTokenCache(
            client=self._client,
            executor=self._executor,
            username=config.username,
            password=config.password,
            permanent_token=config.permanent_token,
            expiry_margin_seconds=config.token_expiry_margin_seconds,
            epoch_seconds=config.token_epoch_seconds,
            timeout=config.http_timeout_seconds,
            clock=clock,
            sleep=sleep,
        )

    @property
    def token_cache(self) -> QPayTokenCache:
        return self._token_cache

    def create_invoice(self, *, request: InvoiceRequest) -> CreatedInvoice:
        token = self._token_cache.get_token()
        payload = self._itemized_payload(request) if request.itemized else self._simple_payload(request)
        data = self._call(
            "POST",
            "invoice",
            token=token,
            json=payload,
            idempotent=False,
            timeout=self._config.invoice_timeout_seconds,
            label="create_invoice",
        )
        invoice_id = data.get("invoice_id")
        if not invoice_id:
            raise GatewayRequestError("QPay invoice response did not contain invoice_id.", detail=data)
        logger.info(
            "qpay_invoice_created",
            extra={"order_id": request.order_id, "invoice_id": invoice_id, "itemized": request.itemized},
        )
        return CreatedInvoice(
            invoice_id=str(invoice_id),
            qr_text=data.get("qr_text") or "",
            qr_image=data.get("qr_image") or data.get("qr_code") or "",
            urls=list(data.get("urls") or []),
            token=token,
        )

    def check_payment(self, *, invoice_id: str) -> PaymentCheckResult:
        token = self._token_cache.get_token()
        records = []
        count = 0
        for page in range(1, PAYMENT_CHECK_MAX_PAGES + 1):
            data = self._call(
                "POST",
                "payment/check",
                token=token,
                json={
                    "object_type": "INVOICE",
                    "object_id": invoice_id,
                    "offset": {"page_number": page, "page_limit": PAYMENT_CHECK_PAGE_LIMIT},
                },
                idempotent=True,
                label="check_payment",
            )
            count = int(data.get("count") or 0)
            rows = data.get("rows") or []
            records.extend(normalize_payment_record(row) for row in rows if isinstance(row, dict))
            if not rows or len(records) >= count:
                break
        return PaymentCheckResult(count=count, records=tuple(records))

    def cancel_invoice(self, *, invoice_id: str) -> None:
        self._call(
            "DELETE",
            f"invoice/{invoice_id}",
            token=self._token_cache.get_token(),
            idempotent=True,
            label="cancel_invoice",
        )

    def cancel_payment(self, *, payment_id: str, callback_url: str = "", note: str = "") -> None:
        self._call(
            "DELETE",
            f"payment/cancel/{payment_id}",
            token=self._token_cache.get_token(),
            json={"callback_url": callback_url or None, "note": note or "Payment cancellation"},
            idempotent=True,
            label="cancel_payment",
        )

    def refund_payment(self, *, payment_id: str, callback_url: str = "", note: str = "") -> None:
        self._call(
            "DELETE",
            f"payment/refund/{payment_id}",
            token=self._token_cache.get_token(),
            json={"callback_url": callback_url or None, "note": note or "Payment refund"},
            idempotent=True,
            label="refund_payment",
        )

    def create_ebarimt(
        self,
        *,
        payment_id: str,
        receiver_type: str,
        receiver: str = "",
        token: AccessToken | None = None,
    ) -> ReceiptResult:
        body = {"payment_id": payment_id, "ebarimt_receiver_type": receiver_type or "CITIZEN"}
        if receiver:
            body["ebarimt_receiver"] = receiver
        data = self._call(
            "POST",
            "ebarimt/create",
            token=token or self._token_cache.get_token(),
            json=body,
            idempotent=True,
            timeout=self._config.invoice_timeout_seconds,
            label="create_ebarimt",
        )
        return normalize_receipt_response(data)

    def _simple_payload(self, request: InvoiceRequest) -> dict:
        payload = {
            "invoice_code": self._config.invoice_code,
            "sender_invoice_no": request.order_id,
            "invoice_receiver_code": request.receiver_code,
            "sender_branch_code": self._config.branch_code,
            "invoice_description": request.description[:255],
            "allow_partial": False,
            "allow_exceed": False,
            "amount": float(request.amount),
            "callback_url": request.callback_url,
            "sender_staff_code": self._config.staff_code,
            "invoice_receiver_data": self._receiver_data(request),
        }
        return payload

    def _itemized_payload(self, request: InvoiceRequest) -> dict:
        return {
            "invoice_code": self._config.ebarimt_invoice_code,
            "sender_invoice_no": request.order_id,
            "invoice_receiver_code": request.receiver_code,
            "invoice_description": request.description[:255],
            "tax_type": VAT_TAX_TYPE,
            "district_code": self._config.district_code,
            "callback_url": request.callback_url,
            "sender_branch_code": self._config.branch_code,
            "sender_staff_code": self._config.staff_code,
            "invoice_receiver_data": self._receiver_data(request),
            "lines": [self._line_payload(line) for line in request.lines],
        }

    @staticmethod
    def _receiver_data(request: InvoiceRequest) -> dict:
        receiver = request.receiver
        return {
            "register": receiver.register,
            "name": receiver.name or "Customer",
            "email": receiver.email,
            "phone": receiver.phone,
        }

    @staticmethod
    def _line_payload(line: InvoiceLine) -> dict:
        payload = {
            "tax_product_code": line.tax_product_code or DEFAULT_TAX_PRODUCT_CODE,
            "line_description": line.description,
            "line_quantity": _money(line.quantity),
            "line_unit_price": _money(line.unit_price),
            "note": line.note or "-",
            "discounts": [],
            "surcharges": [],
            "taxes": [],
        }
        if line.classification_code:
            payload["classification_code"] = line.classification_code
        if line.barcode:
            payload["barcode"] = line.barcode
        if line.vat_amount > 0:
            payload["taxes"].append(
                {"tax_code": "VAT", "description": "НӨАТ", "amount": float(line.vat_amount), "note": "НӨАТ"}
            )
        return payload

    def _call(
        self,
        method: str,
        path: str,
        *,
        token: AccessToken,
        idempotent: bool,
        label: str,
        json: dict | None = None,
        timeout: float | None = None,
    ) -> dict:
        def send() -> dict:
            response = self._client.request(
                method,
                path,
                json=json,
                headers={"Authorization": f"Bearer {token.value}"},
                timeout=timeout or self._config.http_timeout_seconds,
            )
            response.raise_for_status()
            if not response.content:
                return {}
            try:
                data = response.json()
            except ValueError:
                return {}
            return data if isinstance(data, dict) else {}

        try:
            return self._executor.execute(send, idempotent=idempotent, label=label)
        except AuthenticationFailedError:
            self._token_cache.invalidate()
            raise
