from __future__ import annotations

import threading
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from django.utils import timezone

from apps.payments.domain.errors import GatewayRequestError
from apps.payments.domain.ports import (
    AccessToken,
    CreatedInvoice,
    InvoiceRequest,
    PaymentCheckResult,
    PaymentRecord,
    ReceiptResult,
)


class SandboxQPayGateway:
    """In-memory QPay stand-in for local development and tests."""

    code = "sandbox"
    name = "QPay Sandbox"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.calls: list[tuple[str, dict]] = []
        self.invoices: dict[str, InvoiceRequest] = {}
        self._payments: dict[str, list[PaymentRecord]] = defaultdict(list)
        self._failures: dict[str, list[Exception]] = defaultdict(list)

    def fail_next(self, operation: str, exc: Exception) -> None:
        with self._lock:
            self._failures[operation].append(exc)

    def calls_for(self, operation: str) -> list[dict]:
        return [kwargs for name, kwargs in self.calls if name == operation]

    def mark_paid(
        self,
        invoice_id: str,
        *,
        payment_id: str | None = None,
        payment_type: str = "QPAY",
        status: str = "PAID",
        amount: Decimal | None = None,
        paid_date: str | None = None,
    ) -> PaymentRecord:
        request = self.invoices.get(invoice_id)
        record = PaymentRecord(
            payment_id=payment_id or f"SBX-PAY-{uuid4().hex[:10]}",
            status=status,
            payment_type=payment_type,
            paid_date=paid_date or timezone.now().isoformat(),
            amount=amount if amount is not None else (request.amount if request else None),
        )
        with self._lock:
            self._payments[invoice_id].insert(0, record)
        return record

    def _record(self, operation: str, **kwargs) -> None:
        with self._lock:
            self.calls.append((operation, kwargs))
            failures = self._failures.get(operation)
            failure = failures.pop(0) if failures else None
        if failure is not None:
            raise failure

    def create_invoice(self, *, request: InvoiceRequest) -> CreatedInvoice:
        self._record("create_invoice", request=request)
        invoice_id = f"SBX-INV-{uuid4().hex[:12]}"
        with self._lock:
            self.invoices[invoice_id] = request
        return CreatedInvoice(
            invoice_id=invoice_id,
            qr_text=f"https://sandbox.qpay.mn/q/{invoice_id}",
            qr_image="",
            urls=[{"name": "qPay wallet", "link": f"qpaywallet://q?qPay_QRcode={invoice_id}"}],
            token=AccessToken(value="sandbox-token", expires_at=timezone.now() + timedelta(hours=1)),
        )

    def check_payment(self, *, invoice_id: str) -> PaymentCheckResult:
        self._record("check_payment", invoice_id=invoice_id)
        with self._lock:
            records = tuple(self._payments.get(invoice_id, ()))
        return PaymentCheckResult(count=len(records), records=records)

    def cancel_invoice(self, *, invoice_id: str) -> None:
        self._record("cancel_invoice", invoice_id=invoice_id)
        if invoice_id not in self.invoices:
            raise GatewayRequestError("Invoice not found.", status_code=404)

    def cancel_payment(self, *, payment_id: str, callback_url: str = "", note: str = "") -> None:
        self._record("cancel_payment", payment_id=payment_id, callback_url=callback_url, note=note)

    def refund_payment(self, *, payment_id: str, callback_url: str = "", note: str = "") -> None:
        self._record("refund_payment", payment_id=payment_id, callback_url=callback_url, note=note)

    def create_ebarimt(
        self,
        *,
        payment_id: str,
        receiver_type: str,
        receiver: str = "",
        token: AccessToken | None = None,
    ) -> ReceiptResult:
        self._record("create_ebarimt", payment_id=payment_id, receiver_type=receiver_type, receiver=receiver, token=token)
        ebarimt_id = f"SBX-EB-{payment_id}"
        return ReceiptResult(
            ebarimt_id=ebarimt_id,
            receipt_url=f"https://sandbox.ebarimt.mn/receipt/{ebarimt_id}",
            ebarimt_receipt_id=uuid4().hex[:16],
            qr_data=f"EBARIMT:{ebarimt_id}",
            lottery="AA 00000000",
            status="REGISTERED",
            raw={"id": ebarimt_id},
        )
