from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from apps.payments.domain.policies import is_settled_status


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: datetime | None
    permanent: bool = False


@dataclass(frozen=True)
class InvoiceReceiver:
    register: str = ""
    name: str = "Customer"
    email: str = ""
    phone: str = ""


@dataclass(frozen=True)
class InvoiceLine:
    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_amount: Decimal
    tax_product_code: str = ""
    classification_code: str = ""
    barcode: str = ""
    note: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class InvoiceRequest:
    order_id: str
    amount: Decimal
    description: str
    callback_url: str
    receiver_code: str
    receiver: InvoiceReceiver
    itemized: bool
    lines: tuple[InvoiceLine, ...] = ()


@dataclass(frozen=True)
class CreatedInvoice:
    invoice_id: str
    qr_text: str
    qr_image: str
    urls: list[dict] = field(default_factory=list)
    token: AccessToken | None = None


@dataclass(frozen=True)
class PaymentRecord:
    payment_id: str
    status: str
    payment_type: str
    paid_date: str | None
    amount: Decimal | None
    raw: dict = field(default_factory=dict)

    @property
    def is_settled(self) -> bool:
        return is_settled_status(self.status)


@dataclass(frozen=True)
class PaymentCheckResult:
    count: int
    records: tuple[PaymentRecord, ...]

    def first_settled(self) -> PaymentRecord | None:
        for record in self.records:
            if record.is_settled:
                return record
        return None

    def latest(self) -> PaymentRecord | None:
        return self.records[0] if self.records else None


@dataclass(frozen=True)
class ReceiptResult:
    ebarimt_id: str
    receipt_url: str = ""
    ebarimt_receipt_id: str = ""
    qr_data: str = ""
    lottery: str = ""
    status: str = ""
    vat_amount: Decimal | None = None
    city_tax_amount: Decimal | None = None
    raw: dict = field(default_factory=dict)


class QPayGatewayPort(Protocol):
    code: str
    name: str

    def create_invoice(self, *, request: InvoiceRequest) -> CreatedInvoice:
        ...

    def check_payment(self, *, invoice_id: str) -> PaymentCheckResult:
        ...

    def cancel_invoice(self, *, invoice_id: str) -> None:
        ...

    def cancel_payment(self, *, payment_id: str, callback_url: str = "", note: str = "") -> None:
        ...

    def refund_payment(self, *, payment_id: str, callback_url: str = "", note: str = "") -> None:
        ...

    def create_ebarimt(
        self,
        *,
        payment_id: str,
        receiver_type: str,
        receiver: str = "",
        token: AccessToken | None = None,
    ) -> ReceiptResult:
        ...
