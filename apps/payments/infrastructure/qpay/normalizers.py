from __future__ import annotations

from decimal import Decimal, InvalidOperation

from apps.payments.domain.ports import PaymentRecord, ReceiptResult


def _first(data: dict, *keys: str):
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _decimal(value) -> Decimal | None:
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _text(value) -> str:
    return "" if value is None else str(value)


def normalize_payment_record(row: dict) -> PaymentRecord:
    """QPay returns snake_case rows, some proxies and older accounts camelCase."""
    return PaymentRecord(
        payment_id=_text(_first(row, "payment_id", "paymentId", "id")),
        status=_text(_first(row, "payment_status", "paymentStatus", "status")).upper(),
        payment_type=_text(_first(row, "payment_type", "paymentType")),
        paid_date=_first(row, "paid_date", "paidDate", "payment_date", "paymentDate", "created_date", "createdDate"),
        amount=_decimal(_first(row, "payment_amount", "paymentAmount", "amount")),
        raw=dict(row),
    )


def normalize_receipt_response(data: dict | None) -> ReceiptResult:
    raw = data if isinstance(data, dict) else {}
    return ReceiptResult(
        ebarimt_id=_text(_first(raw, "id", "ebarimt_id", "invoice_id", "uuid")),
        receipt_url=_text(_first(raw, "receipt_url", "url", "receiptUrl")),
        ebarimt_receipt_id=_text(_first(raw, "ebarimt_receipt_id")),
        qr_data=_text(_first(raw, "ebarimt_qr_data", "qr_data")),
        lottery=_text(_first(raw, "ebarimt_lottery", "lottery")),
        status=_text(_first(raw, "ebarimt_status", "barimt_status")),
        vat_amount=_decimal(_first(raw, "vat_amount", "vatAmount")),
        city_tax_amount=_decimal(_first(raw, "city_tax_amount", "cityTaxAmount")),
        raw=dict(raw),
    )
