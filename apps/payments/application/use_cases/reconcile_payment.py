from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from apps.orders.domain.errors import OrderNotFoundError
from apps.orders.models import Order, OrderActivity
from apps.orders.services.activity_service import OrderActivityService
from apps.payments.application.facade import QPayGatewayFacade
from apps.payments.application.use_cases.issue_tax_receipt import IssueTaxReceiptCommand, IssueTaxReceiptUseCase
from apps.payments.domain.errors import GatewayError, InvoiceMissingError
from apps.payments.domain.ports import PaymentRecord
from apps.payments.models import TaxReceipt
from apps.payments.signals import payment_confirmed

logger = logging.getLogger("gerar.payments")


class ReconcileOutcome(StrEnum):
    CONFIRMED = "CONFIRMED"
    ALREADY_PAID = "ALREADY_PAID"
    PENDING = "PENDING"
    UNVERIFIED = "UNVERIFIED"
    IGNORED = "IGNORED"


@dataclass(frozen=True)
class ReconcilePaymentCommand:
    order_id: str
    source: str = OrderActivity.CHANNEL_POLL


@dataclass(frozen=True)
class ReconcileResult:
    outcome: ReconcileOutcome
    order: Order
    record: PaymentRecord | None = None
    receipt: TaxReceipt | None = None
    error: str = ""


def _paid_at(record: PaymentRecord) -> datetime:
    try:
        parsed = parse_datetime(str(record.paid_date)) if record.paid_date else None
    except ValueError:
        logger.warning(
            "payment_paid_date_invalid",
            extra={"payment_id": record.payment_id, "paid_date": record.paid_date},
        )
        parsed = None
    if parsed is None:
        return timezone.now()
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


class ReconcilePaymentUseCase:
    """
    Brings the local order in line with the gateway's view of its invoice.

    The gateway is always asked directly; callback bodies are never trusted.
    The PAID transition is a single conditional update, so concurrent
    callers (callback and poll) cannot both win it.
    """

    @staticmethod
    def execute(cmd: ReconcilePaymentCommand) -> ReconcileResult:
        order = Order.objects.filter(id=cmd.order_id).first()
        if order is None:
            raise OrderNotFoundError()
        if not order.qpay_invoice_id:
            raise InvoiceMissingError()
        if order.payment_status == Order.PAYMENT_PAID:
            return ReconcileResult(outcome=ReconcileOutcome.ALREADY_PAID, order=order)

        try:
            check = QPayGatewayFacade.get().check_payment(invoice_id=order.qpay_invoice_id)
        except GatewayError as exc:
            logger.warning(
                "payment_check_failed",
                extra={"order_id": order.id, "invoice_id": order.qpay_invoice_id, "error_code": exc.code},
            )
            return ReconcileResult(outcome=ReconcileOutcome.UNVERIFIED, order=order, error=str(exc))

        record = check.first_settled()
        if record is None:
            return ReconcileResult(outcome=ReconcileOutcome.PENDING, order=order, record=check.latest())

        if not ReconcilePaymentUseCase._confirm(order, record, source=cmd.source):
            order.refresh_from_db()
            if order.payment_status == Order.PAYMENT_PAID:
                return ReconcileResult(outcome=ReconcileOutcome.ALREADY_PAID, order=order, record=record)
            logger.error(
                "settled_payment_on_closed_order",
                extra={"order_id": order.id, "payment_status": order.payment_status, "payment_id": record.payment_id},
            )
            return ReconcileResult(outcome=ReconcileOutcome.IGNORED, order=order, record=record)

        order.refresh_from_db()
        receipt = IssueTaxReceiptUseCase.execute(IssueTaxReceiptCommand(order_id=order.id))
        order.refresh_from_db()
        payment_confirmed.send(sender=Order, order=order, source=cmd.source)
        return ReconcileResult(outcome=ReconcileOutcome.CONFIRMED, order=order, record=record, receipt=receipt)

    @staticmethod
    @transaction.atomic
    def _confirm(order: Order, record: PaymentRecord, *, source: str) -> bool:
        now = timezone.now()
        rows = Order.objects.filter(id=order.id, payment_status=Order.PAYMENT_PENDING).update(
            payment_status=Order.PAYMENT_PAID,
            status=Order.STATUS_PAID,
            paid_at=_paid_at(record),
            payment_method=record.payment_type or "QPAY",
            qpay_payment_id=record.payment_id,
            updated_at=now,
        )
        if rows != 1:
            return False
        OrderActivityService.record(
            order=order,
            type=OrderActivity.TYPE_PAYMENT_CONFIRMED,
            title="Payment confirmed",
            from_value=Order.PAYMENT_PENDING,
            to_value=Order.PAYMENT_PAID,
            channel=source,
            metadata={"payment_id": record.payment_id, "payment_type": record.payment_type},
        )
        logger.info(
            "payment_marked_paid",
            extra={"order_id": order.id, "payment_id": record.payment_id, "source": source},
        )
        return True
