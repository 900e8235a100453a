from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from apps.orders.models import Order, OrderActivity
from apps.orders.services.order_service import OrderService
from apps.payments.application.services.coordination import PaymentCoordination
from apps.payments.application.use_cases.reconcile_payment import (
    ReconcileOutcome,
    ReconcilePaymentCommand,
    ReconcilePaymentUseCase,
)
from apps.payments.domain.ports import PaymentRecord

logger = logging.getLogger("gerar.payments")

MESSAGE_NOT_INITIATED = "Payment not yet initiated"
MESSAGE_PAID = "Payment completed"
MESSAGE_PENDING = "Waiting for payment"
MESSAGE_RATE_LIMITED = "Payment status was checked recently, using stored status"
MESSAGE_UNVERIFIED = "Unable to verify with QPay, using stored status"
MESSAGE_CLOSED = "Payment is closed"


@dataclass(frozen=True)
class GetPaymentStatusCommand:
    order_id: str
    user: object | None = None
    session_token: str = ""


def _record_payload(record: PaymentRecord | None) -> dict | None:
    if record is None:
        return None
    return {
        "paymentId": record.payment_id,
        "paymentStatus": record.status,
        "paymentType": record.payment_type,
        "paidDate": record.paid_date,
        "amount": str(record.amount) if record.amount is not None else None,
    }


def status_payload(order: Order, *, message: str, record: PaymentRecord | None = None, verified: bool = True) -> dict:
    closed = order.payment_status != Order.PAYMENT_PENDING
    return {
        "orderId": order.id,
        "paymentStatus": order.payment_status,
        "orderStatus": order.status,
        "qpayInvoiceId": order.qpay_invoice_id,
        "qpayPaymentId": order.qpay_payment_id or None,
        "paidAt": order.paid_at.isoformat() if order.paid_at else None,
        "paymentMethod": order.payment_method or None,
        "ebarimtId": order.ebarimt_id or None,
        "qpayStatus": _record_payload(record),
        "shouldStopPolling": closed,
        "message": message,
        "cached": False,
        "rateLimited": False,
        "retryAfter": None,
        "verified": verified,
    }


def _settled_message(order: Order) -> str:
    if order.payment_status == Order.PAYMENT_PAID:
        return MESSAGE_PAID
    if order.payment_status == Order.PAYMENT_PENDING:
        return MESSAGE_PENDING
    return MESSAGE_CLOSED


def _rate_limited(payload: dict, wait_seconds: float) -> dict:
    payload["rateLimited"] = True
    payload["message"] = MESSAGE_RATE_LIMITED
    payload["retryAfter"] = max(1, math.ceil(wait_seconds))
    return payload


class GetPaymentStatusUseCase:
    @staticmethod
    def execute(cmd: GetPaymentStatusCommand) -> dict:
        order = OrderService.get_for_actor(cmd.order_id, user=cmd.user, session_token=cmd.session_token)
        coordination = PaymentCoordination.get()

        cached = coordination.status_cache.get(order.id)
        if cached is not None:
            cached["cached"] = True
            wait = coordination.rate_limiter.seconds_until_allowed(order.qpay_invoice_id or "")
            if not cached["shouldStopPolling"] and wait > 0:
                return _rate_limited(cached, wait)
            return cached

        if not order.qpay_invoice_id:
            return status_payload(order, message=MESSAGE_NOT_INITIATED)
        if order.payment_status == Order.PAYMENT_PAID:
            return status_payload(order, message=MESSAGE_PAID)
        if order.payment_status != Order.PAYMENT_PENDING:
            return status_payload(order, message=MESSAGE_CLOSED)

        if not coordination.rate_limiter.try_acquire(order.qpay_invoice_id):
            wait = coordination.rate_limiter.seconds_until_allowed(order.qpay_invoice_id)
            return _rate_limited(status_payload(order, message=MESSAGE_RATE_LIMITED), wait)

        generation = coordination.status_cache.generation(order.id)
        result = ReconcilePaymentUseCase.execute(
            ReconcilePaymentCommand(order_id=order.id, source=OrderActivity.CHANNEL_POLL)
        )
        if result.outcome == ReconcileOutcome.UNVERIFIED:
            return status_payload(result.order, message=MESSAGE_UNVERIFIED, verified=False)

        payload = status_payload(result.order, message=_settled_message(result.order), record=result.record)
        if result.outcome == ReconcileOutcome.CONFIRMED:
            # This request made the change, so its own invalidation does not count.
            generation = None
        if coordination.status_cache.put(order.id, payload, generation=generation):
            return payload

        # Another request changed the payment while this check was in flight.
        logger.info("payment_status_superseded", extra={"order_id": order.id})
        fresh = Order.objects.get(id=order.id)
        return status_payload(fresh, message=_settled_message(fresh))
