from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from apps.orders.domain.errors import OrderAccessDeniedError, OrderNotFoundError
from apps.orders.models import Order, OrderActivity
from apps.orders.services.activity_service import OrderActivityService
from apps.payments.application.facade import QPayGatewayFacade
from apps.payments.application.services.qpay_config import QPayConfigService
from apps.payments.domain.errors import InvalidPaymentTransitionError, NotRefundableError
from apps.payments.signals import payment_refunded

logger = logging.getLogger("gerar.payments")

MODE_REFUND = "refund"
MODE_CANCEL = "cancel"


@dataclass(frozen=True)
class RefundPaymentCommand:
    order_id: str
    user: object | None = None
    mode: str = MODE_REFUND
    note: str = ""


class RefundPaymentUseCase:
    """Returns a settled payment to the customer (admin only)."""

    @staticmethod
    def execute(cmd: RefundPaymentCommand) -> Order:
        if not getattr(cmd.user, "is_staff", False):
            raise OrderAccessDeniedError("Only administrators can refund payments.")
        order = Order.objects.filter(id=cmd.order_id).first()
        if order is None:
            raise OrderNotFoundError()
        if order.payment_status != Order.PAYMENT_PAID:
            raise NotRefundableError("Only paid orders can be refunded.")
        if not order.qpay_payment_id:
            raise NotRefundableError("Order has no QPay payment id to refund.")

        gateway = QPayGatewayFacade.get()
        callback_url = QPayConfigService.load().callback_url(order.id)
        if cmd.mode == MODE_CANCEL:
            gateway.cancel_payment(payment_id=order.qpay_payment_id, callback_url=callback_url, note=cmd.note)
        else:
            gateway.refund_payment(payment_id=order.qpay_payment_id, callback_url=callback_url, note=cmd.note)

        with transaction.atomic():
            rows = Order.objects.filter(id=order.id, payment_status=Order.PAYMENT_PAID).update(
                status=Order.STATUS_REFUNDED,
                payment_status=Order.PAYMENT_REFUNDED,
                updated_at=timezone.now(),
            )
            if rows != 1:
                raise InvalidPaymentTransitionError("Payment status changed while refunding.")
            OrderActivityService.record(
                order=order,
                type=OrderActivity.TYPE_PAYMENT_REFUNDED,
                title="Payment refunded",
                description=cmd.note,
                from_value=Order.PAYMENT_PAID,
                to_value=Order.PAYMENT_REFUNDED,
                channel=OrderActivity.CHANNEL_ADMIN,
                performed_by=cmd.user,
                metadata={"payment_id": order.qpay_payment_id, "mode": cmd.mode},
            )

        order.refresh_from_db()
        logger.info(
            "payment_refunded",
            extra={"order_id": order.id, "payment_id": order.qpay_payment_id, "mode": cmd.mode},
        )
        payment_refunded.send(sender=Order, order=order, source=OrderActivity.CHANNEL_ADMIN)
        return order
