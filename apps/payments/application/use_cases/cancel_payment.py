from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from apps.orders.models import Order, OrderActivity
from apps.orders.services.activity_service import OrderActivityService
from apps.orders.services.order_service import OrderService
from apps.payments.application.facade import QPayGatewayFacade
from apps.payments.domain.errors import InvalidPaymentTransitionError, InvoiceMissingError
from apps.payments.domain.policies import assert_payment_transition
from apps.payments.signals import payment_cancelled

logger = logging.getLogger("gerar.payments")


@dataclass(frozen=True)
class CancelPaymentCommand:
    order_id: str
    user: object | None = None
    session_token: str = ""


class CancelPaymentUseCase:
    @staticmethod
    def execute(cmd: CancelPaymentCommand) -> Order:
        order = OrderService.get_for_actor(cmd.order_id, user=cmd.user, session_token=cmd.session_token)
        if order.payment_status == Order.PAYMENT_PAID:
            raise InvalidPaymentTransitionError("Cannot cancel a paid order. Request a refund instead.")
        assert_payment_transition(order.payment_status, Order.PAYMENT_CANCELLED)
        if not order.qpay_invoice_id:
            raise InvoiceMissingError()

        QPayGatewayFacade.get().cancel_invoice(invoice_id=order.qpay_invoice_id)

        with transaction.atomic():
            rows = Order.objects.filter(id=order.id, payment_status=Order.PAYMENT_PENDING).update(
                status=Order.STATUS_CANCELLED,
                payment_status=Order.PAYMENT_CANCELLED,
                updated_at=timezone.now(),
            )
            if rows != 1:
                order.refresh_from_db()
                logger.error(
                    "payment_cancel_lost_race",
                    extra={"order_id": order.id, "payment_status": order.payment_status},
                )
                raise InvalidPaymentTransitionError(
                    f"Payment status changed to {order.payment_status} while cancelling."
                )
            OrderActivityService.record(
                order=order,
                type=OrderActivity.TYPE_PAYMENT_CANCELLED,
                title="Payment cancelled",
                from_value=Order.PAYMENT_PENDING,
                to_value=Order.PAYMENT_CANCELLED,
                channel=OrderActivity.CHANNEL_API,
                performed_by=cmd.user if getattr(cmd.user, "is_authenticated", False) else None,
                metadata={"invoice_id": order.qpay_invoice_id},
            )

        order.refresh_from_db()
        logger.info("payment_cancelled", extra={"order_id": order.id, "invoice_id": order.qpay_invoice_id})
        payment_cancelled.send(sender=Order, order=order, source=OrderActivity.CHANNEL_API)
        return order
