from __future__ import annotations

from dataclasses import dataclass, field

from apps.orders.domain.errors import OrderNotFoundError
from apps.orders.models import Order, OrderActivity
from apps.orders.services.activity_service import OrderActivityService
from apps.payments.application.use_cases.reconcile_payment import (
    ReconcileOutcome,
    ReconcilePaymentCommand,
    ReconcilePaymentUseCase,
    ReconcileResult,
)
from apps.payments.domain.errors import InvoiceMissingError

CALLBACK_MESSAGES = {
    ReconcileOutcome.CONFIRMED: "Payment confirmed",
    ReconcileOutcome.ALREADY_PAID: "Payment already confirmed",
    ReconcileOutcome.PENDING: "Payment callback received, but payment not yet confirmed",
    ReconcileOutcome.UNVERIFIED: "Callback received, verification pending",
    ReconcileOutcome.IGNORED: "Callback received, order is closed",
}


@dataclass(frozen=True)
class HandlePaymentCallbackCommand:
    order_id: str
    payload: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentCallbackResult:
    message: str
    reconcile: ReconcileResult

    def to_payload(self) -> dict:
        order = self.reconcile.order
        return {
            "orderId": order.id,
            "paymentStatus": order.payment_status,
            "outcome": str(self.reconcile.outcome),
        }


class HandlePaymentCallbackUseCase:
    @staticmethod
    def execute(cmd: HandlePaymentCallbackCommand) -> PaymentCallbackResult:
        order = Order.objects.filter(id=cmd.order_id).first()
        if order is None:
            raise OrderNotFoundError()
        if not order.qpay_invoice_id:
            raise InvoiceMissingError()

        OrderActivityService.record(
            order=order,
            type=OrderActivity.TYPE_PAYMENT_CALLBACK,
            title="Payment callback received",
            channel=OrderActivity.CHANNEL_CALLBACK,
            metadata={"payload": cmd.payload},
        )
        result = ReconcilePaymentUseCase.execute(
            ReconcilePaymentCommand(order_id=order.id, source=OrderActivity.CHANNEL_CALLBACK)
        )
        return PaymentCallbackResult(message=CALLBACK_MESSAGES[result.outcome], reconcile=result)
