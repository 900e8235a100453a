from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from django.db import transaction
from django.utils import timezone

from apps.orders.models import Order, OrderActivity
from apps.orders.services.activity_service import OrderActivityService
from apps.orders.services.order_service import OrderService
from apps.payments.application.facade import QPayGatewayFacade
from apps.payments.application.services.coordination import PaymentCoordination
from apps.payments.application.services.invoice_builder import InvoiceRequestBuilder
from apps.payments.application.services.qpay_config import QPayConfigService
from apps.payments.application.services.qr_service import as_data_uri, qr_png_base64, strip_data_uri
from apps.payments.domain.errors import ConcurrentRequestError, DuplicateInvoiceError, OrderNotPayableError
from apps.payments.domain.ports import CreatedInvoice

logger = logging.getLogger("gerar.payments")

QPAY_INVOICE_WEB_URL = "https://qpay.mn/invoice/{invoice_id}"
QPAY_INVOICE_DEEPLINK = "qpay://invoice/{invoice_id}"


@dataclass(frozen=True)
class InitiatePaymentCommand:
    order_id: str
    user: object | None = None
    session_token: str = ""
    itemized: bool | None = None


@dataclass(frozen=True)
class InvoiceView:
    order_id: str
    invoice_id: str
    qr_text: str
    qr_image: str
    urls: list = field(default_factory=list)
    expiry_date: datetime | None = None
    itemized: bool = False
    created: bool = False

    @property
    def is_expired(self) -> bool:
        return self.expiry_date is not None and self.expiry_date <= timezone.now()

    def to_payload(self) -> dict:
        return {
            "orderId": self.order_id,
            "invoiceId": self.invoice_id,
            "qrText": self.qr_text,
            "qrImage": self.qr_image,
            "urls": self.urls,
            "expiryDate": self.expiry_date.isoformat() if self.expiry_date else None,
            "isExpired": self.is_expired,
            "itemized": self.itemized,
        }


def _fallback_urls(invoice_id: str, qr_text: str) -> dict:
    web = qr_text if qr_text.startswith("http") else QPAY_INVOICE_WEB_URL.format(invoice_id=invoice_id)
    return {"web": web, "deeplink": QPAY_INVOICE_DEEPLINK.format(invoice_id=invoice_id)}


class InitiatePaymentUseCase:
    """Creates the QPay invoice for an order, or reconstructs the existing one."""

    @staticmethod
    def execute(cmd: InitiatePaymentCommand) -> InvoiceView:
        in_flight = PaymentCoordination.get().in_flight
        if not in_flight.try_acquire(cmd.order_id):
            logger.warning("payment_initiation_in_flight", extra={"order_id": cmd.order_id})
            raise ConcurrentRequestError()
        try:
            order = OrderService.get_for_actor(cmd.order_id, user=cmd.user, session_token=cmd.session_token)
            if order.qpay_invoice_id:
                return InitiatePaymentUseCase._existing_view(order)
            if order.payment_status == Order.PAYMENT_PAID or order.status == Order.STATUS_PAID:
                raise OrderNotPayableError("Order is already paid.")
            if order.payment_status in (Order.PAYMENT_CANCELLED, Order.PAYMENT_REFUNDED) or order.status == Order.STATUS_CANCELLED:
                raise OrderNotPayableError("Order is cancelled.")

            config = QPayConfigService.load()
            request = InvoiceRequestBuilder.build(order, config=config, itemized=cmd.itemized)
            invoice = QPayGatewayFacade.get().create_invoice(request=request)
            expiry = timezone.now() + timedelta(minutes=config.invoice_ttl_minutes)
            InitiatePaymentUseCase._persist(order, invoice, itemized=request.itemized, expiry=expiry)
            OrderActivityService.record(
                order=order,
                type=OrderActivity.TYPE_PAYMENT_INITIATED,
                title="QPay invoice created",
                to_value=invoice.invoice_id,
                channel=OrderActivity.CHANNEL_API,
                performed_by=cmd.user if getattr(cmd.user, "is_authenticated", False) else None,
                metadata={"itemized": request.itemized, "amount": str(request.amount)},
            )
            logger.info(
                "payment_initiated",
                extra={"order_id": order.id, "invoice_id": invoice.invoice_id, "itemized": request.itemized},
            )
            return InvoiceView(
                order_id=order.id,
                invoice_id=invoice.invoice_id,
                qr_text=invoice.qr_text,
                qr_image=InitiatePaymentUseCase._qr_image(invoice.qr_image, invoice.qr_text, invoice.invoice_id),
                urls=invoice.urls or [_fallback_urls(invoice.invoice_id, invoice.qr_text)],
                expiry_date=expiry,
                itemized=request.itemized,
                created=True,
            )
        finally:
            in_flight.release(cmd.order_id)

    @staticmethod
    @transaction.atomic
    def _persist(order: Order, invoice: CreatedInvoice, *, itemized: bool, expiry: datetime) -> None:
        token = invoice.token
        rows = Order.objects.filter(id=order.id, qpay_invoice_id__isnull=True).update(
            qpay_invoice_id=invoice.invoice_id,
            qpay_qr_text=invoice.qr_text,
            qpay_qr_code=strip_data_uri(invoice.qr_image),
            qpay_urls=invoice.urls,
            qpay_expiry_date=expiry,
            qpay_invoice_itemized=itemized,
            qpay_token=token.value if token and not token.permanent else "",
            qpay_token_expires_at=token.expires_at if token else None,
            payment_status=Order.PAYMENT_PENDING,
            updated_at=timezone.now(),
        )
        if rows != 1:
            logger.error(
                "duplicate_invoice_detected",
                extra={"order_id": order.id, "invoice_id": invoice.invoice_id},
            )
            raise DuplicateInvoiceError(
                f"Order {order.id} already has an invoice; gateway invoice {invoice.invoice_id} was not stored."
            )

    @staticmethod
    def _qr_image(stored: str, qr_text: str, invoice_id: str) -> str:
        if stored:
            return as_data_uri(stored)
        return as_data_uri(qr_png_base64(qr_text or QPAY_INVOICE_WEB_URL.format(invoice_id=invoice_id)))

    @staticmethod
    def _existing_view(order: Order) -> InvoiceView:
        invoice_id = order.qpay_invoice_id or ""
        qr_text = order.qpay_qr_text or ""
        return InvoiceView(
            order_id=order.id,
            invoice_id=invoice_id,
            qr_text=qr_text,
            qr_image=InitiatePaymentUseCase._qr_image(order.qpay_qr_code, qr_text, invoice_id),
            urls=order.qpay_urls or [_fallback_urls(invoice_id, qr_text)],
            expiry_date=order.qpay_expiry_date,
            itemized=order.qpay_invoice_itemized,
            created=False,
        )
