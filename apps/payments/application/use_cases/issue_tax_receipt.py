from __future__ import annotations

import logging
from dataclasses import dataclass

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.orders.models import Order, OrderActivity
from apps.orders.services.activity_service import OrderActivityService
from apps.payments.application.facade import QPayGatewayFacade
from apps.payments.domain.errors import GatewayError
from apps.payments.domain.policies import token_has_margin
from apps.payments.domain.ports import AccessToken
from apps.payments.models import TaxReceipt

logger = logging.getLogger("gerar.payments")


@dataclass(frozen=True)
class IssueTaxReceiptCommand:
    order_id: str


class IssueTaxReceiptUseCase:
    @staticmethod
    def _stored_token(order: Order) -> AccessToken | None:
        margin = getattr(settings, "QPAY_TOKEN_REUSE_MARGIN_SECONDS", 120)
        if order.qpay_token and token_has_margin(order.qpay_token_expires_at, now=timezone.now(), margin_seconds=margin):
            return AccessToken(value=order.qpay_token, expires_at=order.qpay_token_expires_at)
        return None

    @staticmethod
    def _record_failure(order: Order, reason: str) -> None:
        OrderActivityService.record(
            order=order,
            type=OrderActivity.TYPE_RECEIPT_FAILED,
            title="Tax receipt failed",
            description=reason,
            metadata={"payment_id": order.qpay_payment_id},
        )

    @staticmethod
    def execute(cmd: IssueTaxReceiptCommand) -> TaxReceipt | None:
        order = Order.objects.filter(id=cmd.order_id).first()
        if order is None:
            return None
        if not order.qpay_invoice_itemized:
            logger.info("tax_receipt_skipped", extra={"order_id": order.id, "reason": "amount_only_invoice"})
            return None
        if not order.qpay_payment_id:
            logger.warning("tax_receipt_skipped", extra={"order_id": order.id, "reason": "missing_payment_id"})
            return None
        existing = TaxReceipt.objects.filter(order_id=order.id).first()
        if existing is not None:
            return existing

        gateway = QPayGatewayFacade.get()
        try:
            result = gateway.create_ebarimt(
                payment_id=order.qpay_payment_id,
                receiver_type=order.ebarimt_receiver_type or Order.RECEIVER_CITIZEN,
                receiver=order.ebarimt_receiver or "",
                token=IssueTaxReceiptUseCase._stored_token(order),
            )
        except GatewayError as exc:
            logger.error(
                "tax_receipt_failed",
                extra={"order_id": order.id, "error_code": exc.code, "reason": str(exc)},
            )
            IssueTaxReceiptUseCase._record_failure(order, str(exc))
            return None

        if not result.ebarimt_id:
            logger.error("tax_receipt_failed", extra={"order_id": order.id, "reason": "missing_receipt_id"})
            IssueTaxReceiptUseCase._record_failure(order, "Gateway response did not include a receipt id.")
            return None

        try:
            with transaction.atomic():
                receipt = TaxReceipt.objects.create(
                    order=order,
                    ebarimt_id=result.ebarimt_id,
                    receipt_url=result.receipt_url,
                    ebarimt_receipt_id=result.ebarimt_receipt_id,
                    qr_data=result.qr_data,
                    lottery=result.lottery,
                    status=result.status,
                    vat_amount=result.vat_amount,
                    city_tax_amount=result.city_tax_amount,
                    receiver_type=order.ebarimt_receiver_type or Order.RECEIVER_CITIZEN,
                    receiver=order.ebarimt_receiver or "",
                    raw_response=result.raw,
                )
                Order.objects.filter(id=order.id).update(
                    ebarimt_id=result.ebarimt_id,
                    ebarimt_receipt_url=result.receipt_url,
                    updated_at=timezone.now(),
                )
        except IntegrityError:
            return TaxReceipt.objects.filter(order_id=order.id).first()

        OrderActivityService.record(
            order=order,
            type=OrderActivity.TYPE_RECEIPT_ISSUED,
            title="Tax receipt issued",
            to_value=result.ebarimt_id,
            metadata={"receipt_url": result.receipt_url},
        )
        logger.info("tax_receipt_issued", extra={"order_id": order.id, "ebarimt_id": result.ebarimt_id})
        return receipt
