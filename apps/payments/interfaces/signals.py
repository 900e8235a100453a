from __future__ import annotations

import logging

from django.dispatch import receiver

from apps.payments.application.services.coordination import PaymentCoordination
from apps.payments.signals import payment_cancelled, payment_confirmed, payment_refunded

logger = logging.getLogger("gerar.payments")


@receiver(payment_confirmed)
@receiver(payment_cancelled)
@receiver(payment_refunded)
def _drop_cached_payment_status(sender, order, **kwargs):
    PaymentCoordination.get().status_cache.invalidate(order.id)


@receiver(payment_confirmed)
def _log_payment_confirmed(sender, order, source: str = "", **kwargs):
    logger.info(
        "payment_confirmed",
        extra={"order_id": order.id, "payment_id": order.qpay_payment_id, "source": source},
    )
