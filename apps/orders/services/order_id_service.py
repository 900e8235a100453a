from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from django.utils import timezone

from apps.orders.domain.errors import OrderIdExhaustedError
from apps.orders.models import Order

ORDER_ID_TIMEZONE = ZoneInfo("Asia/Ulaanbaatar")


class OrderIdService:
    """Generates date-coded order identifiers: YYMMDD + three digit daily sequence."""

    MAX_DAILY_SEQUENCE = 999

    @staticmethod
    def date_prefix(now: datetime | None = None) -> str:
        moment = now or timezone.now()
        return moment.astimezone(ORDER_ID_TIMEZONE).strftime("%y%m%d")

    @staticmethod
    def next_id(*, now: datetime | None = None) -> str:
        prefix = OrderIdService.date_prefix(now)
        last_id = (
            Order.objects.filter(id__startswith=prefix)
            .order_by("-id")
            .values_list("id", flat=True)
            .first()
        )
        sequence = int(last_id[len(prefix):]) + 1 if last_id else 1
        while sequence <= OrderIdService.MAX_DAILY_SEQUENCE:
            candidate = f"{prefix}{sequence:03d}"
            if not Order.objects.filter(id=candidate).exists():
                return candidate
            sequence += 1
        raise OrderIdExhaustedError(f"No order identifiers left for {prefix}.")
