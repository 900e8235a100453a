from __future__ import annotations

from apps.orders.models import Order, OrderActivity


class OrderActivityService:
    @staticmethod
    def record(
        *,
        order: Order | str,
        type: str,
        title: str,
        description: str = "",
        from_value: str = "",
        to_value: str = "",
        channel: str = OrderActivity.CHANNEL_SYSTEM,
        performed_by: object | None = None,
        metadata: dict | None = None,
    ) -> OrderActivity:
        order_id = order.id if isinstance(order, Order) else order
        performed_by_id = getattr(performed_by, "id", None) if performed_by is not None else None
        return OrderActivity.objects.create(
            order_id=order_id,
            type=type,
            title=title,
            description=description or "",
            from_value=from_value or "",
            to_value=to_value or "",
            channel=channel,
            performed_by_id=performed_by_id,
            metadata=metadata or {},
        )

    @staticmethod
    def timeline(order_id: str) -> list[OrderActivity]:
        return list(OrderActivity.objects.filter(order_id=order_id).order_by("created_at", "id"))
