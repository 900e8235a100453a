from __future__ import annotations

import logging
from decimal import Decimal

from django.db import IntegrityError, transaction

from apps.orders.domain.errors import OrderAccessDeniedError, OrderNotFoundError, OrderValidationError
from apps.orders.domain.policies import can_access_order
from apps.orders.models import Order, OrderItem
from apps.orders.services.order_id_service import OrderIdService

logger = logging.getLogger("gerar.orders")


class OrderService:
    MAX_ID_ATTEMPTS = 5

    @staticmethod
    def _validate_items(items: list[dict]) -> None:
        if not items:
            raise OrderValidationError("Order must contain at least one item.", field="items")
        for item in items:
            if int(item.get("quantity") or 0) <= 0:
                raise OrderValidationError("Quantity must be positive.", field="quantity")

    @staticmethod
    def _unit_price(item: dict) -> Decimal:
        price = item.get("price")
        if price is None:
            price = item["product"].price
        return Decimal(str(price))

    @staticmethod
    @transaction.atomic
    def create_order(
        *,
        items: list[dict],
        user=None,
        session_token: str = "",
        full_name: str = "",
        phone_number: str = "",
        email: str = "",
        delivery_address: dict | None = None,
        delivery_time_slot: str = "",
    ) -> Order:
        OrderService._validate_items(items)
        total = sum(
            (OrderService._unit_price(item) * int(item["quantity"]) for item in items),
            Decimal("0"),
        )

        order = None
        for attempt in range(OrderService.MAX_ID_ATTEMPTS):
            try:
                with transaction.atomic():
                    order = Order.objects.create(
                        id=OrderIdService.next_id(),
                        user=user if getattr(user, "is_authenticated", False) else None,
                        session_token=session_token or "",
                        full_name=full_name or "",
                        phone_number=phone_number or "",
                        email=email or "",
                        delivery_address=delivery_address or {},
                        delivery_time_slot=delivery_time_slot or "",
                        total_amount=total,
                    )
                break
            except IntegrityError:
                logger.warning("order_id_collision", extra={"attempt": attempt + 1})
        if order is None:
            raise OrderValidationError("Could not allocate an order identifier.")

        for item in items:
            product = item.get("product")
            OrderItem.objects.create(
                order=order,
                product=product,
                product_name=item.get("product_name") or getattr(product, "name", ""),
                quantity=int(item["quantity"]),
                price=OrderService._unit_price(item),
            )
        logger.info("order_created", extra={"order_id": order.id, "total_amount": str(total)})
        return order

    @staticmethod
    def get_for_actor(order_id: str, *, user=None, session_token: str = "", for_update: bool = False) -> Order:
        qs = Order.objects.select_for_update() if for_update else Order.objects
        order = qs.filter(id=order_id).first()
        if order is None:
            raise OrderNotFoundError()
        if not can_access_order(order, user=user, session_token=session_token):
            raise OrderAccessDeniedError()
        return order
