from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase

from apps.catalog.models import Product
from apps.orders.domain.errors import OrderAccessDeniedError, OrderNotFoundError, OrderValidationError
from apps.orders.domain.policies import can_access_order
from apps.orders.models import Order, OrderActivity
from apps.orders.services.activity_service import OrderActivityService
from apps.orders.services.order_id_service import OrderIdService
from apps.orders.services.order_service import OrderService


class OrderIdServiceTests(TestCase):
    def test_first_order_of_the_day_uses_ulaanbaatar_date(self):
        # 20:00 UTC on the 25th is already the 26th in Ulaanbaatar (UTC+8).
        moment = datetime(2026, 1, 25, 20, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(OrderIdService.next_id(now=moment), "260126001")

    def test_sequence_continues_after_existing_orders(self):
        moment = datetime(2026, 1, 26, 3, 0, tzinfo=dt_timezone.utc)
        Order.objects.create(id="260126001", total_amount=Decimal("10.00"))
        Order.objects.create(id="260126007", total_amount=Decimal("10.00"))
        Order.objects.create(id="260125999", total_amount=Decimal("10.00"))
        self.assertEqual(OrderIdService.next_id(now=moment), "260126008")


class OrderServiceTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.shirt = Product.objects.create(name="Shirt", price=Decimal("50.00"))
        self.shoes = Product.objects.create(name="Shoes", price=Decimal("100.00"))

    def test_create_order_snapshots_items_and_total(self):
        order = OrderService.create_order(
            items=[
                {"product": self.shirt, "quantity": 2},
                {"product": self.shoes, "quantity": 1, "price": Decimal("90.00")},
            ],
            session_token="abc",
            full_name="Bat Dorj",
        )
        self.assertEqual(len(order.id), 9)
        self.assertEqual(order.total_amount, Decimal("190.00"))
        self.assertEqual(order.status, Order.STATUS_PENDING)
        self.assertEqual(order.payment_status, Order.PAYMENT_PENDING)
        names = list(order.items.order_by("id").values_list("product_name", "price"))
        self.assertEqual(names, [("Shirt", Decimal("50.00")), ("Shoes", Decimal("90.00"))])

    def test_create_order_rejects_empty_items(self):
        with self.assertRaises(OrderValidationError):
            OrderService.create_order(items=[])

    def test_create_order_retries_when_identifier_is_taken(self):
        Order.objects.create(id="260126001", total_amount=Decimal("1.00"))
        with patch.object(OrderIdService, "next_id", side_effect=["260126001", "260126002"]):
            order = OrderService.create_order(items=[{"product": self.shirt, "quantity": 1}])
        self.assertEqual(order.id, "260126002")

    def test_get_for_actor_checks_access(self):
        order = OrderService.create_order(items=[{"product": self.shirt, "quantity": 1}], session_token="guest")
        self.assertEqual(OrderService.get_for_actor(order.id, session_token="guest").id, order.id)
        with self.assertRaises(OrderAccessDeniedError):
            OrderService.get_for_actor(order.id, session_token="wrong")
        with self.assertRaises(OrderNotFoundError):
            OrderService.get_for_actor("000000000")


class OrderAccessPolicyTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        User = get_user_model()
        self.owner = User.objects.create_user(username="owner", password="StrongPass12345!")
        self.other = User.objects.create_user(username="other", password="StrongPass12345!")
        self.admin = User.objects.create_user(username="admin", password="StrongPass12345!", is_staff=True)
        self.order = Order.objects.create(id="260126001", user=self.owner, total_amount=Decimal("10.00"))
        self.guest_order = Order.objects.create(id="260126002", session_token="tok", total_amount=Decimal("10.00"))

    def test_owner_and_admin_can_access(self):
        self.assertTrue(can_access_order(self.order, user=self.owner))
        self.assertTrue(can_access_order(self.order, user=self.admin))
        self.assertFalse(can_access_order(self.order, user=self.other))

    def test_guest_order_requires_matching_token(self):
        self.assertTrue(can_access_order(self.guest_order, session_token="tok"))
        self.assertFalse(can_access_order(self.guest_order, session_token=""))
        self.assertFalse(can_access_order(self.guest_order, session_token="nope"))


class OrderActivityServiceTests(TestCase):
    def test_record_and_timeline(self):
        order = Order.objects.create(id="260126001", total_amount=Decimal("10.00"))
        OrderActivityService.record(
            order=order,
            type=OrderActivity.TYPE_PAYMENT_INITIATED,
            title="QPay invoice created",
            to_value="INV-1",
            channel=OrderActivity.CHANNEL_API,
        )
        OrderActivityService.record(
            order=order.id,
            type=OrderActivity.TYPE_PAYMENT_CONFIRMED,
            title="Payment confirmed",
            from_value="PENDING",
            to_value="PAID",
        )
        timeline = OrderActivityService.timeline(order.id)
        self.assertEqual([a.type for a in timeline], ["payment_initiated", "payment_confirmed"])
        self.assertEqual(timeline[1].channel, OrderActivity.CHANNEL_SYSTEM)
