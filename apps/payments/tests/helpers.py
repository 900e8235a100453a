from __future__ import annotations

import json
import time
from collections import defaultdict
from dataclasses import replace
from decimal import Decimal

import httpx
from django.contrib.auth import get_user_model

from apps.catalog.models import Product
from apps.orders.models import Order
from apps.orders.services.order_service import OrderService
from apps.payments.application.facade import QPayGatewayFacade
from apps.payments.application.services.coordination import PaymentCoordination
from apps.payments.application.services.qpay_config import QPayConfigService, QPaySettings
from apps.payments.infrastructure.gateways.qpay_gateway import QPayGateway
from apps.payments.infrastructure.gateways.sandbox_gateway import SandboxQPayGateway

GUEST_TOKEN = "guest-session-token"


class FakeClock:
    def __init__(self, start: float | None = None) -> None:
        self.now = time.time() if start is None else start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_config(**overrides) -> QPaySettings:
    base = replace(
        QPayConfigService.load(),
        gateway="qpay",
        api_url="https://merchant.qpay.test/v2",
        username="GERAR",
        password="secret",
        permanent_token="",
        invoice_code="GERAR_INVOICE",
        ebarimt_invoice_code="GERAR_EBARIMT",
        callback_base_url="https://api.gerar.test/api",
        district_code="3505",
        branch_code="ONLINE",
        staff_code="online",
    )
    return replace(base, **overrides)


def make_product(*, name: str, price: str, classified: bool = False, tax_type: str = Product.TAX_VAT_ABLE) -> Product:
    return Product.objects.create(
        name=name,
        price=Decimal(price),
        description=f"{name} description",
        classification_code="2349010" if classified else "",
        tax_product_code="6401" if classified else "",
        barcode="8650000000017" if classified else "",
        tax_type=tax_type,
    )


def make_order(*, prices: tuple[str, ...] = ("50.00", "100.00"), user=None, classified: bool = False, **extra) -> Order:
    items = []
    for index, price in enumerate(prices, start=1):
        product = make_product(name=f"Product {index}", price=price, classified=classified)
        items.append({"product": product, "quantity": 1, "price": Decimal(price)})
    return OrderService.create_order(
        items=items,
        user=user,
        session_token="" if user is not None else GUEST_TOKEN,
        full_name=extra.pop("full_name", "Bat Dorj"),
        phone_number=extra.pop("phone_number", "99112233"),
        email=extra.pop("email", "bat@example.com"),
        **extra,
    )


def make_amount_only_order(*, order_id: str = "260101001", total: str = "150.00", **fields) -> Order:
    return Order.objects.create(
        id=order_id,
        total_amount=Decimal(total),
        session_token=GUEST_TOKEN,
        full_name="Bat Dorj",
        phone_number="99112233",
        **fields,
    )


def make_user(username: str = "customer", *, is_staff: bool = False):
    return get_user_model().objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="StrongPass12345!",
        is_staff=is_staff,
    )


class SandboxGatewayMixin:
    """Installs a fresh sandbox gateway and coordination state per test."""

    def setUp(self) -> None:
        super().setUp()
        PaymentCoordination.reset()
        self.gateway = SandboxQPayGateway()
        QPayGatewayFacade.override(self.gateway)

    def tearDown(self) -> None:
        QPayGatewayFacade.reset()
        PaymentCoordination.reset()
        super().tearDown()


class FakeQPayServer:
    """httpx.MockTransport handler that imitates the QPay merchant API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.queued: dict[str, list] = defaultdict(list)
        self.payment_rows: list[dict] = []
        self.tokens_issued = 0
        self.invoice_response = {
            "invoice_id": "INV-0001",
            "qr_text": "0002010102121531279404962794049600022310027138152045734530349654031505802MN",
            "qr_image": "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg==",
            "urls": [{"name": "Khan bank", "link": "khanbank://q?qPay_QRcode=0002010102"}],
        }

    def queue(self, path: str, outcome) -> None:
        """Next request to ``path`` gets ``outcome`` (a Response or an exception to raise)."""
        self.queued[path].append(outcome)

    def paths(self) -> list[str]:
        return [self._path(request) for request in self.requests]

    def count(self, path: str) -> int:
        return self.paths().count(path)

    def bodies(self, path: str) -> list[dict]:
        return [json.loads(r.content or b"{}") for r in self.requests if self._path(r) == path]

    @staticmethod
    def _path(request: httpx.Request) -> str:
        return request.url.path.split("/v2/", 1)[-1]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = self._path(request)
        if self.queued[path]:
            outcome = self.queued[path].pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        if path == "auth/token":
            self.tokens_issued += 1
            return httpx.Response(
                200,
                json={"token_type": "bearer", "access_token": f"token-{self.tokens_issued}", "expires_in": 3600},
            )
        if path == "invoice":
            return httpx.Response(200, json=self.invoice_response)
        if path == "payment/check":
            offset = json.loads(request.content)["offset"]
            start = (offset["page_number"] - 1) * offset["page_limit"]
            rows = self.payment_rows[start:start + offset["page_limit"]]
            return httpx.Response(200, json={"count": len(self.payment_rows), "rows": rows})
        if path == "ebarimt/create":
            return httpx.Response(
                200,
                json={
                    "id": "EB-0001",
                    "ebarimt_receipt_id": "037900846788001094510000110012024",
                    "ebarimt_qr_data": "1234567890",
                    "ebarimt_lottery": "AB 12345678",
                    "barimt_status": "REGISTERED",
                    "vat_amount": "13.64",
                    "city_tax_amount": "0.00",
                },
            )
        if path.startswith(("invoice/", "payment/cancel/", "payment/refund/")):
            return httpx.Response(200, json={})
        return httpx.Response(404, json={"message": "NOT_FOUND"})


def build_live_gateway(server: FakeQPayServer, *, clock: FakeClock | None = None, **config_overrides):
    clock = clock or FakeClock()
    config = make_config(**config_overrides)
    client = httpx.Client(base_url=config.api_url, transport=httpx.MockTransport(server))
    gateway = QPayGateway(config=config, client=client, clock=clock, sleep=clock.sleep)
    return gateway, clock
