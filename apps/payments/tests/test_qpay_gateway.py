from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import httpx
from django.test import SimpleTestCase
from django.utils import timezone

from apps.payments.domain.errors import (
    AuthenticationFailedError,
    GatewayRequestError,
    GatewayTimeoutError,
)
from apps.payments.domain.ports import AccessToken, InvoiceLine, InvoiceReceiver, InvoiceRequest
from apps.payments.tests.helpers import FakeQPayServer, build_live_gateway


def invoice_request(*, itemized: bool = True) -> InvoiceRequest:
    lines = (
        InvoiceLine(
            description="Shirt x1 - 50.00 MNT",
            quantity=Decimal("1"),
            unit_price=Decimal("50.00"),
            vat_amount=Decimal("4.55"),
        ),
        InvoiceLine(
            description="Shoes x1 - 100.00 MNT",
            quantity=Decimal("1"),
            unit_price=Decimal("100.00"),
            vat_amount=Decimal("9.09"),
            classification_code="2349010",
            barcode="8650000000017",
        ),
    )
    return InvoiceRequest(
        order_id="260126001",
        amount=Decimal("150.00"),
        description="GERAR.MN - Захиалга #260126001",
        callback_url="https://api.gerar.test/api/orders/260126001/payment-callback/",
        receiver_code="99112233",
        receiver=InvoiceReceiver(name="Bat Dorj", email="bat@example.com", phone="99112233"),
        itemized=itemized,
        lines=lines if itemized else (),
    )


class QPayGatewayInvoiceTests(SimpleTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.server = FakeQPayServer()
        self.gateway, self.clock = build_live_gateway(self.server)

    def test_itemized_invoice_payload(self):
        created = self.gateway.create_invoice(request=invoice_request())
        self.assertEqual(created.invoice_id, "INV-0001")
        self.assertEqual(created.token.value, "token-1")

        body = self.server.bodies("invoice")[0]
        self.assertEqual(body["invoice_code"], "GERAR_EBARIMT")
        self.assertEqual(body["tax_type"], "1")
        self.assertEqual(body["district_code"], "3505")
        self.assertEqual(body["sender_invoice_no"], "260126001")
        self.assertNotIn("amount", body)
        self.assertEqual(len(body["lines"]), 2)
        first, second = body["lines"]
        self.assertEqual(first["line_quantity"], "1.00")
        self.assertEqual(first["line_unit_price"], "50.00")
        self.assertEqual(first["tax_product_code"], "6401")
        self.assertEqual(first["taxes"], [{"tax_code": "VAT", "description": "НӨАТ", "amount": 4.55, "note": "НӨАТ"}])
        self.assertEqual(second["classification_code"], "2349010")
        self.assertEqual(second["taxes"][0]["amount"], 9.09)
        self.assertEqual(body["invoice_receiver_data"]["name"], "Bat Dorj")

        invoice_request_sent = [r for r in self.server.requests if r.url.path.endswith("/invoice")][0]
        self.assertEqual(invoice_request_sent.headers["Authorization"], "Bearer token-1")

    def test_amount_only_invoice_payload(self):
        self.gateway.create_invoice(request=invoice_request(itemized=False))
        body = self.server.bodies("invoice")[0]
        self.assertEqual(body["invoice_code"], "GERAR_INVOICE")
        self.assertEqual(body["amount"], 150.0)
        self.assertFalse(body["allow_partial"])
        self.assertNotIn("lines", body)
        self.assertEqual(body["callback_url"], "https://api.gerar.test/api/orders/260126001/payment-callback/")

    def test_connection_refused_retries_exactly_once(self):
        self.server.queue("invoice", httpx.ConnectError("Connection refused"))
        created = self.gateway.create_invoice(request=invoice_request())
        self.assertEqual(created.invoice_id, "INV-0001")
        self.assertEqual(self.server.count("invoice"), 2)
        self.assertEqual(self.clock.sleeps, [2.0])

    def test_timeout_is_not_retried(self):
        self.server.queue("invoice", httpx.ReadTimeout("timed out"))
        with self.assertRaises(GatewayTimeoutError):
            self.gateway.create_invoice(request=invoice_request())
        self.assertEqual(self.server.count("invoice"), 1)

    def test_server_error_response_is_not_retried(self):
        self.server.queue("invoice", httpx.Response(500, json={"message": "INTERNAL"}))
        with self.assertRaises(GatewayRequestError) as ctx:
            self.gateway.create_invoice(request=invoice_request())
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(self.server.count("invoice"), 1)

    def test_response_without_invoice_id_is_rejected(self):
        self.server.queue("invoice", httpx.Response(200, json={"qr_text": "x"}))
        with self.assertRaises(GatewayRequestError):
            self.gateway.create_invoice(request=invoice_request())


class QPayGatewayPaymentTests(SimpleTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.server = FakeQPayServer()
        self.gateway, self.clock = build_live_gateway(self.server)

    def test_check_payment_collects_every_page(self):
        self.server.payment_rows = [
            {"payment_id": f"P-{index}", "payment_status": "NEW", "payment_amount": "1.00"} for index in range(150)
        ]
        result = self.gateway.check_payment(invoice_id="INV-0001")
        self.assertEqual(result.count, 150)
        self.assertEqual(len(result.records), 150)
        bodies = self.server.bodies("payment/check")
        self.assertEqual([b["offset"]["page_number"] for b in bodies], [1, 2])
        self.assertEqual(bodies[0]["object_type"], "INVOICE")
        self.assertEqual(bodies[0]["object_id"], "INV-0001")
        self.assertIsNone(result.first_settled())

    def test_check_payment_normalizes_camel_case_rows(self):
        self.server.payment_rows = [
            {"paymentId": "P-1", "paymentStatus": "success", "paymentType": "CARD", "paidDate": "2026-01-26T10:00:00"},
        ]
        record = self.gateway.check_payment(invoice_id="INV-0001").first_settled()
        self.assertEqual(record.payment_id, "P-1")
        self.assertEqual(record.status, "SUCCESS")
        self.assertEqual(record.payment_type, "CARD")

    def test_check_payment_retries_server_errors(self):
        self.server.queue("payment/check", httpx.Response(503))
        self.server.payment_rows = [{"payment_id": "P-1", "payment_status": "PAID"}]
        result = self.gateway.check_payment(invoice_id="INV-0001")
        self.assertEqual(result.first_settled().payment_id, "P-1")
        self.assertEqual(self.server.count("payment/check"), 2)
        self.assertEqual(self.clock.sleeps, [1.0])

    def test_rejected_token_is_dropped(self):
        self.server.queue("payment/check", httpx.Response(401))
        with self.assertRaises(AuthenticationFailedError):
            self.gateway.check_payment(invoice_id="INV-0001")
        self.clock.advance(2)
        self.gateway.check_payment(invoice_id="INV-0001")
        self.assertEqual(self.server.tokens_issued, 2)

    def test_create_ebarimt_for_citizen(self):
        receipt = self.gateway.create_ebarimt(payment_id="P-1", receiver_type="CITIZEN")
        body = self.server.bodies("ebarimt/create")[0]
        self.assertEqual(body, {"payment_id": "P-1", "ebarimt_receiver_type": "CITIZEN"})
        self.assertEqual(receipt.ebarimt_id, "EB-0001")
        self.assertEqual(receipt.status, "REGISTERED")
        self.assertEqual(receipt.lottery, "AB 12345678")
        self.assertEqual(receipt.vat_amount, Decimal("13.64"))

    def test_create_ebarimt_reuses_supplied_token(self):
        token = AccessToken(value="stored-token", expires_at=timezone.now() + timedelta(minutes=30))
        self.gateway.create_ebarimt(payment_id="P-1", receiver_type="COMPANY", receiver="5317878", token=token)
        self.assertEqual(self.server.count("auth/token"), 0)
        request = self.server.requests[0]
        self.assertEqual(request.headers["Authorization"], "Bearer stored-token")
        self.assertEqual(self.server.bodies("ebarimt/create")[0]["ebarimt_receiver"], "5317878")

    def test_empty_receipt_response_has_no_id(self):
        self.server.queue("ebarimt/create", httpx.Response(200))
        receipt = self.gateway.create_ebarimt(payment_id="P-1", receiver_type="CITIZEN")
        self.assertEqual(receipt.ebarimt_id, "")

    def test_cancel_and_refund_endpoints(self):
        self.gateway.cancel_invoice(invoice_id="INV-0001")
        self.gateway.cancel_payment(payment_id="P-1", callback_url="https://cb", note="Customer request")
        self.gateway.refund_payment(payment_id="P-2")
        methods = [(r.method, r.url.path) for r in self.server.requests if r.method == "DELETE"]
        self.assertEqual(
            methods,
            [
                ("DELETE", "/v2/invoice/INV-0001"),
                ("DELETE", "/v2/payment/cancel/P-1"),
                ("DELETE", "/v2/payment/refund/P-2"),
            ],
        )
        self.assertEqual(self.server.bodies("payment/cancel/P-1")[0]["note"], "Customer request")

    def test_permanent_token_skips_authentication(self):
        server = FakeQPayServer()
        gateway, _ = build_live_gateway(server, permanent_token="perm-token")
        gateway.check_payment(invoice_id="INV-0001")
        self.assertEqual(server.count("auth/token"), 0)
        self.assertEqual(server.requests[0].headers["Authorization"], "Bearer perm-token")
