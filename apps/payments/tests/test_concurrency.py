from __future__ import annotations

import threading

from django.db import connection
from django.test import TransactionTestCase

from apps.orders.models import Order, OrderActivity
from apps.payments.application.facade import QPayGatewayFacade
from apps.payments.application.services.coordination import PaymentCoordination
from apps.payments.application.use_cases.initiate_payment import InitiatePaymentCommand, InitiatePaymentUseCase
from apps.payments.application.use_cases.reconcile_payment import (
    ReconcileOutcome,
    ReconcilePaymentCommand,
    ReconcilePaymentUseCase,
)
from apps.payments.domain.errors import ConcurrentRequestError
from apps.payments.infrastructure.gateways.sandbox_gateway import SandboxQPayGateway
from apps.payments.models import TaxReceipt
from apps.payments.tests.helpers import GUEST_TOKEN, make_order


class BlockingGateway(SandboxQPayGateway):
    """Holds create_invoice open until the test releases it."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def create_invoice(self, *, request):
        self.entered.set()
        self.release.wait(timeout=10)
        return super().create_invoice(request=request)


class GatheringGateway(SandboxQPayGateway):
    """Lets every check_payment caller through at the same moment."""

    def __init__(self, parties: int) -> None:
        super().__init__()
        self.barrier = threading.Barrier(parties)

    def check_payment(self, *, invoice_id):
        result = super().check_payment(invoice_id=invoice_id)
        self.barrier.wait(timeout=10)
        return result


def run_in_thread(target, results: list, lock: threading.Lock) -> threading.Thread:
    def worker():
        try:
            outcome = target()
        except Exception as exc:  # collected for assertions
            outcome = exc
        finally:
            connection.close()
        with lock:
            results.append(outcome)

    thread = threading.Thread(target=worker)
    thread.start()
    return thread


class ConcurrentInitiationTests(TransactionTestCase):
    def setUp(self) -> None:
        super().setUp()
        PaymentCoordination.reset()
        self.gateway = BlockingGateway()
        QPayGatewayFacade.override(self.gateway)

    def tearDown(self) -> None:
        self.gateway.release.set()
        QPayGatewayFacade.reset()
        PaymentCoordination.reset()
        super().tearDown()

    def test_only_one_invoice_is_created_for_simultaneous_requests(self):
        order = make_order()
        results: list = []
        lock = threading.Lock()

        def initiate():
            return InitiatePaymentUseCase.execute(
                InitiatePaymentCommand(order_id=order.id, session_token=GUEST_TOKEN)
            )

        first = run_in_thread(initiate, results, lock)
        self.assertTrue(self.gateway.entered.wait(timeout=5))

        others = [run_in_thread(initiate, results, lock) for _ in range(9)]
        for thread in others:
            thread.join(timeout=5)
        self.gateway.release.set()
        first.join(timeout=10)

        rejected = [r for r in results if isinstance(r, ConcurrentRequestError)]
        created = [r for r in results if not isinstance(r, Exception)]
        self.assertEqual(len(rejected), 9)
        self.assertEqual(len(created), 1)
        self.assertEqual(len(self.gateway.calls_for("create_invoice")), 1)

        order.refresh_from_db()
        self.assertEqual(order.qpay_invoice_id, created[0].invoice_id)
        self.assertFalse(PaymentCoordination.get().in_flight.is_in_flight(order.id))


class ConcurrentReconciliationTests(TransactionTestCase):
    parties = 4

    def setUp(self) -> None:
        super().setUp()
        PaymentCoordination.reset()
        self.gateway = GatheringGateway(self.parties)
        QPayGatewayFacade.override(self.gateway)

    def tearDown(self) -> None:
        QPayGatewayFacade.reset()
        PaymentCoordination.reset()
        super().tearDown()

    def test_payment_is_confirmed_exactly_once(self):
        order = make_order()
        Order.objects.filter(id=order.id).update(
            qpay_invoice_id="INV-RACE",
            qpay_invoice_itemized=True,
        )
        self.gateway.mark_paid("INV-RACE", payment_id="PAY-RACE")
        results: list = []
        lock = threading.Lock()

        def reconcile():
            return ReconcilePaymentUseCase.execute(ReconcilePaymentCommand(order_id=order.id)).outcome

        threads = [run_in_thread(reconcile, results, lock) for _ in range(self.parties)]
        for thread in threads:
            thread.join(timeout=20)

        self.assertEqual(len(results), self.parties)
        self.assertEqual(results.count(ReconcileOutcome.CONFIRMED), 1)
        self.assertEqual(results.count(ReconcileOutcome.ALREADY_PAID), self.parties - 1)
        self.assertEqual(len(self.gateway.calls_for("create_ebarimt")), 1)
        self.assertEqual(TaxReceipt.objects.filter(order_id=order.id).count(), 1)
        self.assertEqual(
            OrderActivity.objects.filter(order_id=order.id, type=OrderActivity.TYPE_PAYMENT_CONFIRMED).count(), 1
        )
