from __future__ import annotations

import threading

from django.test import SimpleTestCase

from apps.payments.application.services.coordination import (
    CheckRateLimiter,
    InFlightRegistry,
    PaymentStatusCache,
)
from apps.payments.tests.helpers import FakeClock


class InFlightRegistryTests(SimpleTestCase):
    def test_second_acquire_fails_until_release(self):
        registry = InFlightRegistry(ttl_seconds=60)
        self.assertTrue(registry.try_acquire("260126001"))
        self.assertFalse(registry.try_acquire("260126001"))
        self.assertTrue(registry.try_acquire("260126002"))
        registry.release("260126001")
        self.assertTrue(registry.try_acquire("260126001"))

    def test_stale_entry_expires(self):
        clock = FakeClock(start=0.0)
        registry = InFlightRegistry(ttl_seconds=60, clock=clock)
        registry.try_acquire("260126001")
        clock.advance(61)
        self.assertFalse(registry.is_in_flight("260126001"))
        self.assertTrue(registry.try_acquire("260126001"))

    def test_exactly_one_concurrent_acquire_wins(self):
        registry = InFlightRegistry(ttl_seconds=60)
        barrier = threading.Barrier(16)
        wins: list[bool] = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            acquired = registry.try_acquire("260126001")
            with lock:
                wins.append(acquired)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)
        self.assertEqual(wins.count(True), 1)
        self.assertEqual(len(wins), 16)


class PaymentStatusCacheTests(SimpleTestCase):
    def test_entries_expire_after_ttl(self):
        clock = FakeClock(start=0.0)
        cache = PaymentStatusCache(ttl_seconds=5, clock=clock)
        cache.put("260126001", {"paymentStatus": "PENDING"})
        clock.advance(4)
        self.assertEqual(cache.get("260126001"), {"paymentStatus": "PENDING"})
        clock.advance(1)
        self.assertIsNone(cache.get("260126001"))

    def test_returned_views_are_copies(self):
        cache = PaymentStatusCache(ttl_seconds=5)
        cache.put("260126001", {"cached": False})
        view = cache.get("260126001")
        view["cached"] = True
        self.assertFalse(cache.get("260126001")["cached"])

    def test_invalidate(self):
        cache = PaymentStatusCache(ttl_seconds=5)
        cache.put("260126001", {"paymentStatus": "PENDING"})
        cache.invalidate("260126001")
        self.assertIsNone(cache.get("260126001"))

    def test_put_after_invalidate_is_discarded(self):
        cache = PaymentStatusCache(ttl_seconds=5)
        generation = cache.generation("260126001")
        cache.invalidate("260126001")

        self.assertFalse(cache.put("260126001", {"paymentStatus": "PENDING"}, generation=generation))
        self.assertIsNone(cache.get("260126001"))

        current = cache.generation("260126001")
        self.assertTrue(cache.put("260126001", {"paymentStatus": "PAID"}, generation=current))
        self.assertEqual(cache.get("260126001"), {"paymentStatus": "PAID"})


class CheckRateLimiterTests(SimpleTestCase):
    def test_one_check_per_interval(self):
        clock = FakeClock(start=0.0)
        limiter = CheckRateLimiter(min_interval_seconds=15, clock=clock)
        self.assertTrue(limiter.try_acquire("INV-1"))
        clock.advance(10)
        self.assertFalse(limiter.try_acquire("INV-1"))
        self.assertEqual(limiter.seconds_until_allowed("INV-1"), 5)
        self.assertTrue(limiter.try_acquire("INV-2"))
        clock.advance(5)
        self.assertTrue(limiter.try_acquire("INV-1"))
