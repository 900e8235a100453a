"""
Process-local coordination state for payment requests.

These maps are per worker process. Running several instances behind a load
balancer needs a shared lease store; the unique index on
``Order.qpay_invoice_id`` still prevents two invoices being persisted.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from django.conf import settings


class InFlightRegistry:
    def __init__(self, *, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, float] = {}

    def try_acquire(self, key: str) -> bool:
        with self._lock:
            now = self._clock()
            started = self._entries.get(key)
            # Entries older than the TTL belong to a request that never released.
            if started is not None and now - started < self._ttl:
                return False
            self._entries[key] = now
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            started = self._entries.get(key)
            return started is not None and self._clock() - started < self._ttl


class PaymentStatusCache:
    def __init__(self, *, ttl_seconds: float = 5.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, dict]] = {}
        self._generations: dict[str, int] = {}

    def get(self, key: str) -> dict | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at >= self._ttl:
                del self._entries[key]
                return None
            return dict(value)

    def generation(self, key: str) -> int:
        with self._lock:
            return self._generations.get(key, 0)

    def put(self, key: str, value: dict, *, generation: int | None = None) -> bool:
        """
        Stores ``value`` unless the key was invalidated after ``generation``
        was read. Returns whether the value was stored.
        """
        with self._lock:
            if generation is not None and self._generations.get(key, 0) != generation:
                return False
            now = self._clock()
            self._evict(now)
            self._entries[key] = (now, dict(value))
            return True

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._generations[key] = self._generations.get(key, 0) + 1

    def _evict(self, now: float) -> None:
        expired = [key for key, (stored_at, _) in self._entries.items() if now - stored_at >= self._ttl]
        for key in expired:
            del self._entries[key]


class CheckRateLimiter:
    """Allows one gateway payment check per invoice per interval."""

    def __init__(self, *, min_interval_seconds: float = 15.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._interval = float(min_interval_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._last_checked: dict[str, float] = {}

    def try_acquire(self, key: str) -> bool:
        with self._lock:
            now = self._clock()
            self._evict(now)
            last = self._last_checked.get(key)
            if last is not None and now - last < self._interval:
                return False
            self._last_checked[key] = now
            return True

    def seconds_until_allowed(self, key: str) -> float:
        with self._lock:
            last = self._last_checked.get(key)
            if last is None:
                return 0.0
            return max(0.0, self._interval - (self._clock() - last))

    def _evict(self, now: float) -> None:
        expired = [key for key, last in self._last_checked.items() if now - last >= self._interval]
        for key in expired:
            del self._last_checked[key]


class PaymentCoordination:
    _instance: "PaymentCoordination | None" = None
    _lock = threading.Lock()

    def __init__(
        self,
        *,
        in_flight: InFlightRegistry,
        status_cache: PaymentStatusCache,
        rate_limiter: CheckRateLimiter,
    ) -> None:
        self.in_flight = in_flight
        self.status_cache = status_cache
        self.rate_limiter = rate_limiter

    @classmethod
    def from_settings(cls, *, clock: Callable[[], float] = time.monotonic) -> "PaymentCoordination":
        return cls(
            in_flight=InFlightRegistry(
                ttl_seconds=getattr(settings, "PAYMENT_IN_FLIGHT_TTL_SECONDS", 60.0),
                clock=clock,
            ),
            status_cache=PaymentStatusCache(
                ttl_seconds=getattr(settings, "PAYMENT_STATUS_CACHE_TTL_SECONDS", 5.0),
                clock=clock,
            ),
            rate_limiter=CheckRateLimiter(
                min_interval_seconds=getattr(settings, "PAYMENT_CHECK_MIN_INTERVAL_SECONDS", 15.0),
                clock=clock,
            ),
        )

    @classmethod
    def get(cls) -> "PaymentCoordination":
        with cls._lock:
            if cls._instance is None:
                cls._instance = cls.from_settings()
            return cls._instance

    @classmethod
    def install(cls, coordination: "PaymentCoordination") -> None:
        with cls._lock:
            cls._instance = coordination

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None
