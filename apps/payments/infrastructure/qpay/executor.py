"""
Retry strategies for calls to the QPay merchant API.

Idempotent calls (auth, payment checks, cancellations, refunds, receipts) go
through ``BackoffRetryPolicy``. Invoice creation is not idempotent on the
gateway side, so it goes through ``NetworkOnlyRetryPolicy``, which only
retries when the request provably never reached the server.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

import httpx

from apps.payments.domain.errors import (
    AuthenticationFailedError,
    GatewayError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnreachableError,
)

logger = logging.getLogger("gerar.payments.qpay")

T = TypeVar("T")


def _response_detail(response: httpx.Response) -> object:
    try:
        return response.json()
    except ValueError:
        return response.text


def translate_http_error(exc: httpx.HTTPError) -> GatewayError:
    if isinstance(exc, httpx.TimeoutException):
        return GatewayTimeoutError(f"QPay request timed out: {exc}")
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        detail = _response_detail(exc.response)
        if status_code in (401, 403):
            return AuthenticationFailedError(f"QPay rejected the credentials ({status_code}).")
        message = detail.get("message") if isinstance(detail, dict) else None
        return GatewayRequestError(
            message or f"QPay request failed with status {status_code}.",
            status_code=status_code,
            detail=detail,
        )
    return GatewayUnreachableError(f"QPay is unreachable: {exc}")


class BackoffRetryPolicy:
    def __init__(self, *, max_attempts: int = 3, base_delay: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay = float(base_delay)
        self._sleep = sleep

    def run(self, operation: Callable[[], T], *, label: str = "") -> T:
        attempt = 0
        while True:
            last_attempt = attempt >= self.max_attempts - 1
            try:
                return operation()
            except httpx.HTTPStatusError as exc:
                # 4xx means the gateway understood and refused the request.
                if exc.response.status_code < 500 or last_attempt:
                    raise
                reason = f"status {exc.response.status_code}"
            except httpx.TransportError as exc:
                if last_attempt:
                    raise
                reason = type(exc).__name__
            delay = self.base_delay * (2**attempt)
            logger.warning(
                "qpay_retry_scheduled",
                extra={"operation": label, "attempt": attempt + 1, "delay": delay, "reason": reason},
            )
            self._sleep(delay)
            attempt += 1


class NetworkOnlyRetryPolicy:
    def __init__(self, *, retry_delay: float = 2.0, sleep: Callable[[float], None] = time.sleep):
        self.retry_delay = float(retry_delay)
        self._sleep = sleep

    def run(self, operation: Callable[[], T], *, label: str = "") -> T:
        try:
            return operation()
        except httpx.ConnectError as exc:
            # Connection never established, so the gateway cannot have acted on it.
            logger.warning(
                "qpay_connect_failed_retrying",
                extra={"operation": label, "delay": self.retry_delay, "reason": str(exc)},
            )
        self._sleep(self.retry_delay)
        return operation()


class SafeRequestExecutor:
    def __init__(self, *, backoff: BackoffRetryPolicy, network_only: NetworkOnlyRetryPolicy):
        self.backoff = backoff
        self.network_only = network_only

    @classmethod
    def from_settings(cls, config, *, sleep: Callable[[float], None] = time.sleep) -> "SafeRequestExecutor":
        return cls(
            backoff=BackoffRetryPolicy(
                max_attempts=config.retry_max_attempts,
                base_delay=config.retry_base_delay_seconds,
                sleep=sleep,
            ),
            network_only=NetworkOnlyRetryPolicy(retry_delay=config.safe_retry_delay_seconds, sleep=sleep),
        )

    def execute(self, operation: Callable[[], T], *, idempotent: bool, label: str = "") -> T:
        policy = self.backoff if idempotent else self.network_only
        try:
            return policy.run(operation, label=label)
        except httpx.HTTPError as exc:
            error = translate_http_error(exc)
            logger.error(
                "qpay_request_failed",
                extra={"operation": label, "error_code": error.code, "reason": str(exc)},
            )
            raise error from exc
