from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone as dt_timezone

import httpx

from apps.payments.domain.errors import AuthenticationFailedError
from apps.payments.domain.ports import AccessToken
from apps.payments.infrastructure.qpay.executor import SafeRequestExecutor

logger = logging.getLogger("gerar.payments.qpay")

DEFAULT_EXPIRES_IN = 3600


class QPayTokenCache:
    """
    Holds the merchant access token.

    A token is reused until ``expires_in`` minus the safety margin has
    elapsed. New tokens are issued at most once per epoch; a caller that
    needs a fresh token inside an epoch that already issued one waits for
    the next epoch boundary.
    """

    def __init__(
        self,
        *,
        client: httpx.Client,
        executor: SafeRequestExecutor,
        username: str,
        password: str,
        permanent_token: str = "",
        expiry_margin_seconds: float = 60,
        epoch_seconds: float = 1.0,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._executor = executor
        self._username = username
        self._password = password
        self._permanent_token = (permanent_token or "").strip()
        self._expiry_margin = float(expiry_margin_seconds)
        self._epoch_seconds = max(float(epoch_seconds), 0.001)
        self._timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._token: str | None = None
        self._expires_at: float = 0.0
        self._last_issued_epoch: int | None = None

    def get_token(self) -> AccessToken:
        if self._permanent_token:
            return AccessToken(value=self._permanent_token, expires_at=None, permanent=True)

        with self._lock:
            if self._token and self._clock() < self._expires_at:
                return self._current()
            self._wait_for_next_epoch()
            issued_at = self._clock()
            payload = self._executor.execute(self._request_token, idempotent=True, label="auth_token")
            value = payload.get("access_token") if isinstance(payload, dict) else None
            if not value:
                raise AuthenticationFailedError("QPay token response did not contain an access token.")
            expires_in = payload.get("expires_in") or DEFAULT_EXPIRES_IN
            self._token = value
            self._expires_at = issued_at + float(expires_in) - self._expiry_margin
            self._last_issued_epoch = self._epoch_of(issued_at)
            logger.info("qpay_token_issued", extra={"expires_in": expires_in})
            return self._current()

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = 0.0

    def _current(self) -> AccessToken:
        return AccessToken(
            value=self._token or "",
            expires_at=datetime.fromtimestamp(self._expires_at, tz=dt_timezone.utc),
        )

    def _epoch_of(self, moment: float) -> int:
        return math.floor(moment / self._epoch_seconds)

    def _wait_for_next_epoch(self) -> None:
        if self._last_issued_epoch is None:
            return
        now = self._clock()
        if self._epoch_of(now) > self._last_issued_epoch:
            return
        wait = (self._last_issued_epoch + 1) * self._epoch_seconds - now
        logger.info("qpay_token_epoch_wait", extra={"wait_seconds": wait})
        self._sleep(max(wait, 0.0))

    def _request_token(self) -> dict:
        response = self._client.post(
            "auth/token",
            auth=(self._username, self._password),
            timeout=self._timeout,
        )
        response.raise_for_status()
        try:
            return response.json()
        except ValueError:
            return {}
