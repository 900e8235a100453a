from __future__ import annotations

import httpx
from django.test import SimpleTestCase

from apps.payments.domain.errors import (
    AuthenticationFailedError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnreachableError,
)
from apps.payments.infrastructure.qpay.executor import (
    BackoffRetryPolicy,
    NetworkOnlyRetryPolicy,
    SafeRequestExecutor,
)

REQUEST = httpx.Request("POST", "https://merchant.qpay.test/v2/invoice")


def status_error(code: int, body: dict | None = None) -> httpx.HTTPStatusError:
    response = httpx.Response(code, request=REQUEST, json=body or {})
    return httpx.HTTPStatusError(f"status {code}", request=REQUEST, response=response)


class ScriptedOperation:
    """Raises the scripted exceptions in order, then returns the result."""

    def __init__(self, *outcomes, result="ok"):
        self.outcomes = list(outcomes)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.outcomes:
            raise self.outcomes.pop(0)
        return self.result


class BackoffRetryPolicyTests(SimpleTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.sleeps: list[float] = []
        self.policy = BackoffRetryPolicy(max_attempts=3, base_delay=1.0, sleep=self.sleeps.append)

    def test_retries_server_errors_with_exponential_backoff(self):
        operation = ScriptedOperation(status_error(502), status_error(503))
        self.assertEqual(self.policy.run(operation), "ok")
        self.assertEqual(operation.calls, 3)
        self.assertEqual(self.sleeps, [1.0, 2.0])

    def test_never_retries_client_errors(self):
        operation = ScriptedOperation(status_error(400))
        with self.assertRaises(httpx.HTTPStatusError):
            self.policy.run(operation)
        self.assertEqual(operation.calls, 1)
        self.assertEqual(self.sleeps, [])

    def test_gives_up_after_max_attempts(self):
        operation = ScriptedOperation(
            httpx.ConnectError("refused", request=REQUEST),
            httpx.ReadTimeout("slow", request=REQUEST),
            httpx.ConnectError("refused", request=REQUEST),
        )
        with self.assertRaises(httpx.ConnectError):
            self.policy.run(operation)
        self.assertEqual(operation.calls, 3)
        self.assertEqual(self.sleeps, [1.0, 2.0])


class NetworkOnlyRetryPolicyTests(SimpleTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.sleeps: list[float] = []
        self.policy = NetworkOnlyRetryPolicy(retry_delay=2.0, sleep=self.sleeps.append)

    def test_connection_refused_is_retried_exactly_once(self):
        operation = ScriptedOperation(httpx.ConnectError("refused", request=REQUEST))
        self.assertEqual(self.policy.run(operation), "ok")
        self.assertEqual(operation.calls, 2)
        self.assertEqual(self.sleeps, [2.0])

    def test_second_connection_failure_is_raised(self):
        operation = ScriptedOperation(
            httpx.ConnectError("refused", request=REQUEST),
            httpx.ConnectError("refused", request=REQUEST),
        )
        with self.assertRaises(httpx.ConnectError):
            self.policy.run(operation)
        self.assertEqual(operation.calls, 2)

    def test_timeout_is_never_retried(self):
        for exc in (httpx.ReadTimeout("slow", request=REQUEST), httpx.ConnectTimeout("slow", request=REQUEST)):
            operation = ScriptedOperation(exc)
            with self.assertRaises(httpx.TimeoutException):
                self.policy.run(operation)
            self.assertEqual(operation.calls, 1)
        self.assertEqual(self.sleeps, [])

    def test_any_http_response_is_never_retried(self):
        for code in (400, 500, 503):
            operation = ScriptedOperation(status_error(code))
            with self.assertRaises(httpx.HTTPStatusError):
                self.policy.run(operation)
            self.assertEqual(operation.calls, 1)

    def test_connection_dropped_after_send_is_not_retried(self):
        operation = ScriptedOperation(httpx.ReadError("reset by peer", request=REQUEST))
        with self.assertRaises(httpx.ReadError):
            self.policy.run(operation)
        self.assertEqual(operation.calls, 1)


class SafeRequestExecutorTests(SimpleTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.sleeps: list[float] = []
        self.executor = SafeRequestExecutor(
            backoff=BackoffRetryPolicy(max_attempts=3, base_delay=1.0, sleep=self.sleeps.append),
            network_only=NetworkOnlyRetryPolicy(retry_delay=2.0, sleep=self.sleeps.append),
        )

    def test_idempotent_flag_selects_strategy(self):
        idempotent = ScriptedOperation(status_error(500))
        self.assertEqual(self.executor.execute(idempotent, idempotent=True), "ok")
        self.assertEqual(idempotent.calls, 2)

        non_idempotent = ScriptedOperation(status_error(500))
        with self.assertRaises(GatewayRequestError) as ctx:
            self.executor.execute(non_idempotent, idempotent=False)
        self.assertEqual(non_idempotent.calls, 1)
        self.assertEqual(ctx.exception.status_code, 500)

    def test_errors_are_translated_to_domain_errors(self):
        cases = [
            (httpx.ReadTimeout("slow", request=REQUEST), GatewayTimeoutError),
            (status_error(401), AuthenticationFailedError),
            (status_error(422, {"message": "INVOICE_CODE_INVALID"}), GatewayRequestError),
        ]
        for exc, expected in cases:
            with self.assertRaises(expected):
                self.executor.execute(ScriptedOperation(exc), idempotent=False)

    def test_unreachable_gateway_after_retry(self):
        operation = ScriptedOperation(
            httpx.ConnectError("refused", request=REQUEST),
            httpx.ConnectError("refused", request=REQUEST),
        )
        with self.assertRaises(GatewayUnreachableError):
            self.executor.execute(operation, idempotent=False)

    def test_gateway_message_is_surfaced(self):
        with self.assertRaises(GatewayRequestError) as ctx:
            self.executor.execute(ScriptedOperation(status_error(422, {"message": "INVOICE_CODE_INVALID"})), idempotent=True)
        self.assertEqual(str(ctx.exception), "INVOICE_CODE_INVALID")
        self.assertEqual(ctx.exception.detail, {"message": "INVOICE_CODE_INVALID"})
