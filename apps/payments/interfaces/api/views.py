from __future__ import annotations

import logging

from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.orders.domain.errors import OrderAccessDeniedError, OrderDomainError, OrderNotFoundError
from apps.payments.application.services.qpay_config import QPayConfigInvalid, QPayConfigMissing
from apps.payments.application.use_cases.cancel_payment import CancelPaymentCommand, CancelPaymentUseCase
from apps.payments.application.use_cases.get_payment_status import GetPaymentStatusCommand, GetPaymentStatusUseCase
from apps.payments.application.use_cases.handle_payment_callback import (
    HandlePaymentCallbackCommand,
    HandlePaymentCallbackUseCase,
)
from apps.payments.application.use_cases.initiate_payment import InitiatePaymentCommand, InitiatePaymentUseCase
from apps.payments.application.use_cases.refund_payment import RefundPaymentCommand, RefundPaymentUseCase
from apps.payments.domain.errors import (
    AuthenticationFailedError,
    ConcurrentRequestError,
    DuplicateInvoiceError,
    GatewayError,
    GatewayTimeoutError,
    GatewayUnreachableError,
    PaymentDomainError,
)
from apps.payments.interfaces.api.serializers import InitiatePaymentSerializer, RefundPaymentSerializer

logger = logging.getLogger("gerar.payments")

ORDER_TOKEN_HEADER = "X-Order-Token"


def _success(*, data: dict, message: str = "", http_status: int = status.HTTP_200_OK) -> Response:
    return Response(
        {"success": True, "message": message, "data": data, "timestamp": timezone.now().isoformat()},
        status=http_status,
    )


def _error(*, message: str, code: str, field: str | None = None, http_status: int = 400) -> Response:
    payload: dict = {
        "success": False,
        "message": message,
        "data": {},
        "error": code,
        "timestamp": timezone.now().isoformat(),
    }
    if field:
        payload["field"] = field
    return Response(payload, status=http_status)


def _status_for(exc: Exception) -> int:
    if isinstance(exc, OrderNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, OrderAccessDeniedError):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, ConcurrentRequestError):
        return status.HTTP_429_TOO_MANY_REQUESTS
    if isinstance(exc, DuplicateInvoiceError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, GatewayTimeoutError):
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(exc, GatewayUnreachableError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, (AuthenticationFailedError, GatewayError)):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_400_BAD_REQUEST


def _domain_error(exc: OrderDomainError | PaymentDomainError) -> Response:
    http_status = _status_for(exc)
    if http_status >= 500:
        logger.warning("payment_request_failed", extra={"error_code": exc.code, "status_code": http_status})
    return _error(message=str(exc), code=exc.code, field=getattr(exc, "field", None), http_status=http_status)


def _config_error(exc: Exception) -> Response:
    logger.error("payments_not_configured", extra={"reason": str(exc)})
    return _error(
        message="Payments are not configured.",
        code="PAYMENTS_NOT_CONFIGURED",
        http_status=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


def _order_token(request) -> str:
    return (request.headers.get(ORDER_TOKEN_HEADER) or "").strip()


class InitiatePaymentAPI(APIView):
    permission_classes = [AllowAny]

    def post(self, request, order_id: str):
        serializer = InitiatePaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return _error(message="Invalid input.", code="VALIDATION_ERROR", http_status=status.HTTP_400_BAD_REQUEST)
        # Form-encoded bodies report a missing boolean as False; absent means "decide from the order".
        itemized = serializer.validated_data.get("itemized") if "itemized" in request.data else None
        try:
            view = InitiatePaymentUseCase.execute(
                InitiatePaymentCommand(
                    order_id=order_id,
                    user=request.user,
                    session_token=_order_token(request),
                    itemized=itemized,
                )
            )
        except (OrderDomainError, PaymentDomainError) as exc:
            return _domain_error(exc)
        except (QPayConfigMissing, QPayConfigInvalid) as exc:
            return _config_error(exc)

        if view.created:
            return _success(data=view.to_payload(), message="Invoice created", http_status=status.HTTP_201_CREATED)
        return _success(data=view.to_payload(), message="Invoice already exists")


class PaymentCallbackAPI(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def _handle(self, request, order_id: str) -> Response:
        payload = request.query_params.dict()
        if hasattr(request.data, "items"):
            payload.update({key: value for key, value in request.data.items()})
        logger.info("payment_callback_received", extra={"order_id": order_id})
        try:
            result = HandlePaymentCallbackUseCase.execute(
                HandlePaymentCallbackCommand(order_id=order_id, payload=payload)
            )
        except (OrderDomainError, PaymentDomainError) as exc:
            return _domain_error(exc)
        except (QPayConfigMissing, QPayConfigInvalid) as exc:
            return _config_error(exc)
        return _success(data=result.to_payload(), message=result.message)

    def post(self, request, order_id: str):
        return self._handle(request, order_id)

    def get(self, request, order_id: str):
        return self._handle(request, order_id)


class PaymentStatusAPI(APIView):
    permission_classes = [AllowAny]

    def get(self, request, order_id: str):
        try:
            data = GetPaymentStatusUseCase.execute(
                GetPaymentStatusCommand(order_id=order_id, user=request.user, session_token=_order_token(request))
            )
        except (OrderDomainError, PaymentDomainError) as exc:
            return _domain_error(exc)
        except (QPayConfigMissing, QPayConfigInvalid) as exc:
            return _config_error(exc)
        return _success(data=data, message=data.get("message", ""))


class CancelPaymentAPI(APIView):
    permission_classes = [AllowAny]

    def post(self, request, order_id: str):
        try:
            order = CancelPaymentUseCase.execute(
                CancelPaymentCommand(order_id=order_id, user=request.user, session_token=_order_token(request))
            )
        except (OrderDomainError, PaymentDomainError) as exc:
            return _domain_error(exc)
        except (QPayConfigMissing, QPayConfigInvalid) as exc:
            return _config_error(exc)
        return _success(
            data={"orderId": order.id, "status": order.status, "paymentStatus": order.payment_status},
            message="Payment cancelled",
        )


class RefundPaymentAPI(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request, order_id: str):
        serializer = RefundPaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return _error(message="Invalid input.", code="VALIDATION_ERROR", http_status=status.HTTP_400_BAD_REQUEST)
        try:
            order = RefundPaymentUseCase.execute(
                RefundPaymentCommand(
                    order_id=order_id,
                    user=request.user,
                    mode=serializer.validated_data["mode"],
                    note=serializer.validated_data["note"],
                )
            )
        except (OrderDomainError, PaymentDomainError) as exc:
            return _domain_error(exc)
        except (QPayConfigMissing, QPayConfigInvalid) as exc:
            return _config_error(exc)
        return _success(
            data={"orderId": order.id, "status": order.status, "paymentStatus": order.payment_status},
            message="Payment refunded",
        )
