from __future__ import annotations


class PaymentDomainError(ValueError):
    code = "PAYMENT_ERROR"


class ConcurrentRequestError(PaymentDomainError):
    code = "CONCURRENT_REQUEST"

    def __init__(self, message: str = "A payment request for this order is already in progress."):
        super().__init__(message)


class GatewayError(PaymentDomainError):
    code = "GATEWAY_ERROR"


class GatewayUnreachableError(GatewayError):
    code = "GATEWAY_UNREACHABLE"


class GatewayTimeoutError(GatewayError):
    code = "GATEWAY_TIMEOUT"


class AuthenticationFailedError(GatewayError):
    code = "AUTHENTICATION_FAILED"


class GatewayRequestError(GatewayError):
    code = "GATEWAY_REQUEST_FAILED"

    def __init__(self, message: str, *, status_code: int | None = None, detail: object | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class DuplicateInvoiceError(PaymentDomainError):
    code = "DUPLICATE_INVOICE"


class InsufficientLineDataError(PaymentDomainError):
    code = "INSUFFICIENT_LINE_DATA"

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class OrderNotPayableError(PaymentDomainError):
    code = "ORDER_NOT_PAYABLE"


class InvoiceMissingError(PaymentDomainError):
    code = "INVOICE_MISSING"

    def __init__(self, message: str = "QPay invoice has not been created for this order."):
        super().__init__(message)


class InvalidPaymentTransitionError(PaymentDomainError):
    code = "INVALID_TRANSITION"


class NotRefundableError(PaymentDomainError):
    code = "NOT_REFUNDABLE"
