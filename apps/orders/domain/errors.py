from __future__ import annotations


class OrderDomainError(ValueError):
    code = "ORDER_ERROR"


class OrderValidationError(OrderDomainError):
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class OrderNotFoundError(OrderDomainError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, message: str = "Order not found."):
        super().__init__(message)


class OrderAccessDeniedError(OrderDomainError):
    code = "FORBIDDEN"

    def __init__(self, message: str = "You do not have access to this order."):
        super().__init__(message)


class OrderIdExhaustedError(OrderDomainError):
    code = "ORDER_ID_EXHAUSTED"
