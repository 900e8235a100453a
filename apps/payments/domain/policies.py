from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from apps.payments.domain.errors import InvalidPaymentTransitionError

PAYMENT_PENDING = "PENDING"
PAYMENT_PAID = "PAID"
PAYMENT_CANCELLED = "CANCELLED"
PAYMENT_REFUNDED = "REFUNDED"

# Gateway statuses that mean the customer's money has been captured.
SETTLED_PAYMENT_STATUSES = frozenset({"PAID", "SUCCESS", "COMPLETED"})

ALLOWED_PAYMENT_TRANSITIONS: dict[str, frozenset[str]] = {
    PAYMENT_PENDING: frozenset({PAYMENT_PAID, PAYMENT_CANCELLED, PAYMENT_REFUNDED}),
    PAYMENT_PAID: frozenset({PAYMENT_REFUNDED}),
    PAYMENT_CANCELLED: frozenset(),
    PAYMENT_REFUNDED: frozenset(),
}

VAT_DIVISOR = Decimal("11")
CENT = Decimal("0.01")


def is_settled_status(value: str | None) -> bool:
    return (value or "").strip().upper() in SETTLED_PAYMENT_STATUSES


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_PAYMENT_TRANSITIONS.get(current, frozenset())


def assert_payment_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidPaymentTransitionError(f"Payment status cannot change from {current} to {target}.")


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def vat_inclusive_amount(gross: Decimal) -> Decimal:
    """VAT contained in a VAT-inclusive gross amount (10% rate)."""
    return quantize_money(Decimal(gross) / VAT_DIVISOR)


def token_has_margin(expires_at: datetime | None, *, now: datetime, margin_seconds: float) -> bool:
    if expires_at is None:
        return False
    return expires_at - now > timedelta(seconds=margin_seconds)
