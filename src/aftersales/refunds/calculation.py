"""Refund amount calculation.

    full             original - fee
    percentage(p)    original * p / 100 - fee,   0 < p <= 100
    partial_amount   exactly the requested amount (must be positive)

Computed amounts are rounded to cents and never go below zero.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from shared.errors import ValidationError


class RefundType(Enum):
    FULL = "full"
    PERCENTAGE = "percentage"
    PARTIAL_AMOUNT = "partial_amount"


def calculate_refund_amount(
    refund_type: str,
    original_amount: float,
    processing_fee: float = 0.0,
    percentage: float | None = None,
    amount: float | None = None,
) -> float:
    refund_type = RefundType(refund_type)
    if processing_fee < 0:
        raise ValidationError("Processing fee must not be negative")

    if refund_type is RefundType.FULL:
        value = original_amount - processing_fee
    elif refund_type is RefundType.PERCENTAGE:
        if percentage is None or not 0 < percentage <= 100:
            raise ValidationError("Refund percentage must be greater than 0 and at most 100")
        value = original_amount * percentage / 100 - processing_fee
    else:
        if amount is None or amount <= 0:
            raise ValidationError("Partial refund amount must be greater than zero")
        value = amount

    return max(0.0, round(value, 2))


def remaining_balance(refundable_total: float, completed_amounts: list[float]) -> float:
    """What is still refundable once the completed refunds are paid out."""
    return round(refundable_total - sum(completed_amounts), 2)


def percentage_of(amount: float, original_amount: float) -> float:
    if not original_amount:
        return 0.0
    return round(amount / original_amount * 100, 2)


def store_credit_expiring_soon(expires_at: datetime | None, now: datetime | None = None, days: int = 30) -> bool:
    """True when store credit expires within ``days`` and has not expired yet."""
    if expires_at is None:
        return False
    now = now or datetime.now(UTC)
    return now <= expires_at <= now + timedelta(days=days)
