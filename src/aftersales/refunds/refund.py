"""Refund aggregate — monetary settlement backed by a completed return.

State Machine:
    PENDING → PROCESSING → COMPLETED
    PROCESSING → FAILED
    {PENDING, PROCESSING} → CANCELLED
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, String

from shared.errors import TerminalBusinessError

from aftersales.domain import aftersales
from aftersales.refunds.calculation import RefundType, percentage_of, store_credit_expiring_soon
from aftersales.refunds.events import (
    RefundCancelled,
    RefundCompleted,
    RefundCreated,
    RefundFailed,
    RefundProcessingStarted,
)


class RefundStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RefundMethod(Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CARD_REFUND = "card_refund"
    STORE_CREDIT = "store_credit"
    GIFT_CARD = "gift_card"
    DIGITAL_WALLET = "digital_wallet"
    CHECK = "check"
    OTHER = "other"


_VALID_TRANSITIONS = {
    RefundStatus.PENDING: {RefundStatus.PROCESSING, RefundStatus.CANCELLED},
    RefundStatus.PROCESSING: {RefundStatus.COMPLETED, RefundStatus.FAILED, RefundStatus.CANCELLED},
    RefundStatus.COMPLETED: set(),
    RefundStatus.FAILED: set(),
    RefundStatus.CANCELLED: set(),
}


@aftersales.aggregate
class Refund:
    return_id = Identifier(required=True)
    order_id = Identifier()
    refund_type = String(choices=RefundType, default=RefundType.FULL.value)
    method = String(choices=RefundMethod, default=RefundMethod.CARD_REFUND.value)
    status = String(choices=RefundStatus, default=RefundStatus.PENDING.value)
    original_amount = Float(default=0.0)
    percentage = Float()
    processing_fee = Float(default=0.0)
    amount = Float(required=True, min_value=0.0)
    transaction_reference = String(max_length=255)
    bank_reference = String(max_length=255)
    gateway_reference = String(max_length=255)
    failure_reason = String(max_length=500)
    cancel_reason = String(max_length=500)
    notes = String(max_length=1000)
    store_credit_expires_at = DateTime()
    created_at = DateTime()
    processing_started_at = DateTime()
    completed_at = DateTime()
    failed_at = DateTime()
    cancelled_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        refund_id: str,
        return_id: str,
        refund_type: str,
        method: str,
        original_amount: float,
        amount: float,
        processing_fee: float = 0.0,
        percentage: float | None = None,
        order_id: str | None = None,
        notes: str | None = None,
        store_credit_expires_at: datetime | None = None,
    ):
        now = datetime.now(UTC)
        refund = cls(
            id=refund_id,
            return_id=return_id,
            order_id=order_id,
            refund_type=refund_type,
            method=method,
            status=RefundStatus.PENDING.value,
            original_amount=original_amount,
            percentage=percentage,
            processing_fee=processing_fee,
            amount=amount,
            notes=notes,
            store_credit_expires_at=store_credit_expires_at,
            created_at=now,
            updated_at=now,
        )
        refund.raise_(
            RefundCreated(
                refund_id=str(refund.id),
                return_id=return_id,
                refund_type=refund_type,
                method=method,
                original_amount=original_amount,
                processing_fee=processing_fee,
                amount=amount,
                created_at=now,
            )
        )
        return refund

    def _assert_can_transition(self, target_status: RefundStatus) -> None:
        current = RefundStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise TerminalBusinessError(
                f"Cannot transition refund {self.id} from {current.value} to {target_status.value}"
            )

    def can_transition_to(self, target_status: RefundStatus) -> bool:
        return target_status in _VALID_TRANSITIONS.get(RefundStatus(self.status), set())

    @property
    def refunded_percentage(self) -> float:
        return percentage_of(self.amount, self.original_amount)

    def store_credit_expiring_soon(self, now: datetime | None = None, days: int = 30) -> bool:
        if self.method != RefundMethod.STORE_CREDIT.value:
            return False
        return store_credit_expiring_soon(self.store_credit_expires_at, now=now, days=days)

    def start_processing(self) -> None:
        self._assert_can_transition(RefundStatus.PROCESSING)
        now = datetime.now(UTC)
        self.status = RefundStatus.PROCESSING.value
        self.processing_started_at = now
        self.updated_at = now
        self.raise_(RefundProcessingStarted(refund_id=str(self.id), started_at=now))

    def complete(
        self,
        transaction_reference: str | None = None,
        bank_reference: str | None = None,
        gateway_reference: str | None = None,
    ) -> None:
        self._assert_can_transition(RefundStatus.COMPLETED)
        now = datetime.now(UTC)
        self.status = RefundStatus.COMPLETED.value
        self.transaction_reference = transaction_reference
        self.bank_reference = bank_reference
        self.gateway_reference = gateway_reference
        self.completed_at = now
        self.updated_at = now
        self.raise_(
            RefundCompleted(
                refund_id=str(self.id),
                return_id=str(self.return_id),
                amount=self.amount,
                transaction_reference=transaction_reference or "",
                completed_at=now,
            )
        )

    def fail(self, reason: str) -> None:
        self._assert_can_transition(RefundStatus.FAILED)
        now = datetime.now(UTC)
        self.status = RefundStatus.FAILED.value
        self.failure_reason = reason
        self.failed_at = now
        self.updated_at = now
        self.raise_(RefundFailed(refund_id=str(self.id), reason=reason, failed_at=now))

    def cancel(self, reason: str) -> None:
        self._assert_can_transition(RefundStatus.CANCELLED)
        previous = self.status
        now = datetime.now(UTC)
        self.status = RefundStatus.CANCELLED.value
        self.cancel_reason = reason
        self.cancelled_at = now
        self.updated_at = now
        self.raise_(
            RefundCancelled(
                refund_id=str(self.id),
                reason=reason,
                previous_status=previous,
                cancelled_at=now,
            )
        )
