"""Refund lifecycle service — settles money for a completed return.

Remaining refundable balance for a return:

    return.total_refund_amount - sum(amount of its completed refunds)

A refund may never exceed it. The bound is checked when the refund is
created and again when it completes, under a per-return lock, so the balance
stays at or above zero however refunds interleave.
"""

from datetime import datetime

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from shared.errors import NotFoundError, TerminalBusinessError, ValidationError
from shared.locks import RETURN_REFUND_LOCKS, KeyedLocks

from aftersales.backend import get_backend
from aftersales.refunds.calculation import RefundType, calculate_refund_amount, remaining_balance
from aftersales.refunds.creation import RecordRefundCreated
from aftersales.refunds.refund import Refund, RefundMethod, RefundStatus
from aftersales.refunds.transitions import (
    RecordRefundCancelled,
    RecordRefundCompleted,
    RecordRefundFailed,
    RecordRefundProcessing,
)
from aftersales.returns.return_request import ReturnRequest, ReturnStatus

logger = structlog.get_logger(__name__)


class RefundLifecycle:
    def __init__(self, backend=None, locks: KeyedLocks | None = None):
        self.backend = backend or get_backend()
        self._return_locks = locks or RETURN_REFUND_LOCKS

    def get(self, refund_id: str) -> Refund:
        try:
            return current_domain.repository_for(Refund).get(refund_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError(f"Refund {refund_id} not found") from exc

    def _get_return(self, return_id: str) -> ReturnRequest:
        try:
            return current_domain.repository_for(ReturnRequest).get(return_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError(f"Return {return_id} not found") from exc

    def refunds_for_return(self, return_id: str) -> list[Refund]:
        repo = current_domain.repository_for(Refund)
        return list(repo._dao.query.filter(return_id=str(return_id)).all().items)

    def remaining_balance(self, return_id: str) -> float:
        ret = self._get_return(return_id)
        completed = [
            r.amount for r in self.refunds_for_return(return_id) if r.status == RefundStatus.COMPLETED.value
        ]
        return remaining_balance(ret.total_refund_amount or 0.0, completed)

    async def create(
        self,
        return_id: str,
        refund_type: str = RefundType.FULL.value,
        method: str = RefundMethod.CARD_REFUND.value,
        percentage: float | None = None,
        amount: float | None = None,
        processing_fee: float | None = None,
        notes: str | None = None,
        store_credit_expires_at: datetime | None = None,
    ) -> Refund:
        """Open a pending refund against a completed return.

        The processing fee defaults to the one recorded on the return.
        """
        if method not in {m.value for m in RefundMethod}:
            raise ValidationError(f"Unknown refund method: {method}")
        if refund_type not in {t.value for t in RefundType}:
            raise ValidationError(f"Unknown refund type: {refund_type}")

        ret = self._get_return(return_id)
        if ret.status != ReturnStatus.COMPLETED.value:
            raise TerminalBusinessError(f"Refunds can only be created for completed returns, return is {ret.status}")

        original = ret.total_refund_amount or 0.0
        fee = (ret.processing_fee or 0.0) if processing_fee is None else processing_fee
        value = calculate_refund_amount(refund_type, original, fee, percentage=percentage, amount=amount)
        if value <= 0:
            raise ValidationError("Refund amount must be greater than zero")

        async with self._return_locks.for_key(return_id):
            self._assert_within_balance(return_id, value)
            payload = {
                "return_id": str(return_id),
                "refund_type": refund_type,
                "method": method,
                "amount": value,
                "processing_fee": fee,
            }
            data = (await self.backend.create_refund(payload)).unwrap()
            refund_id = current_domain.process(
                RecordRefundCreated(
                    refund_id=data["id"],
                    return_id=str(return_id),
                    order_id=str(ret.order_id),
                    refund_type=refund_type,
                    method=method,
                    original_amount=original,
                    processing_fee=fee,
                    percentage=percentage,
                    amount=value,
                    notes=notes,
                    store_credit_expires_at=store_credit_expires_at,
                ),
                asynchronous=False,
            )

        logger.info("Refund created", refund_id=refund_id, return_id=str(return_id), amount=value, method=method)
        return self.get(refund_id)

    def _assert_within_balance(self, return_id: str, value: float) -> None:
        remaining = self.remaining_balance(return_id)
        if value > remaining:
            raise TerminalBusinessError(
                f"Refund amount {value:.2f} exceeds remaining refundable balance {remaining:.2f}"
            )

    def _guard(self, refund: Refund, target: RefundStatus) -> None:
        if not refund.can_transition_to(target):
            raise TerminalBusinessError(f"Cannot move refund {refund.id} from {refund.status} to {target.value}")

    async def process(self, refund_id: str) -> Refund:
        self._guard(self.get(refund_id), RefundStatus.PROCESSING)
        (await self.backend.process_refund(refund_id)).unwrap()
        current_domain.process(RecordRefundProcessing(refund_id=refund_id), asynchronous=False)
        logger.info("Refund processing", refund_id=refund_id)
        return self.get(refund_id)

    async def complete(
        self,
        refund_id: str,
        transaction_reference: str | None = None,
        bank_reference: str | None = None,
        gateway_reference: str | None = None,
    ) -> Refund:
        refund = self.get(refund_id)
        self._guard(refund, RefundStatus.COMPLETED)

        async with self._return_locks.for_key(refund.return_id):
            refund = self.get(refund_id)
            self._guard(refund, RefundStatus.COMPLETED)
            self._assert_within_balance(refund.return_id, refund.amount)
            payload = {
                "transaction_reference": transaction_reference,
                "bank_reference": bank_reference,
                "gateway_reference": gateway_reference,
            }
            (await self.backend.complete_refund(refund_id, payload)).unwrap()
            current_domain.process(
                RecordRefundCompleted(
                    refund_id=refund_id,
                    transaction_reference=transaction_reference,
                    bank_reference=bank_reference,
                    gateway_reference=gateway_reference,
                ),
                asynchronous=False,
            )

        logger.info(
            "Refund completed",
            refund_id=refund_id,
            amount=refund.amount,
            remaining_balance=self.remaining_balance(refund.return_id),
        )
        return self.get(refund_id)

    async def fail(self, refund_id: str, reason: str) -> Refund:
        if not (reason or "").strip():
            raise ValidationError("A failure reason is required")
        self._guard(self.get(refund_id), RefundStatus.FAILED)
        (await self.backend.fail_refund(refund_id, {"reason": reason})).unwrap()
        current_domain.process(RecordRefundFailed(refund_id=refund_id, reason=reason), asynchronous=False)
        logger.warning("Refund failed", refund_id=refund_id, reason=reason)
        return self.get(refund_id)

    async def cancel(self, refund_id: str, reason: str) -> Refund:
        if not (reason or "").strip():
            raise ValidationError("A cancellation reason is required")
        self._guard(self.get(refund_id), RefundStatus.CANCELLED)
        (await self.backend.cancel_refund(refund_id, {"reason": reason})).unwrap()
        current_domain.process(RecordRefundCancelled(refund_id=refund_id, reason=reason), asynchronous=False)
        logger.info("Refund cancelled", refund_id=refund_id, reason=reason)
        return self.get(refund_id)
