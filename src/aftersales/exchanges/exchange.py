"""Exchange aggregate — the step ledger of an exchange saga.

An exchange returns units, refunds them in full and places a replacement
order. The three parts live in independently owned systems, so there is no
cross-step rollback; instead every completed step is written to the ledger
with the reference it produced, and a failed exchange can be resumed from
its first incomplete step.

State Machine:
    IN_PROGRESS → COMPLETED
    IN_PROGRESS → FAILED → IN_PROGRESS (resume)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, HasMany, Identifier, String, Text

from shared.errors import TerminalBusinessError

from aftersales.domain import aftersales
from aftersales.exchanges.events import (
    ExchangeCompleted,
    ExchangeFailed,
    ExchangeResumed,
    ExchangeStarted,
    ExchangeStepCompleted,
)


class ExchangeStatus(Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ExchangeStepName(Enum):
    RETURN_CREATED = "return_created"
    QUALITY_CHECKED = "quality_checked"
    RETURN_APPROVED = "return_approved"
    RETURN_PROCESSED = "return_processed"
    RETURN_COMPLETED = "return_completed"
    REFUND_CREATED = "refund_created"
    REFUND_PROCESSING = "refund_processing"
    REFUND_COMPLETED = "refund_completed"
    ORDER_CREATED = "order_created"
    ORDER_COMPLETED = "order_completed"


STEP_ORDER = list(ExchangeStepName)


def settlement_note(net_settlement: float) -> str:
    if net_settlement > 0:
        return "Refund to customer"
    if net_settlement < 0:
        return "Customer owes additional payment"
    return "No payment difference"


@aftersales.entity(part_of="Exchange")
class ExchangeStep:
    """A completed saga step and the record it produced."""

    name = String(required=True, max_length=50, choices=ExchangeStepName)
    reference = String(max_length=255)
    amount = Float()
    completed_at = DateTime(required=True)


@aftersales.aggregate
class Exchange:
    order_id = Identifier(required=True)
    status = String(choices=ExchangeStatus, default=ExchangeStatus.IN_PROGRESS.value)
    request = Text(required=True)  # JSON of the original exchange request
    steps = HasMany(ExchangeStep)
    return_id = Identifier()
    refund_id = Identifier()
    new_order_id = Identifier()
    refund_amount = Float(default=0.0)
    new_order_total = Float(default=0.0)
    net_settlement = Float()
    failed_step = String(max_length=50)
    failure_reason = String(max_length=1000)
    created_at = DateTime()
    completed_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, order_id: str, request: dict):
        now = datetime.now(UTC)
        exchange = cls(
            order_id=order_id,
            status=ExchangeStatus.IN_PROGRESS.value,
            request=json.dumps(request),
            created_at=now,
            updated_at=now,
        )
        exchange.raise_(ExchangeStarted(exchange_id=str(exchange.id), order_id=order_id, started_at=now))
        return exchange

    @property
    def request_data(self) -> dict:
        return json.loads(self.request) if isinstance(self.request, str) else dict(self.request or {})

    @property
    def settlement_note(self) -> str | None:
        if self.net_settlement is None:
            return None
        return settlement_note(self.net_settlement)

    def completed_steps(self) -> list[str]:
        done = {s.name for s in (self.steps or [])}
        return [step.value for step in STEP_ORDER if step.value in done]

    def next_step(self) -> ExchangeStepName | None:
        done = set(self.completed_steps())
        return next((step for step in STEP_ORDER if step.value not in done), None)

    def reference_for(self, step: ExchangeStepName) -> str | None:
        return next((s.reference for s in (self.steps or []) if s.name == step.value), None)

    def _assert_in_progress(self) -> None:
        if self.status != ExchangeStatus.IN_PROGRESS.value:
            raise TerminalBusinessError(f"Exchange {self.id} is {self.status}, not in progress")

    def record_step(self, step: ExchangeStepName, reference: str | None = None, amount: float | None = None) -> None:
        """Append a step to the ledger. Steps are recorded strictly in order."""
        self._assert_in_progress()
        expected = self.next_step()
        if step != expected:
            expected_name = expected.value if expected else "none"
            raise TerminalBusinessError(f"Exchange {self.id} expects step {expected_name}, got {step.value}")

        now = datetime.now(UTC)
        self.add_steps(ExchangeStep(name=step.value, reference=reference, amount=amount, completed_at=now))
        if step == ExchangeStepName.RETURN_CREATED:
            self.return_id = reference
        elif step == ExchangeStepName.REFUND_CREATED:
            self.refund_id = reference
            self.refund_amount = amount or 0.0
        elif step == ExchangeStepName.ORDER_CREATED:
            self.new_order_id = reference
            self.new_order_total = amount or 0.0
        self.updated_at = now
        self.raise_(
            ExchangeStepCompleted(
                exchange_id=str(self.id),
                step=step.value,
                reference=reference or "",
                completed_at=now,
            )
        )

    def fail(self, step: str, reason: str) -> None:
        self._assert_in_progress()
        now = datetime.now(UTC)
        self.status = ExchangeStatus.FAILED.value
        self.failed_step = step
        self.failure_reason = reason
        self.updated_at = now
        self.raise_(ExchangeFailed(exchange_id=str(self.id), step=step, reason=reason, failed_at=now))

    def resume(self) -> None:
        if self.status == ExchangeStatus.COMPLETED.value:
            raise TerminalBusinessError(f"Exchange {self.id} is already completed")

        now = datetime.now(UTC)
        next_step = self.next_step()
        self.status = ExchangeStatus.IN_PROGRESS.value
        self.failed_step = None
        self.failure_reason = None
        self.updated_at = now
        self.raise_(
            ExchangeResumed(
                exchange_id=str(self.id),
                from_step=next_step.value if next_step else "complete",
                resumed_at=now,
            )
        )

    def complete(self) -> None:
        self._assert_in_progress()
        pending = self.next_step()
        if pending is not None:
            raise TerminalBusinessError(f"Exchange {self.id} cannot complete before {pending.value}")

        now = datetime.now(UTC)
        self.net_settlement = round((self.refund_amount or 0.0) - (self.new_order_total or 0.0), 2)
        self.status = ExchangeStatus.COMPLETED.value
        self.completed_at = now
        self.updated_at = now
        self.raise_(
            ExchangeCompleted(
                exchange_id=str(self.id),
                refund_amount=self.refund_amount,
                new_order_total=self.new_order_total,
                net_settlement=self.net_settlement,
                completed_at=now,
            )
        )
