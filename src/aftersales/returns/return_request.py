"""ReturnRequest aggregate — units a customer gives back for one order.

State Machine:
    PENDING → APPROVED → PROCESSED → COMPLETED
    {PENDING, APPROVED} → REJECTED

A passing quality check must be recorded before approval. Every transition
checks the current state first; an illegal transition raises
``TerminalBusinessError`` rather than doing nothing.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from shared.errors import TerminalBusinessError

from aftersales.domain import aftersales
from aftersales.returns.events import (
    ReturnApproved,
    ReturnCompleted,
    ReturnProcessed,
    ReturnQualityChecked,
    ReturnRejected,
    ReturnRequested,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ReturnStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"
    COMPLETED = "completed"


class ReturnReason(Enum):
    DEFECTIVE_PRODUCT = "defective_product"
    WRONG_ITEM = "wrong_item"
    NOT_AS_DESCRIBED = "not_as_described"
    CUSTOMER_DISSATISFACTION = "customer_dissatisfaction"
    SIZE_ISSUE = "size_issue"
    COLOR_ISSUE = "color_issue"
    QUALITY_ISSUE = "quality_issue"
    LATE_DELIVERY = "late_delivery"
    CHANGED_MIND = "changed_mind"
    DUPLICATE_ORDER = "duplicate_order"
    OTHER = "other"


class ReturnType(Enum):
    CUSTOMER_RETURN = "customer_return"
    STORE_RETURN = "store_return"
    WAREHOUSE_RETURN = "warehouse_return"


class RestockAction(Enum):
    REACTIVATE_UNIT = "reactivate_unit"
    INCREMENT_BATCH = "increment_batch"


_VALID_TRANSITIONS = {
    ReturnStatus.PENDING: {ReturnStatus.APPROVED, ReturnStatus.REJECTED},
    ReturnStatus.APPROVED: {ReturnStatus.PROCESSED, ReturnStatus.REJECTED},
    ReturnStatus.PROCESSED: {ReturnStatus.COMPLETED},
    ReturnStatus.REJECTED: set(),  # Terminal
    ReturnStatus.COMPLETED: set(),  # Terminal
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@aftersales.value_object(part_of="ReturnRequest")
class QualityCheck:
    """Outcome of inspecting the returned goods."""

    passed = Boolean(default=False)
    notes = String(max_length=1000)
    checked_by = String(max_length=100)
    checked_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@aftersales.entity(part_of="ReturnRequest")
class ReturnItem:
    """One returned unit (or, without a unit code, a returned quantity)."""

    order_item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(default=0.0)
    unit_code = String(max_length=100)
    is_placeholder = Boolean(default=False)  # synthesized code, not a real unit
    restock_action = String(max_length=50, choices=RestockAction)

    @property
    def line_total(self) -> float:
        return round((self.quantity or 0) * (self.unit_price or 0.0), 2)

    def restock(self) -> dict:
        """The inventory action that puts this item back into stock.

        Only a real unit code is reactivated; placeholders fall back to the
        product's free batch quantity.
        """
        if self.unit_code and not self.is_placeholder:
            return {
                "action": RestockAction.REACTIVATE_UNIT.value,
                "unit_code": self.unit_code,
                "product_id": str(self.product_id),
                "quantity": self.quantity,
            }
        return {
            "action": RestockAction.INCREMENT_BATCH.value,
            "product_id": str(self.product_id),
            "quantity": self.quantity,
        }


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@aftersales.aggregate
class ReturnRequest:
    order_id = Identifier(required=True)
    order_number = String(max_length=100)
    reason = String(required=True, choices=ReturnReason)
    return_type = String(choices=ReturnType, default=ReturnType.CUSTOMER_RETURN.value)
    status = String(choices=ReturnStatus, default=ReturnStatus.PENDING.value)
    items = HasMany(ReturnItem)
    quality_check = ValueObject(QualityCheck)
    total_return_value = Float(default=0.0)
    total_refund_amount = Float(default=0.0)
    processing_fee = Float(default=0.0)
    inventory_restored = Boolean(default=False)
    notes = String(max_length=1000)
    rejection_reason = String(max_length=500)
    created_at = DateTime()
    approved_at = DateTime()
    rejected_at = DateTime()
    processed_at = DateTime()
    completed_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        return_id: str,
        order_id: str,
        reason: str,
        items_data: list[dict],
        return_type: str = ReturnType.CUSTOMER_RETURN.value,
        order_number: str | None = None,
        notes: str | None = None,
    ):
        """Record a return the backend has accepted under ``return_id``."""
        now = datetime.now(UTC)
        ret = cls(
            id=return_id,
            order_id=order_id,
            order_number=order_number,
            reason=reason,
            return_type=return_type,
            status=ReturnStatus.PENDING.value,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        for item_data in items_data:
            ret.add_items(ReturnItem(**item_data))
        ret.total_return_value = round(sum(i.line_total for i in ret.items), 2)
        ret.total_refund_amount = ret.total_return_value
        ret.raise_(
            ReturnRequested(
                return_id=str(ret.id),
                order_id=order_id,
                reason=reason,
                return_type=return_type,
                items=json.dumps(items_data),
                item_count=len(items_data),
                total_return_value=ret.total_return_value,
                requested_at=now,
            )
        )
        return ret

    # -------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: ReturnStatus) -> None:
        current = ReturnStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise TerminalBusinessError(
                f"Cannot transition return {self.id} from {current.value} to {target_status.value}"
            )

    @property
    def quality_check_passed(self) -> bool:
        return bool(self.quality_check and self.quality_check.passed)

    def can_edit(self) -> bool:
        return self.status == ReturnStatus.PENDING.value

    def can_approve(self) -> bool:
        return self.status == ReturnStatus.PENDING.value and self.quality_check_passed

    def can_reject(self) -> bool:
        return self.status in (ReturnStatus.PENDING.value, ReturnStatus.APPROVED.value)

    def can_process(self) -> bool:
        return self.status == ReturnStatus.APPROVED.value

    def can_complete(self) -> bool:
        return self.status == ReturnStatus.PROCESSED.value

    def net_refund(self) -> float:
        return max(0.0, round((self.total_refund_amount or 0.0) - (self.processing_fee or 0.0), 2))

    def unit_codes(self) -> list[str]:
        return [i.unit_code for i in (self.items or []) if i.unit_code]

    def quantity_for(self, order_item_id: str) -> int:
        return sum(i.quantity for i in (self.items or []) if str(i.order_item_id) == str(order_item_id))

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def record_quality_check(self, passed: bool, notes: str | None = None, checked_by: str | None = None) -> None:
        """Attach an inspection outcome. Does not change state but gates approval."""
        if not self.can_edit():
            raise TerminalBusinessError(f"Quality check can only be recorded on a pending return, not {self.status}")

        now = datetime.now(UTC)
        self.quality_check = QualityCheck(passed=passed, notes=notes, checked_by=checked_by, checked_at=now)
        self.updated_at = now
        self.raise_(
            ReturnQualityChecked(
                return_id=str(self.id),
                passed=passed,
                notes=notes or "",
                checked_at=now,
            )
        )

    def approve(self, refund_amount: float | None = None, processing_fee: float | None = None) -> None:
        self._assert_can_transition(ReturnStatus.APPROVED)
        if not self.quality_check_passed:
            raise TerminalBusinessError("A passing quality check is required before approval")

        now = datetime.now(UTC)
        if refund_amount is not None:
            self.total_refund_amount = round(refund_amount, 2)
        if processing_fee is not None:
            self.processing_fee = round(processing_fee, 2)
        self.status = ReturnStatus.APPROVED.value
        self.approved_at = now
        self.updated_at = now
        self.raise_(
            ReturnApproved(
                return_id=str(self.id),
                total_refund_amount=self.total_refund_amount,
                processing_fee=self.processing_fee,
                approved_at=now,
            )
        )

    def reject(self, reason: str) -> None:
        self._assert_can_transition(ReturnStatus.REJECTED)
        previous = self.status
        now = datetime.now(UTC)
        self.status = ReturnStatus.REJECTED.value
        self.rejection_reason = reason
        self.rejected_at = now
        self.updated_at = now
        self.raise_(
            ReturnRejected(
                return_id=str(self.id),
                reason=reason,
                previous_status=previous,
                rejected_at=now,
            )
        )

    def restock_plan(self, restore_inventory: bool = True) -> list[dict]:
        if not restore_inventory:
            return []
        return [item.restock() for item in (self.items or [])]

    def process(self, restore_inventory: bool = True) -> list[dict]:
        """Mark the goods as received back. Returns the restock actions applied."""
        self._assert_can_transition(ReturnStatus.PROCESSED)
        actions = self.restock_plan(restore_inventory)
        if restore_inventory:
            for item in self.items or []:
                item.restock_action = item.restock()["action"]

        now = datetime.now(UTC)
        self.status = ReturnStatus.PROCESSED.value
        self.inventory_restored = restore_inventory
        self.processed_at = now
        self.updated_at = now
        self.raise_(
            ReturnProcessed(
                return_id=str(self.id),
                inventory_restored=restore_inventory,
                restock_actions=json.dumps(actions),
                processed_at=now,
            )
        )
        return actions

    def complete(self) -> None:
        self._assert_can_transition(ReturnStatus.COMPLETED)
        now = datetime.now(UTC)
        self.status = ReturnStatus.COMPLETED.value
        self.completed_at = now
        self.updated_at = now
        self.raise_(
            ReturnCompleted(
                return_id=str(self.id),
                order_id=str(self.order_id),
                total_refund_amount=self.total_refund_amount,
                completed_at=now,
            )
        )
