"""Return lifecycle service — drives a return request through the backend.

Every operation follows the same order:

    1. load the cached aggregate and check the transition guard
    2. call the backend (the system of record)
    3. record the confirmed change through a synchronously processed command

A guard violation never reaches the backend, and a backend failure never
reaches the local aggregate.
"""

import json

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from shared.errors import ConflictError, NotFoundError, TerminalBusinessError, ValidationError
from shared.locks import ORDER_RETURN_LOCKS, KeyedLocks

from aftersales.backend import get_backend
from aftersales.returns.creation import RecordReturnRequested
from aftersales.returns.queries import active_returns_for_order
from aftersales.returns.return_request import ReturnReason, ReturnRequest, ReturnType
from aftersales.returns.transitions import (
    RecordQualityCheck,
    RecordReturnApproval,
    RecordReturnCompleted,
    RecordReturnProcessed,
    RecordReturnRejection,
)
from aftersales.returns.unit_mapper import MappingResult, UnitMapper

logger = structlog.get_logger(__name__)


class ReturnLifecycle:
    def __init__(self, backend=None, mapper: UnitMapper | None = None, locks: KeyedLocks | None = None):
        self.backend = backend or get_backend()
        self.mapper = mapper or UnitMapper(self.backend)
        # Shared with every other lifecycle: one creation at a time per order
        self._order_locks = locks or ORDER_RETURN_LOCKS

    def get(self, return_id: str) -> ReturnRequest:
        try:
            return current_domain.repository_for(ReturnRequest).get(return_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError(f"Return {return_id} not found") from exc

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    async def create(
        self,
        order_id: str,
        reason: str,
        mapping: MappingResult,
        return_type: str = ReturnType.CUSTOMER_RETURN.value,
        notes: str | None = None,
    ) -> ReturnRequest:
        """Create a pending return from a successful unit mapping."""
        _validate_choice("reason", reason, ReturnReason)
        _validate_choice("return_type", return_type, ReturnType)
        if str(mapping.order_id) != str(order_id):
            raise ValidationError(f"Unit mapping belongs to order {mapping.order_id}, not {order_id}")
        if not mapping.valid:
            raise ValidationError("; ".join(mapping.errors) or "Unit mapping is not valid")

        items = self.mapper.to_return_items(mapping)
        async with self._order_locks.for_key(order_id):
            self._check_against_live_returns(mapping, items)

            payload = {
                "order_id": str(order_id),
                "reason": reason,
                "return_type": return_type,
                "notes": notes,
                "items": items,
            }
            data = (await self.backend.create_return(payload)).unwrap()
            return_id = current_domain.process(
                RecordReturnRequested(
                    return_id=data["id"],
                    order_id=str(order_id),
                    order_number=mapping.order.order_number if mapping.order else None,
                    reason=reason,
                    return_type=return_type,
                    items=json.dumps(items),
                    notes=notes,
                ),
                asynchronous=False,
            )

        if mapping.warnings:
            logger.warning("Return created with warnings", return_id=return_id, warnings=mapping.warnings)
        logger.info("Return requested", return_id=return_id, order_id=str(order_id), units=len(items))
        return self.get(return_id)

    async def create_from_codes(
        self,
        order_id: str,
        codes: list[str],
        reason: str,
        requested_quantities: dict[str, int] | None = None,
        return_type: str = ReturnType.CUSTOMER_RETURN.value,
        notes: str | None = None,
    ) -> ReturnRequest:
        mapping = await self.mapper.resolve(order_id, codes, requested_quantities)
        return await self.create(order_id, reason, mapping, return_type=return_type, notes=notes)

    def _check_against_live_returns(self, mapping: MappingResult, items: list[dict]) -> None:
        live = active_returns_for_order(mapping.order_id)

        claimed = {code for r in live for code in r.unit_codes()}
        for item in items:
            if item["unit_code"] in claimed:
                raise ConflictError(f"Unit {item['unit_code']} is already part of another return")

        for mapped in mapping.mapped_items:
            line = mapping.order.item(mapped.order_item_id) if mapping.order else None
            if line is None:
                continue
            already = sum(r.quantity_for(line.id) for r in live)
            if already + mapped.quantity > line.quantity:
                raise ValidationError(
                    f"{line.product_name}: cannot return {already + mapped.quantity} of {line.quantity} ordered"
                )

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    async def record_quality_check(
        self,
        return_id: str,
        passed: bool,
        notes: str | None = None,
        checked_by: str | None = None,
    ) -> ReturnRequest:
        ret = self.get(return_id)
        if not ret.can_edit():
            raise TerminalBusinessError(f"Quality check can only be recorded on a pending return, not {ret.status}")

        payload = {"quality_check": {"passed": passed, "notes": notes, "checked_by": checked_by}}
        (await self.backend.update_return(return_id, payload)).unwrap()
        current_domain.process(
            RecordQualityCheck(return_id=return_id, passed=passed, notes=notes, checked_by=checked_by),
            asynchronous=False,
        )
        logger.info("Return quality checked", return_id=return_id, passed=passed)
        return self.get(return_id)

    async def approve(
        self,
        return_id: str,
        refund_amount: float | None = None,
        processing_fee: float | None = None,
    ) -> ReturnRequest:
        ret = self.get(return_id)
        if not ret.can_approve():
            if ret.can_edit():
                raise TerminalBusinessError("A passing quality check is required before approval")
            raise TerminalBusinessError(f"Cannot approve return {return_id} from {ret.status}")
        if (refund_amount is not None and refund_amount < 0) or (processing_fee is not None and processing_fee < 0):
            raise ValidationError("Refund amount and processing fee must not be negative")

        payload = {"refund_amount": refund_amount, "processing_fee": processing_fee}
        (await self.backend.approve_return(return_id, payload)).unwrap()
        current_domain.process(
            RecordReturnApproval(return_id=return_id, refund_amount=refund_amount, processing_fee=processing_fee),
            asynchronous=False,
        )
        logger.info("Return approved", return_id=return_id)
        return self.get(return_id)

    async def reject(self, return_id: str, reason: str) -> ReturnRequest:
        if not (reason or "").strip():
            raise ValidationError("A rejection reason is required")
        ret = self.get(return_id)
        if not ret.can_reject():
            raise TerminalBusinessError(f"Cannot reject return {return_id} from {ret.status}")

        (await self.backend.reject_return(return_id, {"reason": reason})).unwrap()
        current_domain.process(RecordReturnRejection(return_id=return_id, reason=reason), asynchronous=False)
        logger.info("Return rejected", return_id=return_id, reason=reason)
        return self.get(return_id)

    async def process(self, return_id: str, restore_inventory: bool = True) -> ReturnRequest:
        """Receive the goods back, reactivating real units and topping up batch stock otherwise."""
        ret = self.get(return_id)
        if not ret.can_process():
            raise TerminalBusinessError(f"Cannot process return {return_id} from {ret.status}")

        actions = ret.restock_plan(restore_inventory)
        payload = {"restore_inventory": restore_inventory, "restock": actions}
        (await self.backend.process_return(return_id, payload)).unwrap()
        current_domain.process(
            RecordReturnProcessed(return_id=return_id, restore_inventory=restore_inventory),
            asynchronous=False,
        )
        logger.info("Return processed", return_id=return_id, restock_actions=len(actions))
        return self.get(return_id)

    async def complete(self, return_id: str) -> ReturnRequest:
        ret = self.get(return_id)
        if not ret.can_complete():
            raise TerminalBusinessError(f"Cannot complete return {return_id} from {ret.status}")

        (await self.backend.complete_return(return_id)).unwrap()
        current_domain.process(RecordReturnCompleted(return_id=return_id), asynchronous=False)
        logger.info("Return completed", return_id=return_id)
        return self.get(return_id)


def _validate_choice(name: str, value: str, choices) -> None:
    if value not in {c.value for c in choices}:
        raise ValidationError(f"Unknown {name}: {value}")
