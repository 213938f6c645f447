"""Exchange coordinator — drives return, refund and replacement order as one saga.

Steps, in ledger order:

    return:  create → quality check (auto-pass) → approve → process → complete
    refund:  create (full) → process → complete, each recorded without a
             refund when the return has nothing left to pay back
    order:   create replacement → complete

The first failing step aborts the saga with ``ExchangeAborted``. Completed
steps are not rolled back; they stay in the ledger and ``resume`` continues
from the first incomplete step, reusing the references recorded so far.

    net_settlement = refund amount - replacement order total
    (positive: owed to the customer, negative: the customer owes more)
"""

import json

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from shared.errors import ExchangeAborted, NotFoundError, TerminalBusinessError, ValidationError

from aftersales.backend import get_backend
from aftersales.exchanges.exchange import Exchange, ExchangeStatus, ExchangeStepName
from aftersales.exchanges.recording import (
    CompleteExchange,
    RecordExchangeFailure,
    RecordExchangeStep,
    ResumeExchange,
    StartExchange,
)
from aftersales.refunds.calculation import RefundType
from aftersales.refunds.lifecycle import RefundLifecycle
from aftersales.refunds.refund import RefundMethod
from aftersales.returns.lifecycle import ReturnLifecycle
from aftersales.returns.return_request import ReturnReason

logger = structlog.get_logger(__name__)


class ExchangeCoordinator:
    def __init__(self, backend=None, returns: ReturnLifecycle | None = None, refunds: RefundLifecycle | None = None):
        self.backend = backend or get_backend()
        self.returns = returns or ReturnLifecycle(self.backend)
        self.refunds = refunds or RefundLifecycle(self.backend)
        self._steps = {
            ExchangeStepName.RETURN_CREATED: self._create_return,
            ExchangeStepName.QUALITY_CHECKED: self._pass_quality_check,
            ExchangeStepName.RETURN_APPROVED: self._approve_return,
            ExchangeStepName.RETURN_PROCESSED: self._process_return,
            ExchangeStepName.RETURN_COMPLETED: self._complete_return,
            ExchangeStepName.REFUND_CREATED: self._create_refund,
            ExchangeStepName.REFUND_PROCESSING: self._process_refund,
            ExchangeStepName.REFUND_COMPLETED: self._complete_refund,
            ExchangeStepName.ORDER_CREATED: self._create_order,
            ExchangeStepName.ORDER_COMPLETED: self._complete_order,
        }

    def get(self, exchange_id: str) -> Exchange:
        try:
            return current_domain.repository_for(Exchange).get(exchange_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError(f"Exchange {exchange_id} not found") from exc

    async def run(
        self,
        order_id: str,
        codes: list[str],
        replacement_items: list[dict],
        reason: str = ReturnReason.WRONG_ITEM.value,
        refund_method: str = RefundMethod.CARD_REFUND.value,
        requested_quantities: dict[str, int] | None = None,
    ) -> Exchange:
        """Run a new exchange to completion, or raise ``ExchangeAborted``."""
        if not [c for c in codes if (c or "").strip()]:
            raise ValidationError("An exchange needs at least one returned unit")
        if not replacement_items:
            raise ValidationError("An exchange needs at least one replacement item")

        request = {
            "codes": list(codes),
            "replacement_items": replacement_items,
            "reason": reason,
            "refund_method": refund_method,
            "requested_quantities": requested_quantities,
        }
        exchange_id = current_domain.process(
            StartExchange(order_id=str(order_id), request=json.dumps(request)),
            asynchronous=False,
        )
        logger.info("Exchange started", exchange_id=exchange_id, order_id=str(order_id))
        return await self._drive(exchange_id)

    async def resume(self, exchange_id: str) -> Exchange:
        """Continue a failed exchange from its first incomplete step."""
        exchange = self.get(exchange_id)
        if exchange.status == ExchangeStatus.COMPLETED.value:
            raise TerminalBusinessError(f"Exchange {exchange_id} is already completed")

        current_domain.process(ResumeExchange(exchange_id=exchange_id), asynchronous=False)
        logger.info("Exchange resumed", exchange_id=exchange_id, completed_steps=exchange.completed_steps())
        return await self._drive(exchange_id)

    async def _drive(self, exchange_id: str) -> Exchange:
        while (step := self.get(exchange_id).next_step()) is not None:
            exchange = self.get(exchange_id)
            try:
                reference, amount = await self._steps[step](exchange)
            except Exception as exc:
                reason = getattr(exc, "message", None) or str(exc)
                current_domain.process(
                    RecordExchangeFailure(exchange_id=exchange_id, step=step.value, reason=reason),
                    asynchronous=False,
                )
                logger.error("Exchange aborted", exchange_id=exchange_id, step=step.value, reason=reason)
                raise ExchangeAborted(exchange_id, step.value, reason) from exc

            current_domain.process(
                RecordExchangeStep(exchange_id=exchange_id, step=step.value, reference=reference, amount=amount),
                asynchronous=False,
            )
            logger.debug("Exchange step completed", exchange_id=exchange_id, step=step.value, reference=reference)

        current_domain.process(CompleteExchange(exchange_id=exchange_id), asynchronous=False)
        exchange = self.get(exchange_id)
        logger.info(
            "Exchange completed",
            exchange_id=exchange_id,
            refund_amount=exchange.refund_amount,
            new_order_total=exchange.new_order_total,
            net_settlement=exchange.net_settlement,
            note=exchange.settlement_note,
        )
        return exchange

    # -------------------------------------------------------------------
    # Return steps
    # -------------------------------------------------------------------
    async def _create_return(self, exchange: Exchange):
        request = exchange.request_data
        ret = await self.returns.create_from_codes(
            str(exchange.order_id),
            request["codes"],
            request["reason"],
            requested_quantities=request.get("requested_quantities"),
            notes=f"Exchange {exchange.id}",
        )
        return str(ret.id), None

    async def _pass_quality_check(self, exchange: Exchange):
        await self.returns.record_quality_check(
            str(exchange.return_id), passed=True, notes="Automatic quality check for exchange"
        )
        return str(exchange.return_id), None

    async def _approve_return(self, exchange: Exchange):
        await self.returns.approve(str(exchange.return_id))
        return str(exchange.return_id), None

    async def _process_return(self, exchange: Exchange):
        await self.returns.process(str(exchange.return_id), restore_inventory=True)
        return str(exchange.return_id), None

    async def _complete_return(self, exchange: Exchange):
        await self.returns.complete(str(exchange.return_id))
        return str(exchange.return_id), None

    # -------------------------------------------------------------------
    # Refund steps
    # -------------------------------------------------------------------
    async def _create_refund(self, exchange: Exchange):
        ret = self.returns.get(str(exchange.return_id))
        if ret.net_refund() <= 0:
            # Nothing to pay back; the refund steps are recorded without a refund
            logger.info("Exchange refund skipped", exchange_id=str(exchange.id), return_id=str(ret.id))
            return None, 0.0

        refund = await self.refunds.create(
            str(exchange.return_id),
            refund_type=RefundType.FULL.value,
            method=exchange.request_data["refund_method"],
            notes=f"Exchange {exchange.id}",
        )
        return str(refund.id), refund.amount

    async def _process_refund(self, exchange: Exchange):
        if exchange.refund_id is None:
            return None, None
        await self.refunds.process(str(exchange.refund_id))
        return str(exchange.refund_id), None

    async def _complete_refund(self, exchange: Exchange):
        if exchange.refund_id is None:
            return None, None
        await self.refunds.complete(str(exchange.refund_id), transaction_reference=f"EXCHANGE-{exchange.id}")
        return str(exchange.refund_id), None

    # -------------------------------------------------------------------
    # Replacement order steps
    # -------------------------------------------------------------------
    async def _create_order(self, exchange: Exchange):
        items = exchange.request_data["replacement_items"]
        payload = {"source_order_id": str(exchange.order_id), "exchange_id": str(exchange.id), "items": items}
        data = (await self.backend.create_order(payload)).unwrap()
        total = data.get("total")
        if total is None:
            total = sum(int(i.get("quantity") or 1) * float(i.get("unit_price") or 0.0) for i in items)
        return str(data["id"]), round(float(total), 2)

    async def _complete_order(self, exchange: Exchange):
        (await self.backend.complete_order(str(exchange.new_order_id))).unwrap()
        return str(exchange.new_order_id), None
