"""Scan resolver — assigns a scanned unit code to an unresolved order line.

The remote service is the only party that knows which product a code belongs
to, so each scan walks the unresolved lines in order and asks the service to
bind the code to each in turn:

    1. code shorter than the minimum length    -> Fatal("invalid format")
    2. code already consumed in this session   -> Duplicate
    3. no unresolved lines left                -> NoMatch("order already complete")
    4. for each unresolved line:
         product_mismatch                      -> try the next line
         any other remote error                -> Fatal(reason), stop
         success                               -> bind, Success, stop
    5. every line mismatched                   -> NoMatch

Worst case this costs one remote call per unresolved line. Scans within a
session are strictly sequential; different sessions run independently.
"""

import os

import structlog

from shared.errors import MismatchError, RetailOpsError, TerminalBusinessError
from shared.orders import Order

from fulfillment.assignment import get_assignment_service
from fulfillment.scanning.session import FulfillmentSession, ScanOutcome, ScanSeverity

logger = structlog.get_logger(__name__)

DEFAULT_MIN_CODE_LENGTH = 5


def min_code_length() -> int:
    return int(os.environ.get("SCAN_MIN_CODE_LENGTH", DEFAULT_MIN_CODE_LENGTH))


class ScanResolver:
    def __init__(self, service=None, min_length: int | None = None):
        self.service = service or get_assignment_service()
        self.min_length = min_code_length() if min_length is None else min_length

    async def open_session(self, order_id: str) -> FulfillmentSession:
        """Fetch the order and start a scanning session for it."""
        order = Order.from_payload((await self.service.get_order(order_id)).unwrap())
        session = FulfillmentSession(order)
        logger.info(
            "Fulfillment session opened",
            order_id=order.id,
            order_number=order.order_number,
            **session.progress(),
        )
        return session

    async def submit_scan(self, session: FulfillmentSession, code: str) -> ScanOutcome:
        """Resolve one scanned code. Every call records exactly one history entry."""
        code = (code or "").strip()
        async with session.lock:
            try:
                outcome = await self._resolve(session, code)
            except Exception as exc:
                session.record(code, ScanOutcome.fatal(str(exc)))
                raise
            session.record(code, outcome)

        logger.info(
            "Scan resolved",
            order_id=session.order_id,
            code=code,
            outcome=outcome.kind.value,
            message=outcome.message,
        )
        return outcome

    async def _resolve(self, session: FulfillmentSession, code: str) -> ScanOutcome:
        if session.closed:
            return ScanOutcome.fatal("session closed")
        if len(code) < self.min_length:
            return ScanOutcome.fatal("invalid format")
        if session.is_scanned(code):
            return ScanOutcome.duplicate("Barcode already scanned for this order")

        unresolved = session.unresolved_items()
        if not unresolved:
            return ScanOutcome.no_match("order already complete", severity=ScanSeverity.WARNING)

        for item in unresolved:
            try:
                result = await self.service.try_assign(session.order_id, item.id, code)
                result.unwrap()
            except MismatchError:
                logger.debug("Unit does not fit order line", order_id=session.order_id, order_item_id=item.id, code=code)
                continue
            except RetailOpsError as exc:
                return ScanOutcome.fatal(exc.message)

            session.consume(item.id, code)
            progress = session.progress()
            return ScanOutcome.success(
                product_name=item.product_name,
                order_item_id=item.id,
                message=(
                    f"{item.product_name} scanned successfully "
                    f"({progress['fulfilled_items']}/{progress['total_items']})"
                ),
            )

        return ScanOutcome.no_match("no remaining item accepts this code")

    async def finalize(self, session: FulfillmentSession) -> dict:
        """Mark the order ready for shipment. Only a complete session may finalize."""
        async with session.lock:
            if session.closed:
                raise TerminalBusinessError(f"Fulfillment session for order {session.order_number} is already finalized")
            if not session.is_complete():
                pending = session.progress()["pending_items"]
                raise TerminalBusinessError(f"{pending} item(s) have not been scanned yet")

            payload = (await self.service.mark_ready_for_shipment(session.order_id)).unwrap()
            session.close()

        logger.info("Order ready for shipment", order_id=session.order_id, order_number=session.order_number)
        return payload
