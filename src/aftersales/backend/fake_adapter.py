"""Fake aftersales backend — in-memory system of record for testing and development.

Holds orders, serialized units, per-product batch stock, returns and refunds.
Configurable failure behavior, globally or per operation, for exercising the
lifecycle services' error paths and the exchange saga's abort and resume.
"""

from collections import defaultdict, deque
from uuid import uuid4

from shared.errors import ErrorKind
from shared.remote import RemoteResult

from aftersales.backend.port import AftersalesBackend


class FakeAftersalesBackend(AftersalesBackend):
    """Fake backend that accepts every well-formed request by default."""

    def __init__(self):
        self.should_succeed = True
        self.failure_kind = ErrorKind.TRANSIENT
        self.failure_reason = "Backend unavailable"
        self.orders: dict[str, dict] = {}
        self.units: dict[str, dict] = {}
        self.batches: dict[str, int] = defaultdict(int)
        self.returns: dict[str, dict] = {}
        self.refunds: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self._scripted: dict[str, deque] = defaultdict(deque)

    def configure(
        self,
        should_succeed: bool = True,
        failure_kind: ErrorKind | str = ErrorKind.TRANSIENT,
        failure_reason: str = "Backend unavailable",
    ):
        """Configure the fake backend behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_kind = ErrorKind(failure_kind)
        self.failure_reason = failure_reason

    def fail_on(
        self,
        operation: str,
        kind: ErrorKind | str = ErrorKind.TRANSIENT,
        reason: str = "Scripted failure",
        times: int = 1,
    ) -> None:
        """Fail the next ``times`` calls of ``operation`` (a method name)."""
        for _ in range(times):
            self._scripted[operation].append((ErrorKind(kind), reason))

    def add_order(
        self,
        order_id: str,
        items: list[dict],
        order_number: str | None = None,
        status: str = "delivered",
    ) -> dict:
        order = {
            "id": str(order_id),
            "order_number": order_number or f"ORD-{order_id}",
            "status": status,
            "items": [dict(item) for item in items],
        }
        self.orders[str(order_id)] = order
        return order

    def add_unit(self, code: str, product_id: str, status: str = "sold") -> None:
        self.units[code] = {"product_id": str(product_id), "status": status}

    def _intercept(self, operation: str, *args) -> RemoteResult | None:
        self.calls.append((operation, *args))
        scripted = self._scripted.get(operation)
        if scripted:
            kind, reason = scripted.popleft()
            return RemoteResult.err(kind, reason)
        if not self.should_succeed:
            return RemoteResult.err(self.failure_kind, self.failure_reason)
        return None

    def _transition(self, store: dict, record_id: str, status: str, payload: dict | None = None) -> RemoteResult:
        record = store.get(str(record_id))
        if record is None:
            return RemoteResult.err(ErrorKind.NOT_FOUND, f"Record {record_id} not found")
        record.update(payload or {})
        record["status"] = status
        return RemoteResult.ok({"id": record["id"], "status": status})

    # Orders
    async def get_order(self, order_id: str) -> RemoteResult:
        if failure := self._intercept("get_order", order_id):
            return failure
        order = self.orders.get(str(order_id))
        if order is None:
            return RemoteResult.err(ErrorKind.NOT_FOUND, f"Order {order_id} not found")
        return RemoteResult.ok({**order, "items": [dict(i) for i in order["items"]]})

    async def create_order(self, payload: dict) -> RemoteResult:
        if failure := self._intercept("create_order", payload):
            return failure
        items = payload.get("items") or []
        if not items:
            return RemoteResult.err(ErrorKind.VALIDATION, "An order needs at least one item")
        order_id = f"ord-{uuid4().hex[:8]}"
        order = self.add_order(
            order_id,
            [{"id": f"{order_id}-{n}", **item} for n, item in enumerate(items, start=1)],
            order_number=f"EXC-{uuid4().hex[:6].upper()}",
            status="pending",
        )
        total = round(sum(int(i.get("quantity") or 1) * float(i.get("unit_price") or 0.0) for i in items), 2)
        order["total"] = total
        return RemoteResult.ok({"id": order_id, "order_number": order["order_number"], "total": total, "status": "pending"})

    async def complete_order(self, order_id: str) -> RemoteResult:
        if failure := self._intercept("complete_order", order_id):
            return failure
        return self._transition(self.orders, order_id, "completed")

    # Returns
    async def create_return(self, payload: dict) -> RemoteResult:
        if failure := self._intercept("create_return", payload):
            return failure
        if str(payload.get("order_id")) not in self.orders:
            return RemoteResult.err(ErrorKind.NOT_FOUND, f"Order {payload.get('order_id')} not found")
        if not payload.get("items"):
            return RemoteResult.err(ErrorKind.VALIDATION, "A return needs at least one item")
        return_id = f"ret-{uuid4().hex[:8]}"
        self.returns[return_id] = {**payload, "id": return_id, "status": "pending"}
        return RemoteResult.ok({"id": return_id, "status": "pending"})

    async def update_return(self, return_id: str, payload: dict) -> RemoteResult:
        if failure := self._intercept("update_return", return_id, payload):
            return failure
        record = self.returns.get(str(return_id))
        if record is None:
            return RemoteResult.err(ErrorKind.NOT_FOUND, f"Return {return_id} not found")
        record.update(payload)
        return RemoteResult.ok({"id": record["id"], "status": record["status"]})

    async def approve_return(self, return_id: str, payload: dict) -> RemoteResult:
        if failure := self._intercept("approve_return", return_id, payload):
            return failure
        return self._transition(self.returns, return_id, "approved", payload)

    async def reject_return(self, return_id: str, payload: dict) -> RemoteResult:
        if failure := self._intercept("reject_return", return_id, payload):
            return failure
        return self._transition(self.returns, return_id, "rejected", payload)

    async def process_return(self, return_id: str, payload: dict) -> RemoteResult:
        if failure := self._intercept("process_return", return_id, payload):
            return failure
        if str(return_id) not in self.returns:
            return RemoteResult.err(ErrorKind.NOT_FOUND, f"Return {return_id} not found")
        for action in payload.get("restock") or []:
            if action["action"] == "reactivate_unit":
                self.units.setdefault(action["unit_code"], {"product_id": action["product_id"]})
                self.units[action["unit_code"]]["status"] = "available"
            else:
                self.batches[action["product_id"]] += int(action["quantity"])
        return self._transition(self.returns, return_id, "processed")

    async def complete_return(self, return_id: str) -> RemoteResult:
        if failure := self._intercept("complete_return", return_id):
            return failure
        return self._transition(self.returns, return_id, "completed")

    # Refunds
    async def create_refund(self, payload: dict) -> RemoteResult:
        if failure := self._intercept("create_refund", payload):
            return failure
        if str(payload.get("return_id")) not in self.returns:
            return RemoteResult.err(ErrorKind.NOT_FOUND, f"Return {payload.get('return_id')} not found")
        refund_id = f"rfd-{uuid4().hex[:8]}"
        self.refunds[refund_id] = {**payload, "id": refund_id, "status": "pending"}
        return RemoteResult.ok({"id": refund_id, "status": "pending"})

    async def process_refund(self, refund_id: str) -> RemoteResult:
        if failure := self._intercept("process_refund", refund_id):
            return failure
        return self._transition(self.refunds, refund_id, "processing")

    async def complete_refund(self, refund_id: str, payload: dict) -> RemoteResult:
        if failure := self._intercept("complete_refund", refund_id, payload):
            return failure
        return self._transition(self.refunds, refund_id, "completed", payload)

    async def fail_refund(self, refund_id: str, payload: dict) -> RemoteResult:
        if failure := self._intercept("fail_refund", refund_id, payload):
            return failure
        return self._transition(self.refunds, refund_id, "failed", payload)

    async def cancel_refund(self, refund_id: str, payload: dict) -> RemoteResult:
        if failure := self._intercept("cancel_refund", refund_id, payload):
            return failure
        return self._transition(self.refunds, refund_id, "cancelled", payload)
