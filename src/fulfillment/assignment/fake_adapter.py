"""Fake assignment service — deterministic in-memory fulfillment backend.

Holds a tiny unit registry (code -> product, status) and a set of orders.
Behaves like the remote scan endpoint: unknown codes are not_found, codes for
another product are product_mismatch, consumed codes are already_consumed.
Configurable failure for integration testing.
"""

import copy

from shared.errors import ErrorKind
from shared.remote import RemoteResult

from fulfillment.assignment.port import AssignmentPort


class FakeAssignmentService(AssignmentPort):
    """In-memory assignment oracle that succeeds by default."""

    def __init__(self) -> None:
        self.orders: dict[str, dict] = {}
        self.units: dict[str, dict] = {}
        self.calls: list[dict] = []
        self.should_succeed: bool = True
        self.failure_kind: ErrorKind = ErrorKind.TRANSIENT
        self.failure_reason: str = "Fulfillment service unavailable"

    def configure(
        self,
        should_succeed: bool = True,
        failure_kind: ErrorKind = ErrorKind.TRANSIENT,
        failure_reason: str = "Fulfillment service unavailable",
    ) -> None:
        """Configure the fake service behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_kind = failure_kind
        self.failure_reason = failure_reason

    # -------------------------------------------------------------------
    # Seeding helpers
    # -------------------------------------------------------------------
    def add_order(self, order_id: str, items: list[dict], order_number: str | None = None, status: str = "picking"):
        order = {
            "id": order_id,
            "order_number": order_number or f"ORD-{order_id}",
            "status": status,
            "items": [dict(item) for item in items],
        }
        self.orders[order_id] = order
        return order

    def add_unit(self, code: str, product_id: str, status: str = "available") -> None:
        self.units[code] = {"code": code, "product_id": product_id, "status": status, "order_item_id": None}

    # -------------------------------------------------------------------
    # Port implementation
    # -------------------------------------------------------------------
    async def get_order(self, order_id: str) -> RemoteResult:
        self.calls.append({"method": "get_order", "order_id": order_id})
        order = self.orders.get(order_id)
        if order is None:
            return RemoteResult.err(ErrorKind.NOT_FOUND, "Order not found or not assigned to your store")
        return RemoteResult.ok(copy.deepcopy(order))

    async def try_assign(self, order_id: str, order_item_id: str, code: str) -> RemoteResult:
        self.calls.append({"method": "try_assign", "order_id": order_id, "order_item_id": order_item_id, "code": code})

        if not self.should_succeed:
            return RemoteResult.err(self.failure_kind, self.failure_reason)

        order = self.orders.get(order_id)
        if order is None:
            return RemoteResult.err(ErrorKind.NOT_FOUND, "Order not found")
        item = next((i for i in order["items"] if str(i["id"]) == str(order_item_id)), None)
        if item is None:
            return RemoteResult.err(ErrorKind.NOT_FOUND, "Order item not found")

        unit = self.units.get(code)
        if unit is None:
            return RemoteResult.err(ErrorKind.NOT_FOUND, "Barcode not found or not available in this store")
        if unit["status"] != "available":
            return RemoteResult.err(ErrorKind.ALREADY_CONSUMED, f"Barcode {code} is not available ({unit['status']})")
        if item.get("consumed_unit"):
            return RemoteResult.err(ErrorKind.VALIDATION, "Item already scanned")
        if str(unit["product_id"]) != str(item["product_id"]):
            return RemoteResult.err(ErrorKind.PRODUCT_MISMATCH, "Barcode does not match the order item product")

        unit["status"] = "sold"
        unit["order_item_id"] = str(order_item_id)
        item["consumed_unit"] = code
        return RemoteResult.ok({"order_item": dict(item), "consumed_unit": dict(unit)})

    async def mark_ready_for_shipment(self, order_id: str) -> RemoteResult:
        self.calls.append({"method": "mark_ready_for_shipment", "order_id": order_id})

        if not self.should_succeed:
            return RemoteResult.err(self.failure_kind, self.failure_reason)

        order = self.orders.get(order_id)
        if order is None:
            return RemoteResult.err(ErrorKind.NOT_FOUND, "Order not found")
        if any(not i.get("consumed_unit") for i in order["items"]):
            return RemoteResult.err(
                ErrorKind.VALIDATION,
                "Cannot mark as ready for shipment. Please ensure all items are scanned.",
            )
        order["status"] = "ready_for_shipment"
        return RemoteResult.ok({"order": copy.deepcopy(order)})
