"""Order snapshot contracts shared by fulfillment and aftersales.

Orders are owned by the remote order service. These frozen snapshots are what
the core reads; they are rebuilt from remote payloads with ``from_payload``
and never mutated in place.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class OrderStatus(Enum):
    PENDING = "pending"
    ASSIGNED_TO_STORE = "assigned_to_store"
    PICKING = "picking"
    READY_FOR_SHIPMENT = "ready_for_shipment"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class OrderLine:
    """One ordered product line.

    ``unit_code`` is the single base code the order service may attach to a
    line; ``unit_codes`` is the explicit per-unit list when the service
    tracks units individually (``None`` when it does not).
    """

    id: str
    product_id: str
    product_name: str
    quantity: int
    unit_price: float = 0.0
    unit_code: str | None = None
    unit_codes: tuple[str, ...] | None = None
    available_for_return: int | None = None
    consumed_unit: str | None = None

    @property
    def line_total(self) -> float:
        return round(self.quantity * self.unit_price, 2)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "OrderLine":
        codes = payload.get("unit_codes")
        quantity = payload.get("quantity")
        return cls(
            id=str(payload["id"]),
            product_id=str(payload["product_id"]),
            product_name=payload.get("product_name") or f"Product #{payload['product_id']}",
            quantity=1 if quantity is None else int(quantity),
            unit_price=float(payload.get("unit_price") or 0.0),
            unit_code=payload.get("unit_code"),
            unit_codes=tuple(codes) if codes is not None else None,
            available_for_return=payload.get("available_for_return"),
            consumed_unit=payload.get("consumed_unit"),
        )


@dataclass(frozen=True)
class Order:
    id: str
    order_number: str
    status: str = OrderStatus.PENDING.value
    items: tuple[OrderLine, ...] = field(default_factory=tuple)

    @property
    def total(self) -> float:
        return round(sum(item.line_total for item in self.items), 2)

    def item(self, item_id: str) -> OrderLine | None:
        return next((i for i in self.items if i.id == str(item_id)), None)

    def with_consumed_unit(self, item_id: str, code: str) -> "Order":
        items = tuple(replace(i, consumed_unit=code) if i.id == str(item_id) else i for i in self.items)
        return replace(self, items=items)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Order":
        return cls(
            id=str(payload["id"]),
            order_number=str(payload.get("order_number") or payload["id"]),
            status=payload.get("status") or OrderStatus.PENDING.value,
            items=tuple(OrderLine.from_payload(i) for i in payload.get("items") or []),
        )
