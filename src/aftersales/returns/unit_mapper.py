"""Unit mapper — resolves returned unit codes to the order lines they came from.

Known units per order line, in order of precedence:

    explicit unit list from the backend      authoritative
    unit consumed by fulfillment scanning    authoritative
    base code on a quantity-1 line           authoritative
    base code on a multi-quantity line       <base>-<n>, placeholder
    nothing at all                           <order_number>-<product_id>-<n>, placeholder

Placeholder codes are deterministic so a customer can quote them back, but
they never identify a physical unit: they are flagged wherever they flow and
are never used to reactivate stock.

Hard errors (unknown code, code already in a live return, duplicate code,
unknown line) make the mapping invalid. Quantity shortfalls are only
warnings and are surfaced to the caller.
"""

from collections import Counter
from dataclasses import dataclass, field

import structlog

from shared.orders import Order, OrderLine

from aftersales.backend import get_backend
from aftersales.returns.queries import returned_codes, returned_quantities

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class KnownUnit:
    code: str
    order_item_id: str
    is_placeholder: bool = False


@dataclass
class MappedItem:
    order_item_id: str
    product_id: str
    product_name: str
    unit_price: float
    codes: list[str] = field(default_factory=list)
    placeholder_codes: list[str] = field(default_factory=list)

    @property
    def quantity(self) -> int:
        return len(self.codes)


@dataclass
class MappingResult:
    order_id: str
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    mapped_items: list[MappedItem] = field(default_factory=list)
    order: Order | None = None

    @property
    def total_quantity(self) -> int:
        return sum(m.quantity for m in self.mapped_items)


def known_units(order: Order) -> dict[str, KnownUnit]:
    """Every unit code the order can account for, keyed by code."""
    units: dict[str, KnownUnit] = {}
    sequence: Counter = Counter()
    for item in order.items:
        for code, placeholder in _codes_for(order, item, sequence):
            units.setdefault(code, KnownUnit(code, item.id, placeholder))
    return units


def _codes_for(order: Order, item: OrderLine, sequence: Counter) -> list[tuple[str, bool]]:
    if item.unit_codes is not None:
        return [(code, False) for code in item.unit_codes]
    if item.consumed_unit:
        return [(item.consumed_unit, False)]
    if item.unit_code and item.quantity == 1:
        return [(item.unit_code, False)]

    base = item.unit_code or f"{order.order_number}-{item.product_id}"
    codes = []
    for _ in range(item.quantity):
        sequence[base] += 1
        codes.append((f"{base}-{sequence[base]}", True))
    return codes


class UnitMapper:
    def __init__(self, backend=None):
        self.backend = backend or get_backend()

    async def load_order(self, order_id: str) -> Order:
        return Order.from_payload((await self.backend.get_order(order_id)).unwrap())

    async def resolve(
        self,
        order_id: str,
        candidate_codes: list[str],
        requested_quantities: dict[str, int] | None = None,
    ) -> MappingResult:
        """Map candidate codes to order lines and validate return eligibility."""
        order = await self.load_order(order_id)
        units = known_units(order)
        already_returned = returned_codes(order.id)
        requested = {str(k): int(v) for k, v in (requested_quantities or {}).items()}

        errors: list[str] = []
        mapped: dict[str, MappedItem] = {}
        seen: set[str] = set()

        for raw in candidate_codes:
            code = (raw or "").strip()
            if not code:
                continue
            if code in seen:
                errors.append(f"Unit {code} is listed more than once")
                continue
            seen.add(code)

            unit = units.get(code)
            if unit is None:
                errors.append(f"Unit {code} does not belong to order {order.order_number}")
                continue
            if code in already_returned:
                errors.append(f"Unit {code} has already been returned")
                continue

            item = order.item(unit.order_item_id)
            entry = mapped.setdefault(
                item.id,
                MappedItem(item.id, item.product_id, item.product_name, item.unit_price),
            )
            entry.codes.append(code)
            if unit.is_placeholder:
                entry.placeholder_codes.append(code)

        for item_id in requested:
            if order.item(item_id) is None:
                errors.append(f"Order item {item_id} is not part of order {order.order_number}")

        warnings = self._quantity_warnings(order, units, already_returned, mapped, requested)

        # Keep order-line order so downstream return items are stable
        mapped_items = [mapped[i.id] for i in order.items if i.id in mapped]
        if not mapped_items and not errors:
            errors.append("No returnable units were supplied")

        result = MappingResult(
            order_id=order.id,
            valid=not errors,
            errors=errors,
            warnings=warnings,
            mapped_items=mapped_items,
            order=order,
        )
        logger.info(
            "Return units resolved",
            order_id=order.id,
            valid=result.valid,
            mapped=result.total_quantity,
            errors=len(errors),
            warnings=len(warnings),
        )
        return result

    def _quantity_warnings(
        self,
        order: Order,
        units: dict[str, KnownUnit],
        already_returned: set[str],
        mapped: dict[str, MappedItem],
        requested: dict[str, int],
    ) -> list[str]:
        warnings = []
        for item in order.items:
            mapped_count = mapped[item.id].quantity if item.id in mapped else 0
            wanted = requested.get(item.id)
            available = sum(
                1 for u in units.values() if u.order_item_id == item.id and u.code not in already_returned
            )
            if item.available_for_return is not None:
                available = min(available, item.available_for_return)

            if wanted is not None and wanted > available:
                warnings.append(f"{item.product_name}: Trying to return {wanted} but only {available} available")
            elif wanted is not None and wanted > mapped_count:
                warnings.append(f"{item.product_name}: Requested {wanted} but only {mapped_count} unit code(s) supplied")
            elif wanted is None and mapped_count > available:
                warnings.append(f"{item.product_name}: Trying to return {mapped_count} but only {available} available")
        return warnings

    async def eligible_items(self, order_id: str) -> list[dict]:
        """Per order line: ordered, returned and still returnable quantity, with each known unit."""
        order = await self.load_order(order_id)
        units = known_units(order)
        already_returned = returned_codes(order.id)
        returned = returned_quantities(order.id)

        eligible = []
        for item in order.items:
            returned_qty = returned.get(item.id, 0)
            available = max(0, item.quantity - returned_qty)
            if item.available_for_return is not None:
                available = min(available, item.available_for_return)
            eligible.append(
                {
                    "order_item_id": item.id,
                    "product_id": item.product_id,
                    "product_name": item.product_name,
                    "unit_price": item.unit_price,
                    "ordered_quantity": item.quantity,
                    "returned_quantity": returned_qty,
                    "available_quantity": available,
                    "units": [
                        {
                            "code": u.code,
                            "is_placeholder": u.is_placeholder,
                            "is_returned": u.code in already_returned,
                        }
                        for u in units.values()
                        if u.order_item_id == item.id
                    ],
                }
            )
        return eligible

    async def check_code(self, order_id: str, code: str) -> dict:
        order = await self.load_order(order_id)
        code = (code or "").strip()
        unit = known_units(order).get(code)
        if unit is None:
            return {
                "found": False,
                "order_item_id": None,
                "product_name": None,
                "is_placeholder": False,
                "can_return": False,
                "reason": f"Unit {code} does not belong to order {order.order_number}",
            }

        item = order.item(unit.order_item_id)
        returned = code in returned_codes(order.id)
        return {
            "found": True,
            "order_item_id": item.id,
            "product_name": item.product_name,
            "is_placeholder": unit.is_placeholder,
            "can_return": not returned,
            "reason": "Unit has already been returned" if returned else None,
        }

    @staticmethod
    def to_return_items(mapping: MappingResult) -> list[dict]:
        """One return item payload per mapped code."""
        return [
            {
                "order_item_id": item.order_item_id,
                "product_id": item.product_id,
                "product_name": item.product_name,
                "quantity": 1,
                "unit_price": item.unit_price,
                "unit_code": code,
                "is_placeholder": code in item.placeholder_codes,
            }
            for item in mapping.mapped_items
            for code in item.codes
        ]
