"""Read helpers over locally recorded return requests."""

from protean.utils.globals import current_domain

from aftersales.returns.return_request import ReturnRequest, ReturnStatus


def returns_for_order(order_id: str) -> list[ReturnRequest]:
    repo = current_domain.repository_for(ReturnRequest)
    return list(repo._dao.query.filter(order_id=str(order_id)).all().items)


def active_returns_for_order(order_id: str) -> list[ReturnRequest]:
    """Every return for the order that still claims its units (anything not rejected)."""
    return [r for r in returns_for_order(order_id) if r.status != ReturnStatus.REJECTED.value]


def returned_codes(order_id: str) -> set[str]:
    return {code for r in active_returns_for_order(order_id) for code in r.unit_codes()}


def returned_quantities(order_id: str) -> dict[str, int]:
    quantities: dict[str, int] = {}
    for ret in active_returns_for_order(order_id):
        for item in ret.items or []:
            key = str(item.order_item_id)
            quantities[key] = quantities.get(key, 0) + item.quantity
    return quantities
