"""Return request domain events — confirmed changes to a return request.

Each event is raised only after the backend accepted the change it describes.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from aftersales.domain import aftersales


@aftersales.event(part_of="ReturnRequest")
class ReturnRequested:
    """A return request was created for a set of order units."""

    __version__ = 1

    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String(required=True)
    return_type = String(required=True)
    items = Text(required=True)  # JSON list of return item dicts
    item_count = Integer(required=True)
    total_return_value = Float(required=True)
    requested_at = DateTime(required=True)


@aftersales.event(part_of="ReturnRequest")
class ReturnQualityChecked:
    """The returned goods were inspected."""

    __version__ = 1

    return_id = Identifier(required=True)
    passed = Boolean(required=True)
    notes = String()
    checked_at = DateTime(required=True)


@aftersales.event(part_of="ReturnRequest")
class ReturnApproved:
    __version__ = 1

    return_id = Identifier(required=True)
    total_refund_amount = Float(required=True)
    processing_fee = Float(required=True)
    approved_at = DateTime(required=True)


@aftersales.event(part_of="ReturnRequest")
class ReturnRejected:
    __version__ = 1

    return_id = Identifier(required=True)
    reason = String(required=True)
    previous_status = String(required=True)
    rejected_at = DateTime(required=True)


@aftersales.event(part_of="ReturnRequest")
class ReturnProcessed:
    """Returned units were put back into stock (or deliberately not)."""

    __version__ = 1

    return_id = Identifier(required=True)
    inventory_restored = Boolean(required=True)
    restock_actions = Text(required=True)  # JSON list of restock action dicts
    processed_at = DateTime(required=True)


@aftersales.event(part_of="ReturnRequest")
class ReturnCompleted:
    """The return is closed and may now back a refund."""

    __version__ = 1

    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    total_refund_amount = Float(required=True)
    completed_at = DateTime(required=True)
