"""Refund domain events — confirmed changes to a refund."""

from protean.fields import DateTime, Float, Identifier, String

from aftersales.domain import aftersales


@aftersales.event(part_of="Refund")
class RefundCreated:
    """A refund was opened against a completed return."""

    __version__ = 1

    refund_id = Identifier(required=True)
    return_id = Identifier(required=True)
    refund_type = String(required=True)
    method = String(required=True)
    original_amount = Float(required=True)
    processing_fee = Float(required=True)
    amount = Float(required=True)
    created_at = DateTime(required=True)


@aftersales.event(part_of="Refund")
class RefundProcessingStarted:
    __version__ = 1

    refund_id = Identifier(required=True)
    started_at = DateTime(required=True)


@aftersales.event(part_of="Refund")
class RefundCompleted:
    """Money reached the customer."""

    __version__ = 1

    refund_id = Identifier(required=True)
    return_id = Identifier(required=True)
    amount = Float(required=True)
    transaction_reference = String()
    completed_at = DateTime(required=True)


@aftersales.event(part_of="Refund")
class RefundFailed:
    __version__ = 1

    refund_id = Identifier(required=True)
    reason = String(required=True)
    failed_at = DateTime(required=True)


@aftersales.event(part_of="Refund")
class RefundCancelled:
    __version__ = 1

    refund_id = Identifier(required=True)
    reason = String(required=True)
    previous_status = String(required=True)
    cancelled_at = DateTime(required=True)
