"""Refund creation — command and handler."""

from protean import handle
from protean.fields import DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from aftersales.domain import aftersales
from aftersales.refunds.refund import Refund


@aftersales.command(part_of="Refund")
class RecordRefundCreated:
    refund_id = Identifier(required=True)
    return_id = Identifier(required=True)
    order_id = Identifier()
    refund_type = String(required=True, max_length=50)
    method = String(required=True, max_length=50)
    original_amount = Float(required=True)
    processing_fee = Float(default=0.0)
    percentage = Float()
    amount = Float(required=True)
    notes = String(max_length=1000)
    store_credit_expires_at = DateTime()


@aftersales.command_handler(part_of=Refund)
class RecordRefundCreatedHandler:
    @handle(RecordRefundCreated)
    def record_refund_created(self, command):
        refund = Refund.create(
            refund_id=command.refund_id,
            return_id=command.return_id,
            refund_type=command.refund_type,
            method=command.method,
            original_amount=command.original_amount,
            amount=command.amount,
            processing_fee=command.processing_fee,
            percentage=command.percentage,
            order_id=command.order_id,
            notes=command.notes,
            store_credit_expires_at=command.store_credit_expires_at,
        )
        current_domain.repository_for(Refund).add(refund)
        return str(refund.id)
