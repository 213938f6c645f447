"""Refund transitions — commands and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from aftersales.domain import aftersales
from aftersales.refunds.refund import Refund


@aftersales.command(part_of="Refund")
class RecordRefundProcessing:
    refund_id = Identifier(required=True)


@aftersales.command(part_of="Refund")
class RecordRefundCompleted:
    refund_id = Identifier(required=True)
    transaction_reference = String(max_length=255)
    bank_reference = String(max_length=255)
    gateway_reference = String(max_length=255)


@aftersales.command(part_of="Refund")
class RecordRefundFailed:
    refund_id = Identifier(required=True)
    reason = String(required=True, max_length=500)


@aftersales.command(part_of="Refund")
class RecordRefundCancelled:
    refund_id = Identifier(required=True)
    reason = String(required=True, max_length=500)


@aftersales.command_handler(part_of=Refund)
class RefundTransitionsHandler:
    @handle(RecordRefundProcessing)
    def record_processing(self, command):
        repo = current_domain.repository_for(Refund)
        refund = repo.get(command.refund_id)
        refund.start_processing()
        repo.add(refund)

    @handle(RecordRefundCompleted)
    def record_completed(self, command):
        repo = current_domain.repository_for(Refund)
        refund = repo.get(command.refund_id)
        refund.complete(command.transaction_reference, command.bank_reference, command.gateway_reference)
        repo.add(refund)

    @handle(RecordRefundFailed)
    def record_failed(self, command):
        repo = current_domain.repository_for(Refund)
        refund = repo.get(command.refund_id)
        refund.fail(command.reason)
        repo.add(refund)

    @handle(RecordRefundCancelled)
    def record_cancelled(self, command):
        repo = current_domain.repository_for(Refund)
        refund = repo.get(command.refund_id)
        refund.cancel(command.reason)
        repo.add(refund)
