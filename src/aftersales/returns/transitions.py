"""Return request transitions — commands and handler.

Each command records a transition the backend has confirmed. The aggregate
re-checks its own guards, so a stale or replayed command cannot move a
return into an illegal state.
"""

from protean import handle
from protean.fields import Boolean, Float, Identifier, String
from protean.utils.globals import current_domain

from aftersales.domain import aftersales
from aftersales.returns.return_request import ReturnRequest


@aftersales.command(part_of="ReturnRequest")
class RecordQualityCheck:
    return_id = Identifier(required=True)
    passed = Boolean(required=True)
    notes = String(max_length=1000)
    checked_by = String(max_length=100)


@aftersales.command(part_of="ReturnRequest")
class RecordReturnApproval:
    return_id = Identifier(required=True)
    refund_amount = Float(min_value=0.0)
    processing_fee = Float(min_value=0.0)


@aftersales.command(part_of="ReturnRequest")
class RecordReturnRejection:
    return_id = Identifier(required=True)
    reason = String(required=True, max_length=500)


@aftersales.command(part_of="ReturnRequest")
class RecordReturnProcessed:
    return_id = Identifier(required=True)
    restore_inventory = Boolean(default=True)


@aftersales.command(part_of="ReturnRequest")
class RecordReturnCompleted:
    return_id = Identifier(required=True)


@aftersales.command_handler(part_of=ReturnRequest)
class ReturnTransitionsHandler:
    @handle(RecordQualityCheck)
    def record_quality_check(self, command):
        repo = current_domain.repository_for(ReturnRequest)
        ret = repo.get(command.return_id)
        ret.record_quality_check(command.passed, command.notes, command.checked_by)
        repo.add(ret)

    @handle(RecordReturnApproval)
    def record_approval(self, command):
        repo = current_domain.repository_for(ReturnRequest)
        ret = repo.get(command.return_id)
        ret.approve(command.refund_amount, command.processing_fee)
        repo.add(ret)

    @handle(RecordReturnRejection)
    def record_rejection(self, command):
        repo = current_domain.repository_for(ReturnRequest)
        ret = repo.get(command.return_id)
        ret.reject(command.reason)
        repo.add(ret)

    @handle(RecordReturnProcessed)
    def record_processed(self, command):
        repo = current_domain.repository_for(ReturnRequest)
        ret = repo.get(command.return_id)
        ret.process(command.restore_inventory)
        repo.add(ret)

    @handle(RecordReturnCompleted)
    def record_completed(self, command):
        repo = current_domain.repository_for(ReturnRequest)
        ret = repo.get(command.return_id)
        ret.complete()
        repo.add(ret)
