"""Return request creation — command and handler.

Records a return the backend has already accepted; the backend's id becomes
the aggregate's identity.
"""

import json

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from aftersales.domain import aftersales
from aftersales.returns.return_request import ReturnRequest, ReturnType


@aftersales.command(part_of="ReturnRequest")
class RecordReturnRequested:
    return_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_number = String(max_length=100)
    reason = String(required=True, max_length=50)
    return_type = String(max_length=50, default=ReturnType.CUSTOMER_RETURN.value)
    items = Text(required=True)  # JSON list of return item dicts
    notes = String(max_length=1000)


@aftersales.command_handler(part_of=ReturnRequest)
class RecordReturnRequestedHandler:
    @handle(RecordReturnRequested)
    def record_return_requested(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        ret = ReturnRequest.create(
            return_id=command.return_id,
            order_id=command.order_id,
            reason=command.reason,
            items_data=items_data,
            return_type=command.return_type,
            order_number=command.order_number,
            notes=command.notes,
        )
        current_domain.repository_for(ReturnRequest).add(ret)
        return str(ret.id)
