"""Exchange ledger — commands and handler.

The coordinator records each saga step here only after the step's own
service has confirmed it.
"""

import json

from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from aftersales.domain import aftersales
from aftersales.exchanges.exchange import Exchange, ExchangeStepName


@aftersales.command(part_of="Exchange")
class StartExchange:
    order_id = Identifier(required=True)
    request = Text(required=True)  # JSON of the exchange request


@aftersales.command(part_of="Exchange")
class RecordExchangeStep:
    exchange_id = Identifier(required=True)
    step = String(required=True, max_length=50)
    reference = String(max_length=255)
    amount = Float()


@aftersales.command(part_of="Exchange")
class RecordExchangeFailure:
    exchange_id = Identifier(required=True)
    step = String(required=True, max_length=50)
    reason = String(required=True, max_length=1000)


@aftersales.command(part_of="Exchange")
class ResumeExchange:
    exchange_id = Identifier(required=True)


@aftersales.command(part_of="Exchange")
class CompleteExchange:
    exchange_id = Identifier(required=True)


@aftersales.command_handler(part_of=Exchange)
class ExchangeLedgerHandler:
    @handle(StartExchange)
    def start_exchange(self, command):
        request = json.loads(command.request) if isinstance(command.request, str) else command.request
        exchange = Exchange.create(order_id=command.order_id, request=request)
        current_domain.repository_for(Exchange).add(exchange)
        return str(exchange.id)

    @handle(RecordExchangeStep)
    def record_step(self, command):
        repo = current_domain.repository_for(Exchange)
        exchange = repo.get(command.exchange_id)
        exchange.record_step(ExchangeStepName(command.step), command.reference, command.amount)
        repo.add(exchange)

    @handle(RecordExchangeFailure)
    def record_failure(self, command):
        repo = current_domain.repository_for(Exchange)
        exchange = repo.get(command.exchange_id)
        exchange.fail(command.step, command.reason)
        repo.add(exchange)

    @handle(ResumeExchange)
    def resume_exchange(self, command):
        repo = current_domain.repository_for(Exchange)
        exchange = repo.get(command.exchange_id)
        exchange.resume()
        repo.add(exchange)

    @handle(CompleteExchange)
    def complete_exchange(self, command):
        repo = current_domain.repository_for(Exchange)
        exchange = repo.get(command.exchange_id)
        exchange.complete()
        repo.add(exchange)
