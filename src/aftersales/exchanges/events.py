"""Exchange domain events — progress of an exchange saga."""

from protean.fields import DateTime, Float, Identifier, String

from aftersales.domain import aftersales


@aftersales.event(part_of="Exchange")
class ExchangeStarted:
    __version__ = 1

    exchange_id = Identifier(required=True)
    order_id = Identifier(required=True)
    started_at = DateTime(required=True)


@aftersales.event(part_of="Exchange")
class ExchangeStepCompleted:
    """One saga step finished; ``reference`` points at what it produced."""

    __version__ = 1

    exchange_id = Identifier(required=True)
    step = String(required=True)
    reference = String()
    completed_at = DateTime(required=True)


@aftersales.event(part_of="Exchange")
class ExchangeFailed:
    __version__ = 1

    exchange_id = Identifier(required=True)
    step = String(required=True)
    reason = String(required=True)
    failed_at = DateTime(required=True)


@aftersales.event(part_of="Exchange")
class ExchangeResumed:
    __version__ = 1

    exchange_id = Identifier(required=True)
    from_step = String(required=True)
    resumed_at = DateTime(required=True)


@aftersales.event(part_of="Exchange")
class ExchangeCompleted:
    __version__ = 1

    exchange_id = Identifier(required=True)
    refund_amount = Float(required=True)
    new_order_total = Float(required=True)
    net_settlement = Float(required=True)
    completed_at = DateTime(required=True)
