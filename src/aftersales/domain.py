"""Aftersales bounded context — returns, refunds and exchanges.

The authoritative return, refund and order records live in the remote
backend. The aggregates here are a read-through cache of them: lifecycle
services call the backend first and only record a change locally, through a
synchronously processed command, once the backend has confirmed it.
"""

from contextlib import contextmanager

from protean.domain import Domain

from shared.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

aftersales = Domain(name="aftersales")

_initialized = False


def init_aftersales() -> Domain:
    """Register the aftersales elements once per process and return the domain."""
    global _initialized
    if not _initialized:
        aftersales.init()
        _initialized = True
        logger.info("Domain initialized", domain=aftersales.name)
    return aftersales


@contextmanager
def aftersales_context():
    """Initialize the domain if needed and activate its context."""
    init_aftersales()
    with aftersales.domain_context():
        yield aftersales
