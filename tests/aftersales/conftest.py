import asyncio

import pytest
from protean.integrations.pytest import DomainFixture

ORDER_ITEMS = [
    # One authoritative unit code per unit
    {
        "id": "oi-1",
        "product_id": "prod-kb",
        "product_name": "Mechanical Keyboard",
        "quantity": 1,
        "unit_price": 120.0,
        "unit_codes": ["KB-0001"],
    },
    # Two ordered, only one unit known to the backend
    {
        "id": "oi-2",
        "product_id": "prod-ms",
        "product_name": "Wireless Mouse",
        "quantity": 2,
        "unit_price": 40.0,
        "unit_codes": ["MS-0001"],
    },
    # No unit information at all
    {
        "id": "oi-3",
        "product_id": "prod-cb",
        "product_name": "USB-C Cable",
        "quantity": 2,
        "unit_price": 10.0,
    },
    # Single base code on a quantity-1 line
    {
        "id": "oi-4",
        "product_id": "prod-hd",
        "product_name": "Headset",
        "quantity": 1,
        "unit_price": 80.0,
        "unit_code": "HD-0001",
    },
]


@pytest.fixture(scope="session")
def aftersales_bed():
    from aftersales.domain import aftersales

    bed = DomainFixture(aftersales)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(aftersales_bed):
    with aftersales_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


def _seed(fake):
    fake.add_order("ord-100", ORDER_ITEMS, order_number="ORD-100")
    fake.add_unit("KB-0001", "prod-kb")
    fake.add_unit("MS-0001", "prod-ms")
    fake.add_unit("HD-0001", "prod-hd")
    return fake


@pytest.fixture()
def backend():
    from aftersales.backend import set_backend
    from aftersales.backend.fake_adapter import FakeAftersalesBackend

    fake = _seed(FakeAftersalesBackend())
    set_backend(fake)
    return fake


@pytest.fixture()
def yielding_backend():
    """A backend that suspends inside the calls that record returns and settle refunds."""
    from aftersales.backend import set_backend
    from aftersales.backend.fake_adapter import FakeAftersalesBackend

    class YieldingBackend(FakeAftersalesBackend):
        async def create_return(self, payload):
            await asyncio.sleep(0)
            return await super().create_return(payload)

        async def complete_refund(self, refund_id, payload):
            await asyncio.sleep(0)
            return await super().complete_refund(refund_id, payload)

    fake = _seed(YieldingBackend())
    set_backend(fake)
    return fake


@pytest.fixture()
def mapper(backend):
    from aftersales.returns.unit_mapper import UnitMapper

    return UnitMapper(backend)


@pytest.fixture()
def returns(backend):
    from aftersales.returns.lifecycle import ReturnLifecycle

    return ReturnLifecycle(backend)


@pytest.fixture()
def refunds(backend):
    from aftersales.refunds.lifecycle import RefundLifecycle

    return RefundLifecycle(backend)


async def complete_return(returns, codes, refund_amount=None, processing_fee=None, reason="defective_product"):
    """Drive a new return from creation to completed."""
    ret = await returns.create_from_codes("ord-100", codes, reason)
    await returns.record_quality_check(ret.id, passed=True, notes="Looks fine")
    await returns.approve(ret.id, refund_amount=refund_amount, processing_fee=processing_fee)
    await returns.process(ret.id)
    return await returns.complete(ret.id)


@pytest.fixture()
def completed_return():
    return complete_return
