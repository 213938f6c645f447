import asyncio

import pytest
from fulfillment.assignment import set_assignment_service
from fulfillment.assignment.fake_adapter import FakeAssignmentService
from fulfillment.scanning.resolver import ScanResolver

ORDER_ITEMS = [
    {"id": "oi-a", "product_id": "prod-kb", "product_name": "Mechanical Keyboard", "quantity": 1, "unit_price": 120.0},
    {"id": "oi-b", "product_id": "prod-ms", "product_name": "Wireless Mouse", "quantity": 1, "unit_price": 40.0},
    {"id": "oi-c", "product_id": "prod-mn", "product_name": "27in Monitor", "quantity": 1, "unit_price": 300.0},
]

UNITS = {
    "UNIT-KB-001": "prod-kb",
    "UNIT-MS-001": "prod-ms",
    "UNIT-MS-002": "prod-ms",
    "UNIT-MN-001": "prod-mn",
}


@pytest.fixture()
def service():
    fake = FakeAssignmentService()
    fake.add_order("ord-1", ORDER_ITEMS, order_number="ORD-1001")
    for code, product_id in UNITS.items():
        fake.add_unit(code, product_id)
    set_assignment_service(fake)
    return fake


@pytest.fixture()
def resolver(service):
    return ScanResolver(service)


@pytest.fixture()
def run():
    """Drive a coroutine to completion from a synchronous test."""
    return asyncio.run
