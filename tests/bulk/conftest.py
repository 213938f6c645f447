import asyncio

import pytest
from bulk.adapters.fake_adapter import FakeCatalogue, FakeCourier, FakePrinter


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture()
def sleep():
    return RecordingSleep()


@pytest.fixture()
def courier():
    return FakeCourier()


@pytest.fixture()
def printer():
    return FakePrinter()


@pytest.fixture()
def catalogue():
    return FakeCatalogue()
