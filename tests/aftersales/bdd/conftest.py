"""Shared BDD fixtures and step definitions for returns, refunds and exchanges."""

import asyncio

import pytest
from pytest_bdd import given, parsers, then
from shared.errors import RetailOpsError


@pytest.fixture()
def error():
    """Container for captured business errors."""
    return {"exc": None}


@pytest.fixture()
def attempt(error):
    """Run a coroutine, keeping a refused request in ``error`` instead of raising it."""

    def _attempt(coro):
        try:
            return asyncio.run(coro)
        except RetailOpsError as exc:
            error["exc"] = exc
            return None

    return _attempt


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a delivered order "{order_id}"'))
def delivered_order(backend, order_id):
    assert backend.orders[order_id]["status"] == "delivered"


@given(parsers.cfparse('a pending return for units "{codes}"'), target_fixture="ret")
def pending_return(returns, codes):
    return asyncio.run(returns.create_from_codes("ord-100", codes.split(","), "defective_product"))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the request is refused with "{message}"'))
def request_refused(error, message):
    assert error["exc"] is not None
    assert error["exc"].message == message
