"""BDD tests for exchanges."""

import asyncio

import pytest
from aftersales.exchanges.coordinator import ExchangeCoordinator
from pytest_bdd import given, parsers, scenarios, then, when
from shared.errors import ExchangeAborted

scenarios("features/exchange.feature")


@pytest.fixture()
def coordinator(backend, returns, refunds):
    return ExchangeCoordinator(backend, returns=returns, refunds=refunds)


@pytest.fixture()
def outcome():
    return {"exchange_id": None}


@given("the order service fails once")
def order_service_fails(backend):
    backend.fail_on("create_order", reason="Order service down")


@when(parsers.cfparse('unit "{code}" is exchanged for a replacement costing {price}'))
def run_exchange(coordinator, outcome, code, price):
    replacement = [{"product_id": "prod-kb2", "quantity": 1, "unit_price": float(price)}]
    try:
        exchange = asyncio.run(coordinator.run("ord-100", [code], replacement))
        outcome["exchange_id"] = exchange.id
    except ExchangeAborted as exc:
        outcome["exchange_id"] = exc.exchange_id


@when("the exchange is resumed")
def resume_exchange(coordinator, outcome):
    asyncio.run(coordinator.resume(outcome["exchange_id"]))


@then(parsers.cfparse('the exchange failed at step "{step}"'))
def exchange_failed_at(coordinator, outcome, step):
    exchange = coordinator.get(outcome["exchange_id"])
    assert exchange.status == "failed"
    assert exchange.failed_step == step


@then(parsers.cfparse('the exchange status is "{status}"'))
def exchange_status(coordinator, outcome, status):
    assert coordinator.get(outcome["exchange_id"]).status == status


@then(parsers.cfparse('the net settlement is {net} with note "{note}"'))
def net_settlement(coordinator, outcome, net, note):
    exchange = coordinator.get(outcome["exchange_id"])
    assert exchange.net_settlement == float(net)
    assert exchange.settlement_note == note


@then("only one return and one refund were created")
def single_return_and_refund(backend):
    assert len(backend.returns) == 1
    assert len(backend.refunds) == 1
