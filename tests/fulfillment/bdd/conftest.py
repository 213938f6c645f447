"""Shared BDD fixtures and step definitions for order scanning."""

import asyncio

from pytest_bdd import given


@given('order "ord-1" with a keyboard, a mouse and a monitor line', target_fixture="session")
def order_with_three_lines(resolver):
    return asyncio.run(resolver.open_session("ord-1"))
