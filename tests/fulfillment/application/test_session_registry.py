"""Application tests for SessionRegistry: one live session per order."""

import asyncio

from fulfillment.scanning.registry import SessionRegistry
from fulfillment.scanning.session import ScanOutcomeKind


class TestSessionRegistry:
    def test_open_returns_the_same_session_for_an_order(self, resolver, run):
        registry = SessionRegistry(resolver)

        async def scenario():
            return await asyncio.gather(registry.open("ord-1"), registry.open("ord-1"))

        first, second = run(scenario())
        assert first is second
        assert len(registry) == 1

    def test_scan_goes_through_the_registered_session(self, resolver, run):
        registry = SessionRegistry(resolver)

        async def scenario():
            outcome = await registry.scan("ord-1", "UNIT-KB-001")
            session = await registry.open("ord-1")
            return outcome, session

        outcome, session = run(scenario())
        assert outcome.kind == ScanOutcomeKind.SUCCESS
        assert session.consumed_units == {"oi-a": "UNIT-KB-001"}

    def test_finalize_discards_the_session(self, resolver, run):
        registry = SessionRegistry(resolver)

        async def scenario():
            for code in ("UNIT-KB-001", "UNIT-MS-001", "UNIT-MN-001"):
                await registry.scan("ord-1", code)
            return await registry.finalize("ord-1")

        payload = run(scenario())
        assert payload["order"]["status"] == "ready_for_shipment"
        assert "ord-1" not in registry

    def test_discard_unknown_order_is_harmless(self, resolver):
        registry = SessionRegistry(resolver)
        registry.discard("ord-unknown")
        assert len(registry) == 0
