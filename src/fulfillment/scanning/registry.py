"""Session registry — exactly one live fulfillment session per order."""

import asyncio

import structlog

from fulfillment.scanning.resolver import ScanResolver
from fulfillment.scanning.session import FulfillmentSession, ScanOutcome

logger = structlog.get_logger(__name__)


class SessionRegistry:
    def __init__(self, resolver: ScanResolver | None = None):
        self.resolver = resolver or ScanResolver()
        self._sessions: dict[str, FulfillmentSession] = {}
        self._opening = asyncio.Lock()

    def __contains__(self, order_id: str) -> bool:
        return str(order_id) in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    async def open(self, order_id: str) -> FulfillmentSession:
        """Return the live session for the order, opening one if needed."""
        order_id = str(order_id)
        async with self._opening:
            session = self._sessions.get(order_id)
            if session is None:
                session = await self.resolver.open_session(order_id)
                self._sessions[order_id] = session
        return session

    async def scan(self, order_id: str, code: str) -> ScanOutcome:
        session = await self.open(order_id)
        return await self.resolver.submit_scan(session, code)

    async def finalize(self, order_id: str) -> dict:
        session = await self.open(order_id)
        payload = await self.resolver.finalize(session)
        self.discard(order_id)
        return payload

    def discard(self, order_id: str) -> None:
        if self._sessions.pop(str(order_id), None) is not None:
            logger.info("Fulfillment session discarded", order_id=str(order_id))
