"""Aftersales backend port — the remote system of record for returns, refunds and orders.

All backend adapters must implement this interface. Lifecycle services call
it before recording anything locally; every method returns a
``RemoteResult`` carrying either the payload or a classified error.
"""

from abc import ABC, abstractmethod

from shared.remote import RemoteResult


class AftersalesBackend(ABC):
    """Abstract interface for aftersales backend adapters."""

    # Orders
    @abstractmethod
    async def get_order(self, order_id: str) -> RemoteResult:
        """Returns: ok with the order payload (id, order_number, status, items)."""
        ...

    @abstractmethod
    async def create_order(self, payload: dict) -> RemoteResult:
        """Returns: ok with keys id, order_number, total, status."""
        ...

    @abstractmethod
    async def complete_order(self, order_id: str) -> RemoteResult:
        ...

    # Returns
    @abstractmethod
    async def create_return(self, payload: dict) -> RemoteResult:
        """Returns: ok with keys id, status."""
        ...

    @abstractmethod
    async def update_return(self, return_id: str, payload: dict) -> RemoteResult:
        ...

    @abstractmethod
    async def approve_return(self, return_id: str, payload: dict) -> RemoteResult:
        ...

    @abstractmethod
    async def reject_return(self, return_id: str, payload: dict) -> RemoteResult:
        ...

    @abstractmethod
    async def process_return(self, return_id: str, payload: dict) -> RemoteResult:
        """Apply the restock actions in ``payload["restock"]`` and mark the return processed."""
        ...

    @abstractmethod
    async def complete_return(self, return_id: str) -> RemoteResult:
        ...

    # Refunds
    @abstractmethod
    async def create_refund(self, payload: dict) -> RemoteResult:
        """Returns: ok with keys id, status."""
        ...

    @abstractmethod
    async def process_refund(self, refund_id: str) -> RemoteResult:
        ...

    @abstractmethod
    async def complete_refund(self, refund_id: str, payload: dict) -> RemoteResult:
        ...

    @abstractmethod
    async def fail_refund(self, refund_id: str, payload: dict) -> RemoteResult:
        ...

    @abstractmethod
    async def cancel_refund(self, refund_id: str, payload: dict) -> RemoteResult:
        ...
