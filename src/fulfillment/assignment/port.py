"""Unit assignment port — abstract interface to the remote fulfillment service.

The remote service is the sole oracle for which order line a scanned unit may
satisfy. The scanning code programs against this port; adapters are swapped
via configuration.
"""

from abc import ABC, abstractmethod

from shared.remote import RemoteResult


class AssignmentPort(ABC):
    """Abstract interface for unit assignment adapters."""

    @abstractmethod
    async def get_order(self, order_id: str) -> RemoteResult:
        """Fetch the order being fulfilled.

        Returns:
            ok with the order payload (id, order_number, status, items[]).
        """
        ...

    @abstractmethod
    async def try_assign(self, order_id: str, order_item_id: str, code: str) -> RemoteResult:
        """Bind the scanned unit ``code`` to one order line.

        Returns:
            ok with keys: order_item, consumed_unit
            err with kind not_found, product_mismatch, already_consumed or validation
        """
        ...

    @abstractmethod
    async def mark_ready_for_shipment(self, order_id: str) -> RemoteResult:
        """Move a fully scanned order to ready-for-shipment."""
        ...
