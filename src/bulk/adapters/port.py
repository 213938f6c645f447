"""Bulk operation ports — abstract remote collaborators driven by the batch runner.

Every call returns a ``RemoteResult``; adapters never raise for business or
transport failures, they classify them with an error kind instead.
"""

from abc import ABC, abstractmethod

from shared.remote import RemoteResult


class CourierPort(ABC):
    """Courier integration used to hand orders over for delivery."""

    @abstractmethod
    async def bulk_dispatch(self, order_ids: list[str]) -> RemoteResult:
        """Dispatch orders to the courier.

        Returns:
            ok with keys: success (list of dispatched ids), failed (list of
            {order_id, reason})
        """
        ...


class PrinterPort(ABC):
    """Document printer. Only accepts one job at a time."""

    @abstractmethod
    async def print_document(self, document_id: str, document_type: str = "invoice") -> RemoteResult:
        """Print one document.

        Returns:
            ok with keys: document_id, job_id
        """
        ...


class CataloguePort(ABC):
    """Product catalogue service, rate limited for writes."""

    @abstractmethod
    async def create_variant(self, payload: dict) -> RemoteResult:
        """Create one product variant.

        Returns:
            ok with keys: variant_id, sku
        """
        ...
