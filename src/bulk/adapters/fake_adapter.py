"""Fake bulk adapters — deterministic collaborators for testing and development.

Each fake records its calls and can be scripted to fail, either globally via
``configure`` or per item via ``fail_next``, which queues error kinds that are
returned, in order, before the item succeeds.
"""

from collections import defaultdict, deque
from uuid import uuid4

from shared.errors import ErrorKind
from shared.remote import RemoteResult

from bulk.adapters.port import CataloguePort, CourierPort, PrinterPort


class _ScriptedFake:
    def __init__(self):
        self.should_succeed = True
        self.failure_kind = ErrorKind.TRANSIENT
        self.failure_reason = "Service unavailable"
        self.calls: list = []
        self._scripted: dict[str, deque] = defaultdict(deque)

    def configure(
        self,
        should_succeed: bool = True,
        failure_kind: ErrorKind | str = ErrorKind.TRANSIENT,
        failure_reason: str = "Service unavailable",
    ):
        """Configure the fake behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_kind = ErrorKind(failure_kind)
        self.failure_reason = failure_reason

    def fail_next(self, key: str, *kinds: ErrorKind | str, reason: str = "Scripted failure") -> None:
        """Fail the next calls for ``key`` with the given kinds, then succeed."""
        for kind in kinds:
            self._scripted[str(key)].append((ErrorKind(kind), reason))

    def _failure_for(self, key: str) -> RemoteResult | None:
        scripted = self._scripted.get(str(key))
        if scripted:
            kind, reason = scripted.popleft()
            return RemoteResult.err(kind, reason)
        if not self.should_succeed:
            return RemoteResult.err(self.failure_kind, self.failure_reason)
        return None


class FakeCourier(_ScriptedFake, CourierPort):
    """Fake courier that dispatches everything by default.

    Order ids listed in ``rejected`` are reported in the ``failed`` part of a
    successful response, the way a courier refuses individual parcels.
    """

    def __init__(self):
        super().__init__()
        self.rejected: dict[str, str] = {}
        self.dispatched: list[str] = []

    def reject(self, order_id: str, reason: str = "Address not serviceable") -> None:
        self.rejected[str(order_id)] = reason

    async def bulk_dispatch(self, order_ids: list[str]) -> RemoteResult:
        self.calls.append(list(order_ids))
        for order_id in order_ids:
            failure = self._failure_for(order_id)
            if failure is not None:
                return failure

        success, failed = [], []
        for order_id in map(str, order_ids):
            if order_id in self.rejected:
                failed.append({"order_id": order_id, "reason": self.rejected[order_id]})
            else:
                success.append(order_id)
                self.dispatched.append(order_id)
        return RemoteResult.ok({"success": success, "failed": failed})


class FakePrinter(_ScriptedFake, PrinterPort):
    """Fake printer that accepts every job by default."""

    def __init__(self):
        super().__init__()
        self.printed: list[str] = []

    async def print_document(self, document_id: str, document_type: str = "invoice") -> RemoteResult:
        self.calls.append((document_id, document_type))
        failure = self._failure_for(document_id)
        if failure is not None:
            return failure
        self.printed.append(str(document_id))
        return RemoteResult.ok({"document_id": str(document_id), "job_id": f"job-{uuid4().hex[:8]}"})


class FakeCatalogue(_ScriptedFake, CataloguePort):
    """Fake catalogue that creates every variant by default."""

    def __init__(self):
        super().__init__()
        self.variants: dict[str, dict] = {}

    async def create_variant(self, payload: dict) -> RemoteResult:
        sku = str(payload.get("sku") or "")
        self.calls.append(dict(payload))
        if not sku:
            return RemoteResult.err(ErrorKind.VALIDATION, "Variant SKU is required")
        failure = self._failure_for(sku)
        if failure is not None:
            return failure
        if sku in self.variants:
            return RemoteResult.err(ErrorKind.ALREADY_CONSUMED, f"Variant {sku} already exists")
        variant_id = f"var-{uuid4().hex[:8]}"
        self.variants[sku] = {**payload, "variant_id": variant_id}
        return RemoteResult.ok({"variant_id": variant_id, "sku": sku})
