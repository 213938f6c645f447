"""Application tests for the return lifecycle service."""

import asyncio

import pytest
from aftersales.returns.return_request import ReturnStatus
from shared.errors import (
    ConflictError,
    NotFoundError,
    TerminalBusinessError,
    TransientNetworkError,
    ValidationError,
)


def _ops(backend, name):
    return [c for c in backend.calls if c[0] == name]


class TestCreateReturn:
    def test_create_from_codes(self, returns, backend):
        ret = asyncio.run(returns.create_from_codes("ord-100", ["KB-0001", "HD-0001"], "defective_product"))

        assert ret.status == ReturnStatus.PENDING.value
        assert ret.id in backend.returns
        assert ret.order_number == "ORD-100"
        assert sorted(ret.unit_codes()) == ["HD-0001", "KB-0001"]
        assert ret.total_return_value == 200.0

    def test_invalid_mapping_never_reaches_backend(self, returns, backend):
        with pytest.raises(ValidationError, match="does not belong"):
            asyncio.run(returns.create_from_codes("ord-100", ["BOGUS"], "defective_product"))
        assert _ops(backend, "create_return") == []

    def test_unknown_reason(self, returns, mapper):
        mapping = asyncio.run(mapper.resolve("ord-100", ["KB-0001"]))
        with pytest.raises(ValidationError, match="Unknown reason"):
            asyncio.run(returns.create("ord-100", "bored", mapping))

    def test_mapping_for_another_order(self, returns, mapper):
        mapping = asyncio.run(mapper.resolve("ord-100", ["KB-0001"]))
        with pytest.raises(ValidationError, match="belongs to order"):
            asyncio.run(returns.create("ord-200", "defective_product", mapping))

    def test_unit_claimed_by_a_concurrent_return(self, returns, mapper):
        first = asyncio.run(mapper.resolve("ord-100", ["KB-0001"]))
        second = asyncio.run(mapper.resolve("ord-100", ["KB-0001"]))
        asyncio.run(returns.create("ord-100", "defective_product", first))

        with pytest.raises(ConflictError):
            asyncio.run(returns.create("ord-100", "defective_product", second))

    def test_concurrent_creation_respects_quantity(self, returns, mapper):
        mappings = [asyncio.run(mapper.resolve("ord-100", ["KB-0001"])) for _ in range(2)]

        async def create_both():
            return await asyncio.gather(
                *(returns.create("ord-100", "wrong_item", m) for m in mappings),
                return_exceptions=True,
            )

        results = asyncio.run(create_both())
        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert sum(1 for r in results if isinstance(r, ConflictError)) == 1

    def test_separate_services_cannot_claim_the_same_unit(self, yielding_backend):
        from aftersales.returns.lifecycle import ReturnLifecycle
        from aftersales.returns.queries import active_returns_for_order

        first, second = ReturnLifecycle(yielding_backend), ReturnLifecycle(yielding_backend)

        async def create_both():
            return await asyncio.gather(
                first.create_from_codes("ord-100", ["KB-0001"], "wrong_item"),
                second.create_from_codes("ord-100", ["KB-0001"], "wrong_item"),
                return_exceptions=True,
            )

        results = asyncio.run(create_both())
        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert sum(1 for r in results if isinstance(r, ConflictError)) == 1

        claims = [r for r in active_returns_for_order("ord-100") if "KB-0001" in r.unit_codes()]
        assert len(claims) == 1
        assert len(yielding_backend.returns) == 1

    def test_rejected_return_releases_units(self, returns):
        ret = asyncio.run(returns.create_from_codes("ord-100", ["KB-0001"], "defective_product"))
        asyncio.run(returns.reject(ret.id, "Customer withdrew"))

        again = asyncio.run(returns.create_from_codes("ord-100", ["KB-0001"], "defective_product"))
        assert again.status == ReturnStatus.PENDING.value

    def test_backend_failure_leaves_no_local_record(self, returns, backend):
        backend.fail_on("create_return", reason="Gateway timeout")
        with pytest.raises(TransientNetworkError):
            asyncio.run(returns.create_from_codes("ord-100", ["KB-0001"], "defective_product"))

        retry = asyncio.run(returns.create_from_codes("ord-100", ["KB-0001"], "defective_product"))
        assert retry.unit_codes() == ["KB-0001"]


class TestReturnTransitions:
    def test_full_lifecycle(self, returns, backend, completed_return):
        ret = asyncio.run(completed_return(returns, ["KB-0001", "ORD-100-prod-cb-1"]))

        assert ret.status == ReturnStatus.COMPLETED.value
        assert ret.quality_check_passed is True
        assert backend.returns[ret.id]["status"] == "completed"

    def test_approve_without_quality_check(self, returns, backend):
        ret = asyncio.run(returns.create_from_codes("ord-100", ["KB-0001"], "defective_product"))
        with pytest.raises(TerminalBusinessError, match="quality check"):
            asyncio.run(returns.approve(ret.id))
        assert _ops(backend, "approve_return") == []

    def test_guard_violation_never_reaches_backend(self, returns, backend):
        ret = asyncio.run(returns.create_from_codes("ord-100", ["KB-0001"], "defective_product"))
        with pytest.raises(TerminalBusinessError):
            asyncio.run(returns.complete(ret.id))
        assert _ops(backend, "complete_return") == []

    def test_backend_failure_keeps_local_state(self, returns, backend):
        ret = asyncio.run(returns.create_from_codes("ord-100", ["KB-0001"], "defective_product"))
        asyncio.run(returns.record_quality_check(ret.id, passed=True))
        backend.fail_on("approve_return")

        with pytest.raises(TransientNetworkError):
            asyncio.run(returns.approve(ret.id))
        assert returns.get(ret.id).status == ReturnStatus.PENDING.value

    def test_reject_requires_reason(self, returns):
        ret = asyncio.run(returns.create_from_codes("ord-100", ["KB-0001"], "defective_product"))
        with pytest.raises(ValidationError):
            asyncio.run(returns.reject(ret.id, "  "))

    def test_negative_amounts_rejected(self, returns):
        ret = asyncio.run(returns.create_from_codes("ord-100", ["KB-0001"], "defective_product"))
        asyncio.run(returns.record_quality_check(ret.id, passed=True))
        with pytest.raises(ValidationError):
            asyncio.run(returns.approve(ret.id, processing_fee=-1.0))

    def test_process_restocks_on_backend(self, returns, backend):
        ret = asyncio.run(
            returns.create_from_codes("ord-100", ["KB-0001", "ORD-100-prod-cb-1"], "defective_product")
        )
        asyncio.run(returns.record_quality_check(ret.id, passed=True))
        asyncio.run(returns.approve(ret.id))
        processed = asyncio.run(returns.process(ret.id))

        assert processed.status == ReturnStatus.PROCESSED.value
        assert backend.units["KB-0001"]["status"] == "available"
        assert backend.batches["prod-cb"] == 1
        assert "ORD-100-prod-cb-1" not in backend.units

    def test_process_without_restore(self, returns, backend):
        ret = asyncio.run(returns.create_from_codes("ord-100", ["KB-0001"], "defective_product"))
        asyncio.run(returns.record_quality_check(ret.id, passed=True))
        asyncio.run(returns.approve(ret.id))
        asyncio.run(returns.process(ret.id, restore_inventory=False))

        assert backend.units["KB-0001"]["status"] == "sold"

    def test_unknown_return(self, returns):
        with pytest.raises(NotFoundError):
            returns.get("ret-missing")
