"""Application tests for ScanResolver against the fake assignment service."""

import asyncio

import pytest
from fulfillment.scanning.session import ScanOutcomeKind, ScanSeverity
from shared.errors import ErrorKind, NotFoundError, TerminalBusinessError


async def _open_and_scan(resolver, *codes):
    session = await resolver.open_session("ord-1")
    outcomes = [await resolver.submit_scan(session, code) for code in codes]
    return session, outcomes


class TestOpenSession:
    def test_loads_order_lines(self, resolver, run):
        session = run(resolver.open_session("ord-1"))
        assert session.order_number == "ORD-1001"
        assert len(session.items) == 3

    def test_unknown_order_raises_not_found(self, resolver, run):
        with pytest.raises(NotFoundError):
            run(resolver.open_session("ord-missing"))


class TestSuccessfulScans:
    def test_scans_complete_order_in_any_arrival_order(self, resolver, run):
        session, outcomes = run(_open_and_scan(resolver, "UNIT-MS-001", "UNIT-MN-001", "UNIT-KB-001"))
        assert [o.kind for o in outcomes] == [ScanOutcomeKind.SUCCESS] * 3
        assert session.is_complete()
        assert session.progress()["percentage"] == 100.0

    def test_success_names_the_product_and_progress(self, resolver, run):
        _, (outcome,) = run(_open_and_scan(resolver, "UNIT-MS-001"))
        assert outcome.product_name == "Wireless Mouse"
        assert outcome.order_item_id == "oi-b"
        assert outcome.message == "Wireless Mouse scanned successfully (1/3)"

    def test_mismatching_lines_are_skipped(self, resolver, service, run):
        run(_open_and_scan(resolver, "UNIT-MN-001"))
        attempted = [c["order_item_id"] for c in service.calls if c["method"] == "try_assign"]
        assert attempted == ["oi-a", "oi-b", "oi-c"]

    def test_code_is_trimmed_before_resolving(self, resolver, run):
        session, (outcome,) = run(_open_and_scan(resolver, "  UNIT-KB-001 \n"))
        assert outcome.kind == ScanOutcomeKind.SUCCESS
        assert session.consumed_units == {"oi-a": "UNIT-KB-001"}


class TestRejectedScans:
    def test_rescanning_a_code_is_duplicate(self, resolver, run):
        session, outcomes = run(_open_and_scan(resolver, "UNIT-MS-001", "UNIT-MS-001"))
        assert outcomes[1].kind == ScanOutcomeKind.DUPLICATE
        assert session.progress()["fulfilled_items"] == 1

    def test_duplicate_does_not_call_remote(self, resolver, service, run):
        run(_open_and_scan(resolver, "UNIT-MS-001"))
        calls_before = len(service.calls)
        session = run(resolver.open_session("ord-1"))
        run(resolver.submit_scan(session, "UNIT-MS-001"))
        assert len(service.calls) == calls_before + 1  # only get_order

    def test_short_code_is_fatal_without_remote_call(self, resolver, service, run):
        _, (outcome,) = run(_open_and_scan(resolver, "AB1"))
        assert outcome.kind == ScanOutcomeKind.FATAL
        assert outcome.message == "invalid format"
        assert not [c for c in service.calls if c["method"] == "try_assign"]

    def test_empty_code_is_fatal(self, resolver, run):
        _, (outcome,) = run(_open_and_scan(resolver, "   "))
        assert outcome.kind == ScanOutcomeKind.FATAL

    def test_unknown_code_stops_at_first_line(self, resolver, service, run):
        _, (outcome,) = run(_open_and_scan(resolver, "UNIT-ZZ-999"))
        assert outcome.kind == ScanOutcomeKind.FATAL
        assert "not found" in outcome.message
        assert len([c for c in service.calls if c["method"] == "try_assign"]) == 1

    def test_second_unit_of_a_scanned_product_is_no_match(self, resolver, run):
        _, outcomes = run(_open_and_scan(resolver, "UNIT-MS-001", "UNIT-MS-002"))
        assert outcomes[1].kind == ScanOutcomeKind.NO_MATCH
        assert outcomes[1].message == "no remaining item accepts this code"

    def test_scan_on_complete_order_is_no_match_warning(self, resolver, run):
        _, outcomes = run(_open_and_scan(resolver, "UNIT-KB-001", "UNIT-MS-001", "UNIT-MN-001", "UNIT-MS-002"))
        assert outcomes[3].kind == ScanOutcomeKind.NO_MATCH
        assert outcomes[3].message == "order already complete"
        assert outcomes[3].severity == ScanSeverity.WARNING

    def test_remote_failure_is_fatal_and_session_survives(self, resolver, service, run):
        async def scenario():
            session = await resolver.open_session("ord-1")
            service.configure(should_succeed=False, failure_kind=ErrorKind.TRANSIENT)
            failed = await resolver.submit_scan(session, "UNIT-KB-001")
            service.configure(should_succeed=True)
            recovered = await resolver.submit_scan(session, "UNIT-KB-001")
            return session, failed, recovered

        session, failed, recovered = run(scenario())
        assert failed.kind == ScanOutcomeKind.FATAL
        assert recovered.kind == ScanOutcomeKind.SUCCESS
        assert session.consumed_units == {"oi-a": "UNIT-KB-001"}

    def test_every_scan_records_one_history_entry(self, resolver, run):
        session, _ = run(_open_and_scan(resolver, "UNIT-MS-001", "UNIT-MS-001", "X", "UNIT-ZZ-999"))
        assert [e.outcome for e in session.history] == [
            ScanOutcomeKind.SUCCESS,
            ScanOutcomeKind.DUPLICATE,
            ScanOutcomeKind.FATAL,
            ScanOutcomeKind.FATAL,
        ]


class TestConcurrentScans:
    def test_concurrent_scans_of_one_code_bind_once(self, resolver, run):
        async def scenario():
            session = await resolver.open_session("ord-1")
            outcomes = await asyncio.gather(*(resolver.submit_scan(session, "UNIT-KB-001") for _ in range(3)))
            return session, outcomes

        session, outcomes = run(scenario())
        kinds = sorted(o.kind.value for o in outcomes)
        assert kinds == ["duplicate", "duplicate", "success"]
        assert session.consumed_units == {"oi-a": "UNIT-KB-001"}


class TestFinalize:
    def test_finalize_marks_order_ready(self, resolver, service, run):
        async def scenario():
            session, _ = await _open_and_scan(resolver, "UNIT-KB-001", "UNIT-MS-001", "UNIT-MN-001")
            return session, await resolver.finalize(session)

        session, payload = run(scenario())
        assert payload["order"]["status"] == "ready_for_shipment"
        assert service.orders["ord-1"]["status"] == "ready_for_shipment"
        assert session.closed is True

    def test_finalize_rejected_while_incomplete(self, resolver, service, run):
        async def scenario():
            session, _ = await _open_and_scan(resolver, "UNIT-KB-001")
            await resolver.finalize(session)

        with pytest.raises(TerminalBusinessError, match="2 item"):
            run(scenario())
        assert not [c for c in service.calls if c["method"] == "mark_ready_for_shipment"]

    def test_closed_session_rejects_scans_and_second_finalize(self, resolver, run):
        async def scenario():
            session, _ = await _open_and_scan(resolver, "UNIT-KB-001", "UNIT-MS-001", "UNIT-MN-001")
            await resolver.finalize(session)
            outcome = await resolver.submit_scan(session, "UNIT-MS-002")
            with pytest.raises(TerminalBusinessError):
                await resolver.finalize(session)
            return outcome

        outcome = run(scenario())
        assert outcome.kind == ScanOutcomeKind.FATAL
        assert outcome.message == "session closed"
