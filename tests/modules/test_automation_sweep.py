"""
Tests for the daily automation sweep: eligibility by date and status,
expiry and escalation through the batch processor, and stale records.
"""

from datetime import date, datetime

import pytest

from workflow_batch.domain.types import BatchOutcome
from workflow_batch.services.processor import BatchProcessor
from workflow_kernel.domain.records import EntityType, RequestStatus
from workflow_modules.automation import (
    ESCALATE_TICKETS,
    EXPIRE_SUBSCRIBERS,
    as_date,
    run_daily_sweep,
    run_sweep_task,
)

TODAY = date(2024, 7, 1)


def _subscriber(seed_record, record_id, status, renewal):
    return seed_record(
        EntityType.SUBSCRIBER, record_id, status,
        fields={"customerName": "Acme", "ispInfo": {"renewalDate": renewal}},
    )


def _ticket(seed_record, record_id, status, raised):
    return seed_record(
        EntityType.TICKET, record_id, status,
        fields={"issueTitle": "Link down", "issueRaisedDate": raised},
    )


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-07-01", date(2024, 7, 1)),
        ("2024-07-01T10:00:00Z", date(2024, 7, 1)),
        (datetime(2024, 7, 1, 23, 59), date(2024, 7, 1)),
        (date(2024, 7, 1), date(2024, 7, 1)),
        ("", None),
        (None, None),
        ("next tuesday", None),
    ],
)
def test_as_date(value, expected):
    assert as_date(value) == expected


class TestEligibility:

    def test_only_due_active_subscribers(self, subscribers, seed_record):
        _subscriber(seed_record, "SUB-10001", "Active", "2024-06-30")
        _subscriber(seed_record, "SUB-10002", "Active", "2024-07-01")
        _subscriber(seed_record, "SUB-10003", "Active", "2024-07-02")
        _subscriber(seed_record, "SUB-10004", "Suspended", "2024-06-01")
        _subscriber(seed_record, "SUB-10005", "Active", None)

        items = EXPIRE_SUBSCRIBERS.prepare_items(subscribers, TODAY)

        assert [i.record_id for i in items] == ["SUB-10001", "SUB-10002"]
        assert {i.current_status for i in items} == {"Active"}

    def test_unparseable_date_is_logged_and_skipped(self, subscribers, seed_record, captured_logs):
        _subscriber(seed_record, "SUB-10001", "Active", "soon")

        assert EXPIRE_SUBSCRIBERS.prepare_items(subscribers, TODAY) == ()
        skipped = [r for r in captured_logs() if r["message"] == "sweep_unparseable_date"]
        assert skipped[0]["record_id"] == "SUB-10001"

    def test_tickets_in_open_states(self, tickets, seed_record):
        _ticket(seed_record, "TKT-1000000001", "Open", "2024-06-30")
        _ticket(seed_record, "TKT-1000000002", "In Progress", "2024-07-01")
        _ticket(seed_record, "TKT-1000000003", "Resolved", "2024-06-01")
        _ticket(seed_record, "TKT-1000000004", "Critical", "2024-06-01")

        items = ESCALATE_TICKETS.prepare_items(tickets, TODAY)

        assert [i.record_id for i in items] == ["TKT-1000000001", "TKT-1000000002"]

    def test_unacknowledged_tickets_wait(self, tickets, seed_record):
        seed_record(
            EntityType.TICKET, "TKT-1000000001", "Open", request_status="pending",
            fields={"issueTitle": "Link down", "issueRaisedDate": "2024-06-30"},
        )
        _ticket(seed_record, "TKT-1000000002", "Open", "2024-06-30")

        items = ESCALATE_TICKETS.prepare_items(tickets, TODAY)

        assert [i.record_id for i in items] == ["TKT-1000000002"]


class TestSweep:

    def test_expire_task(self, subscribers, seed_record, actor, captured_logs):
        _subscriber(seed_record, "SUB-10001", "Active", "2024-06-30")
        _subscriber(seed_record, "SUB-10002", "Active", "2024-08-01")

        report = run_sweep_task(EXPIRE_SUBSCRIBERS, subscribers, actor, TODAY)

        assert report.success_count == 1
        expired = subscribers.get("SUB-10001")
        assert (expired.status, expired.request_status) == ("InActive", RequestStatus.APPROVED)
        assert subscribers.get("SUB-10002").status == "Active"
        completed = [r for r in captured_logs() if r["message"] == "sweep_task_completed"]
        assert completed[0]["task_type"] == "subscriber.expire"

    def test_record_changed_after_selection_is_stale(self, subscribers, seed_record, actor, approver):
        _subscriber(seed_record, "SUB-10001", "Active", "2024-06-30")
        _subscriber(seed_record, "SUB-10002", "Active", "2024-06-30")

        class SuspendFirst:
            """Processor stand-in that suspends one record before running."""

            def run_batch(self, items, handler):
                subscribers.suspend("SUB-10001", approver)
                return BatchProcessor().run_batch(items, handler)

        report = run_sweep_task(EXPIRE_SUBSCRIBERS, subscribers, actor, TODAY, processor=SuspendFirst())

        assert report.outcome == BatchOutcome.PARTIAL_FAILURE
        assert report.failed_ids == ("SUB-10001",)
        assert report.failures[0]["error_code"] == "STALE_RECORD"
        assert subscribers.get("SUB-10001").status == "Suspended"
        assert subscribers.get("SUB-10002").status == "InActive"

    def test_daily_sweep_covers_both_entities(self, subscribers, tickets, seed_record, actor):
        _subscriber(seed_record, "SUB-10001", "Active", "2024-06-30")
        _ticket(seed_record, "TKT-1000000001", "Open", "2024-06-28")
        _ticket(seed_record, "TKT-1000000002", "Open", "2024-07-05")

        reports = run_daily_sweep(subscribers, tickets, actor, TODAY)

        assert set(reports) == {"subscriber", "ticket"}
        assert reports["subscriber"].success_count == 1
        assert reports["ticket"].success_count == 1
        assert tickets.get("TKT-1000000001").status == "Critical"
        assert tickets.get("TKT-1000000002").status == "Open"

    def test_nothing_due(self, subscribers, tickets, actor):
        reports = run_daily_sweep(subscribers, tickets, actor, TODAY)
        assert all(r.total_items == 0 for r in reports.values())
        assert all(r.outcome == BatchOutcome.ALL_SUCCEEDED for r in reports.values())
