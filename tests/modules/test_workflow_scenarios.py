"""
End-to-end decision scenarios through the entity facades.
"""

from datetime import date

from workflow_batch.domain.types import BatchOutcome
from workflow_kernel.domain.records import EntityType, RequestStatus
from workflow_kernel.services.decision_resolver import Outcome
from workflow_modules.automation import run_daily_sweep


def test_scenario_added_subscriber_approved(subscribers, seed_record, approver):
    seed_record(EntityType.SUBSCRIBER, "SUB-10001", "Added", request_status="pending")

    result = subscribers.decide("SUB-10001", "approve", approver)

    assert result.outcome == Outcome.APPROVED
    assert (result.record.status, result.record.request_status) == ("Active", RequestStatus.APPROVED)


def test_scenario_expense_refund_rejection_returns_to_paid(payments, seed_record, approver):
    seed_record(
        EntityType.PAYMENT, "TR-1000000001", "Refunding",
        request_status="pending",
        fields={"transactionType": "Expense", "amount": "1200"},
    )

    result = payments.decide("TR-1000000001", "reject", approver)

    assert result.ok
    assert (result.record.status, result.record.request_status) == ("Paid", RequestStatus.APPROVED)


def test_scenario_modified_employee_approved(employees, seed_record, approver, store):
    seed_record(
        EntityType.EMPLOYEE, "EMP-30003", "Modified",
        request_status="pending",
        fields={"name": "Asha", "email": "asha@example.com", "roles": ["Support"]},
        modified_previous={"roles": ["Support"]},
        modified_current={"roles": ["HR"]},
    )

    result = employees.decide("EMP-30003", "approve", approver)

    live = store.read_record(EntityType.EMPLOYEE, "EMP-30003")
    assert result.ok
    assert live.fields["roles"] == ["HR"]
    assert live.fields["name"] == "Asha"
    assert (live.status, live.request_status) == ("Active", RequestStatus.APPROVED)
    assert live.modified_data is None


def test_scenario_resolved_ticket_kicked_back(tickets, seed_record, approver):
    seed_record(EntityType.TICKET, "TKT-1000000001", "Resolved", request_status="pending")

    result = tickets.decide("TKT-1000000001", "reject", approver)

    assert (result.record.status, result.record.request_status) == ("In Progress", RequestStatus.APPROVED)


def test_scenario_bulk_approval_skips_modified_subscribers(subscribers, seed_record, approver):
    ids = [f"SUB-1000{i}" for i in range(10)]
    modified = set(ids[2:5])
    for record_id in ids:
        if record_id in modified:
            seed_record(
                EntityType.SUBSCRIBER, record_id, "Modified",
                request_status="pending",
                modified_current={"siteName": "New"},
            )
        else:
            seed_record(EntityType.SUBSCRIBER, record_id, "Added", request_status="pending")

    report = subscribers.decide_batch(ids, "approve", approver)

    assert report.success_count == 7
    assert report.failure_count == 3
    assert sorted(report.failed_ids) == sorted(modified)
    assert {f["error_code"] for f in report.failures} == {"INVALID_TRANSITION"}
    assert report.outcome == BatchOutcome.PARTIAL_FAILURE
    for record_id in modified:
        assert subscribers.get(record_id).status == "Modified"


def test_pending_exclusivity(subscribers, seed_record, actor, subscriber_fields, store):
    seed_record(EntityType.SUBSCRIBER, "SUB-10001", "Active", fields=subscriber_fields)

    first = subscribers.suspend("SUB-10001", actor)
    writes = store.write_count
    edit = subscribers.propose("SUB-10001", {"siteName": "Chennai DC 2"}, actor)
    toggle = subscribers.suspend("SUB-10001", actor)

    assert (first.record.status, first.record.request_status) == ("Suspended", RequestStatus.PENDING)
    for result in (edit, toggle):
        assert result.outcome == Outcome.STALE
        assert result.error_code == "STALE_PROPOSAL"
    assert store.write_count == writes
    assert subscribers.get("SUB-10001").modified_data is None


def test_terminal_decision_is_not_repeated(subscribers, seed_record, approver, store):
    seed_record(EntityType.SUBSCRIBER, "SUB-10001", "Added", request_status="pending")

    first = subscribers.decide("SUB-10001", "approve", approver)
    writes = store.write_count
    second = subscribers.decide("SUB-10001", "approve", approver)

    assert first.ok
    assert second.outcome == Outcome.INVALID
    assert second.error_code == "INVALID_TRANSITION"
    assert store.write_count == writes


def _new_ticket(tickets, actor):
    return tickets.create(
        {
            "subscriberId": "SUB-10001",
            "issueTitle": "Link down",
            "issueDescription": "No sync since morning",
            "priority": "High",
            "issueRaisedDate": "2024-05-30",
        },
        actor,
    ).record.record_id


def test_new_ticket_is_acknowledged_before_work_starts(tickets, actor, approver):
    ticket_id = _new_ticket(tickets, actor)

    early = tickets.start_work(ticket_id, actor, isp_ticket_id="AIR-778")
    tickets.decide(ticket_id, "approve", approver)
    started = tickets.start_work(ticket_id, actor, isp_ticket_id="AIR-778")
    resolved = tickets.resolve(ticket_id, actor, note="Router replaced")
    closed = tickets.decide(ticket_id, "approve", approver)

    assert early.error_code == "STALE_PROPOSAL"
    assert (started.record.status, started.record.request_status) == ("In Progress", RequestStatus.APPROVED)
    assert (resolved.record.status, resolved.record.request_status) == ("Resolved", RequestStatus.PENDING)
    assert (closed.record.status, closed.record.request_status) == ("Resolved", RequestStatus.APPROVED)


def test_escalated_ticket_can_be_resolved(tickets, subscribers, actor, approver):
    ticket_id = _new_ticket(tickets, actor)
    today = date(2024, 7, 1)

    before_ack = run_daily_sweep(subscribers, tickets, actor, today)
    tickets.decide(ticket_id, "approve", approver)
    after_ack = run_daily_sweep(subscribers, tickets, actor, today)
    resolved = tickets.resolve(ticket_id, actor, note="Provider fixed the fibre cut")

    assert before_ack["ticket"].total_items == 0
    assert after_ack["ticket"].success_count == 1
    assert resolved.ok
    assert (resolved.record.status, resolved.record.request_status) == ("Resolved", RequestStatus.PENDING)
