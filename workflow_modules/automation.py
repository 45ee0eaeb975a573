"""
Daily automation sweep (``workflow_modules.automation``).

Responsibility
--------------
Applies the date-driven system transitions once per day:

* ``Active`` subscribers whose ``ispInfo.renewalDate`` is on or before
  today are expired to ``InActive``.
* Acknowledged ``Open`` / ``In Progress`` tickets whose ``issueRaisedDate``
  is on or before today are escalated to ``Critical``.  A ticket still
  awaiting acknowledgement is left for the next sweep.

Each sweep task selects its eligible records, then hands them to a
``BatchProcessor`` so the run gets the same per-item failure isolation
and reporting as a bulk decision.

Architecture position
---------------------
**Modules layer**.  Uses the entity facades (``system_action``) and
``workflow_batch``; never writes records itself.

Failure modes
-------------
* A record that changed between selection and processing fails with
  ``STALE_RECORD`` in the report; the rest of the sweep continues.
* Unparseable dates make a record ineligible; they are logged and skipped.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from workflow_kernel.domain.records import (
    Action,
    ActorRef,
    Record,
    SubscriberStatus,
    TicketStatus,
)
from workflow_kernel.logging_config import get_logger
from workflow_batch.domain.types import BatchItem, BatchReport
from workflow_batch.services.processor import BatchProcessor
from workflow_modules.facade import WorkflowFacade

logger = get_logger("modules.automation")


def as_date(value: Any) -> date | None:
    """Coerce a stored date (``date``, ``datetime`` or ISO string) to a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except ValueError:
        return None


@dataclass(frozen=True)
class SweepTask:
    """One date-driven system transition over one entity type.

    Contract:
        - ``prepare_items()`` returns the records eligible on ``today``,
          each carrying its current status for the stale check.
        - With ``skip_pending`` set, records awaiting a decision are not
          eligible.
        - Processing calls ``facade.system_action(record_id, action)``.
    """

    task_type: str
    description: str
    action: Action
    statuses: tuple[str, ...]
    date_field: str
    skip_pending: bool = False

    def prepare_items(self, facade: WorkflowFacade, today: date) -> tuple[BatchItem, ...]:
        items: list[BatchItem] = []
        for record in facade.list_records():
            if _status(record) not in self.statuses:
                continue
            if self.skip_pending and record.is_pending:
                continue
            due = as_date(record.get(self.date_field))
            if due is None:
                if record.get(self.date_field) is not None:
                    logger.warning(
                        "sweep_unparseable_date",
                        extra={
                            "task_type": self.task_type,
                            "record_id": record.record_id,
                            "date_field": self.date_field,
                        },
                    )
                continue
            if due <= today:
                items.append(BatchItem(record_id=record.record_id, current_status=_status(record)))
        return tuple(items)


EXPIRE_SUBSCRIBERS = SweepTask(
    task_type="subscriber.expire",
    description="Inactivate subscribers past their renewal date",
    action=Action.EXPIRE,
    statuses=(SubscriberStatus.ACTIVE.value,),
    date_field="ispInfo.renewalDate",
)

ESCALATE_TICKETS = SweepTask(
    task_type="ticket.escalate",
    description="Escalate open tickets raised on or before today",
    action=Action.ESCALATE,
    statuses=(TicketStatus.OPEN.value, TicketStatus.IN_PROGRESS.value),
    date_field="issueRaisedDate",
    skip_pending=True,
)


def run_sweep_task(
    task: SweepTask,
    facade: WorkflowFacade,
    actor: ActorRef,
    today: date,
    processor: BatchProcessor | None = None,
) -> BatchReport:
    """Select eligible records for ``task`` and process them as one batch."""
    items = task.prepare_items(facade, today)
    processor = processor or BatchProcessor(max_items=max(len(items), 1))

    def handle(item: BatchItem):
        return facade.system_action(
            item.record_id, task.action, actor, expected_status=item.current_status,
        )

    logger.info(
        "sweep_task_started",
        extra={"task_type": task.task_type, "eligible": len(items), "as_of": today.isoformat()},
    )
    report = processor.run_batch(items, handle)
    logger.info(
        "sweep_task_completed",
        extra={
            "task_type": task.task_type,
            "success_count": report.success_count,
            "failure_count": report.failure_count,
        },
    )
    return report


def run_daily_sweep(
    subscribers: WorkflowFacade,
    tickets: WorkflowFacade,
    actor: ActorRef,
    today: date,
) -> dict[str, BatchReport]:
    """Expire overdue subscribers and escalate overdue tickets.

    Returns one ``BatchReport`` per entity type, keyed by entity name.
    """
    return {
        subscribers.entity_type.value: run_sweep_task(EXPIRE_SUBSCRIBERS, subscribers, actor, today),
        tickets.entity_type.value: run_sweep_task(ESCALATE_TICKETS, tickets, actor, today),
    }


def _status(record: Record) -> str:
    return getattr(record.status, "value", record.status)
