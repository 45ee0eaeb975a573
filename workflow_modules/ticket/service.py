"""
Ticket Module Service (``workflow_modules.ticket.service``).

Responsibility
--------------
Binds the ticket transition table to the shared ``WorkflowFacade``.
Tickets carry no modification review: work is recorded directly with
``start_work`` and closed through ``resolve`` (note required), which a
decision-maker approves or kicks back for rework.

Invariants enforced
-------------------
* Tickets cannot be deleted; ``delete`` reports an invalid transition.
* ``ticketId`` is ``TKT-`` followed by ten digits.
"""

from __future__ import annotations

from workflow_kernel.domain.records import Action, ActorRef, EntityType
from workflow_kernel.services.decision_resolver import DecisionResult
from workflow_modules.facade import EntityDefinition, WorkflowFacade
from workflow_modules.ticket.workflows import TICKET_TABLE

TICKET_DEFINITION = EntityDefinition(
    entity_type=EntityType.TICKET,
    id_prefix="TKT-",
    id_digits=10,
    table=TICKET_TABLE,
    required_fields=(
        "subscriberId",
        "issueTitle",
        "issueDescription",
        "priority",
        "issueRaisedDate",
    ),
    side_actions=frozenset({Action.START_WORK, Action.RESOLVE}),
    system_actions=frozenset({Action.ESCALATE}),
    deletable=False,
)


class TicketWorkflow(WorkflowFacade):
    """Support ticket lifecycle operations."""

    definition = TICKET_DEFINITION

    def start_work(
        self,
        entity_id: str,
        actor: ActorRef,
        isp_ticket_id: str | None = None,
        note: str | None = None,
    ) -> DecisionResult:
        """Record the provider's ticket reference and move to In Progress."""
        extra = {"ispTicketId": isp_ticket_id, "note": note}
        return self.side_action(
            entity_id, Action.START_WORK, actor,
            extra={k: v for k, v in extra.items() if v is not None},
        )

    def resolve(self, entity_id: str, actor: ActorRef, note: str) -> DecisionResult:
        """Propose the ticket as resolved; the note is stored on the ticket."""
        return self.side_action(entity_id, Action.RESOLVE, actor, extra={"note": note})

    def escalate(self, entity_id: str, actor: ActorRef) -> DecisionResult:
        return self.system_action(entity_id, Action.ESCALATE, actor)
