"""
Ticket Workflows (``workflow_modules.ticket.workflows``).

Responsibility
--------------
Declares the support-ticket lifecycle: acknowledgement or cancellation of
a new ticket, work started against the provider's ticket, escalation of
overdue tickets, and the resolve/review loop.

Invariants enforced
-------------------
* ``resolve`` requires a non-empty note; the note is stored on the ticket.
* Rejecting a ``Resolved`` ticket sends it back to ``In Progress`` with
  ``request_status=approved`` for rework.
* Work starts, and escalation happens, only on an acknowledged ticket
  (``request_status`` not pending), so ``In Progress`` and ``Critical``
  tickets can always be resolved.
* Tickets are never deleted; ``Canceled`` is their end state.
"""

from workflow_kernel.domain.records import Action, EntityType, RequestStatus
from workflow_kernel.domain.records import TicketStatus as S
from workflow_kernel.domain.transitions import (
    DRAFT_STATUS,
    Gate,
    Transition,
    TransitionTable,
    register_table,
)
from workflow_kernel.logging_config import get_logger

logger = get_logger("modules.ticket.workflows")

PENDING = RequestStatus.PENDING
APPROVED = RequestStatus.APPROVED
REJECTED = RequestStatus.REJECTED

_DECISIONS = (
    Transition(S.OPEN, Action.APPROVE, S.OPEN, APPROVED, gate=Gate.DECISION),
    Transition(S.OPEN, Action.REJECT, S.CANCELED, REJECTED, gate=Gate.DECISION),
    Transition(S.RESOLVED, Action.APPROVE, S.RESOLVED, APPROVED, gate=Gate.DECISION),
    Transition(S.RESOLVED, Action.REJECT, S.IN_PROGRESS, APPROVED, gate=Gate.DECISION),
)

_PROPOSALS = (
    Transition(DRAFT_STATUS, Action.PROPOSE_CREATE, S.OPEN, PENDING),
    Transition(S.IN_PROGRESS, Action.RESOLVE, S.RESOLVED, PENDING, gate=Gate.PROPOSAL, requires_note=True),
    Transition(S.CRITICAL, Action.RESOLVE, S.RESOLVED, PENDING, gate=Gate.PROPOSAL, requires_note=True),
)

_WORK = (
    *(
        Transition(
            s, Action.START_WORK, S.IN_PROGRESS, None,
            gate=Gate.PROPOSAL, copy_fields=("ispTicketId", "note"),
        )
        for s in (S.OPEN, S.CRITICAL, S.IN_PROGRESS)
    ),
    Transition(S.OPEN, Action.ESCALATE, S.CRITICAL, None, gate=Gate.PROPOSAL),
    Transition(S.IN_PROGRESS, Action.ESCALATE, S.CRITICAL, None, gate=Gate.PROPOSAL),
)

TICKET_TABLE = register_table(TransitionTable(
    EntityType.TICKET,
    _DECISIONS + _PROPOSALS + _WORK,
))

logger.info(
    "ticket_workflow_registered",
    extra={
        "entity_type": TICKET_TABLE.entity_type.value,
        "status_count": len(TICKET_TABLE.statuses),
        "transition_count": len(TICKET_TABLE),
    },
)
