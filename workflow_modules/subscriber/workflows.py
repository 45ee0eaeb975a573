"""
Subscriber Workflows (``workflow_modules.subscriber.workflows``).

Responsibility
--------------
Declares the transition table for the subscriber lifecycle: creation
review, field modifications, the suspend/reactivate side flow, soft
deletion, renewal-date expiry and renewal by payment.

Architecture position
---------------------
**Modules layer** -- declarative table.  Imports ``Transition`` and
``TransitionTable`` from ``workflow_kernel.domain.transitions`` and
registers the table at import time.

Invariants enforced
-------------------
* Every ``(status, action)`` pair the subscriber lifecycle allows is
  listed here; anything else is an invalid transition.
* Approving or rejecting a ``Modified`` subscriber is not bulk-eligible:
  each proposal is reviewed against its own diff.
* ``renew`` never overrides a pending request; the subscriber keeps its
  proposal and the renewal is refused as stale.

Audit relevance
---------------
The table is logged at module-load time with status and transition
counts.
"""

from workflow_kernel.domain.records import Action, EntityType, RequestStatus
from workflow_kernel.domain.records import SubscriberStatus as S
from workflow_kernel.domain.transitions import (
    DRAFT_STATUS,
    Gate,
    Transition,
    TransitionTable,
    register_table,
)
from workflow_kernel.logging_config import get_logger

logger = get_logger("modules.subscriber.workflows")

PENDING = RequestStatus.PENDING
APPROVED = RequestStatus.APPROVED
REJECTED = RequestStatus.REJECTED


def _decision(from_status: S, action: Action, to_status: S, request_status: RequestStatus, **kw) -> Transition:
    return Transition(from_status, action, to_status, request_status, gate=Gate.DECISION, **kw)


# -----------------------------------------------------------------------------
# Decisions
# -----------------------------------------------------------------------------

_DECISIONS = (
    _decision(S.ADDED, Action.APPROVE, S.ACTIVE, APPROVED),
    _decision(S.ADDED, Action.REJECT, S.REJECTED, REJECTED),
    _decision(S.ACTIVE, Action.APPROVE, S.ACTIVE, APPROVED),
    _decision(S.ACTIVE, Action.REJECT, S.SUSPENDED, APPROVED),
    _decision(S.INACTIVE, Action.APPROVE, S.INACTIVE, APPROVED),
    _decision(S.INACTIVE, Action.REJECT, S.ACTIVE, APPROVED),
    _decision(S.SUSPENDED, Action.APPROVE, S.SUSPENDED, APPROVED),
    _decision(S.SUSPENDED, Action.REJECT, S.ACTIVE, APPROVED),
    _decision(
        S.MODIFIED, Action.APPROVE, S.ACTIVE, APPROVED,
        apply_modification=True, clear_modified_data=True, bulk_eligible=False,
    ),
    _decision(
        S.MODIFIED, Action.REJECT, S.REJECTED, REJECTED,
        clear_modified_data=True, bulk_eligible=False,
    ),
)

# -----------------------------------------------------------------------------
# Proposals and side flows
# -----------------------------------------------------------------------------

_PROPOSALS = (
    Transition(DRAFT_STATUS, Action.PROPOSE_CREATE, S.ADDED, PENDING),
    *(
        Transition(s, Action.PROPOSE_MODIFY, S.MODIFIED, PENDING, gate=Gate.PROPOSAL, records_modification=True)
        for s in (S.ACTIVE, S.INACTIVE, S.SUSPENDED, S.REJECTED)
    ),
    Transition(S.ACTIVE, Action.SUSPEND, S.SUSPENDED, PENDING, gate=Gate.PROPOSAL),
    Transition(S.INACTIVE, Action.SUSPEND, S.SUSPENDED, PENDING, gate=Gate.PROPOSAL),
    # Suspend on a suspended subscriber toggles it back
    Transition(S.SUSPENDED, Action.SUSPEND, S.ACTIVE, PENDING, gate=Gate.PROPOSAL),
    Transition(S.SUSPENDED, Action.REACTIVATE, S.ACTIVE, PENDING, gate=Gate.PROPOSAL),
)

_SYSTEM = (
    Transition(S.ACTIVE, Action.EXPIRE, S.INACTIVE, None),
    # A paid renewal brings the subscriber back to Active with new ISP dates
    *(
        Transition(s, Action.RENEW, S.ACTIVE, APPROVED, gate=Gate.PROPOSAL, copy_fields=("ispInfo",))
        for s in (S.ACTIVE, S.INACTIVE, S.SUSPENDED)
    ),
    *(
        Transition(s, Action.DELETE, S.DELETED, None, soft_delete=True)
        for s in S if s is not S.DELETED
    ),
)

SUBSCRIBER_TABLE = register_table(TransitionTable(
    EntityType.SUBSCRIBER,
    _DECISIONS + _PROPOSALS + _SYSTEM,
))

logger.info(
    "subscriber_workflow_registered",
    extra={
        "entity_type": SUBSCRIBER_TABLE.entity_type.value,
        "status_count": len(SUBSCRIBER_TABLE.statuses),
        "transition_count": len(SUBSCRIBER_TABLE),
    },
)
