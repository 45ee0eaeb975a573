"""
Employee Workflows (``workflow_modules.employee.workflows``).

Declares the employee lifecycle: onboarding review (``OnProcess``), role
and contact modifications, the deactivate/reactivate side flow and soft
deletion.  Registered with the kernel at import time.
"""

from workflow_kernel.domain.records import Action, EntityType, RequestStatus
from workflow_kernel.domain.records import EmployeeStatus as S
from workflow_kernel.domain.transitions import (
    DRAFT_STATUS,
    Gate,
    Transition,
    TransitionTable,
    register_table,
)
from workflow_kernel.logging_config import get_logger

logger = get_logger("modules.employee.workflows")

PENDING = RequestStatus.PENDING
APPROVED = RequestStatus.APPROVED
REJECTED = RequestStatus.REJECTED

_DECISIONS = (
    Transition(S.ON_PROCESS, Action.APPROVE, S.ACTIVE, APPROVED, gate=Gate.DECISION),
    Transition(S.ON_PROCESS, Action.REJECT, S.REJECTED, REJECTED, gate=Gate.DECISION),
    # Deactivation proposal: approve keeps InActive, reject restores Active
    Transition(S.INACTIVE, Action.APPROVE, S.INACTIVE, APPROVED, gate=Gate.DECISION),
    Transition(S.INACTIVE, Action.REJECT, S.ACTIVE, APPROVED, gate=Gate.DECISION),
    # Reactivation proposal: approve keeps Active, reject restores InActive
    Transition(S.ACTIVE, Action.APPROVE, S.ACTIVE, APPROVED, gate=Gate.DECISION),
    Transition(S.ACTIVE, Action.REJECT, S.INACTIVE, APPROVED, gate=Gate.DECISION),
    Transition(
        S.MODIFIED, Action.APPROVE, S.ACTIVE, APPROVED, gate=Gate.DECISION,
        apply_modification=True, clear_modified_data=True, bulk_eligible=False,
    ),
    Transition(
        S.MODIFIED, Action.REJECT, S.REJECTED, REJECTED, gate=Gate.DECISION,
        clear_modified_data=True, bulk_eligible=False,
    ),
)

_PROPOSALS = (
    Transition(DRAFT_STATUS, Action.PROPOSE_CREATE, S.ON_PROCESS, PENDING),
    *(
        Transition(s, Action.PROPOSE_MODIFY, S.MODIFIED, PENDING, gate=Gate.PROPOSAL, records_modification=True)
        for s in (S.ACTIVE, S.INACTIVE, S.REJECTED)
    ),
    Transition(S.ACTIVE, Action.DEACTIVATE, S.INACTIVE, PENDING, gate=Gate.PROPOSAL),
    Transition(S.INACTIVE, Action.REACTIVATE, S.ACTIVE, PENDING, gate=Gate.PROPOSAL),
)

_SYSTEM = tuple(
    Transition(s, Action.DELETE, S.DELETED, None, soft_delete=True)
    for s in S if s is not S.DELETED
)

EMPLOYEE_TABLE = register_table(TransitionTable(
    EntityType.EMPLOYEE,
    _DECISIONS + _PROPOSALS + _SYSTEM,
))

logger.info(
    "employee_workflow_registered",
    extra={
        "entity_type": EMPLOYEE_TABLE.entity_type.value,
        "status_count": len(EMPLOYEE_TABLE.statuses),
        "transition_count": len(EMPLOYEE_TABLE),
    },
)
