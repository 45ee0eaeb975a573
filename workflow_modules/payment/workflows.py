"""
Payment Workflows (``workflow_modules.payment.workflows``).

Responsibility
--------------
Declares the transition table for income and expense transactions:
creation (``Received`` for income, ``Paid`` for expense), modification
review, the refund side flow and soft deletion.  Guards on
``transactionType`` pick the creation status and gate the refund
reversal.

Architecture position
---------------------
**Modules layer** -- declarative table plus the guard evaluators it needs.

Invariants enforced
-------------------
* Rejecting a ``Refunding`` expense returns it to ``Paid`` with
  ``request_status=approved``; rejecting a ``Refunding`` income is not a
  legal transition.
* ``Active`` is a legacy status; it only accepts approval.

Audit relevance
---------------
Guards and the table are logged at module-load time.
"""

from workflow_kernel.domain.records import Action, EntityType, RequestStatus, TransactionType
from workflow_kernel.domain.records import PaymentStatus as S
from workflow_kernel.domain.transitions import (
    DRAFT_STATUS,
    Gate,
    Guard,
    GuardExecutor,
    Transition,
    TransitionTable,
    register_table,
)
from workflow_kernel.logging_config import get_logger

logger = get_logger("modules.payment.workflows")

PENDING = RequestStatus.PENDING
APPROVED = RequestStatus.APPROVED
REJECTED = RequestStatus.REJECTED


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

IS_INCOME = Guard(
    name="is_income",
    description="Transaction type is Income",
)

IS_EXPENSE = Guard(
    name="is_expense",
    description="Transaction type is Expense",
)


def _transaction_type_is(expected: TransactionType):
    def evaluate(record, context) -> bool:
        return record.fields.get("transactionType") == expected.value
    return evaluate


PAYMENT_GUARDS = GuardExecutor()
PAYMENT_GUARDS.register(IS_INCOME.name, _transaction_type_is(TransactionType.INCOME))
PAYMENT_GUARDS.register(IS_EXPENSE.name, _transaction_type_is(TransactionType.EXPENSE))

logger.info(
    "payment_workflow_guards_defined",
    extra={"guards": [IS_INCOME.name, IS_EXPENSE.name]},
)


# -----------------------------------------------------------------------------
# Table
# -----------------------------------------------------------------------------

_DECISIONS = (
    Transition(S.PAID, Action.APPROVE, None, APPROVED, gate=Gate.DECISION),
    Transition(S.RECEIVED, Action.APPROVE, None, APPROVED, gate=Gate.DECISION),
    Transition(S.ACTIVE, Action.APPROVE, S.ACTIVE, APPROVED, gate=Gate.DECISION),
    Transition(S.REFUNDING, Action.APPROVE, S.REFUNDED, APPROVED, gate=Gate.DECISION),
    Transition(
        S.MODIFIED, Action.APPROVE, S.RECEIVED, APPROVED, gate=Gate.DECISION,
        apply_modification=True, clear_modified_data=True, bulk_eligible=False,
    ),
    Transition(S.PAID, Action.REJECT, S.REJECTED, REJECTED, gate=Gate.DECISION),
    Transition(S.RECEIVED, Action.REJECT, S.REJECTED, REJECTED, gate=Gate.DECISION),
    Transition(
        S.MODIFIED, Action.REJECT, S.REJECTED, REJECTED, gate=Gate.DECISION,
        clear_modified_data=True, bulk_eligible=False,
    ),
    # Reversal: a declined refund puts the expense back to Paid
    Transition(S.REFUNDING, Action.REJECT, S.PAID, APPROVED, gate=Gate.DECISION, guard=IS_EXPENSE),
)

_PROPOSALS = (
    Transition(DRAFT_STATUS, Action.PROPOSE_CREATE, S.RECEIVED, PENDING, guard=IS_INCOME),
    Transition(DRAFT_STATUS, Action.PROPOSE_CREATE, S.PAID, PENDING, guard=IS_EXPENSE),
    *(
        Transition(s, Action.PROPOSE_MODIFY, S.MODIFIED, PENDING, gate=Gate.PROPOSAL, records_modification=True)
        for s in (S.PAID, S.RECEIVED, S.REJECTED)
    ),
    *(
        Transition(s, Action.REFUND, S.REFUNDING, PENDING, gate=Gate.PROPOSAL)
        for s in (S.REJECTED, S.PAID, S.RECEIVED)
    ),
)

_SYSTEM = tuple(
    Transition(s, Action.DELETE, S.DELETED, None, soft_delete=True)
    for s in S if s is not S.DELETED
)

PAYMENT_TABLE = register_table(TransitionTable(
    EntityType.PAYMENT,
    _DECISIONS + _PROPOSALS + _SYSTEM,
    guards=PAYMENT_GUARDS,
))

logger.info(
    "payment_workflow_registered",
    extra={
        "entity_type": PAYMENT_TABLE.entity_type.value,
        "status_count": len(PAYMENT_TABLE.statuses),
        "transition_count": len(PAYMENT_TABLE),
    },
)
