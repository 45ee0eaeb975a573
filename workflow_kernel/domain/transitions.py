"""
Transition tables (``workflow_kernel.domain.transitions``).

Responsibility
--------------
Pure value objects and the single lookup function that maps
``(entity_type, current_status, action, context)`` to the patch a
transition applies, or to an :class:`InvalidTransition` describing why
the action is not legal.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Tables are
declared per entity in ``workflow_modules.<entity>.workflows`` and
registered here at import time.

Invariants enforced
-------------------
* Tables are total: any ``(status, action)`` pair not enumerated yields
  ``InvalidTransition``, never a silent no-op.
* Decision transitions require ``request_status == pending``.
* Proposal transitions require ``request_status != pending`` (at most
  one outstanding proposal per record).
* ``transition`` is deterministic: same inputs, same result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Mapping

from workflow_kernel.domain.records import (
    Action,
    ActorRef,
    EntityType,
    ModifiedData,
    Record,
    RecordPatch,
    RequestStatus,
)
from workflow_kernel.exceptions import (
    InvalidTransitionError,
    StaleProposalError,
    TransitionError,
)

# Status of a record that does not exist yet; source of propose_create.
DRAFT_STATUS = "__draft__"


class Gate(str, Enum):
    """Precondition on ``request_status`` checked before a transition fires."""

    DECISION = "decision"
    PROPOSAL = "proposal"
    NONE = "none"


@dataclass(frozen=True)
class Guard:
    """A condition on the record that must hold before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the table's
    ``GuardExecutor`` does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """One enumerated entry of a transition table.

    ``to_status`` / ``request_status`` of ``None`` leave the value unchanged.
    """
    from_status: str
    action: Action
    to_status: str | None
    request_status: RequestStatus | None
    gate: Gate = Gate.NONE
    guard: Guard | None = None
    bulk_eligible: bool = True
    apply_modification: bool = False
    clear_modified_data: bool = False
    records_modification: bool = False
    requires_note: bool = False
    soft_delete: bool = False
    copy_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class TransitionContext:
    """Caller-supplied inputs to a transition."""

    actor: ActorRef
    at: datetime
    remark: str | None = None
    note: str | None = None
    modification: ModifiedData | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)
    in_batch: bool = False


@dataclass(frozen=True)
class InvalidTransition:
    """Why an action is not legal for a record."""

    entity_type: EntityType
    current_status: str
    action: Action
    reason: str
    stale: bool = False

    def to_error(self, record_id: str | None) -> TransitionError:
        if self.stale:
            return StaleProposalError(
                self.entity_type.value, record_id or "", self.action.value
            )
        return InvalidTransitionError(
            self.entity_type.value,
            record_id,
            self.current_status,
            self.action.value,
            self.reason,
        )


GuardEvaluator = Callable[[Record, TransitionContext], bool]


class GuardExecutor:
    """Evaluates guards by name against a record and its context.

    A guard with no registered evaluator fails closed.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, GuardEvaluator] = {}

    def register(self, guard_name: str, evaluator: GuardEvaluator) -> None:
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, record: Record, context: TransitionContext) -> bool:
        fn = self._evaluators.get(guard.name)
        if fn is None:
            return False
        return bool(fn(record, context))


class TransitionTable:
    """Explicit enumeration of ``(status, action) -> Transition`` for one entity.

    Several transitions may share a key when they are distinguished by
    guards; the first whose guard passes wins.
    """

    def __init__(
        self,
        entity_type: EntityType,
        transitions: tuple[Transition, ...],
        guards: GuardExecutor | None = None,
    ) -> None:
        self.entity_type = entity_type
        self.transitions = transitions
        self.guards = guards or GuardExecutor()
        self._index: dict[tuple[str, Action], tuple[Transition, ...]] = {}
        for t in transitions:
            key = (_status_value(t.from_status), t.action)
            self._index[key] = self._index.get(key, ()) + (t,)

    def candidates(self, status: str, action: Action) -> tuple[Transition, ...]:
        return self._index.get((_status_value(status), action), ())

    def allowed_actions(self, status: str) -> tuple[Action, ...]:
        status = _status_value(status)
        seen: list[Action] = []
        for (from_status, action) in self._index:
            if from_status == status and action not in seen:
                seen.append(action)
        return tuple(seen)

    @property
    def statuses(self) -> tuple[str, ...]:
        out: list[str] = []
        for t in self.transitions:
            for s in (t.from_status, t.to_status):
                if s is not None and s != DRAFT_STATUS and _status_value(s) not in out:
                    out.append(_status_value(s))
        return tuple(out)

    def __len__(self) -> int:
        return len(self.transitions)


_TABLES: dict[EntityType, TransitionTable] = {}


def register_table(table: TransitionTable) -> TransitionTable:
    _TABLES[table.entity_type] = table
    return table


def get_table(entity_type: EntityType) -> TransitionTable:
    try:
        return _TABLES[entity_type]
    except KeyError:
        raise LookupError(
            f"No transition table registered for {entity_type.value}; "
            "import workflow_modules first"
        ) from None


def transition(
    record: Record,
    action: Action,
    context: TransitionContext,
    table: TransitionTable | None = None,
) -> RecordPatch | InvalidTransition:
    """
    Resolve ``action`` against ``record`` and return the patch to apply.

    Pure: reads only its arguments.  The returned patch has not been
    applied to anything.
    """
    table = table or get_table(record.entity_type)
    action = Action(action)

    def invalid(reason: str, stale: bool = False) -> InvalidTransition:
        return InvalidTransition(
            entity_type=record.entity_type,
            current_status=_status_value(record.status),
            action=action,
            reason=reason,
            stale=stale,
        )

    candidates = table.candidates(record.status, action)
    if not candidates:
        return invalid("no transition defined")

    chosen: Transition | None = None
    failed_guard: Guard | None = None
    for t in candidates:
        if t.guard is None or table.guards.evaluate(t.guard, record, context):
            chosen = t
            break
        failed_guard = t.guard
    if chosen is None:
        return invalid(f"guard {failed_guard.name} not satisfied" if failed_guard else "no transition defined")

    if chosen.gate is Gate.DECISION and record.request_status != RequestStatus.PENDING:
        return invalid("request already processed")
    if chosen.gate is Gate.PROPOSAL and record.request_status == RequestStatus.PENDING:
        return invalid("a request is already pending", stale=True)
    if context.in_batch and not chosen.bulk_eligible:
        return invalid("not eligible for bulk decisions")
    if chosen.requires_note and not (context.note or "").strip():
        return invalid("a note is required")
    if chosen.records_modification and context.modification is None:
        return invalid("no modification supplied")

    return _build_patch(chosen, record, context)


def _build_patch(t: Transition, record: Record, context: TransitionContext) -> RecordPatch:
    field_updates: dict[str, Any] = {}
    if t.apply_modification and record.modified_data is not None:
        field_updates.update(record.modified_data.current)
    if t.requires_note:
        field_updates["note"] = context.note.strip()
    for name in t.copy_fields:
        value = context.extra.get(name)
        if value is not None and value != "":
            field_updates[name] = value

    is_proposal = t.action in (Action.PROPOSE_CREATE, Action.PROPOSE_MODIFY)
    return RecordPatch(
        action=t.action,
        status=t.to_status,
        request_status=t.request_status,
        field_updates=field_updates,
        modified_data=context.modification if t.records_modification else None,
        clear_modified_data=t.clear_modified_data,
        remark=context.remark if is_proposal else None,
        decision_by=None if is_proposal else context.actor.actor_id,
        deleted_by=context.actor.actor_id if t.soft_delete else None,
        is_deleted=True if t.soft_delete else None,
    )


def _status_value(status: Any) -> str:
    return status.value if isinstance(status, Enum) else str(status)
