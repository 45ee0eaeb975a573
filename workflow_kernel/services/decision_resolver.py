"""
workflow_kernel.services.decision_resolver -- Apply one transition to one record.

Responsibility:
    Look up the transition table for a record, turn an illegal action into
    an ``INVALID`` (or ``STALE``) result with no write, and otherwise
    forward the patch to the storage collaborator and classify the outcome
    from the resulting ``request_status``.

Architecture position:
    Kernel > Services.  Thin coordinator over the pure transition tables
    (domain/transitions.py) and a ``RecordStore``.

Invariants enforced:
    - No write is attempted for an illegal action.
    - Exactly one read-modify-write per call.
    - ``modifiedData`` is cleared once a Modified proposal is decided;
      the store's history keeps the previous/current audit record.

Failure modes:
    - StorageFailureError / RecordNotFoundError / OptimisticLockError from
      the store propagate to the caller.  The resolver never retries.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from workflow_kernel.domain.records import Action, Record, RecordPatch, RequestStatus
from workflow_kernel.domain.transitions import (
    DRAFT_STATUS,
    InvalidTransition,
    TransitionContext,
    TransitionTable,
    transition,
)
from workflow_kernel.exceptions import (
    EmptyProposalError,
    InvalidTransitionError,
    StaleProposalError,
    WorkflowKernelError,
)
from workflow_kernel.logging_config import LogContext, get_logger, log_event
from workflow_kernel.services.record_store import RecordStore

logger = get_logger("services.decision_resolver")


class Outcome(str, Enum):
    """Classification of a single decision or proposal."""

    APPROVED = "approved"
    REJECTED = "rejected"
    PENDING = "pending"
    INVALID = "invalid"
    STALE = "stale"
    FAILED = "failed"
    UNCHANGED = "unchanged"


_OUTCOME_BY_REQUEST_STATUS = {
    RequestStatus.APPROVED: Outcome.APPROVED,
    RequestStatus.REJECTED: Outcome.REJECTED,
    RequestStatus.PENDING: Outcome.PENDING,
}


@dataclass(frozen=True)
class DecisionResult:
    """Typed result of one facade or resolver call.

    ``record`` is the stored record after the write, or the unchanged input
    record when nothing was written.
    """

    outcome: Outcome
    record: Record | None
    patch: RecordPatch | None = None
    error: WorkflowKernelError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error is not None else None

    @property
    def retryable(self) -> bool:
        return bool(self.error is not None and self.error.retryable)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "outcome": self.outcome.value,
            "record": self.record.to_wire() if self.record is not None else None,
            "error_code": self.error_code,
            "error": str(self.error) if self.error is not None else None,
            "retryable": self.retryable,
        }

    @classmethod
    def failure(cls, error: WorkflowKernelError, record: Record | None = None) -> DecisionResult:
        if isinstance(error, StaleProposalError):
            outcome = Outcome.STALE
        elif isinstance(error, InvalidTransitionError):
            outcome = Outcome.INVALID
        elif isinstance(error, EmptyProposalError):
            outcome = Outcome.UNCHANGED
        else:
            outcome = Outcome.FAILED
        return cls(outcome=outcome, record=record, error=error)


class DecisionResolver:
    """Resolves actions against records and writes the result through a store."""

    def __init__(
        self,
        store: RecordStore,
        table: TransitionTable | None = None,
    ):
        self._store = store
        self._table = table

    def resolve(
        self,
        record: Record,
        action: Action,
        context: TransitionContext,
    ) -> DecisionResult:
        """Apply ``action`` to ``record``.

        Returns an ``INVALID``/``STALE`` result without writing when the
        table refuses the action.
        """
        start = time.monotonic()
        action = Action(action)
        with LogContext.bind(
            entity_type=record.entity_type.value,
            entity_id=record.record_id,
            actor_id=context.actor.actor_id,
        ):
            result = transition(record, action, context, self._table)
            if isinstance(result, InvalidTransition):
                error = result.to_error(
                    None if record.status == DRAFT_STATUS else record.record_id
                )
                log_event(
                    logger, "decision", "transition_invalid",
                    action=action.value,
                    current_status=result.current_status,
                    request_status=record.request_status.value,
                    reason=result.reason,
                    error_code=error.code,
                )
                return DecisionResult.failure(error, record)

            patch = result
            if record.status == DRAFT_STATUS:
                created = replace(patch.apply_to(record, at=context.at), version=1, created_at=context.at)
                stored = self._store.insert_record(created)
            else:
                stored = self._store.write_record(
                    record.entity_type,
                    record.record_id,
                    patch,
                    actor_id=context.actor.actor_id,
                    expected_version=record.version,
                )

            outcome = _OUTCOME_BY_REQUEST_STATUS[RequestStatus(stored.request_status)]
            log_event(
                logger, "decision", "decision_resolved",
                action=action.value,
                from_status=None if record.status == DRAFT_STATUS else _plain(record.status),
                to_status=_plain(stored.status),
                request_status=stored.request_status.value,
                outcome=outcome.value,
                version=stored.version,
                duration_ms=round((time.monotonic() - start) * 1000, 3),
            )
            return DecisionResult(outcome=outcome, record=stored, patch=patch)


def _plain(value: Any) -> str:
    return getattr(value, "value", value)
