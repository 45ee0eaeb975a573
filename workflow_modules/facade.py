"""
workflow_modules.facade -- Uniform action surface per entity.

Responsibility:
    The only writer of ``status`` / ``request_status`` / ``modifiedData``.
    Builds proposals from submitted forms, delegates every state change to
    the DecisionResolver, hands batch decisions to the BatchProcessor, and
    recovers workflow errors into typed ``DecisionResult`` values.

Architecture position:
    Modules layer.  Sits above the kernel services and ``workflow_batch``;
    each entity facade subclasses ``WorkflowFacade`` with an
    ``EntityDefinition``.

Invariants enforced:
    - At most one outstanding proposal per record.
    - A proposal that changes no tracked field is never written.
    - Identity fields are assigned once at creation and never proposed.
    - Workflow errors are returned, never swallowed and never raised past
      the facade (configuration and programming errors still raise).
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.diff import (
    DiffView,
    build_candidate,
    build_snapshot,
    compute_diff,
    render_diff,
)
from workflow_kernel.domain.records import (
    DECISION_ACTIONS,
    IDENTITY_FIELDS,
    Action,
    ActorRef,
    EntityType,
    ModifiedData,
    Record,
    RequestStatus,
)
from workflow_kernel.domain.transitions import (
    DRAFT_STATUS,
    InvalidTransition,
    TransitionContext,
    TransitionTable,
    transition,
)
from workflow_kernel.exceptions import (
    EmptyProposalError,
    IdentifierExhaustedError,
    InvalidTransitionError,
    StaleRecordError,
    WorkflowKernelError,
)
from workflow_kernel.logging_config import LogContext, configure_logging, get_logger, log_event
from workflow_kernel.services.decision_resolver import DecisionResolver, DecisionResult
from workflow_kernel.services.record_store import RecordStore

from workflow_batch.domain.types import (
    BatchItem,
    BatchProgress,
    BatchReport,
    CancellationToken,
)
from workflow_batch.services.processor import BatchProcessor

logger = get_logger("modules.facade")


@dataclass(frozen=True)
class EntityDefinition:
    """Everything the facade needs to know about one entity type."""

    entity_type: EntityType
    id_prefix: str
    id_digits: int
    table: TransitionTable
    tracked_fields: tuple[str, ...] = ()
    required_fields: tuple[str, ...] = ()
    side_actions: frozenset[Action] = field(default_factory=frozenset)
    system_actions: frozenset[Action] = field(default_factory=frozenset)
    deletable: bool = True


class WorkflowFacade:
    """Per-entity workflow operations over a ``RecordStore``."""

    definition: EntityDefinition

    def __init__(
        self,
        store: RecordStore,
        clock: Clock | None = None,
        processor: BatchProcessor | None = None,
        labels: Mapping[str, str] | None = None,
        identifier_attempts: int = 5,
        rng: random.Random | None = None,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._resolver = DecisionResolver(store, table=self.definition.table)
        self._processor = processor
        self._labels = dict(labels or {})
        self._identifier_attempts = identifier_attempts
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(
        cls,
        store: RecordStore,
        settings: Any,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> WorkflowFacade:
        """Build from ``workflow_config.WorkflowSettings``.

        Also installs structured logging at ``settings.logging.level`` when
        nothing has configured it yet.
        """
        configure_logging(level=settings.logging.level)
        return cls(
            store,
            clock=clock,
            processor=BatchProcessor.from_settings(settings.batch, clock=clock),
            labels=settings.labels_for(cls.definition.entity_type.value),
            identifier_attempts=settings.storage.identifier_attempts,
            rng=rng,
        )

    @property
    def entity_type(self) -> EntityType:
        return self.definition.entity_type

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, entity_id: str) -> Record:
        return self._store.read_record(self.entity_type, entity_id)

    def list_records(self, status: str | None = None, include_deleted: bool = False) -> list[Record]:
        return self._store.list_records(self.entity_type, status, include_deleted)

    def history(self, entity_id: str) -> list[dict[str, Any]]:
        return self._store.history(self.entity_type, entity_id)

    def allowed_actions(self, entity_id: str) -> tuple[Action, ...]:
        record = self.get(entity_id)
        return self.definition.table.allowed_actions(record.status)

    def render_changes(self, entity_id: str) -> DiffView:
        """Labelled before/after view of the record's pending modification."""
        record = self.get(entity_id)
        if record.modified_data is None:
            return DiffView()
        return render_diff(
            record.modified_data.previous,
            record.modified_data.current,
            self._labels,
        )

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def create(
        self,
        fields: Mapping[str, Any],
        actor: ActorRef,
        remark: str | None = None,
    ) -> DecisionResult:
        """Create a record in its initial status with ``request_status=pending``."""
        identity = IDENTITY_FIELDS[self.entity_type]
        rejected = self._check_form(fields)
        if rejected is not None:
            return rejected
        try:
            record_id = self._generate_id()
        except WorkflowKernelError as exc:
            return self._failed(Action.PROPOSE_CREATE, None, exc)

        draft = Record(
            entity_type=self.entity_type,
            record_id=record_id,
            status=DRAFT_STATUS,
            request_status=RequestStatus.PENDING,
            fields={k: v for k, v in fields.items() if k != identity},
            created_by=actor.actor_id,
        )
        return self._resolve(draft, Action.PROPOSE_CREATE, self._context(actor, remark=remark))

    def propose(
        self,
        entity_id: str,
        candidate: Mapping[str, Any],
        actor: ActorRef,
        remark: str | None = None,
    ) -> DecisionResult:
        """Propose a modification; the record moves to Modified/pending."""
        try:
            record = self.get(entity_id)
        except WorkflowKernelError as exc:
            return self._failed(Action.PROPOSE_MODIFY, None, exc)

        previous = build_snapshot(record.fields, self.definition.tracked_fields)
        current = build_candidate(record.fields, candidate, self.definition.tracked_fields)
        context = self._context(
            actor,
            remark=remark,
            modification=ModifiedData(
                previous=previous,
                current=current,
                modified_by=actor.actor_id,
                modified_at=self._clock.now(),
            ),
        )

        check = transition(record, Action.PROPOSE_MODIFY, context, self.definition.table)
        if isinstance(check, InvalidTransition):
            return self._failed(Action.PROPOSE_MODIFY, record, check.to_error(record.record_id))
        if not compute_diff(previous, current):
            return self._failed(
                Action.PROPOSE_MODIFY, record,
                EmptyProposalError(self.entity_type.value, record.record_id),
            )
        return self._resolve(record, Action.PROPOSE_MODIFY, context)

    def decide(
        self,
        entity_id: str,
        action: Action | str,
        actor: ActorRef,
        expected_status: str | None = None,
        in_batch: bool = False,
    ) -> DecisionResult:
        """Approve or reject the pending request on a record."""
        action = Action(action)
        if action not in DECISION_ACTIONS:
            return self._failed(action, None, InvalidTransitionError(
                self.entity_type.value, entity_id, None, action.value,
                "not a decision action",
            ))
        return self._act(entity_id, action, actor, expected_status=expected_status, in_batch=in_batch)

    def side_action(
        self,
        entity_id: str,
        action: Action | str,
        actor: ActorRef,
        extra: Mapping[str, Any] | None = None,
    ) -> DecisionResult:
        """Entity-specific action (suspend, refund, resolve ...)."""
        action = Action(action)
        if action not in self.definition.side_actions:
            return self._failed(action, None, InvalidTransitionError(
                self.entity_type.value, entity_id, None, action.value,
                f"not a {self.entity_type.value} action",
            ))
        return self._act(entity_id, action, actor, extra=extra)

    def system_action(
        self,
        entity_id: str,
        action: Action | str,
        actor: ActorRef,
        expected_status: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> DecisionResult:
        """Automated transition (expire, escalate, renew) with no approval step."""
        action = Action(action)
        if action not in self.definition.system_actions:
            return self._failed(action, None, InvalidTransitionError(
                self.entity_type.value, entity_id, None, action.value,
                "not a system action",
            ))
        return self._act(entity_id, action, actor, expected_status=expected_status, extra=extra)

    def delete(
        self,
        entity_id: str,
        actor: ActorRef,
        expected_status: str | None = None,
    ) -> DecisionResult:
        """Soft-delete: status Deleted, ``is_deleted`` set, row retained."""
        if not self.definition.deletable:
            return self._failed(Action.DELETE, None, InvalidTransitionError(
                self.entity_type.value, entity_id, None, Action.DELETE.value,
                f"{self.entity_type.value} records cannot be deleted",
            ))
        return self._act(entity_id, Action.DELETE, actor, expected_status=expected_status)

    def decide_batch(
        self,
        items: Iterable[BatchItem | str | Mapping[str, Any]],
        action: Action | str,
        actor: ActorRef,
        cancel_token: CancellationToken | None = None,
        on_progress: Callable[[BatchProgress], None] | None = None,
        batch_size: int | None = None,
    ) -> BatchReport:
        """Decide many records through the batch processor."""
        action = Action(action)

        def handle(item: BatchItem) -> DecisionResult:
            return self.decide(
                item.record_id, action, actor,
                expected_status=item.current_status,
                in_batch=True,
            )

        return self._run_batch(items, handle, batch_size, cancel_token, on_progress)

    def delete_batch(
        self,
        items: Iterable[BatchItem | str | Mapping[str, Any]],
        actor: ActorRef,
        cancel_token: CancellationToken | None = None,
        on_progress: Callable[[BatchProgress], None] | None = None,
        batch_size: int | None = None,
    ) -> BatchReport:
        """Soft-delete many records; already-deleted ones fail in the report."""

        def handle(item: BatchItem) -> DecisionResult:
            return self.delete(item.record_id, actor, expected_status=item.current_status)

        return self._run_batch(items, handle, batch_size, cancel_token, on_progress)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _run_batch(
        self,
        items: Iterable[Any],
        handle: Callable[[BatchItem], DecisionResult],
        batch_size: int | None,
        cancel_token: CancellationToken | None,
        on_progress: Callable[[BatchProgress], None] | None,
    ) -> BatchReport:
        if self._processor is None:
            self._processor = BatchProcessor(clock=self._clock)
        return self._processor.run_batch(
            [_to_batch_item(i) for i in items],
            handle,
            batch_size=batch_size,
            cancel_token=cancel_token,
            on_progress=on_progress,
        )

    def _act(
        self,
        entity_id: str,
        action: Action,
        actor: ActorRef,
        expected_status: str | None = None,
        extra: Mapping[str, Any] | None = None,
        in_batch: bool = False,
    ) -> DecisionResult:
        try:
            record = self.get(entity_id)
        except WorkflowKernelError as exc:
            return self._failed(action, None, exc)
        if expected_status is not None and _plain(expected_status) != _plain(record.status):
            return self._failed(action, record, StaleRecordError(
                self.entity_type.value, entity_id,
                _plain(expected_status), _plain(record.status),
            ))
        extra = dict(extra or {})
        context = self._context(
            actor,
            note=extra.get("note"),
            extra=extra,
            in_batch=in_batch,
        )
        return self._resolve(record, action, context)

    def _resolve(self, record: Record, action: Action, context: TransitionContext) -> DecisionResult:
        try:
            return self._resolver.resolve(record, action, context)
        except WorkflowKernelError as exc:
            return self._failed(action, record, exc)

    def _failed(
        self,
        action: Action,
        record: Record | None,
        error: WorkflowKernelError,
    ) -> DecisionResult:
        with LogContext.bind(
            entity_type=self.entity_type.value,
            entity_id=record.record_id if record is not None else getattr(error, "record_id", None),
        ):
            log_event(
                logger, "decision", "workflow_action_failed", logging.WARNING,
                action=action.value,
                error_code=error.code,
                retryable=error.retryable,
                error=str(error),
            )
        return DecisionResult.failure(error, record)

    def _check_form(self, fields: Mapping[str, Any]) -> DecisionResult | None:
        """Failure result for a creation form missing required fields, else None."""
        missing = [
            name for name in self.definition.required_fields
            if fields.get(name) in (None, "")
        ]
        if not missing:
            return None
        return DecisionResult.failure(InvalidTransitionError(
            self.entity_type.value, None, None, Action.PROPOSE_CREATE.value,
            f"missing required fields: {', '.join(missing)}",
        ))

    def _context(self, actor: ActorRef, **kwargs: Any) -> TransitionContext:
        return TransitionContext(actor=actor, at=self._clock.now(), **kwargs)

    def _generate_id(self) -> str:
        low = 10 ** (self.definition.id_digits - 1)
        high = 10 ** self.definition.id_digits
        for _ in range(self._identifier_attempts):
            candidate = f"{self.definition.id_prefix}{self._rng.randrange(low, high)}"
            if not self._store.exists(self.entity_type, candidate):
                return candidate
        raise IdentifierExhaustedError(
            self.entity_type.value, self.definition.id_prefix, self._identifier_attempts
        )


def _to_batch_item(item: Any) -> BatchItem:
    if isinstance(item, BatchItem):
        return item
    if isinstance(item, Mapping):
        record_id = item.get("entityId") or item.get("id") or item.get("record_id")
        status = item.get("currentStatus") or item.get("status") or item.get("current_status")
        return BatchItem(record_id=str(record_id), current_status=status)
    return BatchItem(record_id=str(item))


def _plain(value: Any) -> str:
    return getattr(value, "value", value)
