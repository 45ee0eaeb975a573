"""
workflow_kernel.services.record_store -- Storage collaborator for governed records.

Responsibility:
    Read a record by id, apply a transition patch to it as one atomic
    read-modify-write, insert new records, and keep an append-only history
    of every write.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - A write applies the whole patch or nothing.
    - ``version`` is incremented by every write; one history entry per write.
    - When ``optimistic_locking`` is enabled, a write whose
      ``expected_version`` differs from the stored version is refused.
      Disabled by default: the last write wins.

Failure modes:
    - RecordNotFoundError for unknown ids.
    - DuplicateRecordError when inserting an id that already exists.
    - OptimisticLockError on version mismatch (locking enabled only).
    - StorageFailureError (retryable) for any backend failure.
"""

from __future__ import annotations

import copy
from dataclasses import replace
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.records import EntityType, Record, RecordPatch
from workflow_kernel.exceptions import (
    DuplicateRecordError,
    OptimisticLockError,
    RecordNotFoundError,
    StorageFailureError,
)
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.record import RecordHistoryModel, WorkflowRecordModel
from workflow_kernel.utils.hashing import to_jsonable

logger = get_logger("services.record_store")


@runtime_checkable
class RecordStore(Protocol):
    """What the workflow core needs from persistence."""

    def read_record(self, entity_type: EntityType, record_id: str) -> Record: ...

    def write_record(
        self,
        entity_type: EntityType,
        record_id: str,
        patch: RecordPatch,
        *,
        actor_id: str | None = None,
        expected_version: int | None = None,
    ) -> Record: ...

    def insert_record(self, record: Record) -> Record: ...

    def exists(self, entity_type: EntityType, record_id: str) -> bool: ...

    def list_records(
        self,
        entity_type: EntityType,
        status: str | None = None,
        include_deleted: bool = False,
    ) -> list[Record]: ...

    def history(self, entity_type: EntityType, record_id: str) -> list[dict[str, Any]]: ...


def _history_entry(
    before: Record | None,
    after: Record,
    action: str,
    actor_id: str | None,
    at: datetime,
) -> dict[str, Any]:
    return {
        "entity_type": after.entity_type.value,
        "record_id": after.record_id,
        "version": after.version,
        "action": action,
        "from_status": _plain(before.status) if before is not None else None,
        "to_status": _plain(after.status),
        "request_status": after.request_status.value,
        "actor_id": actor_id,
        "modifiedData": (
            to_jsonable(after.modified_data.to_wire()) if after.modified_data else None
        ),
        "recorded_at": at,
    }


def _plain(value: Any) -> str:
    return getattr(value, "value", value)


class InMemoryRecordStore:
    """
    Dictionary-backed store.

    Records are deep-copied on the way in and out so callers can never
    mutate stored state.  ``inject_failure`` makes the next write(s) for an
    id raise ``StorageFailureError``.
    """

    def __init__(self, clock: Clock | None = None, optimistic_locking: bool = False):
        self._clock = clock or SystemClock()
        self.optimistic_locking = optimistic_locking
        self._records: dict[tuple[EntityType, str], Record] = {}
        self._history: dict[tuple[EntityType, str], list[dict[str, Any]]] = {}
        self._faults: dict[str, tuple[int, str]] = {}
        self.write_count = 0

    def inject_failure(self, record_id: str, reason: str = "injected failure", times: int = 1) -> None:
        self._faults[record_id] = (times, reason)

    def _check_fault(self, entity_type: EntityType, record_id: str, operation: str) -> None:
        if record_id not in self._faults:
            return
        remaining, reason = self._faults[record_id]
        if remaining <= 1:
            del self._faults[record_id]
        else:
            self._faults[record_id] = (remaining - 1, reason)
        raise StorageFailureError(entity_type.value, record_id, operation, reason)

    def read_record(self, entity_type: EntityType, record_id: str) -> Record:
        record = self._records.get((entity_type, record_id))
        if record is None:
            raise RecordNotFoundError(entity_type.value, record_id)
        return copy.deepcopy(record)

    def write_record(
        self,
        entity_type: EntityType,
        record_id: str,
        patch: RecordPatch,
        *,
        actor_id: str | None = None,
        expected_version: int | None = None,
    ) -> Record:
        key = (entity_type, record_id)
        current = self._records.get(key)
        if current is None:
            raise RecordNotFoundError(entity_type.value, record_id)
        self._check_fault(entity_type, record_id, "write")
        if (
            self.optimistic_locking
            and expected_version is not None
            and expected_version != current.version
        ):
            raise OptimisticLockError(
                entity_type.value, record_id, expected_version, current.version
            )

        now = self._clock.now()
        updated = patch.apply_to(copy.deepcopy(current), at=now)
        self._records[key] = updated
        self._history.setdefault(key, []).append(
            _history_entry(current, updated, patch.action.value, actor_id, now)
        )
        self.write_count += 1
        return copy.deepcopy(updated)

    def insert_record(self, record: Record) -> Record:
        key = (record.entity_type, record.record_id)
        if key in self._records:
            raise DuplicateRecordError(record.entity_type.value, record.record_id)
        self._check_fault(record.entity_type, record.record_id, "insert")
        now = self._clock.now()
        stored = copy.deepcopy(record)
        if stored.created_at is None:
            stored = replace(stored, created_at=now, updated_at=now)
        self._records[key] = stored
        self._history[key] = [
            _history_entry(None, stored, "propose_create", record.created_by, now)
        ]
        self.write_count += 1
        return copy.deepcopy(stored)

    def exists(self, entity_type: EntityType, record_id: str) -> bool:
        return (entity_type, record_id) in self._records

    def list_records(
        self,
        entity_type: EntityType,
        status: str | None = None,
        include_deleted: bool = False,
    ) -> list[Record]:
        out = []
        for (etype, _), record in sorted(self._records.items(), key=lambda kv: kv[0][1]):
            if etype != entity_type:
                continue
            if status is not None and _plain(record.status) != _plain(status):
                continue
            if record.is_deleted and not include_deleted:
                continue
            out.append(copy.deepcopy(record))
        return out

    def history(self, entity_type: EntityType, record_id: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self._history.get((entity_type, record_id), []))


class SqlRecordStore:
    """
    SQLAlchemy-backed store.

    Each write runs inside its own SAVEPOINT so a failed write leaves the
    caller's transaction usable.  Flushes only; the caller owns commit.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        optimistic_locking: bool = False,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self.optimistic_locking = optimistic_locking

    def _load(self, entity_type: EntityType, record_id: str) -> WorkflowRecordModel | None:
        return self._session.execute(
            select(WorkflowRecordModel).where(
                WorkflowRecordModel.entity_type == entity_type.value,
                WorkflowRecordModel.record_id == record_id,
            )
        ).scalar_one_or_none()

    def read_record(self, entity_type: EntityType, record_id: str) -> Record:
        try:
            model = self._load(entity_type, record_id)
        except SQLAlchemyError as exc:
            raise StorageFailureError(entity_type.value, record_id, "read", str(exc)) from exc
        if model is None:
            raise RecordNotFoundError(entity_type.value, record_id)
        return model.to_dto()

    def write_record(
        self,
        entity_type: EntityType,
        record_id: str,
        patch: RecordPatch,
        *,
        actor_id: str | None = None,
        expected_version: int | None = None,
    ) -> Record:
        try:
            with self._session.begin_nested():
                model = self._load(entity_type, record_id)
                if model is None:
                    raise RecordNotFoundError(entity_type.value, record_id)
                if (
                    self.optimistic_locking
                    and expected_version is not None
                    and expected_version != model.version
                ):
                    raise OptimisticLockError(
                        entity_type.value, record_id, expected_version, model.version
                    )

                now = self._clock.now()
                before = model.to_dto()
                after = patch.apply_to(before, at=now)
                model.update_from(after)
                model.updated_by_id = actor_id
                self._session.add(
                    RecordHistoryModel(
                        **_history_columns(
                            _history_entry(before, after, patch.action.value, actor_id, now)
                        )
                    )
                )
                self._session.flush()
        except SQLAlchemyError as exc:
            logger.warning(
                "record_write_failed",
                extra={"entity_type": entity_type.value, "record_id": record_id, "error": str(exc)},
            )
            raise StorageFailureError(entity_type.value, record_id, "write", str(exc)) from exc
        return model.to_dto()

    def insert_record(self, record: Record) -> Record:
        now = self._clock.now()
        try:
            with self._session.begin_nested():
                if self._load(record.entity_type, record.record_id) is not None:
                    raise DuplicateRecordError(record.entity_type.value, record.record_id)
                model = WorkflowRecordModel.from_dto(record)
                model.created_at = record.created_at or now
                model.updated_at = record.updated_at or now
                self._session.add(model)
                self._session.add(
                    RecordHistoryModel(
                        **_history_columns(
                            _history_entry(None, record, "propose_create", record.created_by, now)
                        )
                    )
                )
                self._session.flush()
        except SQLAlchemyError as exc:
            raise StorageFailureError(
                record.entity_type.value, record.record_id, "insert", str(exc)
            ) from exc
        return model.to_dto()

    def exists(self, entity_type: EntityType, record_id: str) -> bool:
        return self._load(entity_type, record_id) is not None

    def list_records(
        self,
        entity_type: EntityType,
        status: str | None = None,
        include_deleted: bool = False,
    ) -> list[Record]:
        stmt = select(WorkflowRecordModel).where(
            WorkflowRecordModel.entity_type == entity_type.value,
        )
        if status is not None:
            stmt = stmt.where(WorkflowRecordModel.status == _plain(status))
        if not include_deleted:
            stmt = stmt.where(WorkflowRecordModel.is_deleted.is_(False))
        stmt = stmt.order_by(WorkflowRecordModel.record_id)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def history(self, entity_type: EntityType, record_id: str) -> list[dict[str, Any]]:
        rows = self._session.execute(
            select(RecordHistoryModel)
            .where(
                RecordHistoryModel.entity_type == entity_type.value,
                RecordHistoryModel.record_id == record_id,
            )
            .order_by(RecordHistoryModel.version)
        ).scalars()
        return [row.to_dict() for row in rows]


def _history_columns(entry: dict[str, Any]) -> dict[str, Any]:
    columns = dict(entry)
    columns["modified_data"] = columns.pop("modifiedData")
    return columns
