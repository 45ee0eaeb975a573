"""
ORM models for governed records and their write history.

Contract:
    WorkflowRecordModel persists one row per (entity_type, record_id) with the
    workflow envelope as columns and the entity-specific fields and
    ``modifiedData`` as JSON.  RecordHistoryModel appends one row per write.
    ``to_dto()`` / ``from_dto()`` convert to and from the domain ``Record``.

Architecture: workflow_kernel/models. Imports from db.base and domain only.

Invariants enforced:
    - (entity_type, record_id) is UNIQUE.
    - ``version`` starts at 1 and is incremented by every write.
    - History rows are append-only; nothing updates or deletes them.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base, TrackedBase
from workflow_kernel.domain.records import (
    EntityType,
    ModifiedData,
    Record,
    RequestStatus,
)
from workflow_kernel.utils.hashing import to_jsonable


class WorkflowRecordModel(TrackedBase):
    """Current state of one governed record."""

    __tablename__ = "workflow_records"

    __table_args__ = (
        UniqueConstraint("entity_type", "record_id", name="uq_workflow_records_identity"),
        Index("ix_workflow_records_status", "entity_type", "status"),
    )

    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    record_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    request_status: Mapped[str] = mapped_column(String(20), nullable=False)
    fields: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    modified_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)
    decision_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    deleted_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    def to_dto(self) -> Record:
        return Record(
            entity_type=EntityType(self.entity_type),
            record_id=self.record_id,
            status=self.status,
            request_status=RequestStatus(self.request_status),
            fields=dict(self.fields or {}),
            modified_data=(
                ModifiedData.from_wire(self.modified_data)
                if self.modified_data
                else None
            ),
            remark=self.remark,
            created_by=self.created_by_id,
            decision_by=self.decision_by,
            deleted_by=self.deleted_by,
            is_deleted=self.is_deleted,
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, dto: Record) -> WorkflowRecordModel:
        model = cls(
            entity_type=dto.entity_type.value,
            record_id=dto.record_id,
            created_by_id=dto.created_by,
            updated_by_id=None,
        )
        model.update_from(dto)
        if dto.created_at is not None:
            model.created_at = dto.created_at
        return model

    def update_from(self, dto: Record) -> None:
        self.status = _plain(dto.status)
        self.request_status = dto.request_status.value
        self.fields = to_jsonable(dto.fields)
        self.modified_data = (
            to_jsonable(dto.modified_data.to_wire()) if dto.modified_data else None
        )
        self.remark = dto.remark
        self.decision_by = dto.decision_by
        self.deleted_by = dto.deleted_by
        self.is_deleted = dto.is_deleted
        self.version = dto.version
        if dto.updated_at is not None:
            self.updated_at = dto.updated_at


class RecordHistoryModel(Base):
    """Append-only audit row written alongside every record write."""

    __tablename__ = "record_history"

    __table_args__ = (
        Index("ix_record_history_record", "entity_type", "record_id", "version"),
    )

    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    record_id: Mapped[str] = mapped_column(String(64), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    request_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    modified_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "entity_type": self.entity_type,
            "record_id": self.record_id,
            "version": self.version,
            "action": self.action,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "request_status": self.request_status,
            "actor_id": self.actor_id,
            "modifiedData": self.modified_data,
            "recorded_at": self.recorded_at,
        }


def _plain(value) -> str:
    return getattr(value, "value", value)
