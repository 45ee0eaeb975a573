"""
Record domain types (``workflow_kernel.domain.records``).

Responsibility
--------------
Pure value objects for governed records: entity and status enumerations,
the ``request_status`` gate, the ``modifiedData`` audit envelope, the
record itself, and the patch a transition applies to it.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import only
from other ``domain`` modules.

Invariants enforced
-------------------
* Identity fields (``subscriber_id``, ``transactionId``, ``employee_id``,
  ``ticketId``) live on ``Record.record_id`` and are never written by a
  patch.
* ``Record`` and ``RecordPatch`` are frozen; applying a patch returns a
  new record with ``version`` incremented.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from workflow_kernel.domain.diff import Snapshot, apply_snapshot, get_path


class EntityType(str, Enum):
    """The four governed entity types."""

    SUBSCRIBER = "subscriber"
    PAYMENT = "payment"
    EMPLOYEE = "employee"
    TICKET = "ticket"


class RequestStatus(str, Enum):
    """Approval gate carried by every record."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Action(str, Enum):
    """Every action a transition table may map."""

    PROPOSE_CREATE = "propose_create"
    PROPOSE_MODIFY = "propose_modify"
    APPROVE = "approve"
    REJECT = "reject"
    SUSPEND = "suspend"
    REACTIVATE = "reactivate"
    DEACTIVATE = "deactivate"
    REFUND = "refund"
    RESOLVE = "resolve"
    START_WORK = "start_work"
    DELETE = "delete"
    EXPIRE = "expire"
    ESCALATE = "escalate"
    RENEW = "renew"


DECISION_ACTIONS: frozenset[Action] = frozenset({Action.APPROVE, Action.REJECT})


class SubscriberStatus(str, Enum):
    ADDED = "Added"
    ACTIVE = "Active"
    INACTIVE = "InActive"
    MODIFIED = "Modified"
    SUSPENDED = "Suspended"
    REJECTED = "Rejected"
    DELETED = "Deleted"


class PaymentStatus(str, Enum):
    PAID = "Paid"
    RECEIVED = "Received"
    REFUNDING = "Refunding"
    REFUNDED = "Refunded"
    REJECTED = "Rejected"
    MODIFIED = "Modified"
    DELETED = "Deleted"
    # Legacy value still present on some stored payments
    ACTIVE = "Active"


class EmployeeStatus(str, Enum):
    ON_PROCESS = "OnProcess"
    ACTIVE = "Active"
    INACTIVE = "InActive"
    MODIFIED = "Modified"
    REJECTED = "Rejected"
    DELETED = "Deleted"


class TicketStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    CRITICAL = "Critical"
    RESOLVED = "Resolved"
    CANCELED = "Canceled"


class TransactionType(str, Enum):
    INCOME = "Income"
    EXPENSE = "Expense"


IDENTITY_FIELDS: dict[EntityType, str] = {
    EntityType.SUBSCRIBER: "subscriber_id",
    EntityType.PAYMENT: "transactionId",
    EntityType.EMPLOYEE: "employee_id",
    EntityType.TICKET: "ticketId",
}


@dataclass(frozen=True)
class ActorRef:
    """Reference to the employee performing an action."""

    actor_id: str
    name: str | None = None
    roles: tuple[str, ...] = ()

    def __str__(self) -> str:
        return self.actor_id


@dataclass(frozen=True)
class ModifiedData:
    """Before/after snapshots of a proposed modification."""

    previous: Snapshot
    current: Snapshot
    modified_by: str
    modified_at: datetime

    def to_wire(self) -> dict[str, Any]:
        return {
            "previous": self.previous,
            "current": self.current,
            "modified_by": self.modified_by,
            "modified_at": self.modified_at.isoformat(),
        }

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> ModifiedData:
        modified_at = data["modified_at"]
        if isinstance(modified_at, str):
            modified_at = datetime.fromisoformat(modified_at)
        return cls(
            previous=dict(data.get("previous") or {}),
            current=dict(data.get("current") or {}),
            modified_by=str(data["modified_by"]),
            modified_at=modified_at,
        )


@dataclass(frozen=True)
class Record:
    """
    Immutable snapshot of one governed record.

    ``fields`` holds the entity-specific attributes (``siteName``,
    ``ispInfo``, ``roles``, ``transactionType`` ...) keyed by their wire
    names.  Workflow envelope fields are first-class attributes;
    ``status`` is the plain wire string (``"In Progress"``), never an enum
    member, once a patch has been applied.
    """

    entity_type: EntityType
    record_id: str
    status: str
    request_status: RequestStatus
    fields: dict[str, Any] = field(default_factory=dict)
    modified_data: ModifiedData | None = None
    remark: str | None = None
    created_by: str | None = None
    decision_by: str | None = None
    deleted_by: str | None = None
    is_deleted: bool = False
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.request_status == RequestStatus.PENDING

    def get(self, path: str, default: Any = None) -> Any:
        """Dotted lookup into ``fields`` (``"ispInfo.renewalDate"``)."""
        value = get_path(self.fields, path)
        return default if value is None else value

    def to_wire(self) -> dict[str, Any]:
        """JSON wire shape consumed by presentation and API clients."""
        wire: dict[str, Any] = dict(self.fields)
        wire.update({
            "id": self.record_id,
            IDENTITY_FIELDS[self.entity_type]: self.record_id,
            "status": _enum_value(self.status),
            "request_status": self.request_status.value,
            "remark": self.remark,
            "created_by": self.created_by,
            "decision_by": self.decision_by,
            "deleted_by": self.deleted_by,
            "isDeleted": self.is_deleted,
            "version": self.version,
        })
        if self.modified_data is not None:
            wire["modifiedData"] = self.modified_data.to_wire()
        return wire

    @classmethod
    def from_wire(cls, entity_type: EntityType, data: Mapping[str, Any]) -> Record:
        envelope = {
            "id", IDENTITY_FIELDS[entity_type], "status", "request_status",
            "remark", "created_by", "decision_by", "deleted_by",
            "isDeleted", "version", "modifiedData",
        }
        modified = data.get("modifiedData")
        return cls(
            entity_type=entity_type,
            record_id=str(data.get(IDENTITY_FIELDS[entity_type]) or data["id"]),
            status=data["status"],
            request_status=RequestStatus(data["request_status"]),
            fields={k: v for k, v in data.items() if k not in envelope},
            modified_data=ModifiedData.from_wire(modified) if modified else None,
            remark=data.get("remark"),
            created_by=data.get("created_by"),
            decision_by=data.get("decision_by"),
            deleted_by=data.get("deleted_by"),
            is_deleted=bool(data.get("isDeleted", False)),
            version=int(data.get("version", 1)),
        )


@dataclass(frozen=True)
class RecordPatch:
    """
    The set of changes one transition applies to a record.

    ``None`` means "leave unchanged" for every optional attribute.
    ``field_updates`` is merged with :func:`apply_snapshot`, so nested
    objects keep untracked children and identity fields are never touched.
    """

    action: Action
    status: str | None = None
    request_status: RequestStatus | None = None
    field_updates: Snapshot = field(default_factory=dict)
    modified_data: ModifiedData | None = None
    clear_modified_data: bool = False
    remark: str | None = None
    decision_by: str | None = None
    deleted_by: str | None = None
    is_deleted: bool | None = None

    def apply_to(self, record: Record, *, at: datetime | None = None) -> Record:
        identity = IDENTITY_FIELDS[record.entity_type]
        updates = {k: v for k, v in self.field_updates.items() if k != identity}

        modified_data = record.modified_data
        if self.clear_modified_data:
            modified_data = None
        if self.modified_data is not None:
            modified_data = self.modified_data

        return replace(
            record,
            status=_enum_value(self.status) if self.status is not None else record.status,
            request_status=(
                self.request_status
                if self.request_status is not None
                else record.request_status
            ),
            fields=apply_snapshot(record.fields, updates) if updates else record.fields,
            modified_data=modified_data,
            remark=self.remark if self.remark is not None else record.remark,
            decision_by=self.decision_by or record.decision_by,
            deleted_by=self.deleted_by or record.deleted_by,
            is_deleted=self.is_deleted if self.is_deleted is not None else record.is_deleted,
            version=record.version + 1,
            updated_at=at or record.updated_at,
        )

    def describe(self) -> dict[str, Any]:
        """Compact log/audit representation."""
        return {
            "action": self.action.value,
            "status": _enum_value(self.status),
            "request_status": self.request_status.value if self.request_status else None,
            "field_updates": sorted(self.field_updates),
            "clear_modified_data": self.clear_modified_data,
        }


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value
