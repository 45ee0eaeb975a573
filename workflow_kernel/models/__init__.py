"""ORM models for the workflow kernel."""

from workflow_kernel.models.record import RecordHistoryModel, WorkflowRecordModel

__all__ = [
    "WorkflowRecordModel",
    "RecordHistoryModel",
]
