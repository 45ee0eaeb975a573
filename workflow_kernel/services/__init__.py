"""
Kernel services: the decision resolver and the storage collaborators.

Services own I/O (through a ``RecordStore``) and are the only kernel code
that writes records.  They never import from ``workflow_batch``,
``workflow_config`` or ``workflow_modules``.
"""

from workflow_kernel.services.decision_resolver import (
    DecisionResolver,
    DecisionResult,
    Outcome,
)
from workflow_kernel.services.record_store import (
    InMemoryRecordStore,
    RecordStore,
    SqlRecordStore,
)

__all__ = [
    "DecisionResolver",
    "DecisionResult",
    "InMemoryRecordStore",
    "Outcome",
    "RecordStore",
    "SqlRecordStore",
]
