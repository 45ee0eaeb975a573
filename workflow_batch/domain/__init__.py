"""
workflow_batch.domain -- Pure types and value objects for batch decisions.

All result types are frozen dataclasses.
"""

from workflow_batch.domain.types import (
    BatchItem,
    BatchItemResult,
    BatchItemStatus,
    BatchOutcome,
    BatchProgress,
    BatchReport,
    BatchState,
    CancellationToken,
    ChunkSummary,
    classify_outcome,
)

__all__ = [
    "BatchItem",
    "BatchItemResult",
    "BatchItemStatus",
    "BatchOutcome",
    "BatchProgress",
    "BatchReport",
    "BatchState",
    "CancellationToken",
    "ChunkSummary",
    "classify_outcome",
]
