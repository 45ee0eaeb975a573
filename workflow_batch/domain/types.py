"""
workflow_batch.domain.types -- Frozen dataclasses for batch decisions.

ZERO I/O (CancellationToken wraps a threading.Event but performs no I/O).

Frozen dataclasses with enum status fields and tuples for immutable
collections.

Invariants enforced:
    - ``succeeded + failed + skipped == total_items`` on every report.
    - Every failed item id appears exactly once in ``failures``.
    - A 0/0 batch is ALL_SUCCEEDED.
    - A batch with skipped items is CANCELLED, never ALL_SUCCEEDED.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# =============================================================================
# Status enums
# =============================================================================


class BatchState(str, Enum):
    """Processor lifecycle state."""

    IDLE = "idle"
    RUNNING = "running"


class BatchItemStatus(str, Enum):
    """Per-item result status."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # Not processed because the run was cancelled


class BatchOutcome(str, Enum):
    """Overall classification of a batch run."""

    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL_FAILURE = "partial_failure"
    ALL_FAILED = "all_failed"
    CANCELLED = "cancelled"  # Stopped before every item ran; see skipped_ids


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class BatchItem:
    """One record to decide.

    ``current_status`` is the status the caller saw; when given, an item
    whose live status differs fails as stale instead of being decided.
    """

    record_id: str
    current_status: str | None = None


class CancellationToken:
    """Cooperative cancellation signal, checked between chunks."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class BatchItemResult:
    """Immutable result of processing a single batch item."""

    item_index: int  # 0-indexed position in the batch
    record_id: str
    status: BatchItemStatus
    chunk_index: int
    error_code: str | None = None
    error_message: str | None = None
    retryable: bool = False
    duration_ms: int = 0
    current_status: str | None = None

    @property
    def item(self) -> BatchItem:
        """The item as it was submitted, including the expected status."""
        return BatchItem(record_id=self.record_id, current_status=self.current_status)

    def failure_entry(self) -> dict[str, Any]:
        return {
            "id": self.record_id,
            "error_code": self.error_code,
            "error": self.error_message,
            "retryable": self.retryable,
        }


@dataclass(frozen=True)
class ChunkSummary:
    """Counters for one chunk."""

    chunk_index: int
    item_count: int
    success_count: int
    failure_count: int
    failures: tuple[dict[str, Any], ...] = ()


@dataclass(frozen=True)
class BatchProgress:
    """Emitted after each completed chunk."""

    batch_id: str
    chunk_index: int  # 1-based index of the chunk just completed
    total_chunks: int
    processed: int
    total_items: int

    @property
    def percent(self) -> float:
        if self.total_items == 0:
            return 100.0
        return round(self.processed * 100.0 / self.total_items, 2)


@dataclass(frozen=True)
class BatchReport:
    """Aggregate result of a batch run.

    Always returned, never raised: partial failure is data, not an error.
    """

    batch_id: str
    outcome: BatchOutcome
    total_items: int
    success_count: int
    failure_count: int
    skipped_count: int = 0
    failures: tuple[dict[str, Any], ...] = ()
    item_results: tuple[BatchItemResult, ...] = ()
    chunks: tuple[ChunkSummary, ...] = ()
    cancelled: bool = False
    batch_size: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def failed_ids(self) -> tuple[str, ...]:
        return tuple(f["id"] for f in self.failures)

    @property
    def skipped_ids(self) -> tuple[str, ...]:
        return tuple(
            r.record_id for r in self.item_results if r.status == BatchItemStatus.SKIPPED
        )

    def failed_items(self) -> tuple[BatchItem, ...]:
        """Failed items as submitted, ready for a retry-only-failed batch."""
        return tuple(r.item for r in self.item_results if r.status == BatchItemStatus.FAILED)

    def retryable_items(self) -> tuple[BatchItem, ...]:
        """Failed items whose error was transient."""
        return tuple(
            r.item for r in self.item_results
            if r.status == BatchItemStatus.FAILED and r.retryable
        )

    def to_dict(self) -> dict[str, Any]:
        """Inspectable error report."""
        return {
            "batch_id": self.batch_id,
            "outcome": self.outcome.value,
            "total_items": self.total_items,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "skipped_count": self.skipped_count,
            "cancelled": self.cancelled,
            "batch_size": self.batch_size,
            "failures": [dict(f) for f in self.failures],
            "skipped": list(self.skipped_ids),
            "chunks": [
                {
                    "chunk_index": c.chunk_index,
                    "item_count": c.item_count,
                    "success_count": c.success_count,
                    "failure_count": c.failure_count,
                }
                for c in self.chunks
            ],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
        }


def classify_outcome(success_count: int, failure_count: int, skipped_count: int = 0) -> BatchOutcome:
    """ALL_SUCCEEDED when every item ran and none failed (including an empty batch)."""
    if skipped_count:
        return BatchOutcome.CANCELLED
    if failure_count == 0:
        return BatchOutcome.ALL_SUCCEEDED
    if success_count == 0:
        return BatchOutcome.ALL_FAILED
    return BatchOutcome.PARTIAL_FAILURE
