"""
BatchProcessor -- chunked, sequential, continue-past-failure batch decisions.

Contract:
    ``run_batch()`` splits items into consecutive chunks, runs the chunks
    strictly one after another, calls the handler once per item, and
    returns a ``BatchReport``.  A failing item never aborts the batch.

Architecture: workflow_batch/services.  Imports from workflow_batch.domain
    and the kernel (exceptions, logging, clock).  The processor is the only
    place chunk-size policy lives; facades never chunk.

Invariants enforced:
    - Chunks run sequentially; no parallel dispatch.
    - ``success_count + failure_count + skipped_count == total_items``.
    - One run at a time per processor (IDLE -> RUNNING -> IDLE).
    - Cancellation is honoured only between chunks; already-processed
      items are never rolled back.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Iterable
from uuid import uuid4

from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.exceptions import (
    BatchAlreadyRunningError,
    BatchTooLargeError,
    InvalidBatchSizeError,
    WorkflowKernelError,
)
from workflow_kernel.logging_config import LogContext, get_logger, log_event

from workflow_batch.domain.types import (
    BatchItem,
    BatchItemResult,
    BatchItemStatus,
    BatchProgress,
    BatchReport,
    BatchState,
    CancellationToken,
    ChunkSummary,
    classify_outcome,
)

logger = get_logger("batch.processor")

ItemHandler = Callable[[BatchItem], Any]
ProgressCallback = Callable[[BatchProgress], None]

UNHANDLED_EXCEPTION = "UNHANDLED_EXCEPTION"


class BatchProcessor:
    """Runs per-item handlers over chunked batches.

    Contract:
        - The handler receives one ``BatchItem`` and returns a result with
          ``ok`` / ``error`` attributes (a ``DecisionResult``), or raises.
        - A result with ``ok=False`` or any raised exception marks the item
          failed; the next item runs regardless.

    Non-goals:
        - Does NOT retry.  ``BatchReport.failed_items()`` feeds a follow-up run.
        - Does NOT run chunks concurrently.
    """

    def __init__(
        self,
        batch_size: int = 10,
        min_batch_size: int = 1,
        max_batch_size: int = 50,
        max_items: int = 100,
        clock: Clock | None = None,
    ):
        self._min_batch_size = min_batch_size
        self._max_batch_size = max_batch_size
        self._max_items = max_items
        self._check_batch_size(batch_size)
        self._batch_size = batch_size
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._state = BatchState.IDLE
        self._current_batch_id: str | None = None

    @classmethod
    def from_settings(cls, settings: Any, clock: Clock | None = None) -> BatchProcessor:
        """Build from ``workflow_config.BatchSettings``."""
        return cls(
            batch_size=settings.batch_size,
            min_batch_size=settings.min_batch_size,
            max_batch_size=settings.max_batch_size,
            max_items=settings.max_items,
            clock=clock,
        )

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def _check_batch_size(self, batch_size: int) -> None:
        if not self._min_batch_size <= batch_size <= self._max_batch_size:
            raise InvalidBatchSizeError(
                batch_size, self._min_batch_size, self._max_batch_size
            )

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run_batch(
        self,
        items: Iterable[BatchItem | str],
        handler: ItemHandler,
        batch_size: int | None = None,
        cancel_token: CancellationToken | None = None,
        on_progress: ProgressCallback | None = None,
        batch_id: str | None = None,
    ) -> BatchReport:
        """Process ``items`` in sequential chunks.

        Raises:
            BatchAlreadyRunningError: If this processor is already running.
            BatchTooLargeError: If there are more items than ``max_items``.
            InvalidBatchSizeError: If ``batch_size`` is out of bounds.
        """
        normalized = tuple(
            item if isinstance(item, BatchItem) else BatchItem(record_id=str(item))
            for item in items
        )
        size = self._batch_size if batch_size is None else batch_size
        self._check_batch_size(size)
        if len(normalized) > self._max_items:
            raise BatchTooLargeError(len(normalized), self._max_items)

        with self._lock:
            if self._state is BatchState.RUNNING:
                raise BatchAlreadyRunningError(self._current_batch_id or "")
            self._state = BatchState.RUNNING
            self._current_batch_id = batch_id or str(uuid4())

        try:
            with LogContext.bind(batch_id=self._current_batch_id):
                return self._run(
                    self._current_batch_id, normalized, handler, size,
                    cancel_token, on_progress,
                )
        finally:
            with self._lock:
                self._state = BatchState.IDLE
                self._current_batch_id = None

    def _run(
        self,
        batch_id: str,
        items: tuple[BatchItem, ...],
        handler: ItemHandler,
        size: int,
        cancel_token: CancellationToken | None,
        on_progress: ProgressCallback | None,
    ) -> BatchReport:
        start_time = time.monotonic()
        started_at = self._clock.now()
        chunks = [items[i:i + size] for i in range(0, len(items), size)]
        total_chunks = len(chunks)

        log_event(
            logger, "batch", "batch_started",
            total_items=len(items),
            batch_size=size,
            total_chunks=total_chunks,
        )

        results: list[BatchItemResult] = []
        summaries: list[ChunkSummary] = []
        cancelled = False
        processed = 0

        for chunk_index, chunk in enumerate(chunks):
            if cancel_token is not None and cancel_token.cancelled:
                cancelled = True
                offset = chunk_index * size
                for idx, item in enumerate(items[offset:], start=offset):
                    results.append(BatchItemResult(
                        item_index=idx,
                        record_id=item.record_id,
                        status=BatchItemStatus.SKIPPED,
                        chunk_index=idx // size,
                        current_status=item.current_status,
                    ))
                log_event(
                    logger, "batch", "batch_cancelled", logging.WARNING,
                    chunk_index=chunk_index,
                    total_chunks=total_chunks,
                    processed=processed,
                    skipped=len(items) - processed,
                )
                break

            chunk_results = [
                self._process_item(chunk_index * size + pos, chunk_index, item, handler)
                for pos, item in enumerate(chunk)
            ]
            results.extend(chunk_results)
            processed += len(chunk)

            failures = tuple(
                r.failure_entry() for r in chunk_results if r.status == BatchItemStatus.FAILED
            )
            summary = ChunkSummary(
                chunk_index=chunk_index,
                item_count=len(chunk),
                success_count=len(chunk) - len(failures),
                failure_count=len(failures),
                failures=failures,
            )
            summaries.append(summary)

            log_event(
                logger, "batch", "batch_chunk_completed",
                chunk_index=chunk_index + 1,
                total_chunks=total_chunks,
                success_count=summary.success_count,
                failure_count=summary.failure_count,
                processed=processed,
            )
            if on_progress is not None:
                on_progress(BatchProgress(
                    batch_id=batch_id,
                    chunk_index=chunk_index + 1,
                    total_chunks=total_chunks,
                    processed=processed,
                    total_items=len(items),
                ))

        succeeded = sum(1 for r in results if r.status == BatchItemStatus.SUCCEEDED)
        failed_results = [r for r in results if r.status == BatchItemStatus.FAILED]
        skipped = sum(1 for r in results if r.status == BatchItemStatus.SKIPPED)
        outcome = classify_outcome(succeeded, len(failed_results), skipped)
        duration = int((time.monotonic() - start_time) * 1000)

        report = BatchReport(
            batch_id=batch_id,
            outcome=outcome,
            total_items=len(items),
            success_count=succeeded,
            failure_count=len(failed_results),
            skipped_count=skipped,
            failures=tuple(r.failure_entry() for r in failed_results),
            item_results=tuple(results),
            chunks=tuple(summaries),
            cancelled=cancelled,
            batch_size=size,
            started_at=started_at,
            completed_at=self._clock.now(),
            duration_ms=duration,
        )

        log_event(
            logger, "batch", "batch_completed",
            outcome=outcome.value,
            total_items=len(items),
            success_count=succeeded,
            failure_count=len(failed_results),
            skipped_count=skipped,
            cancelled=cancelled,
            duration_ms=duration,
        )
        return report

    def _process_item(
        self,
        item_index: int,
        chunk_index: int,
        item: BatchItem,
        handler: ItemHandler,
    ) -> BatchItemResult:
        item_start = time.monotonic()
        try:
            result = handler(item)
        except WorkflowKernelError as exc:
            return self._failed(item_index, chunk_index, item, exc.code, str(exc), exc.retryable, item_start)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "batch_item_unhandled_exception",
                extra={"record_id": item.record_id},
                exc_info=True,
            )
            return self._failed(item_index, chunk_index, item, UNHANDLED_EXCEPTION, str(exc), False, item_start)

        error = getattr(result, "error", None)
        if not getattr(result, "ok", True):
            code = getattr(error, "code", None) or "FAILED"
            return self._failed(
                item_index, chunk_index, item, code,
                str(error) if error is not None else "item failed",
                bool(getattr(error, "retryable", False)),
                item_start,
            )

        return BatchItemResult(
            item_index=item_index,
            record_id=item.record_id,
            status=BatchItemStatus.SUCCEEDED,
            chunk_index=chunk_index,
            duration_ms=int((time.monotonic() - item_start) * 1000),
            current_status=item.current_status,
        )

    def _failed(
        self,
        item_index: int,
        chunk_index: int,
        item: BatchItem,
        error_code: str,
        message: str,
        retryable: bool,
        item_start: float,
    ) -> BatchItemResult:
        logger.warning(
            "batch_item_failed",
            extra={
                "record_id": item.record_id,
                "error_code": error_code,
                "retryable": retryable,
            },
        )
        return BatchItemResult(
            item_index=item_index,
            record_id=item.record_id,
            status=BatchItemStatus.FAILED,
            chunk_index=chunk_index,
            error_code=error_code,
            error_message=message,
            retryable=retryable,
            duration_ms=int((time.monotonic() - item_start) * 1000),
            current_status=item.current_status,
        )
