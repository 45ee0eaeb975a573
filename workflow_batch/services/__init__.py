"""workflow_batch.services -- Batch processor."""

from workflow_batch.services.processor import BatchProcessor

__all__ = ["BatchProcessor"]
