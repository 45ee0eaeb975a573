"""
Typed exception hierarchy for the workflow kernel.

Every error carries a machine-readable ``code`` and a ``retryable`` flag
as class attributes, plus structured instance attributes describing the
record and action involved.  Callers catch by type and report by code;
they never parse messages.

    WorkflowKernelError (base)
    |
    +-- TransitionError
    |   +-- InvalidTransitionError      INVALID_TRANSITION
    |   +-- StaleProposalError          STALE_PROPOSAL
    |   +-- EmptyProposalError          EMPTY_PROPOSAL
    |
    +-- RecordError
    |   +-- RecordNotFoundError         RECORD_NOT_FOUND
    |   +-- DuplicateRecordError        DUPLICATE_RECORD
    |   +-- IdentifierExhaustedError    IDENTIFIER_EXHAUSTED
    |
    +-- StorageError
    |   +-- StorageFailureError         STORAGE_FAILURE (retryable)
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError         OPTIMISTIC_LOCK_CONFLICT
    |   +-- StaleRecordError            STALE_RECORD
    |
    +-- BatchError
    |   +-- BatchAlreadyRunningError    BATCH_ALREADY_RUNNING
    |   +-- BatchTooLargeError          BATCH_TOO_LARGE
    |   +-- InvalidBatchSizeError       INVALID_BATCH_SIZE
    |
    +-- ConfigError
        +-- ConfigValidationError       CONFIG_VALIDATION_FAILED

``InvalidTransitionError`` and ``StaleProposalError`` are client errors:
retrying the same request cannot succeed.  ``StorageFailureError`` is
transient; retry policy belongs to the caller or the storage collaborator.
A partially failed batch is not an exception at all -- it is reported
through ``workflow_batch.domain.types.BatchReport``.
"""


class WorkflowKernelError(Exception):
    """
    Base exception for all workflow kernel errors.

    Subclasses must define ``code``; ``retryable`` defaults to False.
    """

    code: str = "WORKFLOW_KERNEL_ERROR"
    retryable: bool = False


# Transition errors


class TransitionError(WorkflowKernelError):
    """Base exception for status transition errors."""

    code: str = "TRANSITION_ERROR"


class InvalidTransitionError(TransitionError):
    """The action is not legal for the record's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        record_id: str | None,
        current_status: str | None,
        action: str,
        reason: str = "",
    ):
        self.entity_type = entity_type
        self.record_id = record_id
        self.current_status = current_status
        self.action = action
        self.reason = reason
        message = (
            f"Cannot {action} {entity_type} {record_id or '<new>'} "
            f"in status {current_status}"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class StaleProposalError(TransitionError):
    """A proposal targets a record that already has a pending proposal."""

    code: str = "STALE_PROPOSAL"

    def __init__(self, entity_type: str, record_id: str, action: str):
        self.entity_type = entity_type
        self.record_id = record_id
        self.action = action
        super().__init__(
            f"{entity_type} {record_id} already has a pending request; "
            f"re-fetch before attempting {action}"
        )


class EmptyProposalError(TransitionError):
    """A proposed modification is deeply equal to the live record."""

    code: str = "EMPTY_PROPOSAL"

    def __init__(self, entity_type: str, record_id: str):
        self.entity_type = entity_type
        self.record_id = record_id
        super().__init__(
            f"Proposed modification of {entity_type} {record_id} "
            "does not change any tracked field"
        )


# Record errors


class RecordError(WorkflowKernelError):
    """Base exception for record lookup and identity errors."""

    code: str = "RECORD_ERROR"


class RecordNotFoundError(RecordError):
    """No record with the given identifier exists for the entity type."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, entity_type: str, record_id: str):
        self.entity_type = entity_type
        self.record_id = record_id
        super().__init__(f"{entity_type} {record_id} not found")


class DuplicateRecordError(RecordError):
    """A record with the same identifier already exists."""

    code: str = "DUPLICATE_RECORD"

    def __init__(self, entity_type: str, record_id: str):
        self.entity_type = entity_type
        self.record_id = record_id
        super().__init__(f"{entity_type} {record_id} already exists")


class IdentifierExhaustedError(RecordError):
    """Could not generate an unused human-readable identifier."""

    code: str = "IDENTIFIER_EXHAUSTED"

    def __init__(self, entity_type: str, prefix: str, attempts: int):
        self.entity_type = entity_type
        self.prefix = prefix
        self.attempts = attempts
        super().__init__(
            f"Failed to generate unique {entity_type} id with prefix "
            f"{prefix!r} after {attempts} attempts"
        )


# Storage errors


class StorageError(WorkflowKernelError):
    """Base exception for storage collaborator errors."""

    code: str = "STORAGE_ERROR"


class StorageFailureError(StorageError):
    """
    The storage collaborator failed to read or write a record.

    Transient: the decision was not applied and may be retried.
    """

    code: str = "STORAGE_FAILURE"
    retryable: bool = True

    def __init__(self, entity_type: str, record_id: str, operation: str, reason: str):
        self.entity_type = entity_type
        self.record_id = record_id
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Storage {operation} failed for {entity_type} {record_id}: {reason}"
        )


# Concurrency errors


class ConcurrencyError(WorkflowKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """The stored record version no longer matches the version that was read."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        record_id: str,
        expected_version: int,
        actual_version: int,
    ):
        self.entity_type = entity_type
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {record_id}: "
            f"expected version {expected_version}, found {actual_version}"
        )


class StaleRecordError(ConcurrencyError):
    """The caller's view of the record status disagrees with storage."""

    code: str = "STALE_RECORD"

    def __init__(
        self,
        entity_type: str,
        record_id: str,
        expected_status: str,
        actual_status: str,
    ):
        self.entity_type = entity_type
        self.record_id = record_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        super().__init__(
            f"{entity_type} {record_id} is {actual_status}, "
            f"caller expected {expected_status}"
        )


# Batch errors


class BatchError(WorkflowKernelError):
    """Base exception for batch processing errors."""

    code: str = "BATCH_ERROR"


class BatchAlreadyRunningError(BatchError):
    """A batch run was started on a processor that is already running."""

    code: str = "BATCH_ALREADY_RUNNING"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Batch processor is already running batch {batch_id}")


class BatchTooLargeError(BatchError):
    """The batch holds more items than the configured maximum."""

    code: str = "BATCH_TOO_LARGE"

    def __init__(self, item_count: int, max_items: int):
        self.item_count = item_count
        self.max_items = max_items
        super().__init__(
            f"Maximum batch size exceeded: {item_count} items (limit {max_items})"
        )


class InvalidBatchSizeError(BatchError):
    """Chunk size outside the allowed bounds."""

    code: str = "INVALID_BATCH_SIZE"

    def __init__(self, batch_size: int, minimum: int, maximum: int):
        self.batch_size = batch_size
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"Batch size {batch_size} outside allowed range {minimum}..{maximum}"
        )


# Configuration errors


class ConfigError(WorkflowKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIG_ERROR"


class ConfigValidationError(ConfigError):
    """Configuration failed validation."""

    code: str = "CONFIG_VALIDATION_FAILED"

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )
