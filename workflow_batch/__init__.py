"""
workflow_batch -- Chunked batch decisions over governed records.

Runs a per-item handler (a facade decision) over a list of records in
strictly sequential chunks, continuing past individual failures, and
returns an itemized ``BatchReport``.

Architecture:
    workflow_batch/ is a top-level package.  Nothing in workflow_kernel/
    imports from workflow_batch; workflow_modules facades call into it.

Invariants:
    - Chunks run sequentially, one processor run at a time
    - Partial failure is a report, never an exception
    - Cancellation honoured at chunk boundaries only
"""
