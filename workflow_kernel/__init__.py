"""
Workflow Kernel

Approval-gated lifecycle management for operations records:
- Per-entity status / request_status transition tables
- Before/after modification snapshots with deep diffing
- Single-record decision resolution against a storage collaborator
- Typed, machine-readable errors and structured logging
"""

__version__ = "0.1.0"
