"""Utility modules for the workflow kernel."""

from workflow_kernel.utils.hashing import (
    canonicalize_json,
    hash_payload,
    to_jsonable,
)

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "to_jsonable",
]
