"""
workflow_config -- single public entrypoint for workflow settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or the ``WORKFLOW_CONFIG`` environment variable directly.

Architecture position:
    Configuration.  Sits above ``workflow_kernel`` and below
    ``workflow_batch`` / ``workflow_modules``.  The kernel MUST NEVER import
    from ``workflow_config``; services receive plain values from callers.

Invariants enforced:
    - Single entrypoint: all runtime settings flow through ``get_active_config()``.
    - Validation before use: invalid settings raise ``ConfigValidationError``.
    - Deterministic: the same files always produce the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the override file does not exist.
    - ``ConfigValidationError`` -- one or more values out of range.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``WORKFLOW_CONFIG_TRACE`` log entry with config_id, version and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from workflow_config.loader import load_settings
from workflow_config.schema import (
    BatchSettings,
    LoggingSettings,
    StorageSettings,
    WorkflowSettings,
)

_logger = logging.getLogger("workflow_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_ENV_VAR = "WORKFLOW_CONFIG"


def get_active_config(path: Path | str | None = None) -> WorkflowSettings:
    """The ONLY public configuration entrypoint.

    Args:
        path: Override file merged over the packaged defaults.  When None,
            the ``WORKFLOW_CONFIG`` environment variable is consulted; when
            that is unset too, the defaults are used as-is.

    Returns:
        Validated, frozen ``WorkflowSettings``.

    Raises:
        FileNotFoundError: If the override file does not exist.
        ConfigValidationError: If the merged settings are invalid.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or None
    override = Path(path) if path is not None else None

    settings = load_settings(DEFAULTS_PATH, override)

    _logger.info(
        "WORKFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "WORKFLOW_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "override_path": str(override) if override else None,
            "batch_size": settings.batch.batch_size,
            "optimistic_locking": settings.storage.optimistic_locking,
        },
    )
    return settings


__all__ = [
    "BatchSettings",
    "LoggingSettings",
    "StorageSettings",
    "WorkflowSettings",
    "get_active_config",
]
