"""
Configuration Loader (``workflow_config.loader``).

Responsibility
--------------
Loads YAML files, merges an override file over the packaged defaults,
parses the result into ``workflow_config.schema`` dataclasses and
validates it.  The single public entry point for runtime config is
``workflow_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the merged
  source for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ConfigValidationError`` listing every problem.
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from workflow_config.schema import (
    BatchSettings,
    LoggingSettings,
    StorageSettings,
    WorkflowSettings,
)
from workflow_kernel.exceptions import ConfigValidationError
from workflow_kernel.utils.hashing import hash_payload

_LOG_LEVELS = frozenset(logging.getLevelNamesMapping())


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursive merge; ``override`` wins on scalar conflicts."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def compute_checksum(data: dict[str, Any]) -> str:
    return hash_payload(data)


def parse_settings(data: dict[str, Any]) -> WorkflowSettings:
    """Parse a merged settings dict into ``WorkflowSettings``."""
    batch = data.get("batch", {})
    storage = data.get("storage", {})
    log = data.get("logging", {})
    labels = data.get("labels", {}) or {}
    return WorkflowSettings(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        batch=BatchSettings(
            batch_size=int(batch.get("batch_size", BatchSettings.batch_size)),
            min_batch_size=int(batch.get("min_batch_size", BatchSettings.min_batch_size)),
            max_batch_size=int(batch.get("max_batch_size", BatchSettings.max_batch_size)),
            max_items=int(batch.get("max_items", BatchSettings.max_items)),
        ),
        storage=StorageSettings(
            database_url=str(storage.get("database_url", StorageSettings.database_url)),
            optimistic_locking=bool(storage.get("optimistic_locking", False)),
            identifier_attempts=int(
                storage.get("identifier_attempts", StorageSettings.identifier_attempts)
            ),
        ),
        logging=LoggingSettings(level=str(log.get("level", "INFO")).upper()),
        labels=MappingProxyType({
            str(entity): MappingProxyType({str(k): str(v) for k, v in (mapping or {}).items()})
            for entity, mapping in labels.items()
        }),
        checksum=compute_checksum(data),
    )


def validate_settings(settings: WorkflowSettings) -> list[str]:
    """Return a list of validation errors (empty when valid)."""
    errors: list[str] = []
    b = settings.batch
    if b.min_batch_size < 1:
        errors.append(f"batch.min_batch_size must be >= 1, got {b.min_batch_size}")
    if b.max_batch_size < b.min_batch_size:
        errors.append(
            f"batch.max_batch_size ({b.max_batch_size}) is below "
            f"batch.min_batch_size ({b.min_batch_size})"
        )
    if not b.min_batch_size <= b.batch_size <= b.max_batch_size:
        errors.append(
            f"batch.batch_size must be between {b.min_batch_size} and "
            f"{b.max_batch_size}, got {b.batch_size}"
        )
    if b.max_items < b.batch_size:
        errors.append(
            f"batch.max_items ({b.max_items}) must be >= batch.batch_size ({b.batch_size})"
        )
    if settings.storage.identifier_attempts < 1:
        errors.append("storage.identifier_attempts must be >= 1")
    if settings.logging.level not in _LOG_LEVELS:
        errors.append(f"logging.level {settings.logging.level!r} is not a known level")
    return errors


def load_settings(defaults_path: Path, override_path: Path | None = None) -> WorkflowSettings:
    """Load defaults, merge the optional override, parse and validate."""
    data = load_yaml_file(defaults_path)
    if override_path is not None:
        data = merge_dicts(data, load_yaml_file(override_path))
    settings = parse_settings(data)
    errors = validate_settings(settings)
    if errors:
        raise ConfigValidationError(errors)
    return settings
