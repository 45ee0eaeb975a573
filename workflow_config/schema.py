"""
Workflow settings schema.

Frozen dataclasses parsed from ``defaults.yaml`` (and an optional override
file) by the loader.  Nothing here reads files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BatchSettings:
    """Chunking policy for batch decisions."""

    batch_size: int = 10
    min_batch_size: int = 1
    max_batch_size: int = 50
    max_items: int = 100


@dataclass(frozen=True)
class StorageSettings:
    database_url: str = "sqlite:///:memory:"
    optimistic_locking: bool = False
    identifier_attempts: int = 5


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowSettings:
    """Root settings object returned by ``get_active_config()``.

    ``labels`` maps entity type name -> field path -> display label.
    ``checksum`` identifies the exact merged source the settings came from.
    """

    config_id: str
    version: int
    batch: BatchSettings = field(default_factory=BatchSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    labels: Mapping[str, Mapping[str, str]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    checksum: str = ""

    def labels_for(self, entity_type: str) -> Mapping[str, str]:
        return self.labels.get(entity_type, MappingProxyType({}))
