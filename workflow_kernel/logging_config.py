"""
Structured JSON logging (``workflow_kernel.logging_config``).

Every line is one JSON object: ``ts``, ``level``, ``logger``, ``message``,
the fields bound in ``LogContext``, then any ``extra`` fields.

Decision and batch events carry their payload inside a named envelope::

    {"message": "decision_resolved", "event": "decision",
     "entity_id": "SUB-10001", "decision": {"action": "approve", ...}}

so a consumer can pick out one family of events by the ``event`` key and
read its fields without colliding with context or stdlib attributes.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "EVENT_KINDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "log_event",
    "reset_logging",
]

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

LOGGER_ROOT = "workflow_kernel"

CONTEXT_FIELDS = ("correlation_id", "actor_id", "entity_type", "entity_id", "batch_id")
EVENT_KINDS = frozenset({"decision", "batch"})

# Never mutated in place; every update sets a new dict.
_context: ContextVar[dict[str, str]] = ContextVar("workflow_log_context", default={})


class LogContext:
    """Request-scoped log fields (actor, entity, batch) carried in a ContextVar."""

    @staticmethod
    def set(**fields: Any) -> None:
        """Update the given fields; ``None`` values leave a field as it is."""
        _context.set({**_context.get(), **_context_fields(fields)})

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Bind fields for the duration of a block, then restore the previous set."""
        token = _context.set({**_context.get(), **_context_fields(fields)})
        try:
            yield
        finally:
            _context.reset(token)


def _context_fields(fields: dict[str, Any]) -> dict[str, str]:
    unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
    if unknown:
        raise TypeError(f"unknown log context field(s): {', '.join(unknown)}")
    return {k: str(v) for k, v in fields.items() if v is not None}


def log_event(
    logger: logging.Logger,
    kind: str,
    message: str,
    level: int = logging.INFO,
    **payload: Any,
) -> None:
    """Log ``message`` with ``payload`` nested under the ``kind`` envelope."""
    if kind not in EVENT_KINDS:
        raise ValueError(f"unknown event kind {kind!r}")
    logger.log(level, message, extra={"event": kind, kind: payload})


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RESERVED: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
        fields["exc_retryable"] = bool(getattr(exc, "retryable", False))
    # WorkflowKernelError subclasses keep their identifiers as attributes
    for key, value in vars(exc).items():
        if not key.startswith("_"):
            fields.setdefault(f"exc_{key}", value)
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_INSTALLED = "_workflow_structured_handler"


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``workflow_kernel`` namespace."""
    return logging.getLogger(f"{LOGGER_ROOT}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> logging.Handler:
    """Install the structured handler on the ``workflow_kernel`` logger.

    Idempotent: when a structured handler is already installed it is
    returned unchanged and ``level`` is ignored.
    """
    root = logging.getLogger(LOGGER_ROOT)
    for existing in root.handlers:
        if getattr(existing, _INSTALLED, False):
            return existing

    installed = handler or logging.StreamHandler(stream or sys.stderr)
    installed.setFormatter(StructuredFormatter())
    setattr(installed, _INSTALLED, True)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.propagate = False
    root.addHandler(installed)
    return installed


def reset_logging() -> None:
    """Remove every handler from the ``workflow_kernel`` logger. For tests."""
    root = logging.getLogger(LOGGER_ROOT)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(logging.WARNING)
    root.propagate = True
