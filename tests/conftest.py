"""
Pytest fixtures for the workflow core test suite.

Provides:
- Structured logging configured for the whole session, with per-test
  LogContext isolation and a ``captured_logs`` helper
- A DeterministicClock and an in-memory record store
- An in-memory SQLite session for the SQLAlchemy record store
- Actor references and a ``seed_record`` helper for arranging records in
  a given status without going through the workflow
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

# Importing the modules package registers every transition table.
import workflow_modules  # noqa: F401
import workflow_kernel.models  # noqa: F401

from workflow_kernel.db.base import Base
from workflow_kernel.domain.clock import DeterministicClock
from workflow_kernel.domain.records import (
    ActorRef,
    EntityType,
    ModifiedData,
    Record,
    RequestStatus,
)
from workflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from workflow_kernel.services.record_store import InMemoryRecordStore, SqlRecordStore

FIXED_TIME = datetime(2024, 6, 1, 9, 30, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture workflow_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, subscribers):
            subscribers.decide(...)
            logs = captured_logs()
            assert any(r["message"] == "decision_resolved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("workflow_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(FIXED_TIME)


@pytest.fixture
def store(clock):
    return InMemoryRecordStore(clock=clock)


@pytest.fixture
def sql_session():
    """In-memory SQLite session with all tables created."""
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    session = Session(engine)
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def sql_store(sql_session, clock):
    return SqlRecordStore(sql_session, clock=clock)


@pytest.fixture
def actor():
    return ActorRef(actor_id="EMP-10001", name="Operator", roles=("Operations",))


@pytest.fixture
def approver():
    return ActorRef(actor_id="EMP-20002", name="Approver", roles=("Admin",))


def make_record(
    entity_type: EntityType,
    record_id: str,
    status: str,
    request_status: RequestStatus | str = RequestStatus.APPROVED,
    fields: dict[str, Any] | None = None,
    modified_current: dict[str, Any] | None = None,
    modified_previous: dict[str, Any] | None = None,
) -> Record:
    modified = None
    if modified_current is not None:
        modified = ModifiedData(
            previous=modified_previous or {},
            current=modified_current,
            modified_by="EMP-10001",
            modified_at=FIXED_TIME,
        )
    return Record(
        entity_type=entity_type,
        record_id=record_id,
        status=status,
        request_status=RequestStatus(request_status),
        fields=dict(fields or {}),
        modified_data=modified,
        created_by="EMP-10001",
        created_at=FIXED_TIME,
        updated_at=FIXED_TIME,
    )


@pytest.fixture(name="make_record")
def _make_record_fixture():
    """The ``make_record`` builder, for tests that seed a store themselves."""
    return make_record


@pytest.fixture
def seed_record(store):
    """Insert a record directly into the in-memory store and return it."""

    def _seed(entity_type: EntityType, record_id: str, status: str, **kwargs: Any) -> Record:
        return store.insert_record(make_record(entity_type, record_id, status, **kwargs))

    return _seed
