"""Tests for the structured logging system (workflow_kernel/logging_config.py)."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from workflow_kernel.domain.records import RequestStatus
from workflow_kernel.exceptions import StaleRecordError, StorageFailureError
from workflow_kernel.logging_config import (
    CONTEXT_FIELDS,
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    log_event,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state for each test, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


@pytest.fixture
def stream():
    handler, stream = _make_handler()
    configure_logging(handler=handler)
    return stream


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self, stream):
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "workflow_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self, stream):
        get_logger("test").info("batch_item_failed", extra={"record_id": "SUB-10001", "retryable": False})

        record = _parse_log(stream)
        assert record["record_id"] == "SUB-10001"
        assert record["retryable"] is False

    def test_context_fields_included(self, stream):
        LogContext.set(correlation_id="abc-123", entity_id="SUB-10001")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["entity_id"] == "SUB-10001"

    def test_context_wins_over_colliding_extra(self, stream):
        LogContext.set(entity_id="SUB-10001")
        get_logger("test").info("clash", extra={"entity_id": "SUB-99999"})

        assert _parse_log(stream)["entity_id"] == "SUB-10001"

    def test_exception_fields(self, stream):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record
        assert "traceback" in record

    def test_workflow_exception_code_extracted(self, stream):
        """Workflow exceptions carry a .code attribute and structured fields."""
        try:
            raise StaleRecordError("subscriber", "SUB-10001", "Added", "Active")
        except StaleRecordError:
            get_logger("test").error("stale", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "STALE_RECORD"
        assert record["exc_retryable"] is False
        assert record["exc_type"] == "StaleRecordError"
        assert record["exc_record_id"] == "SUB-10001"

    def test_retryable_flag_reported(self, stream):
        try:
            raise StorageFailureError("payment", "TR-1000000001", "write", "connection reset")
        except StorageFailureError:
            get_logger("test").error("storage", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "STORAGE_FAILURE"
        assert record["exc_retryable"] is True
        assert record["exc_operation"] == "write"

    def test_uuid_and_enum_serialized(self, stream):
        uid = uuid4()

        get_logger("test").info("with_uuid", extra={"batch_uuid": uid, "rs": RequestStatus.PENDING})

        record = _parse_log(stream)
        assert record["batch_uuid"] == str(uid)
        assert record["rs"] == "pending"

    def test_valid_json_every_line(self, stream):
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # INFO is the default level, so the debug line is dropped
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= set(record)


# ---------------------------------------------------------------------------
# log_event tests
# ---------------------------------------------------------------------------


class TestLogEvent:

    def test_decision_payload_is_enveloped(self, stream):
        with LogContext.bind(entity_id="SUB-10001"):
            log_event(
                get_logger("test"), "decision", "decision_resolved",
                action="approve", from_status="Added", to_status="Active",
            )

        record = _parse_log(stream)
        assert record["event"] == "decision"
        assert record["entity_id"] == "SUB-10001"
        assert record["decision"] == {"action": "approve", "from_status": "Added", "to_status": "Active"}
        assert "to_status" not in record

    def test_batch_payload_at_level(self, stream):
        log_event(
            get_logger("test"), "batch", "batch_cancelled", logging.WARNING,
            processed=2, skipped=3,
        )

        record = _parse_log(stream)
        assert record["level"] == "WARNING"
        assert record["message"] == "batch_cancelled"
        assert record["batch"] == {"processed": 2, "skipped": 3}

    def test_payload_values_serialized(self, stream):
        log_event(get_logger("test"), "decision", "decision_resolved", request_status=RequestStatus.APPROVED)

        assert _parse_log(stream)["decision"]["request_status"] == "approved"

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError, match="unknown event kind"):
            log_event(get_logger("test"), "audit", "something")


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", batch_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "batch_id": "y"}

    def test_set_merges(self):
        LogContext.set(actor_id="EMP-10001")
        LogContext.set(entity_id="SUB-10001", actor_id=None)
        assert LogContext.get_all() == {"actor_id": "EMP-10001", "entity_id": "SUB-10001"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(entity_id="outer")
        with LogContext.bind(entity_id="inner"):
            assert LogContext.get_all()["entity_id"] == "inner"
        assert LogContext.get_all()["entity_id"] == "outer"

    def test_bind_restores_none(self):
        with LogContext.bind(actor_id="EMP-10001"):
            assert LogContext.get_all()["actor_id"] == "EMP-10001"
        assert "actor_id" not in LogContext.get_all()

    def test_bind_restores_after_error(self):
        with pytest.raises(KeyError):
            with LogContext.bind(batch_id="b-1"):
                raise KeyError("x")
        assert LogContext.get_all() == {}

    def test_bind_skips_none_values(self):
        LogContext.set(entity_id="SUB-10001")
        with LogContext.bind(entity_id=None, entity_type="subscriber"):
            assert LogContext.get_all() == {"entity_id": "SUB-10001", "entity_type": "subscriber"}

    def test_values_stored_as_text(self):
        LogContext.set(batch_id=42)
        assert LogContext.get_all()["batch_id"] == "42"

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="record_id"):
            LogContext.set(record_id="SUB-10001")
        with pytest.raises(TypeError):
            with LogContext.bind(tenant="acme"):
                pass

    def test_all_fields(self):
        LogContext.set(**{name: name.upper() for name in CONTEXT_FIELDS})
        assert set(LogContext.get_all()) == set(CONTEXT_FIELDS)


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        h2, _ = _make_handler()

        first = configure_logging(handler=h1)
        second = configure_logging(handler=h2, level=logging.ERROR)

        handlers = logging.getLogger("workflow_kernel").handlers
        assert first is h1
        assert second is h1
        assert h2 not in handlers
        assert logging.getLogger("workflow_kernel").level == logging.INFO

    def test_string_level_accepted(self):
        configure_logging(level="debug", stream=StringIO())
        assert logging.getLogger("workflow_kernel").level == logging.DEBUG

    def test_stops_propagation(self):
        configure_logging(stream=StringIO())
        assert logging.getLogger("workflow_kernel").propagate is False

    def test_reset_removes_handlers(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        reset_logging()
        get_logger("test").warning("after_reset")

        root = logging.getLogger("workflow_kernel")
        assert handler not in root.handlers
        assert root.propagate is True
        assert stream.getvalue() == ""

    def test_get_logger_returns_child(self):
        assert get_logger("services.decision_resolver").name == "workflow_kernel.services.decision_resolver"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("modules.subscriber.workflows").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "workflow_kernel.modules.subscriber.workflows"
