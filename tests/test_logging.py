"""Tests for the structured logging system (siteflow_kernel/logging_config.py)."""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from siteflow_kernel.exceptions import StaleStateError
from siteflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    log_operation,
    reset_logging,
)
from siteflow_modules.indent.models import IndentStatus


@pytest.fixture(autouse=True)
def _clean_logging():
    """Start each test unconfigured; restore the suite's configuration after."""
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


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


def _parse_log(stream: StringIO) -> dict:
    return _parse_all_logs(stream)[0]


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "siteflow.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("indent_transition_applied", extra={"version": 3, "status": "QS_Analysis"})

        record = _parse_log(stream)
        assert record["version"] == 3
        assert record["status"] == "QS_Analysis"

    def test_domain_values_serialised(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        request_id = uuid4()
        get_logger("test").info(
            "values",
            extra={
                "request_id": request_id,
                "amount": Decimal("450.00"),
                "report_date": date(2024, 1, 10),
                "at": datetime(2024, 1, 10, 9, 30, tzinfo=timezone.utc),
                "to_status": IndentStatus.COMPLETED,
            },
        )

        record = _parse_log(stream)
        assert record["request_id"] == str(request_id)
        assert record["amount"] == "450.00"
        assert record["report_date"] == "2024-01-10"
        assert record["at"] == "2024-01-10T09:30:00+00:00"
        assert record["to_status"] == "Completed"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise StaleStateError("MaterialRequest", "req-1", "Raised_By_SE", "QS_Analysis")
        except StaleStateError:
            get_logger("test").error("transition_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "StaleStateError"
        assert record["exc_code"] == "STALE_STATE"
        assert record["exc_expected_state"] == "Raised_By_SE"
        assert record["exc_actual_state"] == "QS_Analysis"
        assert "traceback" in record

    def test_one_line_per_record(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second")

        records = _parse_all_logs(stream)
        assert [r["message"] for r in records] == ["first", "second"]
        assert [r["level"] for r in records] == ["INFO", "WARNING"]


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_fields_appear_in_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="corr-1", actor_role="pm")
        get_logger("test").info("with_context")

        record = _parse_log(stream)
        assert record["correlation_id"] == "corr-1"
        assert record["actor_role"] == "pm"
        assert "actor_name" not in record

    def test_set_ignores_none(self):
        LogContext.set(actor_name="asha")
        LogContext.set(actor_name=None, actor_role="finance")
        assert LogContext.get_all() == {"actor_name": "asha", "actor_role": "finance"}

    def test_bind_restores_previous_values(self):
        LogContext.set(actor_role="pm")
        with LogContext.bind(actor_role="finance", actor_name="meena"):
            assert LogContext.get_all() == {"actor_role": "finance", "actor_name": "meena"}
        assert LogContext.get_all() == {"actor_role": "pm"}

    def test_unknown_fields_rejected(self):
        with pytest.raises(TypeError):
            LogContext.set(entry_id="x")
        with pytest.raises(TypeError):
            with LogContext.bind(not_a_field="x"):
                pass
        assert LogContext.get_all() == {}

    def test_bind_restores_after_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(request_id="r-9"):
                raise RuntimeError("boom")
        assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(trace_id="t-1")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_context_does_not_override_extra(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(actor_role="pm")
        get_logger("test").info("explicit", extra={"actor_name": "ravi"})

        record = _parse_log(stream)
        assert record["actor_role"] == "pm"
        assert record["actor_name"] == "ravi"


# ---------------------------------------------------------------------------
# configure_logging / get_logger
# ---------------------------------------------------------------------------


class TestConfiguration:

    def test_get_logger_prefix(self):
        assert get_logger("modules.indent.service").name == "siteflow.modules.indent.service"

    def test_configure_is_idempotent(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        assert logging.getLogger("siteflow").handlers == [handler]

    def test_level_filters(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        logger = get_logger("test")
        logger.info("dropped")
        logger.warning("kept")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["kept"]

    def test_does_not_propagate_to_root(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        assert logging.getLogger("siteflow").propagate is False

    def test_reset_clears_handlers(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        reset_logging()
        assert logging.getLogger("siteflow").handlers == []


# ---------------------------------------------------------------------------
# log_operation
# ---------------------------------------------------------------------------


class TestLogOperation:

    def test_completed_with_duration(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.DEBUG, handler=handler)
        with log_operation("indent_get", read_only=True):
            pass

        record = _parse_log(stream)
        assert record["message"] == "operation_completed"
        assert record["operation"] == "indent_get"
        assert record["read_only"] is True
        assert record["duration_ms"] >= 0

    def test_failure_logged_and_reraised(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.DEBUG, handler=handler)
        with pytest.raises(StaleStateError):
            with log_operation("indent_apply_transition"):
                raise StaleStateError("MaterialRequest", "req-1", "Raised_By_SE", "QS_Analysis")

        record = _parse_log(stream)
        assert record["message"] == "operation_failed"
        assert record["error_type"] == "StaleStateError"

    def test_store_operations_are_timed(self, indent_store, make_draft, captured_logs):
        indent_store.create(make_draft(), requested_by="ravi")
        timed = [r for r in captured_logs() if r["message"] == "operation_completed"]
        assert "indent_create" in {r["operation"] for r in timed}
