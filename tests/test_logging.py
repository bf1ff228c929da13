"""Tests for the structured logging system (stock_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from stock_kernel.exceptions import InsufficientStockError
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
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


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "stock_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("stock_moved", extra={"quantity": 20, "action": "IN"})

        record = _parse_log(stream)
        assert record["quantity"] == 20
        assert record["action"] == "IN"

    def test_uuid_and_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        type_id = uuid4()
        get_logger("test").info("priced", extra={"type_ref": type_id, "price": Decimal("1.50")})

        record = _parse_log(stream)
        assert record["type_ref"] == str(type_id)
        assert record["price"] == "1.50"

    def test_kernel_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InsufficientStockError("type-1", 30, 20)
        except InsufficientStockError:
            get_logger("test").error("consume_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_requested"] == 30
        assert record["exc_available"] == 20
        assert "traceback" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc", actor_id="emp-1")
        get_logger("test").info("with_context")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc"
        assert record["actor_id"] == "emp-1"

    def test_unknown_field_rejected(self):
        with pytest.raises(KeyError):
            LogContext.set(tenant="acme")

    def test_bind_restores_previous_values(self):
        LogContext.set(operation="outer")
        with LogContext.bind(operation="inner", product_id="p-1"):
            assert LogContext.get_all()["operation"] == "inner"
            assert LogContext.get_all()["product_id"] == "p-1"
        assert LogContext.get_all() == {"operation": "outer"}

    def test_clear(self):
        LogContext.set(correlation_id="abc")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_applies_to_every_record(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(operation="use_consumable"):
            get_logger("test").info("a")
            get_logger("test").info("b")

        records = _parse_all_logs(stream)
        assert [r["operation"] for r in records] == ["use_consumable", "use_consumable"]


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        structured = [
            h for h in logging.getLogger("stock_kernel").handlers
            if isinstance(h.formatter, StructuredFormatter)
        ]
        assert structured == [handler]

    def test_level_respected(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        get_logger("test").info("hidden")
        get_logger("test").warning("shown")

        records = _parse_all_logs(stream)
        assert [r["message"] for r in records] == ["shown"]

    def test_does_not_propagate_to_root(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        assert logging.getLogger("stock_kernel").propagate is False
