"""Tests for the structured logging system (settlement_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from settlement_kernel.domain.period import PeriodFilter
from settlement_kernel.exceptions import (
    ConcurrentModificationError,
    InvalidPriceError,
    NegativeBalanceError,
)
from settlement_kernel.logging_config import (
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
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "settlement_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("settled", extra={"delivery_count": 2, "status": "settled"})

        record = _parse_log(stream)
        assert record["delivery_count"] == 2
        assert record["status"] == "settled"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(run_id="run-1", farmer_id="farmer-7")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["run_id"] == "run-1"
        assert record["farmer_id"] == "farmer-7"

    def test_decimal_serialized_as_string(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("amount", extra={"net_amount": Decimal("1125.00")})

        assert _parse_log(stream)["net_amount"] == "1125.00"

    def test_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("with_uuid", extra={"transaction_id": uid})

        assert _parse_log(stream)["transaction_id"] == str(uid)

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_settlement_exception_code_extracted(self):
        """Kernel exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise NegativeBalanceError("farmer-1", Decimal("225"), Decimal("500"))
        except NegativeBalanceError:
            get_logger("test").error("refused", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "NEGATIVE_BALANCE"
        assert record["exc_farmer_id"] == "farmer-1"
        assert record["exc_net_payable"] == "-275"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "run_id" not in record
        assert "farmer_id" not in record

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")  # below the default INFO level

        logs = _parse_all_logs(stream)
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= record.keys()


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(run_id="run-1", farmer_id="farmer-7")
        assert LogContext.get_all() == {"run_id": "run-1", "farmer_id": "farmer-7"}

    def test_clear(self):
        LogContext.set(run_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(farmer_id="outer")
        with LogContext.bind(farmer_id="inner"):
            assert LogContext.get_all()["farmer_id"] == "inner"
        assert LogContext.get_all()["farmer_id"] == "outer"

    def test_bind_restores_none(self):
        assert "run_id" not in LogContext.get_all()
        with LogContext.bind(run_id="temp"):
            assert LogContext.get_all()["run_id"] == "temp"
        assert "run_id" not in LogContext.get_all()

    def test_bind_stringifies_uuid(self):
        uid = uuid4()
        with LogContext.bind(farmer_id=uid):
            assert LogContext.get_all()["farmer_id"] == str(uid)

    def test_nested_bulk_and_farmer_scopes(self):
        run_id = uuid4()
        farmer_id = uuid4()
        with LogContext.bind(run_id=run_id, actor_id="treasurer", period="January 2025"):
            with LogContext.bind(farmer_id=farmer_id, actor_id="treasurer"):
                assert LogContext.get_all() == {
                    "run_id": str(run_id),
                    "farmer_id": str(farmer_id),
                    "actor_id": "treasurer",
                    "period": "January 2025",
                }
            assert "farmer_id" not in LogContext.get_all()
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="transaction_id"):
            LogContext.bind(transaction_id="t")
        with pytest.raises(TypeError, match="correlation_id"):
            LogContext.set(correlation_id="c")
        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        # pytest's own capture handlers may sit beside ours
        handlers = logging.getLogger("settlement_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers

    def test_get_logger_returns_child(self):
        assert get_logger("services.settlement").name == "settlement_kernel.services.settlement"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("batch.bulk_settlement").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "settlement_kernel.batch.bulk_settlement"

    def test_level_name_from_settings(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="warning")
        logger = get_logger("services.price")
        logger.info("price_updated")
        logger.warning("settlement_conflict")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["settlement_conflict"]


# ---------------------------------------------------------------------------
# Settlement log lines
# ---------------------------------------------------------------------------


def _by_message(records: list[dict], message: str) -> list[dict]:
    return [r for r in records if r["message"] == message]


class TestSettlementLogLines:
    """The log lines operators read after a settlement or a bulk run."""

    def test_committed_line_identifies_payment(
        self, captured_logs, orchestrator, make_farmer, make_delivery,
    ):
        farmer = make_farmer()
        make_delivery(farmer, 10)

        result = orchestrator.settle_farmer(
            farmer, PeriodFilter.for_month(2025, 1), actor="clerk",
        )

        (line,) = _by_message(captured_logs(), "settlement_committed")
        assert line["farmer_id"] == str(farmer)
        assert line["actor_id"] == "clerk"
        assert line["period"] == "January 2025"
        assert line["transaction_id"] == str(result.transaction_id)
        assert Decimal(line["net_amount"]) == Decimal("450")
        assert line["delivery_count"] == 1
        assert LogContext.get_all() == {}

    def test_refusal_carries_reason_and_context(
        self, captured_logs, orchestrator, make_farmer, make_delivery, make_deduction,
    ):
        farmer = make_farmer()
        make_delivery(farmer, 1)
        make_deduction(farmer, 100)

        with pytest.raises(NegativeBalanceError):
            orchestrator.settle_farmer(farmer, actor="clerk")

        (line,) = _by_message(captured_logs(), "settlement_refused")
        assert line["reason"] == "NEGATIVE_BALANCE"
        assert line["farmer_id"] == str(farmer)

    def test_bulk_run_lines_share_run_id(
        self, captured_logs, orchestrator, make_farmer, make_delivery,
    ):
        first = make_farmer()
        second = make_farmer()
        make_delivery(first, 10)
        make_delivery(second, 2)

        report = orchestrator.settle_all(PeriodFilter.for_year(2025), actor="treasurer")

        records = captured_logs()
        (started,) = _by_message(records, "bulk_settlement_started")
        (completed,) = _by_message(records, "bulk_settlement_completed")
        committed = _by_message(records, "settlement_committed")
        assert started["farmer_count"] == 2
        assert started["period"] == "Year 2025"
        assert completed["run_id"] == started["run_id"]
        assert completed["currency"] == "KES"
        assert Decimal(completed["total_net_disbursed"]) == report.total_net_disbursed
        assert {r["farmer_id"] for r in committed} == {str(first), str(second)}
        assert {r["run_id"] for r in committed} == {started["run_id"]}
        assert {r["actor_id"] for r in committed} == {"treasurer"}


# ---------------------------------------------------------------------------
# Kernel exception fields
# ---------------------------------------------------------------------------


class TestKernelExceptionFields:

    def test_conflict_is_marked_retryable(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ConcurrentModificationError("FarmerSettlement", "farmer-1", "stale row")
        except ConcurrentModificationError:
            get_logger("services.settlement").warning("settlement_conflict", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "CONCURRENT_MODIFICATION"
        assert record["exc_retryable"] is True
        assert record["exc_entity_id"] == "farmer-1"

    def test_invalid_price_is_not_retryable(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InvalidPriceError(-2.5)
        except InvalidPriceError:
            get_logger("services.price").error("price_rejected", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INVALID_PRICE"
        assert record["exc_retryable"] is False
        assert record["exc_price"] == "-2.5"

    def test_plain_exception_has_no_retryable_flag(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        assert "exc_retryable" not in _parse_log(stream)
