"""Tests for structured logging configuration."""

import logging
from decimal import Decimal
from uuid import uuid4

import structlog

from back_office_ledger.config import Environment, Settings
from back_office_ledger.domain.documents import LineItem
from back_office_ledger.domain.value_objects import DocumentStatus
from back_office_ledger.logging_config import (
    LogContext,
    _add_log_level,
    _app_context,
    _stringify_values,
    bind_context,
    clear_context,
    configure_logging,
    document_context,
    get_console_processors,
    get_json_processors,
    get_logger,
)
from back_office_ledger.services.line_items import LineItemResolver


class TestProcessors:
    def test_warn_is_reported_as_warning(self):
        event = _add_log_level(None, "warn", {"event": "x"})

        assert event["level"] == "WARNING"

    def test_app_context_added(self):
        processor = _app_context(Settings(environment=Environment.TESTING))

        event = processor(None, "info", {"event": "x"})

        assert event["app"] == "Back Office Ledger"
        assert event["environment"] == "testing"

    def test_values_rendered_as_stored(self):
        line_id = uuid4()

        event = _stringify_values(
            None,
            "info",
            {"total": Decimal("47.250"), "line_id": line_id, "status": DocumentStatus.PARTIAL},
        )

        assert event == {"total": "47.250", "line_id": str(line_id), "status": "Partial"}

    def test_console_renderer_last(self):
        assert isinstance(get_console_processors()[-1], structlog.dev.ConsoleRenderer)

    def test_json_renderer_last(self):
        assert isinstance(get_json_processors()[-1], structlog.processors.JSONRenderer)


class TestConfigureLogging:
    def test_json_format(self):
        configure_logging(Settings(environment=Environment.TESTING, log_format="json"))

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

        configure_logging(Settings(environment=Environment.TESTING))

    def test_production_always_logs_json(self):
        configure_logging(Settings(environment=Environment.PRODUCTION, log_format="console"))

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

        configure_logging(Settings(environment=Environment.TESTING))

    def test_log_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "bol.log"
        root = logging.getLogger()
        before = list(root.handlers)

        configure_logging(Settings(environment=Environment.TESTING, log_file=log_file))

        added = [handler for handler in root.handlers if handler not in before]
        try:
            assert log_file.parent.exists()
            assert any(isinstance(handler, logging.FileHandler) for handler in added)
        finally:
            for handler in added:
                root.removeHandler(handler)
                handler.close()

    def test_get_logger(self):
        assert get_logger("back_office_ledger.tests") is not None


class TestLogContext:
    def test_binds_and_unbinds(self):
        clear_context()

        with LogContext(document_id="abc", document_number="SO-0001"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["document_id"] == "abc"
            assert bound["document_number"] == "SO-0001"

        assert "document_id" not in structlog.contextvars.get_contextvars()

    def test_leaves_outer_context(self):
        clear_context()
        bind_context(request="r-1")

        with LogContext(document_id="abc"):
            pass

        assert structlog.contextvars.get_contextvars() == {"request": "r-1"}
        clear_context()

    def test_nested_document_contexts_restore_outer(self):
        clear_context()
        order_id, delivery_id = uuid4(), uuid4()

        with document_context(order_id, "SO-0001"):
            with document_context(delivery_id, "DN-0001"):
                assert structlog.contextvars.get_contextvars()["document_number"] == "DN-0001"
            bound = structlog.contextvars.get_contextvars()

        assert bound == {"document_id": str(order_id), "document_number": "SO-0001"}
        assert structlog.contextvars.get_contextvars() == {}


class TestDomainEvents:
    def test_clamped_discount_is_logged(self, capsys, caplog):
        line = LineItem(
            document_id=uuid4(),
            quantity=Decimal("1"),
            unit_price=Decimal("10.00"),
            discount_amount=Decimal("25.00"),
        )

        with caplog.at_level(logging.WARNING, logger="back_office_ledger.services.line_items"):
            result = LineItemResolver().resolve(line)

        assert result.net_amount == Decimal("0.00")
        # structlog may render to stdout or through stdlib logging
        all_output = capsys.readouterr().out + caplog.text
        assert "discount_clamped" in all_output
