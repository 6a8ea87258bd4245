"""Unit tests for logging filters, correlation IDs and configuration."""

import logging
import logging.handlers
from collections.abc import Iterator

import pytest
from _pytest.logging import LogCaptureFixture

from recovery_engine.utils.logging import (
    CorrelationIDFilter,
    SensitiveDataFilter,
    clear_correlation_id,
    configure_logging,
    correlation_id_var,
    get_correlation_id,
    get_logger,
    log_with_context,
    set_correlation_id,
)
from recovery_engine.utils.sanitization import REDACTED


def _record(msg: str, *args: object, **attrs: object) -> logging.LogRecord:
    record = logging.LogRecord("recovery_engine.test", logging.WARNING, __file__, 1, msg, args, None)
    for name, value in attrs.items():
        setattr(record, name, value)
    return record


@pytest.fixture
def restore_root_logger() -> Iterator[logging.Logger]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.unit
class TestCorrelationId:
    def test_set_and_get(self) -> None:
        _ = set_correlation_id("fault-abc123")
        assert get_correlation_id() == "fault-abc123"

    def test_token_restores_previous_value(self) -> None:
        _ = set_correlation_id("outer")
        token = set_correlation_id("inner")

        correlation_id_var.reset(token)

        assert get_correlation_id() == "outer"

    def test_clear(self) -> None:
        _ = set_correlation_id("fault-abc123")
        clear_correlation_id()
        assert get_correlation_id() is None

    def test_filter_stamps_record(self) -> None:
        record = _record("hello")
        _ = set_correlation_id("fault-42")

        assert CorrelationIDFilter().filter(record) is True
        assert getattr(record, "correlation_id") == "fault-42"

    def test_filter_uses_placeholder_without_id(self) -> None:
        record = _record("hello")
        _ = CorrelationIDFilter().filter(record)
        assert getattr(record, "correlation_id") == "N/A"


@pytest.mark.unit
class TestSensitiveDataFilter:
    def test_message_is_redacted(self) -> None:
        record = _record("Lookup failed for MRN 0048812")

        _ = SensitiveDataFilter().filter(record)

        assert record.getMessage() == f"Lookup failed for MRN {REDACTED}"

    def test_args_are_redacted(self) -> None:
        record = _record("No match for %s on %s", "transcript='I need water'", "camera")

        _ = SensitiveDataFilter().filter(record)

        assert record.getMessage() == f"No match for transcript='{REDACTED}' on camera"

    def test_extra_fields_are_redacted(self) -> None:
        record = _record("Recognition failed", utterance="help me", component="sign-recognition")

        _ = SensitiveDataFilter().filter(record)

        assert getattr(record, "utterance") == REDACTED
        assert getattr(record, "component") == "sign-recognition"

    def test_standard_attributes_untouched(self) -> None:
        record = _record("hello")
        record.correlation_id = "fault-mrn-lookup"

        _ = SensitiveDataFilter().filter(record)

        assert record.levelname == "WARNING"
        assert getattr(record, "correlation_id") == "fault-mrn-lookup"


@pytest.mark.unit
class TestConfigureLogging:
    def test_console_handler_with_filters(self, restore_root_logger: logging.Logger) -> None:
        configure_logging(log_level="DEBUG")

        assert restore_root_logger.level == logging.DEBUG
        [handler] = restore_root_logger.handlers
        assert isinstance(handler, logging.StreamHandler)
        filter_types = {type(f) for f in handler.filters}
        assert filter_types == {CorrelationIDFilter, SensitiveDataFilter}

    def test_unknown_level_falls_back_to_info(self, restore_root_logger: logging.Logger) -> None:
        configure_logging(log_level="chatty")
        assert restore_root_logger.level == logging.INFO

    def test_console_can_be_disabled(self, restore_root_logger: logging.Logger) -> None:
        configure_logging(enable_console=False)
        assert restore_root_logger.handlers == []

    def test_unreachable_syslog_falls_back(
        self, restore_root_logger: logging.Logger, capsys: pytest.CaptureFixture[str]
    ) -> None:
        configure_logging(enable_syslog=True, syslog_address="/nonexistent/recovery-engine.sock")

        assert all(
            not isinstance(handler, logging.handlers.SysLogHandler) for handler in restore_root_logger.handlers
        )
        assert "Could not connect to syslog" in capsys.readouterr().err


@pytest.mark.unit
class TestLogWithContext:
    def test_extra_fields_attached(self, caplog: LogCaptureFixture) -> None:
        logger = get_logger("recovery_engine.test")

        with caplog.at_level(logging.INFO):
            log_with_context(logger, logging.INFO, "Fallback engaged", extra={"component": "camera"})

        [record] = caplog.records
        assert record.getMessage() == "Fallback engaged"
        assert getattr(record, "component") == "camera"

    def test_correlation_id_included(self, caplog: LogCaptureFixture) -> None:
        logger = get_logger("recovery_engine.test")
        _ = set_correlation_id("fault-7")

        with caplog.at_level(logging.INFO):
            log_with_context(logger, logging.INFO, "Handling failure")

        assert getattr(caplog.records[0], "correlation_id") == "fault-7"
