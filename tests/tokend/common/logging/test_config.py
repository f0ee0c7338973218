"""Tests for logging configuration.

Tests verify:
- configure_logging sets up JSON logging correctly
- LeaseContextFilter adds lease paths to log records
- log_with_context adds context fields properly
"""

import json
import logging
from collections.abc import Iterator
from io import StringIO

import pytest

from tokend.common.logging.config import (
    LeaseContextFilter,
    configure_logging,
    log_with_context,
)
from tokend.common.logging.context import LeaseLogContext, clear_lease_path
from tokend.common.logging.formatter import JSONFormatter


@pytest.fixture()
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record() -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="/path/to/file.py",
        lineno=42,
        msg="Test",
        args=(),
        exc_info=None,
    )


class TestLeaseContextFilter:
    """Test suite for LeaseContextFilter."""

    def setup_method(self) -> None:
        clear_lease_path()

    def teardown_method(self) -> None:
        clear_lease_path()

    def test_adds_lease_path_from_context(self) -> None:
        record = make_record()

        with LeaseLogContext("secret/db"):
            assert LeaseContextFilter().filter(record) is True

        assert record.lease == "secret/db"

    def test_none_outside_context(self) -> None:
        record = make_record()

        LeaseContextFilter().filter(record)

        assert record.lease is None

    def test_explicit_lease_kept(self) -> None:
        record = make_record()
        record.lease = "secret/explicit"

        with LeaseLogContext("secret/db"):
            LeaseContextFilter().filter(record)

        assert record.lease == "secret/explicit"


class TestConfigureLogging:
    """Test suite for configure_logging."""

    @pytest.mark.usefixtures("restore_root_logger")
    def test_installs_single_json_handler(self) -> None:
        configure_logging(service_name="tokend", log_level="DEBUG")
        configure_logging(service_name="tokend", log_level="DEBUG")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert any(isinstance(f, LeaseContextFilter) for f in root.handlers[0].filters)

    @pytest.mark.usefixtures("restore_root_logger")
    def test_level_is_case_insensitive(self) -> None:
        configure_logging(log_level="warning")

        assert logging.getLogger().level == logging.WARNING

    def test_invalid_level_raises(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging(log_level="LOUD")

    @pytest.mark.usefixtures("restore_root_logger")
    def test_records_carry_lease_path(self) -> None:
        configure_logging(service_name="tokend")
        stream = StringIO()
        logging.getLogger().handlers[0].setStream(stream)

        with LeaseLogContext("secret/db"):
            logging.getLogger("tokend.test").info("Lease renewed", extra={"lease_duration": 60})

        log_dict = json.loads(stream.getvalue())
        assert log_dict["lease"] == "secret/db"
        assert log_dict["service"] == "tokend"
        assert log_dict["context"] == {"lease_duration": 60}


class TestLogWithContext:
    """Test suite for log_with_context."""

    def test_context_fields_passed_as_extra(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("tokend.test.context")

        with caplog.at_level(logging.INFO, logger="tokend.test.context"):
            log_with_context(logger, "INFO", "Lease ready", lease_duration=60, renewable=True)

        record = caplog.records[-1]
        assert record.getMessage() == "Lease ready"
        assert record.context == {"lease_duration": 60, "renewable": True}
