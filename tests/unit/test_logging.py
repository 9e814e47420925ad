"""Tests for keycustody.logging module."""

import json
import logging
import sys
from unittest.mock import patch
from uuid import uuid4

import pytest

from keycustody.logging import (
    AuditAction,
    AuditLogger,
    JSONFormatter,
    StructuredLogger,
    TextFormatter,
    get_audit_logger,
    get_logger,
    setup_logging,
)


def _record(level=logging.INFO, msg="Test message", name="test.logger", exc_info=None):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestAuditAction:
    """Tests for AuditAction enum."""

    def test_key_actions(self):
        """Test key lifecycle action values."""
        assert AuditAction.KEY_CREATE.value == "key.create"
        assert AuditAction.KEY_IMPORT.value == "key.import"
        assert AuditAction.KEY_GET.value == "key.get"

    def test_data_actions(self):
        """Test signature action values."""
        assert AuditAction.DATA_SIGN.value == "data.sign"
        assert AuditAction.DATA_VERIFY.value == "data.verify"


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_format(self):
        """Test basic JSON formatting."""
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test.logger"
        assert data["message"] == "Test message"
        assert "timestamp" in data

    def test_format_with_extra(self):
        """Test JSON formatting with extra fields."""
        record = _record()
        record.extra = {"key_id": "abc", "vault": "primary"}

        data = json.loads(JSONFormatter().format(record))

        assert data["key_id"] == "abc"
        assert data["vault"] == "primary"

    def test_format_with_exception(self):
        """Test JSON formatting with exception info."""
        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(_record(logging.ERROR, exc_info=exc_info)))

        assert "ValueError" in data["exception"]
        assert "test error" in data["exception"]

    def test_debug_level_includes_location(self):
        """Test that debug level includes file location."""
        record = _record(logging.DEBUG)
        record.filename = "vault.py"
        record.funcName = "_request"

        data = json.loads(JSONFormatter().format(record))

        assert data["location"] == {"file": "vault.py", "line": 10, "function": "_request"}

    def test_info_level_has_no_location(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert "location" not in data


class TestTextFormatter:
    """Tests for TextFormatter."""

    def test_basic_format(self):
        """Test basic text formatting."""
        result = TextFormatter().format(_record())

        assert "INFO" in result
        assert "[test.logger]" in result
        assert "Test message" in result
        assert "|" not in result

    def test_format_with_extra(self):
        """Test text formatting with extra fields."""
        record = _record()
        record.extra = {"action": "data.sign", "success": True}

        result = TextFormatter().format(record)

        assert "| action=data.sign success=True" in result

    def test_format_with_exception(self):
        """Test text formatting with exception info."""
        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()

        result = TextFormatter().format(_record(logging.ERROR, exc_info=exc_info))

        assert "ValueError" in result
        assert "test error" in result


class TestStructuredLogger:
    """Tests for StructuredLogger."""

    def test_process_wraps_context(self):
        """Test adapter context lands under the record's extra attribute."""
        logger = StructuredLogger(logging.getLogger("test.structured"), {"vault": "primary"})

        msg, kwargs = logger.process("Test message", {"extra": {"operation": "sign"}})

        assert msg == "Test message"
        assert kwargs["extra"] == {"extra": {"operation": "sign", "vault": "primary"}}

    def test_with_context(self):
        """Test creating logger with additional context."""
        logger = StructuredLogger(logging.getLogger("test.context"), {"vault": "primary"})

        new_logger = logger.with_context(key_id="abc")

        assert new_logger.extra == {"vault": "primary", "key_id": "abc"}
        assert logger.extra == {"vault": "primary"}

    def test_context_override(self):
        """Test that with_context can override existing context."""
        logger = StructuredLogger(logging.getLogger("test.override"), {"vault": "a"})

        assert logger.with_context(vault="b").extra["vault"] == "b"

    def test_emits_extra_on_record(self, caplog):
        logger = StructuredLogger(logging.getLogger("test.emit"), {"vault": "primary"})

        with caplog.at_level(logging.INFO, logger="test.emit"):
            logger.info("hello")

        assert caplog.records[-1].extra == {"vault": "primary"}


class TestAuditLogger:
    """Tests for AuditLogger."""

    @pytest.fixture
    def audit_logger(self):
        """Create an audit logger with a test logger."""
        test_logger = logging.getLogger("test.audit.unit")
        test_logger.setLevel(logging.DEBUG)
        return AuditLogger(test_logger)

    def test_log_success(self, audit_logger):
        """Test logging a successful action."""
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.log(action=AuditAction.KEY_CREATE, actor="svc")

            mock_log.assert_called_once()
            level, message = mock_log.call_args[0]
            assert level == logging.INFO
            assert "key.create" in message
            assert "succeeded" in message

    def test_log_failure(self, audit_logger):
        """Test logging a failed action."""
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.log(
                action=AuditAction.DATA_SIGN,
                actor="svc",
                success=False,
                error="RemoteRequestError: boom",
            )

            level, message = mock_log.call_args[0]
            assert level == logging.WARNING
            assert "failed" in message
            extra_data = mock_log.call_args[1]["extra"]["extra"]
            assert extra_data["error"] == "RemoteRequestError: boom"
            assert extra_data["success"] is False

    def test_log_omits_unset_fields(self, audit_logger):
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.log(action=AuditAction.KEY_GET, actor="svc")

            extra_data = mock_log.call_args[1]["extra"]["extra"]
            assert set(extra_data) == {"audit", "action", "actor", "success"}

    def test_key_created(self, audit_logger):
        key_id = uuid4()

        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.key_created(actor="svc", vault="primary", key_id=key_id, version="v1")

            extra_data = mock_log.call_args[1]["extra"]["extra"]
            assert extra_data["action"] == "key.create"
            assert extra_data["key_id"] == str(key_id)
            assert extra_data["version"] == "v1"
            assert extra_data["vault"] == "primary"

    def test_key_imported(self, audit_logger):
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.key_imported(
                actor="svc", vault="primary", key_id=uuid4(), version=None, storage="secret"
            )

            extra_data = mock_log.call_args[1]["extra"]["extra"]
            assert extra_data["action"] == "key.import"
            assert extra_data["details"] == {"storage": "secret"}
            assert "version" not in extra_data

    def test_key_fetched(self, audit_logger):
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.key_fetched(
                actor="svc", vault="primary", key_id=uuid4(), version="v2", storage="key"
            )

            extra_data = mock_log.call_args[1]["extra"]["extra"]
            assert extra_data["action"] == "key.get"
            assert extra_data["details"]["storage"] == "key"

    def test_data_signed(self, audit_logger):
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.data_signed(
                actor="svc", vault="primary", key_id=uuid4(), version=None, digest="abcd"
            )

            extra_data = mock_log.call_args[1]["extra"]["extra"]
            assert extra_data["action"] == "data.sign"
            assert extra_data["details"]["digest"] == "abcd"

    def test_data_verified_invalid_is_success(self, audit_logger):
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.data_verified(
                actor="svc",
                vault="primary",
                key_id=uuid4(),
                version=None,
                path="local",
                is_valid=False,
            )

            assert mock_log.call_args[0][0] == logging.INFO
            extra_data = mock_log.call_args[1]["extra"]["extra"]
            assert extra_data["details"] == {"path": "local", "is_valid": False}

    def test_operation_failed(self, audit_logger):
        with patch.object(audit_logger.logger, "log") as mock_log:
            audit_logger.operation_failed(
                AuditAction.KEY_IMPORT,
                actor="svc",
                vault="primary",
                key_id=None,
                version=None,
                error=ValueError("bad key"),
            )

            assert mock_log.call_args[0][0] == logging.WARNING
            extra_data = mock_log.call_args[1]["extra"]["extra"]
            assert extra_data["error"] == "ValueError: bad key"
            assert "key_id" not in extra_data


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_json_logging(self):
        """Test setting up JSON logging."""
        logger = setup_logging(level="DEBUG", format="json", logger_name="test.json")

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.propagate is False

    def test_setup_text_logging(self):
        """Test setting up text logging."""
        logger = setup_logging(level="INFO", format="text", logger_name="test.text")

        assert logger.level == logging.INFO
        assert isinstance(logger.handlers[0].formatter, TextFormatter)

    def test_setup_removes_existing_handlers(self):
        """Test that setup removes existing handlers."""
        logger = logging.getLogger("test.handlers")
        logger.addHandler(logging.NullHandler())
        logger.addHandler(logging.NullHandler())

        result = setup_logging(level="INFO", format="text", logger_name="test.handlers")

        assert len(result.handlers) == 1


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_with_prefix(self):
        """Test get_logger adds the package prefix."""
        logger = get_logger("vault")

        assert isinstance(logger, StructuredLogger)
        assert logger.logger.name == "keycustody.vault"

    def test_get_logger_without_prefix(self):
        """Test get_logger doesn't double-prefix."""
        assert get_logger("keycustody.custody").logger.name == "keycustody.custody"

    def test_get_logger_default(self):
        assert get_logger().logger.name == "keycustody"


class TestGetAuditLogger:
    """Tests for get_audit_logger function."""

    def test_get_audit_logger(self):
        logger = get_audit_logger()

        assert isinstance(logger, AuditLogger)
        assert logger.logger.name == "keycustody.audit"
