"""Structured logging with audit trail support."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from keycustody.config import get_settings


class AuditAction(str, Enum):
    """Audit log action types."""

    # Key lifecycle
    KEY_CREATE = "key.create"
    KEY_IMPORT = "key.import"
    KEY_GET = "key.get"

    # Signature operations
    DATA_SIGN = "data.sign"
    DATA_VERIFY = "data.verify"


def _record_extra(record: logging.LogRecord) -> dict[str, Any]:
    """Structured fields attached by StructuredLogger or AuditLogger."""
    return getattr(record, "extra", None) or {}


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(_record_extra(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.levelno <= logging.DEBUG:
            log_data["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Format log records as human-readable text."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as text."""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        line = f"{timestamp} {record.levelname.ljust(8)} [{record.name}] {record.getMessage()}"

        extra = _record_extra(record)
        if extra:
            line += " | " + " ".join(f"{k}={v}" for k, v in extra.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


class StructuredLogger(logging.LoggerAdapter):
    """Logger adapter that adds structured context."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        """Merge the adapter's context into the record's extra fields."""
        extra = dict(kwargs.pop("extra", None) or {})
        extra.update(self.extra)
        kwargs["extra"] = {"extra": extra}
        return msg, kwargs

    def with_context(self, **context) -> "StructuredLogger":
        """Create a new logger with additional context."""
        return StructuredLogger(self.logger, {**self.extra, **context})


class AuditLogger:
    """
    Audit logger for key custody operations.

    Successful operations are logged at INFO, failures at WARNING.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("keycustody.audit")

    def log(
        self,
        action: AuditAction,
        actor: str,
        key_id: str | UUID | None = None,
        version: str | None = None,
        vault: str | None = None,
        details: dict[str, Any] | None = None,
        success: bool = True,
        error: str | None = None,
    ) -> None:
        """
        Log an audit event.

        Args:
            action: The action being performed
            actor: Who performed the action (service or user name)
            key_id: Logical key id
            version: Key version if known
            vault: Connector name the operation was routed to
            details: Additional details about the action
            success: Whether the action succeeded
            error: Error message if action failed
        """
        audit_data: dict[str, Any] = {
            "audit": True,
            "action": action.value,
            "actor": actor,
            "success": success,
        }

        if key_id:
            audit_data["key_id"] = str(key_id)
        if version:
            audit_data["version"] = version
        if vault:
            audit_data["vault"] = vault
        if details:
            audit_data["details"] = details
        if error:
            audit_data["error"] = error

        level = logging.INFO if success else logging.WARNING
        self.logger.log(
            level,
            f"{action.value}: {actor} {'succeeded' if success else 'failed'}",
            extra={"extra": audit_data},
        )

    def key_created(self, actor: str, vault: str, key_id: UUID, version: str | None) -> None:
        """Log key creation."""
        self.log(AuditAction.KEY_CREATE, actor, key_id=key_id, version=version, vault=vault)

    def key_imported(
        self,
        actor: str,
        vault: str,
        key_id: UUID,
        version: str | None,
        storage: str,
    ) -> None:
        """Log key import and which storage shape received it."""
        self.log(
            AuditAction.KEY_IMPORT,
            actor,
            key_id=key_id,
            version=version,
            vault=vault,
            details={"storage": storage},
        )

    def key_fetched(
        self,
        actor: str,
        vault: str,
        key_id: UUID,
        version: str | None,
        storage: str,
    ) -> None:
        """Log key retrieval and which storage shape answered."""
        self.log(
            AuditAction.KEY_GET,
            actor,
            key_id=key_id,
            version=version,
            vault=vault,
            details={"storage": storage},
        )

    def data_signed(
        self,
        actor: str,
        vault: str,
        key_id: UUID,
        version: str | None,
        digest: str,
    ) -> None:
        """Log a remote signature."""
        self.log(
            AuditAction.DATA_SIGN,
            actor,
            key_id=key_id,
            version=version,
            vault=vault,
            details={"digest": digest},
        )

    def data_verified(
        self,
        actor: str,
        vault: str,
        key_id: UUID,
        version: str | None,
        path: str,
        is_valid: bool,
    ) -> None:
        """Log a verification; an invalid signature is still a completed operation."""
        self.log(
            AuditAction.DATA_VERIFY,
            actor,
            key_id=key_id,
            version=version,
            vault=vault,
            details={"path": path, "is_valid": is_valid},
        )

    def operation_failed(
        self,
        action: AuditAction,
        actor: str,
        vault: str,
        key_id: UUID | None,
        version: str | None,
        error: Exception,
    ) -> None:
        """Log a failed operation."""
        self.log(
            action,
            actor,
            key_id=key_id,
            version=version,
            vault=vault,
            success=False,
            error=f"{type(error).__name__}: {error}",
        )


def setup_logging(
    level: str = "INFO",
    format: str = "text",
    logger_name: str = "keycustody",
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format ("text" or "json")
        logger_name: Name of the root logger

    Returns:
        Configured logger
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(getattr(logging, level.upper()))
    handler.setFormatter(JSONFormatter() if format.lower() == "json" else TextFormatter())
    logger.addHandler(handler)

    logger.propagate = False

    return logger


def get_logger(name: str = "keycustody") -> StructuredLogger:
    """
    Get a structured logger.

    Args:
        name: Logger name (will be prefixed with "keycustody.")

    Returns:
        StructuredLogger instance
    """
    if not name.startswith("keycustody"):
        name = f"keycustody.{name}"

    return StructuredLogger(logging.getLogger(name), {})


def get_audit_logger() -> AuditLogger:
    """Get the audit logger."""
    return AuditLogger()


_initialized = False


def init_logging() -> None:
    """Initialize logging from settings."""
    global _initialized
    if _initialized:
        return

    settings = get_settings()
    setup_logging(level=settings.log_level, format=settings.log_format)
    _initialized = True
