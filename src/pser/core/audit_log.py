# Vault - Audit Logging
#
# Append-only audit trail for vault events (open, unlock failures, record
# changes, passphrase changes, copy divergence).
# Structured JSON lines via structlog, one file per day.
#
# Never pass passphrases, keys or record passwords to this logger: events
# carry record ids and counts only.

import logging
import os
import socket
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog

AUDIT_LOGGER_NAME = "pser.audit"


def default_log_dir() -> Path:
    return Path.home() / ".local" / "share" / ".sper" / "logs"


class EventType(str, Enum):
    """Types of vault events that can be logged."""
    VAULT_CREATED = "vault.created"
    VAULT_UNLOCKED = "vault.unlocked"
    VAULT_UNLOCK_FAILED = "vault.unlock.failed"
    VAULT_DIVERGED = "vault.diverged"
    VAULT_DESTROYED = "vault.destroyed"
    VAULT_ERROR = "vault.error"

    RECORD_ADDED = "vault.record.added"
    RECORD_UPDATED = "vault.record.updated"
    RECORD_REMOVED = "vault.record.removed"
    RECORDS_CLEARED = "vault.records.cleared"

    PASSPHRASE_CHANGED = "vault.passphrase.changed"


class EventSeverity(str, Enum):
    """
    Severity levels for vault events.

    - INFO: normal activity
    - ALERT: rejected unlock, throttling
    - CRITICAL: operator action required (diverged copies, corrupt store)
    """
    INFO = "info"
    ALERT = "alert"
    CRITICAL = "critical"

    def to_log_level(self) -> int:
        return {
            EventSeverity.INFO: logging.INFO,
            EventSeverity.ALERT: logging.WARNING,
            EventSeverity.CRITICAL: logging.CRITICAL,
        }[self]


class AuditLogger:
    """
    Append-only audit logger for vault events.

    Features:
    - Structured JSON logging
    - Automatic timestamp and event ID
    - OS user / host context
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: ~/.local/share/.sper/logs)
        """
        self.log_dir = Path(log_dir) if log_dir else default_log_dir()
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._setup_file_handler()

        self.logger = structlog.get_logger(AUDIT_LOGGER_NAME)

    def _setup_file_handler(self):
        """Attach a daily log file to the dedicated audit logger."""
        today = datetime.now().strftime("%Y-%m-%d")
        self.log_file = self.log_dir / f"audit_{today}.log"

        audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
        for handler in list(audit_logger.handlers):
            audit_logger.removeHandler(handler)
            handler.close()

        file_handler = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog handles formatting

        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)
        audit_logger.propagate = False

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Log a vault event (append-only).

        Args:
            event_type: Type of event
            severity: Severity level
            message: Human-readable event description
            details: Additional details (never secrets)

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())

        event_data = {
            "event_id": event_id,
            "event_type": event_type.value,
            "severity": severity.value,
            "message": message,
            "details": details or {},
            "user_context": self._get_default_user_context(),
        }

        self.logger.log(severity.to_log_level(), "vault_event", **event_data)

        return event_id

    def _get_default_user_context(self) -> Dict[str, Any]:
        """Get default user context (OS user, hostname, etc.)."""
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def configure_audit_logger(log_dir: Optional[Path]) -> AuditLogger:
    """Replace the global audit logger with one writing to `log_dir`."""
    global _audit_logger
    _audit_logger = AuditLogger(log_dir=log_dir)
    return _audit_logger
