# Core Module - Shared Utilities
#
# - Audit logging (structlog)
# - SQLite connection helper

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    configure_audit_logger,
    get_audit_logger,
)
from .db import connect, transaction

__all__ = [
    # Audit Logging
    "AuditLogger",
    "EventSeverity",
    "EventType",
    "configure_audit_logger",
    "get_audit_logger",
    # Database
    "connect",
    "transaction",
]
