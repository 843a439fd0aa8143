"""Tests for the structlog audit trail."""

import json

import pytest

import pser.core.audit_log as audit_mod
from pser.core.audit_log import (
    AUDIT_LOGGER_NAME,
    AuditLogger,
    EventSeverity,
    EventType,
    configure_audit_logger,
    get_audit_logger,
)
from pser.vault.records import Record
from pser.vault.vault_manager import VaultManager


def _read_events(log_dir):
    events = []
    for path in sorted(log_dir.glob("audit_*.log")):
        for line in path.read_text(encoding="utf-8").splitlines():
            if line.strip():
                events.append(json.loads(line))
    return events


class TestAuditLogger:

    def test_creates_log_dir(self, tmp_path):
        AuditLogger(log_dir=tmp_path / "nested" / "logs")
        assert (tmp_path / "nested" / "logs").is_dir()

    def test_writes_json_line(self, tmp_path):
        logger = AuditLogger(log_dir=tmp_path)
        event_id = logger.log_event(
            EventType.VAULT_CREATED,
            EventSeverity.INFO,
            "created",
            details={"records": 0},
        )
        [event] = _read_events(tmp_path)
        assert event["event_id"] == event_id
        assert event["event_type"] == "vault.created"
        assert event["severity"] == "info"
        assert event["details"] == {"records": 0}
        assert "timestamp" in event
        assert "hostname" in event["user_context"]

    def test_does_not_propagate(self, tmp_path):
        import logging

        AuditLogger(log_dir=tmp_path)
        assert logging.getLogger(AUDIT_LOGGER_NAME).propagate is False

    @pytest.mark.parametrize("severity, level", [
        (EventSeverity.INFO, 20),
        (EventSeverity.ALERT, 30),
        (EventSeverity.CRITICAL, 50),
    ])
    def test_severity_levels(self, severity, level):
        assert severity.to_log_level() == level


class TestSingleton:

    def test_get_audit_logger_is_cached(self):
        assert get_audit_logger() is get_audit_logger()

    def test_default_dir_redirected_in_tests(self, tmp_path):
        assert get_audit_logger().log_dir == tmp_path / "audit_logs"

    def test_configure_replaces_singleton(self, tmp_path):
        logger = configure_audit_logger(tmp_path / "custom")
        assert get_audit_logger() is logger
        assert audit_mod._audit_logger.log_dir == tmp_path / "custom"


class TestVaultEvents:

    def test_vault_lifecycle_logged_without_secrets(self, tmp_path, vault_config):
        vault = VaultManager.open_or_create("hunter2", vault_config)
        vault.insert(Record(username="juji", password="juji@ha124"))
        vault.change_passphrase("correct horse")

        events = _read_events(tmp_path / "audit_logs")
        types = [event["event_type"] for event in events]
        assert types == [
            EventType.VAULT_CREATED.value,
            EventType.RECORD_ADDED.value,
            EventType.PASSPHRASE_CHANGED.value,
        ]

        raw = "".join(p.read_text() for p in (tmp_path / "audit_logs").glob("*.log"))
        for secret in ("hunter2", "juji@ha124", "correct horse"):
            assert secret not in raw

    def test_failed_unlock_logged_as_alert(self, tmp_path, vault_config):
        from pser.vault.exceptions import AuthenticationRejected

        VaultManager.open_or_create("hunter2", vault_config)
        with pytest.raises(AuthenticationRejected):
            VaultManager.open_or_create("wrong", vault_config)

        failed = [
            event for event in _read_events(tmp_path / "audit_logs")
            if event["event_type"] == EventType.VAULT_UNLOCK_FAILED.value
        ]
        assert len(failed) == 1
        assert failed[0]["severity"] == "alert"
        assert failed[0]["details"]["attempt_count"] == 1
