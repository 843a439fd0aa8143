"""
Shared pytest fixtures for the pser test suite.

The autouse fixture below isolates tests from the live audit trail; the
others give each test its own pair of vault files and a cheap KDF.
"""

import pytest

from pser.config import KdfParams, VaultConfig

# Argon2id at its minimum cost: tests exercise the format, not the hardness
FAST_KDF = KdfParams(time_cost=1, memory_cost=64, parallelism=1)

FIXED_NOW = 1_700_000_000.0


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path, monkeypatch):
    """Redirect the global AuditLogger to a temp directory for every test.

    Without this, any test that (directly or indirectly) calls
    ``get_audit_logger().log_event(...)`` writes into the real
    ``~/.local/share/.sper/logs`` directory.
    """
    import pser.core.audit_log as audit_mod

    # Reset the singleton so the next call to get_audit_logger() creates
    # a fresh instance pointing at the temp directory.
    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = None

    monkeypatch.setattr(audit_mod, "default_log_dir", lambda: tmp_path / "audit_logs")

    yield

    audit_mod._audit_logger = old_logger


@pytest.fixture
def fast_kdf():
    return FAST_KDF


@pytest.fixture
def vault_config(tmp_path):
    return VaultConfig(
        home_path=tmp_path / "home" / "sper.db",
        working_path=tmp_path / "work" / "pser.db",
        kdf=FAST_KDF,
    )


@pytest.fixture
def clock():
    """Frozen time source; tests move it by assigning clock.now."""

    class _Clock:
        now = FIXED_NOW

        def __call__(self):
            return self.now

    return _Clock()
