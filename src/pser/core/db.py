# Core Module - Central SQLite Connection Helper
#
# Every pser SQLite database is opened through `connect()` from this module
# instead of raw `sqlite3.connect()`. This ensures:
#
#   - an explicit journal mode (rollback journal by default)
#   - busy_timeout to avoid SQLITE_BUSY under contention
#
# Vault copies are compared byte-for-byte between runs, so the default
# journal mode is DELETE: after a commit and close the main file holds
# everything and no -wal/-shm sidecars are left behind.

import sqlite3
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Iterator, Union

JOURNAL_MODES = ("DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF")


def connect(
    db_path: Union[str, Path],
    *,
    journal_mode: str = "DELETE",
    row_factory: bool = False,
) -> sqlite3.Connection:
    """Open a SQLite connection with safe PRAGMAs.

    Args:
        db_path: Path to the database file.
        journal_mode: SQLite journal mode (default DELETE).
        row_factory: If True, set conn.row_factory = sqlite3.Row.

    Returns:
        sqlite3.Connection with journal mode and busy_timeout set.
    """
    mode = journal_mode.upper()
    if mode not in JOURNAL_MODES:
        raise ValueError(f"Unknown journal mode: {journal_mode}")

    conn = sqlite3.connect(str(db_path))
    conn.execute(f"PRAGMA journal_mode={mode}")
    conn.execute("PRAGMA busy_timeout=5000")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def transaction(db_path: Union[str, Path], **kwargs) -> Iterator[sqlite3.Connection]:
    """One connection, one transaction: commit on success, rollback on error,
    always close."""
    with closing(connect(db_path, **kwargs)) as conn:
        with conn:
            yield conn
