# Vault: Physical Store + Dual-Copy Consistency Guard
#
# Each copy of the vault is a SQLite file with a single key/value table
# holding two entries: "header" (verification header) and "data"
# (encrypted envelope of the record collection).
#
# Two copies exist: a durable one (home) and a co-located working one.
# On open the raw files are compared by SHA-512; a mismatch is fatal and
# needs an operator to delete one copy. Every write goes to home first,
# then to the working copy, each in its own transaction. There is no
# cross-copy commit: a crash between the two leaves them divergent, which
# the next open detects.

import hashlib
import logging
import shutil
import sqlite3
from pathlib import Path
from typing import Optional, Union

from ..core.db import transaction
from .exceptions import ConsistencyDivergence, StoreIOError

logger = logging.getLogger(__name__)

TABLE = "passwd"
HEADER_KEY = "header"
DATA_KEY = "data"

_CHUNK_SIZE = 64 * 1024


class VaultFile:
    """One physical copy of the vault.

    Every operation opens its own connection and transaction and closes it
    before returning.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def create_table(self) -> None:
        """Provision the key/value table (idempotent)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._execute(
            f"CREATE TABLE IF NOT EXISTS {TABLE} ("
            "key TEXT PRIMARY KEY, "
            "value BLOB NOT NULL)"
        )

    def read(self, key: str) -> Optional[bytes]:
        row = self._execute(f"SELECT value FROM {TABLE} WHERE key = ?", (key,), fetch=True)
        return bytes(row[0]) if row else None

    def write(self, key: str, data: bytes) -> None:
        self._execute(
            f"INSERT INTO {TABLE} (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, sqlite3.Binary(data)),
        )

    def is_empty(self) -> bool:
        row = self._execute(f"SELECT COUNT(*) FROM {TABLE}", fetch=True)
        return row[0] == 0

    def sha512(self) -> bytes:
        """SHA-512 of the raw file contents."""
        hasher = hashlib.sha512()
        try:
            with open(self.path, "rb") as f:
                for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
                    hasher.update(chunk)
        except OSError as e:
            raise StoreIOError(f"Cannot read vault file {self.path}: {e}") from e
        return hasher.digest()

    def copy_to(self, dest: "VaultFile") -> None:
        try:
            dest.path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self.path, dest.path)
        except OSError as e:
            raise StoreIOError(f"Cannot copy {self.path} to {dest.path}: {e}") from e

    def remove(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise StoreIOError(f"Cannot delete vault file {self.path}: {e}") from e

    def _execute(self, sql: str, params: tuple = (), fetch: bool = False):
        try:
            with transaction(self.path) as conn:
                cursor = conn.execute(sql, params)
                return cursor.fetchone() if fetch else None
        except sqlite3.Error as e:
            raise StoreIOError(f"Vault database error in {self.path}: {e}") from e

    def __repr__(self) -> str:
        return f"VaultFile({str(self.path)!r})"


class ReplicatedVault:
    """Keeps the durable and working copies byte-identical.

    Use ReplicatedVault.open() rather than the constructor: it reconciles
    the two files before anything is read.
    """

    def __init__(self, home: VaultFile, working: VaultFile):
        self.home = home
        self.working = working

    @classmethod
    def open(cls, home_path: Union[str, Path], working_path: Union[str, Path]) -> "ReplicatedVault":
        """
        Reconcile and open both copies.

        - both exist: hashes must match (else ConsistencyDivergence), then
          the working copy is refreshed from home
        - one exists: it is copied to the missing location
        - none exists: both are created with an empty table

        Raises:
            ConsistencyDivergence: The two files differ.
            StoreIOError: A file cannot be read, copied or created.
        """
        home, working = VaultFile(home_path), VaultFile(working_path)

        if home.exists() and working.exists():
            if home.sha512() != working.sha512():
                logger.error("Vault copies diverge: %s vs %s", home.path, working.path)
                raise ConsistencyDivergence(home.path, working.path)
            home.copy_to(working)
        elif home.exists():
            logger.info("Restoring working copy from %s", home.path)
            home.copy_to(working)
        elif working.exists():
            logger.info("Restoring durable copy from %s", working.path)
            working.copy_to(home)
        else:
            logger.info("Creating new vault at %s and %s", home.path, working.path)
            home.create_table()
            working.create_table()

        return cls(home, working)

    def read(self, key: str) -> Optional[bytes]:
        return self.home.read(key)

    def write(self, key: str, data: bytes) -> None:
        """Commit to home, then to working. Both must succeed."""
        self.home.write(key, data)
        self.working.write(key, data)

    def is_empty(self) -> bool:
        return self.home.is_empty()

    def remove_files(self) -> None:
        self.home.remove()
        self.working.remove()
