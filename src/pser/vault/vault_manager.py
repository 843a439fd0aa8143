# Vault Manager - Encrypted Password Database
#
# Sequences open → verify → load, and persists after every mutation.
#
#   1. Both physical copies are reconciled (ReplicatedVault.open)
#   2. The unencrypted verification header rejects wrong passphrases and
#      throttles guessing before any key derivation happens
#   3. The encrypted payload (whole record collection) is decrypted
#   4. Each mutation re-encrypts the whole collection under a fresh salt
#      and nonce and writes it to both copies
#
# The passphrase is the only secret held between calls; the payload key is
# re-derived for every encryption and decryption.

import logging
import sys
import time
from typing import Callable, List, Optional, Tuple, Union

from ..config import VaultConfig
from ..core.audit_log import EventSeverity, EventType, configure_audit_logger, get_audit_logger
from . import encryption
from .exceptions import AuthenticationRejected, ConsistencyDivergence, DecryptionFailure, HeaderError
from .header import VerifyHeader
from .records import Record, RecordCollection, RecordId
from .storage import DATA_KEY, HEADER_KEY, ReplicatedVault

logger = logging.getLogger(__name__)


class VaultManager:
    """
    Owns the in-memory record collection and verification header for one
    process run.

    Usage:
        vault = VaultManager.open_or_create("hunter2")
        record_id = vault.insert(Record().set_url("https://google.com/x"))
        vault.search("google")

    Security:
    - Whole collection encrypted as one blob (ChaCha20-Poly1305)
    - Key derived per operation with Argon2id, never cached
    - Passphrase verified against an unencrypted SHA-512 header first,
      throttled to config.max_tries attempts per minute
    - Audit logging for all vault access (never the secrets themselves)
    """

    def __init__(
        self,
        store: ReplicatedVault,
        passphrase: str,
        header: VerifyHeader,
        records: RecordCollection,
        config: VaultConfig,
        clock: Callable[[], float] = time.time,
    ):
        """Use open_or_create() instead: it verifies the passphrase first."""
        self._store = store
        self._passphrase = passphrase
        self._header = header
        self._records = records
        self.config = config
        self._clock = clock
        self.audit = get_audit_logger()

    # ==========================================================================
    # OPEN / CREATE
    # ==========================================================================

    @classmethod
    def open_or_create(
        cls,
        passphrase: str,
        config: Optional[VaultConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> "VaultManager":
        """
        Open the vault, creating it on first use.

        Args:
            passphrase: Master passphrase
            config: File locations and KDF cost (default: VaultConfig())
            clock: Time source for the throttle window

        Returns:
            An unlocked VaultManager

        Raises:
            ConsistencyDivergence: The two database copies differ
            HeaderError: Data exists but the header is missing or corrupt
            AuthenticationRejected: Wrong passphrase or too many attempts
            DecryptionFailure: Payload does not decrypt (after header passed)
            StoreIOError: Database or filesystem failure
        """
        config = config or VaultConfig()
        audit = get_audit_logger()

        try:
            store = ReplicatedVault.open(config.home_path, config.working_path)
        except ConsistencyDivergence as e:
            audit.log_event(
                event_type=EventType.VAULT_DIVERGED,
                severity=EventSeverity.CRITICAL,
                message="Vault copies diverge; manual resolution required",
                details={"home": str(e.home_path), "working": str(e.working_path)},
            )
            raise

        if store.is_empty():
            header = VerifyHeader.create(passphrase, now=clock())
            store.write(HEADER_KEY, header.to_bytes())
            audit.log_event(
                event_type=EventType.VAULT_CREATED,
                severity=EventSeverity.INFO,
                message="Vault initialized with master passphrase",
                details={"home": str(config.home_path)},
            )
            return cls(store, passphrase, header, RecordCollection(), config, clock)

        raw_header = store.read(HEADER_KEY)
        if raw_header is None:
            audit.log_event(
                event_type=EventType.VAULT_ERROR,
                severity=EventSeverity.CRITICAL,
                message="Vault has data but no verification header",
            )
            raise HeaderError("Vault has data but no verification header")
        header = VerifyHeader.from_bytes(raw_header)

        # Persist the advanced throttle state before acting on the result
        header, verified = header.verify(passphrase, now=clock(), max_tries=config.max_tries)
        store.write(HEADER_KEY, header.to_bytes())

        if not verified:
            throttled = header.is_throttled(config.max_tries)
            audit.log_event(
                event_type=EventType.VAULT_UNLOCK_FAILED,
                severity=EventSeverity.ALERT,
                message="Vault unlock rejected",
                details={"attempt_count": header.attempt_count, "throttled": throttled},
            )
            if throttled:
                raise AuthenticationRejected(
                    f"Too many attempts ({header.attempt_count}) this minute. Try again later."
                )
            raise AuthenticationRejected("Incorrect master passphrase")

        vault = cls(store, passphrase, header, RecordCollection(), config, clock)
        try:
            vault._records = vault._load_records()
        except DecryptionFailure:
            audit.log_event(
                event_type=EventType.VAULT_ERROR,
                severity=EventSeverity.CRITICAL,
                message="Vault payload could not be decrypted",
            )
            raise

        audit.log_event(
            event_type=EventType.VAULT_UNLOCKED,
            severity=EventSeverity.INFO,
            message="Vault unlocked",
            details={"records": len(vault._records)},
        )
        return vault

    @staticmethod
    def exists(config: Optional[VaultConfig] = None) -> bool:
        """True if either database copy is present."""
        config = config or VaultConfig()
        return config.home_path.exists() or config.working_path.exists()

    # ==========================================================================
    # PERSISTENCE
    # ==========================================================================

    def _load_records(self) -> RecordCollection:
        blob = self._store.read(DATA_KEY)
        if blob is None:
            return RecordCollection()
        return encryption.decrypt(
            blob,
            self._passphrase,
            params=self.config.kdf,
            loader=RecordCollection.from_plain,
        )

    def _sync_header(self) -> None:
        self._store.write(HEADER_KEY, self._header.to_bytes())

    def _sync_records(self) -> None:
        blob = encryption.encrypt(self._records.to_plain(), self._passphrase, params=self.config.kdf)
        self._store.write(DATA_KEY, blob)
        logger.debug("Persisted %d records", len(self._records))

    def _persist(self) -> None:
        """Header first, then the re-encrypted collection, to both copies."""
        self._sync_header()
        self._sync_records()

    # ==========================================================================
    # RECORD OPERATIONS
    # ==========================================================================

    def insert(self, record: Record) -> RecordId:
        """Add a record under a fresh random id and persist."""
        record_id = self._records.insert(record)
        self._persist()

        self.audit.log_event(
            event_type=EventType.RECORD_ADDED,
            severity=EventSeverity.INFO,
            message="Record added to vault",
            details={"record_id": str(record_id)},
        )
        return record_id

    def update(self, record_id: Union[RecordId, str], record: Record) -> None:
        """Write `record` at `record_id` whether or not it exists, then persist."""
        record_id = RecordId.coerce(record_id)
        self._records.upsert(record_id, record)
        self._persist()

        self.audit.log_event(
            event_type=EventType.RECORD_UPDATED,
            severity=EventSeverity.INFO,
            message="Record updated",
            details={"record_id": str(record_id)},
        )

    def remove(self, record_id: Union[RecordId, str]) -> None:
        """Delete one record (no-op for unknown ids) and persist."""
        record_id = RecordId.coerce(record_id)
        removed = self._records.remove(record_id)
        self._persist()

        self.audit.log_event(
            event_type=EventType.RECORD_REMOVED,
            severity=EventSeverity.INFO,
            message="Record removed from vault",
            details={"record_id": str(record_id), "existed": removed is not None},
        )

    def clear(self) -> None:
        """Delete every record and persist."""
        count = len(self._records)
        self._records.clear()
        self._persist()

        self.audit.log_event(
            event_type=EventType.RECORDS_CLEARED,
            severity=EventSeverity.INFO,
            message="All records cleared",
            details={"removed": count},
        )

    def get(self, record_id: Union[RecordId, str]) -> Optional[Record]:
        return self._records.get(record_id)

    def records(self) -> List[Tuple[RecordId, Record]]:
        return self._records.items()

    def find_by_id_prefix(self, prefix: str) -> List[RecordId]:
        """All ids starting with `prefix` (case-sensitive).

        Zero or several matches are for the caller to interpret.
        """
        return self._records.ids_with_prefix(prefix)

    def search(self, text: str) -> List[Tuple[RecordId, Record]]:
        """Case-insensitive substring search over url and description."""
        return self._records.search(text)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id) -> bool:
        return record_id in self._records

    # ==========================================================================
    # MASTER PASSPHRASE
    # ==========================================================================

    def change_passphrase(self, new_passphrase: str) -> None:
        """Rebind the header to `new_passphrase` and re-encrypt every record."""
        self._header = VerifyHeader.create(new_passphrase, now=self._clock())
        self._passphrase = new_passphrase
        self._persist()

        self.audit.log_event(
            event_type=EventType.PASSPHRASE_CHANGED,
            severity=EventSeverity.INFO,
            message="Master passphrase changed",
            details={"records": len(self._records)},
        )

    def destroy(self) -> None:
        """Delete both database copies. The manager is unusable afterwards."""
        self._store.remove_files()
        self._records = RecordCollection()

        self.audit.log_event(
            event_type=EventType.VAULT_DESTROYED,
            severity=EventSeverity.ALERT,
            message="Vault files deleted",
            details={"home": str(self.config.home_path)},
        )

    @property
    def header(self) -> VerifyHeader:
        return self._header

    def __repr__(self) -> str:
        return f"VaultManager(home={str(self.config.home_path)!r}, records={len(self._records)})"


def open_or_exit(passphrase: str, config: Optional[VaultConfig] = None) -> VaultManager:
    """
    Open the vault for a command-line process.

    A rejected passphrase or diverged copies end the process with status 1
    and a message on stderr; every other error propagates.
    """
    config = config or VaultConfig.from_env()
    if config.log_dir is not None:
        configure_audit_logger(config.log_dir)

    try:
        return VaultManager.open_or_create(passphrase, config)
    except AuthenticationRejected as e:
        print(f"Authentication failed: {e}", file=sys.stderr)
        sys.exit(1)
    except ConsistencyDivergence as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)


__all__ = ["VaultManager", "open_or_exit"]
