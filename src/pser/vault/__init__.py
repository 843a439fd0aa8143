# Vault Module - Encrypted Password Store
#
# Whole-collection encryption with ChaCha20-Poly1305,
# key derived from the master passphrase with Argon2id

from .exceptions import (
    AuthenticationRejected,
    ConsistencyDivergence,
    DecryptionFailure,
    EncryptionFailure,
    HeaderError,
    InvalidUrlError,
    SerializationError,
    StoreIOError,
    VaultError,
)
from .records import Record, RecordCollection, RecordId
from .vault_manager import VaultManager, open_or_exit

__all__ = [
    "VaultManager",
    "open_or_exit",
    "Record",
    "RecordCollection",
    "RecordId",
    "VaultError",
    "HeaderError",
    "SerializationError",
    "EncryptionFailure",
    "DecryptionFailure",
    "AuthenticationRejected",
    "StoreIOError",
    "InvalidUrlError",
    "ConsistencyDivergence",
]
