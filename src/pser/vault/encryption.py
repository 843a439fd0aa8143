# Vault: Envelope Codec
#
# Passphrase → Encryption key (Argon2id, fresh salt per encryption)
# Payload encryption (ChaCha20-Poly1305, fresh nonce per encryption)
# Self-contained envelope: salt ‖ nonce ‖ ciphertext+tag
#
# The key is never cached: every encrypt/decrypt re-derives it from the
# passphrase and the salt, so key material lives for one call only.

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Optional

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from ..config import KdfParams
from .exceptions import DecryptionFailure, EncryptionFailure, SerializationError
from .serialization import BinaryReader, BinaryWriter, dumps, loads

logger = logging.getLogger(__name__)

KEY_LENGTH = 32    # 256-bit ChaCha20 key
NONCE_LENGTH = 12  # 96-bit IETF nonce
TAG_LENGTH = 16    # 128-bit Poly1305 tag
MIN_SALT_LENGTH = 8

DEFAULT_KDF = KdfParams()


@dataclass(frozen=True)
class Envelope:
    """Encrypted payload as stored on disk."""
    salt: bytes
    nonce: bytes
    ciphertext: bytes  # includes the Poly1305 tag

    def to_bytes(self) -> bytes:
        return (
            BinaryWriter()
            .blob(self.salt)
            .blob(self.nonce)
            .blob(self.ciphertext)
            .getvalue()
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "Envelope":
        """Parse an envelope.

        Raises:
            SerializationError: If the layout or field sizes are invalid.
        """
        reader = BinaryReader(data)
        salt = reader.blob()
        nonce = reader.blob()
        ciphertext = reader.blob()
        reader.finish()

        if len(salt) < MIN_SALT_LENGTH:
            raise SerializationError(f"Salt too short: {len(salt)} bytes")
        if len(nonce) != NONCE_LENGTH:
            raise SerializationError(f"Nonce must be {NONCE_LENGTH} bytes, got {len(nonce)}")
        if len(ciphertext) < TAG_LENGTH:
            raise SerializationError("Ciphertext too short (missing authentication tag)")
        return cls(salt=salt, nonce=nonce, ciphertext=ciphertext)

    def __repr__(self) -> str:
        return f"Envelope(salt_len={len(self.salt)}, ciphertext_len={len(self.ciphertext)})"


def derive_key(passphrase: str, salt: bytes, params: Optional[KdfParams] = None) -> bytes:
    """
    Derive the payload key from a passphrase using Argon2id.

    Pure function of (passphrase, salt, params): same inputs, same key.

    Args:
        passphrase: Master passphrase
        salt: Random salt stored alongside the ciphertext
        params: Argon2id cost parameters

    Returns:
        32-byte key
    """
    params = params or DEFAULT_KDF
    return hash_secret_raw(
        secret=passphrase.encode("utf-8"),
        salt=salt,
        time_cost=params.time_cost,
        memory_cost=params.memory_cost,
        parallelism=params.parallelism,
        hash_len=KEY_LENGTH,
        type=Type.ID,
    )


def generate_salt(params: Optional[KdfParams] = None) -> bytes:
    """Generate cryptographically random salt."""
    return os.urandom((params or DEFAULT_KDF).salt_len)


def generate_nonce() -> bytes:
    """Generate a random 96-bit nonce (never reused: one per encryption)."""
    return os.urandom(NONCE_LENGTH)


def seal(plaintext: bytes, passphrase: str, params: Optional[KdfParams] = None) -> Envelope:
    """Encrypt raw bytes under a passphrase into a fresh Envelope.

    Raises:
        EncryptionFailure: If key derivation or the cipher fails.
    """
    salt = generate_salt(params)
    nonce = generate_nonce()
    try:
        key = derive_key(passphrase, salt, params)
        ciphertext = ChaCha20Poly1305(key).encrypt(nonce, plaintext, None)
    except (HashingError, ValueError, OverflowError) as e:
        raise EncryptionFailure(f"Encryption failed: {e}") from e
    return Envelope(salt=salt, nonce=nonce, ciphertext=ciphertext)


def open_envelope(envelope: Envelope, passphrase: str, params: Optional[KdfParams] = None) -> bytes:
    """Decrypt an Envelope back to raw bytes.

    Raises:
        DecryptionFailure: Wrong passphrase or tampered data (tag mismatch).
    """
    try:
        key = derive_key(passphrase, envelope.salt, params)
        return ChaCha20Poly1305(key).decrypt(envelope.nonce, envelope.ciphertext, None)
    except InvalidTag:
        raise DecryptionFailure("Decryption failed: wrong passphrase or corrupted data") from None
    except (HashingError, ValueError) as e:
        raise DecryptionFailure(f"Decryption failed: {e}") from e


def encrypt(value: Any, passphrase: str, params: Optional[KdfParams] = None) -> bytes:
    """
    Serialize a value and encrypt it under a passphrase.

    Args:
        value: Any value supported by serialization.dumps()
        passphrase: Master passphrase
        params: Argon2id cost parameters (default: KdfParams())

    Returns:
        Serialized envelope bytes (salt, nonce, ciphertext)

    Raises:
        SerializationError: If value cannot be serialized
        EncryptionFailure: If the cipher fails
    """
    plaintext = dumps(value)
    envelope = seal(plaintext, passphrase, params)
    logger.debug("Sealed %d plaintext bytes", len(plaintext))
    return envelope.to_bytes()


def decrypt(
    blob: bytes,
    passphrase: str,
    params: Optional[KdfParams] = None,
    loader: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """
    Decrypt an envelope produced by encrypt() and deserialize the value.

    Args:
        blob: Serialized envelope
        passphrase: Master passphrase
        params: Argon2id cost parameters used at encryption time
        loader: Optional converter from the plain value to the expected
            shape; any ValueError/TypeError/KeyError it raises is reported
            as a DecryptionFailure

    Raises:
        DecryptionFailure: Malformed envelope, authentication failure, or
            plaintext that does not decode to the expected shape
    """
    try:
        envelope = Envelope.from_bytes(blob)
    except SerializationError as e:
        raise DecryptionFailure(f"Malformed envelope: {e}") from e

    plaintext = open_envelope(envelope, passphrase, params)

    try:
        value = loads(plaintext)
        if loader is not None:
            value = loader(value)
    except (SerializationError, ValueError, TypeError, KeyError) as e:
        raise DecryptionFailure(f"Decrypted payload has unexpected shape: {e}") from e
    return value
