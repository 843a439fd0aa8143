"""Verification header: cheap passphrase check that runs before the KDF.

The header sits unencrypted next to the payload and holds:

    window_start       start of the current minute (epoch seconds)
    attempt_count      verification attempts seen in that minute
    passphrase_digest  SHA-512 of the master passphrase

It never holds the passphrase or the payload key. Every verification call
advances the throttle state, success or not, and returns a *new* header;
the caller must persist that header before acting on the result so the
throttle survives restarts.

Wire format: <i64 window_start><u16 attempt_count><u64 len><digest>
"""

import hashlib
import secrets
import time
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from ..config import MAX_ATTEMPT_COUNT
from .exceptions import HeaderError, SerializationError
from .serialization import BinaryReader, BinaryWriter

# ── Constants ────────────────────────────────────────────────────────

MAX_TRY = 200            # verification attempts allowed per minute window
DIGEST_LENGTH = 64       # SHA-512


def minute_start(now: Optional[float] = None) -> int:
    """Epoch seconds of the start of the minute containing `now`."""
    if now is None:
        now = time.time()
    seconds = int(now)
    return seconds - seconds % 60


def passphrase_digest(passphrase: str) -> bytes:
    """SHA-512 of the passphrase (one-way, used only for verification)."""
    return hashlib.sha512(passphrase.encode("utf-8")).digest()


# ── Header ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class VerifyHeader:
    window_start: int
    attempt_count: int
    passphrase_digest: bytes

    @classmethod
    def create(cls, passphrase: str, now: Optional[float] = None) -> "VerifyHeader":
        """Fresh header bound to `passphrase`, throttle window opened now."""
        return cls(
            window_start=minute_start(now),
            attempt_count=0,
            passphrase_digest=passphrase_digest(passphrase),
        )

    def advance_window(self, now: Optional[float] = None) -> "VerifyHeader":
        """Record one verification attempt.

        A new minute resets the window and the counter; within the same
        minute the counter goes up by one (saturating at u16 max).
        """
        current = minute_start(now)
        if current != self.window_start:
            return replace(self, window_start=current, attempt_count=0)
        return replace(self, attempt_count=min(self.attempt_count + 1, MAX_ATTEMPT_COUNT))

    def is_throttled(self, max_tries: int = MAX_TRY) -> bool:
        return self.attempt_count >= max_tries

    def verify(
        self,
        passphrase: str,
        now: Optional[float] = None,
        max_tries: int = MAX_TRY,
    ) -> Tuple["VerifyHeader", bool]:
        """Check a passphrase against the stored digest.

        Returns:
            (advanced_header, ok); ok is False when the window is
            throttled or the digest does not match. The digest is compared
            on every call, throttled or not.
        """
        advanced = self.advance_window(now)
        throttled = advanced.is_throttled(max_tries)
        matches = secrets.compare_digest(self.passphrase_digest, passphrase_digest(passphrase))
        return advanced, (not throttled and matches)

    # ── Wire format ──────────────────────────────────────────────────

    def to_bytes(self) -> bytes:
        return (
            BinaryWriter()
            .i64(self.window_start)
            .u16(self.attempt_count)
            .blob(self.passphrase_digest)
            .getvalue()
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "VerifyHeader":
        """Parse a stored header.

        Raises:
            HeaderError: If the bytes are not a valid header.
        """
        try:
            reader = BinaryReader(data)
            window_start = reader.i64()
            attempt_count = reader.u16()
            digest = reader.blob()
            reader.finish()
        except SerializationError as e:
            raise HeaderError(f"Invalid verification header: {e}") from e

        if len(digest) != DIGEST_LENGTH:
            raise HeaderError(
                f"Invalid verification header: digest is {len(digest)} bytes, expected {DIGEST_LENGTH}"
            )
        return cls(window_start=window_start, attempt_count=attempt_count, passphrase_digest=digest)

    def __repr__(self) -> str:
        """Redact the digest."""
        return f"VerifyHeader(window_start={self.window_start}, attempt_count={self.attempt_count})"
