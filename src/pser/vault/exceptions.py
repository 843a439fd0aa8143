"""
Vault Exception Classes
"""

from pathlib import Path


class VaultError(Exception):
    """Base exception for vault operations"""
    pass


class HeaderError(VaultError):
    """Raised when the verification header is missing or cannot be parsed"""
    pass


class SerializationError(VaultError, ValueError):
    """Raised when a value cannot be encoded or decoded in the binary format"""
    pass


class EncryptionFailure(VaultError):
    """Raised when the cipher fails to seal a payload"""
    pass


class DecryptionFailure(VaultError):
    """Raised when a payload fails authentication or does not decode.

    A wrong passphrase and a corrupted payload surface identically.
    """
    pass


class AuthenticationRejected(VaultError):
    """Raised when the header rejects the passphrase or the unlock is throttled"""
    pass


class StoreIOError(VaultError):
    """Raised when a database copy cannot be read or written"""
    pass


class InvalidUrlError(VaultError, ValueError):
    """Raised when a record URL has no recognisable host part"""
    pass


class ConsistencyDivergence(VaultError):
    """Raised when the durable and working copies differ on disk.

    There is no policy for picking a winner; an operator must delete one
    copy before the vault can be opened again.
    """

    def __init__(self, home_path: Path, working_path: Path):
        self.home_path = Path(home_path)
        self.working_path = Path(working_path)
        super().__init__(
            "Vault copies are out of sync:\n"
            f"  durable: {self.home_path}\n"
            f"  working: {self.working_path}\n"
            "To keep the durable copy, delete the working copy and run again.\n"
            "To keep the working copy, delete the durable copy and run again."
        )
