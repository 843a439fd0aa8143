# pser - Personal Password Store
#
# Encrypted, passphrase-protected credential vault kept as two identical
# SQLite copies (durable home copy and a working copy beside the program).

__version__ = "0.1.0"
__description__ = "Encrypted personal password store"

from .config import KdfParams, VaultConfig
from .vault import Record, RecordId, VaultError, VaultManager, open_or_exit

__all__ = [
    "__version__",
    "KdfParams",
    "VaultConfig",
    "Record",
    "RecordId",
    "VaultError",
    "VaultManager",
    "open_or_exit",
]
