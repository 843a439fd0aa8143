# Vault configuration
#
# File locations for the two database copies, Argon2id cost parameters and
# the unlock throttle limit. Everything can be overridden from the
# environment (PSER_* variables). The master passphrase is never part of
# the configuration.

import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

ENV_PREFIX = "PSER_"

DEFAULT_MAX_TRIES = 200
# The verification header stores the attempt counter as a u16
MAX_ATTEMPT_COUNT = 0xFFFF

HOME_DB_NAME = "sper.db"
WORKING_DB_NAME = "pser.db"


def default_data_dir() -> Path:
    """Durable home of the vault: ~/.local/share/.sper"""
    return Path.home() / ".local" / "share" / ".sper"


def default_home_path() -> Path:
    return default_data_dir() / HOME_DB_NAME


def default_working_path() -> Path:
    """Working copy lives beside the launching script (cwd if unknown)."""
    launcher = sys.argv[0] if sys.argv else ""
    if launcher:
        base = Path(launcher).resolve().parent
    else:
        base = Path.cwd()
    return base / WORKING_DB_NAME


@dataclass(frozen=True)
class KdfParams:
    """Argon2id cost parameters used to turn a passphrase into a key.

    memory_cost is in KiB. hash_len is fixed by the cipher (32 bytes).
    """
    time_cost: int = 2
    memory_cost: int = 19456
    parallelism: int = 1
    hash_len: int = 32
    salt_len: int = 16

    def __post_init__(self) -> None:
        if self.time_cost < 1:
            raise ValueError("time_cost must be at least 1")
        if self.parallelism < 1:
            raise ValueError("parallelism must be at least 1")
        if self.memory_cost < 8 * self.parallelism:
            raise ValueError("memory_cost must be at least 8 KiB per lane")
        if self.hash_len != 32:
            raise ValueError("hash_len must be 32 bytes (ChaCha20-Poly1305 key size)")
        if self.salt_len < 8:
            raise ValueError("salt_len must be at least 8 bytes")


@dataclass(frozen=True)
class VaultConfig:
    """Where the vault lives and how hard it is to unlock.

    Args:
        home_path: Durable copy of the database.
        working_path: Co-located working copy of the database.
        kdf: Argon2id parameters for the payload key.
        max_tries: Verification attempts allowed per minute window.
        log_dir: Directory for the audit log (None = default location).
    """
    home_path: Path = field(default_factory=default_home_path)
    working_path: Path = field(default_factory=default_working_path)
    kdf: KdfParams = field(default_factory=KdfParams)
    max_tries: int = DEFAULT_MAX_TRIES
    log_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "home_path", Path(self.home_path))
        object.__setattr__(self, "working_path", Path(self.working_path))
        if self.log_dir is not None:
            object.__setattr__(self, "log_dir", Path(self.log_dir))
        if not 1 <= self.max_tries <= MAX_ATTEMPT_COUNT:
            raise ValueError(f"max_tries must be between 1 and {MAX_ATTEMPT_COUNT}")
        if self.home_path.resolve() == self.working_path.resolve():
            raise ValueError("home_path and working_path must be different files")

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "VaultConfig":
        """Build a config from PSER_* environment variables.

        Recognised variables:
            PSER_HOME_DB, PSER_WORKING_DB, PSER_LOG_DIR,
            PSER_KDF_TIME_COST, PSER_KDF_MEMORY_COST, PSER_KDF_PARALLELISM,
            PSER_MAX_TRIES

        Raises:
            ValueError: If a numeric variable is not an integer or is out of range.
        """
        env = os.environ if environ is None else environ
        base = cls()

        kdf_kwargs = {}
        for name, attr in (
            ("KDF_TIME_COST", "time_cost"),
            ("KDF_MEMORY_COST", "memory_cost"),
            ("KDF_PARALLELISM", "parallelism"),
        ):
            raw = env.get(ENV_PREFIX + name)
            if raw:
                kdf_kwargs[attr] = _parse_int(name, raw)

        kwargs = {}
        if env.get(ENV_PREFIX + "HOME_DB"):
            kwargs["home_path"] = Path(env[ENV_PREFIX + "HOME_DB"]).expanduser()
        if env.get(ENV_PREFIX + "WORKING_DB"):
            kwargs["working_path"] = Path(env[ENV_PREFIX + "WORKING_DB"]).expanduser()
        if env.get(ENV_PREFIX + "LOG_DIR"):
            kwargs["log_dir"] = Path(env[ENV_PREFIX + "LOG_DIR"]).expanduser()
        if env.get(ENV_PREFIX + "MAX_TRIES"):
            kwargs["max_tries"] = _parse_int("MAX_TRIES", env[ENV_PREFIX + "MAX_TRIES"])
        if kdf_kwargs:
            kwargs["kdf"] = replace(base.kdf, **kdf_kwargs)

        return replace(base, **kwargs) if kwargs else base


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None
