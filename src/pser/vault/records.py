"""Record model: one credential per Record, keyed by an opaque RecordId.

The whole RecordCollection is the unit of encryption: it is converted to
plain values (``to_plain``) and serialized as one blob.

Usage:
    record = Record()
    record.set_username("juji") \\
          .set_url("https://google.com/accounts") \\
          .set_password("juji@ha124")
    record.url            # "google.com"
"""

import re
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .exceptions import InvalidUrlError

# scheme:// prefix (optional), then everything up to the first / ? or #
_URL_PATTERN = re.compile(r"^(?:[^:/?#]*://)?(?P<domain>[^/?#]*)")

TEXT_FIELDS = ("username", "url", "description", "email", "phone", "password", "comment")


def domain_from_url(url: str) -> str:
    """Extract the host part of a URL.

    "http://id1.cloud.abc.com/a/b/c.html" -> "id1.cloud.abc.com"
    "google.com"                          -> "google.com"

    Raises:
        InvalidUrlError: If no host can be found.
    """
    match = _URL_PATTERN.match(url.strip())
    domain = match.group("domain") if match else ""
    if not domain or any(ch.isspace() for ch in domain):
        raise InvalidUrlError(f"Unsupported url format: {url!r}")
    return domain


# ── Identity ─────────────────────────────────────────────────────────


@dataclass(frozen=True, order=True)
class RecordId:
    """Opaque record identifier: 128 random bits as 32 lowercase hex chars."""
    value: str

    def __post_init__(self):
        if not isinstance(self.value, str) or not self.value:
            raise ValueError("RecordId must be a non-empty string")

    @classmethod
    def generate(cls) -> "RecordId":
        return cls(uuid.uuid4().hex)

    @classmethod
    def coerce(cls, value: Union["RecordId", str]) -> "RecordId":
        return value if isinstance(value, RecordId) else cls(value)

    def startswith(self, prefix: str) -> bool:
        return self.value.startswith(prefix)

    def __str__(self) -> str:
        return self.value


# ── Record ───────────────────────────────────────────────────────────


@dataclass
class Record:
    """A single credential entry.

    history maps the epoch second a password was replaced to the old value.
    """
    username: str = ""
    url: str = ""
    description: str = ""
    email: str = ""
    phone: str = ""
    password: str = ""
    comment: str = ""
    history: Dict[int, str] = field(default_factory=dict)

    def set_username(self, username: str) -> "Record":
        self.username = username
        return self

    def set_url(self, url: str) -> "Record":
        """Store only the domain part of `url` (empty string clears it)."""
        self.url = domain_from_url(url) if url else ""
        return self

    def set_description(self, description: str) -> "Record":
        self.description = description
        return self

    def set_email(self, email: str) -> "Record":
        self.email = email
        return self

    def set_phone(self, phone: str) -> "Record":
        self.phone = phone
        return self

    def set_password(self, password: str, now: Optional[float] = None) -> "Record":
        """Replace the password, keeping a non-empty old value in history."""
        old, self.password = self.password, password
        if old:
            stamp = int(time.time() if now is None else now)
            while stamp in self.history:
                stamp += 1
            self.history[stamp] = old
        return self

    def set_comment(self, comment: str) -> "Record":
        self.comment = comment
        return self

    def copy(self) -> "Record":
        return replace(self, history=dict(self.history))

    def matches(self, text: str) -> bool:
        """Case-insensitive match against url and description only."""
        needle = text.lower()
        return needle in self.url.lower() or needle in self.description.lower()

    def history_entries(self) -> List[Tuple[datetime, str]]:
        """Old passwords as (changed_at, password), oldest first."""
        return [
            (datetime.fromtimestamp(stamp, tz=timezone.utc), old)
            for stamp, old in sorted(self.history.items())
        ]

    def to_plain(self) -> Dict[str, Any]:
        plain: Dict[str, Any] = {name: getattr(self, name) for name in TEXT_FIELDS}
        plain["history"] = dict(self.history)
        return plain

    @classmethod
    def from_plain(cls, plain: Dict[str, Any]) -> "Record":
        """Rebuild a Record from to_plain() output.

        Raises:
            TypeError: If a field has the wrong type.
        """
        if not isinstance(plain, dict):
            raise TypeError(f"Record must be a map, got {type(plain).__name__}")
        kwargs = {}
        for name in TEXT_FIELDS:
            value = plain.get(name, "")
            if not isinstance(value, str):
                raise TypeError(f"Record field {name!r} must be text")
            kwargs[name] = value

        history = plain.get("history", {})
        if not isinstance(history, dict):
            raise TypeError("Record history must be a map")
        for stamp, old in history.items():
            if not isinstance(stamp, int) or isinstance(stamp, bool) or not isinstance(old, str):
                raise TypeError("Record history must map integer timestamps to text")
        return cls(history=dict(history), **kwargs)

    def __repr__(self) -> str:
        """Keep secrets out of logs and tracebacks."""
        return f"Record(username={self.username!r}, url={self.url!r}, history={len(self.history)})"


# ── Collection ───────────────────────────────────────────────────────


class RecordCollection:
    """All records of a vault, keyed by RecordId.

    Records are copied on the way in and on the way out: editing a returned
    Record changes nothing until it is passed back through upsert().
    """

    def __init__(self, records: Optional[Dict[RecordId, Record]] = None):
        self._records: Dict[RecordId, Record] = dict(records or {})

    def insert(self, record: Record) -> RecordId:
        record_id = RecordId.generate()
        while record_id in self._records:
            record_id = RecordId.generate()
        self._records[record_id] = record.copy()
        return record_id

    def upsert(self, record_id: Union[RecordId, str], record: Record) -> None:
        self._records[RecordId.coerce(record_id)] = record.copy()

    def remove(self, record_id: Union[RecordId, str]) -> Optional[Record]:
        return self._records.pop(RecordId.coerce(record_id), None)

    def clear(self) -> None:
        self._records.clear()

    def get(self, record_id: Union[RecordId, str]) -> Optional[Record]:
        record = self._records.get(RecordId.coerce(record_id))
        return record.copy() if record is not None else None

    def ids_with_prefix(self, prefix: str) -> List[RecordId]:
        return [record_id for record_id in self._records if record_id.startswith(prefix)]

    def search(self, text: str) -> List[Tuple[RecordId, Record]]:
        return [(rid, rec.copy()) for rid, rec in self._records.items() if rec.matches(text)]

    def items(self) -> List[Tuple[RecordId, Record]]:
        return [(rid, rec.copy()) for rid, rec in self._records.items()]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[RecordId]:
        return iter(self._records)

    def __contains__(self, record_id) -> bool:
        if isinstance(record_id, str):
            record_id = RecordId(record_id) if record_id else None
        return record_id in self._records

    def to_plain(self) -> Dict[str, Dict[str, Any]]:
        return {str(rid): rec.to_plain() for rid, rec in self._records.items()}

    @classmethod
    def from_plain(cls, plain: Any) -> "RecordCollection":
        """Inverse of to_plain().

        Raises:
            TypeError / ValueError: If the value is not a collection.
        """
        if not isinstance(plain, dict):
            raise TypeError(f"Record collection must be a map, got {type(plain).__name__}")
        records = {}
        for key, value in plain.items():
            if not isinstance(key, str):
                raise TypeError("Record ids must be text")
            records[RecordId(key)] = Record.from_plain(value)
        return cls(records)
