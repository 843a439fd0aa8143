"""Binary serialization for vault payloads.

Fixed-layout structures (envelope, verification header) are written field by
field with ``BinaryWriter`` / read back with ``BinaryReader``: little-endian
integers, byte strings and text prefixed with a u64 length.

Arbitrary plain values (the record collection, test payloads) go through
``dumps`` / ``loads``, which prefix every value with a one-byte type tag:

    N  None            T / F  bool
    i  i64             d      f64
    s  utf-8 text      b      bytes
    l  list            m      map (key, value pairs)

Tuples are written as lists.
"""

import struct
from typing import Any, List

from .exceptions import SerializationError

# ── Constants ────────────────────────────────────────────────────────

_U16 = struct.Struct("<H")
_U64 = struct.Struct("<Q")
_I64 = struct.Struct("<q")
_F64 = struct.Struct("<d")

TAG_NONE = b"N"
TAG_TRUE = b"T"
TAG_FALSE = b"F"
TAG_INT = b"i"
TAG_FLOAT = b"d"
TAG_STR = b"s"
TAG_BYTES = b"b"
TAG_LIST = b"l"
TAG_MAP = b"m"

MAX_DEPTH = 64


# ── Fixed-layout primitives ──────────────────────────────────────────


class BinaryWriter:
    """Accumulates little-endian, length-prefixed fields."""

    def __init__(self):
        self._parts: List[bytes] = []

    def u16(self, value: int) -> "BinaryWriter":
        self._pack(_U16, value)
        return self

    def u64(self, value: int) -> "BinaryWriter":
        self._pack(_U64, value)
        return self

    def i64(self, value: int) -> "BinaryWriter":
        self._pack(_I64, value)
        return self

    def f64(self, value: float) -> "BinaryWriter":
        self._pack(_F64, value)
        return self

    def raw(self, data: bytes) -> "BinaryWriter":
        self._parts.append(bytes(data))
        return self

    def blob(self, data: bytes) -> "BinaryWriter":
        self.u64(len(data))
        return self.raw(data)

    def text(self, value: str) -> "BinaryWriter":
        return self.blob(value.encode("utf-8"))

    def getvalue(self) -> bytes:
        return b"".join(self._parts)

    def _pack(self, fmt: struct.Struct, value) -> None:
        try:
            self._parts.append(fmt.pack(value))
        except struct.error as e:
            raise SerializationError(f"Value {value!r} does not fit: {e}") from e


class BinaryReader:
    """Reads fields written by BinaryWriter, failing on short or trailing input."""

    def __init__(self, data: bytes):
        self._data = memoryview(bytes(data))
        self._pos = 0

    def u16(self) -> int:
        return self._unpack(_U16)

    def u64(self) -> int:
        return self._unpack(_U64)

    def i64(self) -> int:
        return self._unpack(_I64)

    def f64(self) -> float:
        return self._unpack(_F64)

    def raw(self, size: int) -> bytes:
        end = self._pos + size
        if size < 0 or end > len(self._data):
            raise SerializationError(
                f"Unexpected end of data: need {size} bytes at offset {self._pos}"
            )
        chunk = self._data[self._pos:end].tobytes()
        self._pos = end
        return chunk

    def blob(self) -> bytes:
        return self.raw(self.u64())

    def text(self) -> str:
        data = self.blob()
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SerializationError(f"Invalid utf-8 text: {e}") from e

    def remaining(self) -> int:
        return len(self._data) - self._pos

    def finish(self) -> None:
        """Reject trailing garbage after the last field."""
        if self.remaining():
            raise SerializationError(f"{self.remaining()} trailing bytes after value")

    def _unpack(self, fmt: struct.Struct):
        return fmt.unpack(self.raw(fmt.size))[0]


# ── Tagged values ────────────────────────────────────────────────────


def dumps(value: Any) -> bytes:
    """Serialize a plain value (None/bool/int/float/str/bytes/list/tuple/dict).

    Raises:
        SerializationError: For unsupported types, ints outside i64, or
            nesting deeper than MAX_DEPTH.
    """
    writer = BinaryWriter()
    _write_value(writer, value, 0)
    return writer.getvalue()


def loads(data: bytes) -> Any:
    """Inverse of dumps(). The whole input must be consumed."""
    reader = BinaryReader(data)
    value = _read_value(reader, 0)
    reader.finish()
    return value


def _write_value(writer: BinaryWriter, value: Any, depth: int) -> None:
    if depth > MAX_DEPTH:
        raise SerializationError("Value nested too deeply")

    # bool before int: bool is an int subclass
    if value is None:
        writer.raw(TAG_NONE)
    elif value is True:
        writer.raw(TAG_TRUE)
    elif value is False:
        writer.raw(TAG_FALSE)
    elif isinstance(value, int):
        writer.raw(TAG_INT).i64(value)
    elif isinstance(value, float):
        writer.raw(TAG_FLOAT).f64(value)
    elif isinstance(value, str):
        writer.raw(TAG_STR).text(value)
    elif isinstance(value, (bytes, bytearray, memoryview)):
        writer.raw(TAG_BYTES).blob(bytes(value))
    elif isinstance(value, (list, tuple)):
        writer.raw(TAG_LIST).u64(len(value))
        for item in value:
            _write_value(writer, item, depth + 1)
    elif isinstance(value, dict):
        writer.raw(TAG_MAP).u64(len(value))
        for key, item in value.items():
            _write_value(writer, key, depth + 1)
            _write_value(writer, item, depth + 1)
    else:
        raise SerializationError(f"Cannot serialize {type(value).__name__}")


def _read_value(reader: BinaryReader, depth: int) -> Any:
    if depth > MAX_DEPTH:
        raise SerializationError("Value nested too deeply")

    tag = reader.raw(1)
    if tag == TAG_NONE:
        return None
    if tag == TAG_TRUE:
        return True
    if tag == TAG_FALSE:
        return False
    if tag == TAG_INT:
        return reader.i64()
    if tag == TAG_FLOAT:
        return reader.f64()
    if tag == TAG_STR:
        return reader.text()
    if tag == TAG_BYTES:
        return reader.blob()
    if tag == TAG_LIST:
        count = _read_count(reader)
        return [_read_value(reader, depth + 1) for _ in range(count)]
    if tag == TAG_MAP:
        count = _read_count(reader)
        result = {}
        for _ in range(count):
            key = _read_value(reader, depth + 1)
            try:
                hash(key)
            except TypeError:
                raise SerializationError(f"Unhashable map key of type {type(key).__name__}") from None
            result[key] = _read_value(reader, depth + 1)
        return result
    raise SerializationError(f"Unknown type tag {tag!r}")


def _read_count(reader: BinaryReader) -> int:
    count = reader.u64()
    # every element needs at least its one-byte tag
    if count > reader.remaining():
        raise SerializationError(f"Element count {count} exceeds available data")
    return count
