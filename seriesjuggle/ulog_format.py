"""Record layouts of the ULog flight-log format and parsers for its definition messages."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, Union

FILE_MAGIC = b"ULog\x01\x12\x35"
FILE_HEADER = struct.Struct("<8sQ")
MESSAGE_HEADER = struct.Struct("<HB")
FLAG_BITS_LEN = 40
INCOMPAT_FLAG0_DATA_APPENDED_MASK = 0x01
COMPAT_FLAG0_DEFAULT_PARAMETERS_MASK = 0x01


class ULogError(ValueError):
    """Raised when a ULog file or one of its messages cannot be parsed."""


class MessageType(IntEnum):
    """The one-byte type tag of every ULog message."""

    FORMAT = ord("F")
    DATA = ord("D")
    INFO = ord("I")
    INFO_MULTIPLE = ord("M")
    PARAMETER = ord("P")
    PARAMETER_DEFAULT = ord("Q")
    ADD_LOGGED_MSG = ord("A")
    REMOVE_LOGGED_MSG = ord("R")
    SYNC = ord("S")
    DROPOUT = ord("O")
    LOGGING = ord("L")
    LOGGING_TAGGED = ord("C")
    FLAG_BITS = ord("B")


class FieldType(Enum):
    """Type of a field in a message format; the value is the name used in the format text."""

    UINT8 = "uint8_t"
    UINT16 = "uint16_t"
    UINT32 = "uint32_t"
    UINT64 = "uint64_t"
    INT8 = "int8_t"
    INT16 = "int16_t"
    INT32 = "int32_t"
    INT64 = "int64_t"
    FLOAT = "float"
    DOUBLE = "double"
    BOOL = "bool"
    CHAR = "char"
    OTHER = "other"

    @property
    def struct(self) -> struct.Struct:
        """The little-endian layout of one element of this type."""
        try:
            return _STRUCTS[self]
        except KeyError:
            raise ULogError(f"type {self.value} has no fixed layout") from None

    @property
    def size(self) -> int:
        """Size in bytes of one element."""
        return self.struct.size

    def unpack(self, buffer: bytes, offset: int = 0) -> float:
        """Read one element at ``offset`` of ``buffer`` as a float."""
        try:
            (value,) = self.struct.unpack_from(buffer, offset)
        except struct.error as error:
            raise ULogError(f"truncated {self.value} value") from error
        return float(value)


_STRUCTS = {
    FieldType.UINT8: struct.Struct("<B"),
    FieldType.UINT16: struct.Struct("<H"),
    FieldType.UINT32: struct.Struct("<I"),
    FieldType.UINT64: struct.Struct("<Q"),
    FieldType.INT8: struct.Struct("<b"),
    FieldType.INT16: struct.Struct("<h"),
    FieldType.INT32: struct.Struct("<i"),
    FieldType.INT64: struct.Struct("<q"),
    FieldType.FLOAT: struct.Struct("<f"),
    FieldType.DOUBLE: struct.Struct("<d"),
    FieldType.BOOL: struct.Struct("<?"),
    FieldType.CHAR: struct.Struct("<b"),
}

# Order matters: the first prefix that matches decides the type.
_TYPE_PREFIXES = (
    FieldType.INT8,
    FieldType.INT16,
    FieldType.INT32,
    FieldType.INT64,
    FieldType.UINT8,
    FieldType.UINT16,
    FieldType.UINT32,
    FieldType.UINT64,
    FieldType.DOUBLE,
    FieldType.FLOAT,
    FieldType.BOOL,
    FieldType.CHAR,
)


@dataclass
class Field:
    """One field of a message format."""

    type: FieldType
    field_name: str = ""
    other_type_id: str = ""
    array_size: int = 1


@dataclass
class Format:
    """A named message layout: its fields in wire order, the leading timestamp excluded."""

    name: str = ""
    fields: list[Field] = field(default_factory=list)
    padding: int = 0


@dataclass
class Parameter:
    """A parameter read from the definitions section."""

    name: str
    value: Union[int, float]
    val_type: FieldType


@dataclass
class MessageLog:
    """A logged text message."""

    level: str
    timestamp: int
    msg: str


@dataclass
class Subscription:
    """Binding of a message id to a format."""

    msg_id: int = 0
    multi_id: int = 0
    message_name: str = ""
    format: Optional[Format] = None


@dataclass
class ULogTimeseries:
    """Timestamps of one topic and the value columns that go with them."""

    timestamps: list[int] = field(default_factory=list)
    data: list[tuple[str, list[float]]] = field(default_factory=list)


def _split(text: str, delimiter: str) -> list[str]:
    """Split like the format reader does: no trailing empty piece, nothing for ''."""
    if not text:
        return []
    parts = text.split(delimiter)
    if text.endswith(delimiter):
        parts.pop()
    return parts


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


def check_file_header(data: bytes) -> int:
    """Validate the 16-byte file header and return the file start timestamp."""
    if len(data) <= FILE_HEADER.size:
        raise ULogError("ULog: wrong header")
    magic, timestamp = FILE_HEADER.unpack_from(data, 0)
    if magic[: len(FILE_MAGIC)] != FILE_MAGIC:
        raise ULogError("ULog: wrong header")
    return timestamp


def _parse_array_size(suffix: str) -> int:
    if not suffix.startswith("["):
        return 1
    closing = suffix.find("]")
    digits = suffix[1:closing] if closing >= 0 else ""
    if not digits.isdigit():
        raise ULogError(f"invalid array size in {suffix!r}")
    return int(digits)


def _parse_field(section: str) -> Field:
    pieces = _split(section, " ")
    if len(pieces) < 2:
        raise ULogError(f"invalid field definition {section!r}")
    type_text, field_name = pieces[0], pieces[1]

    for candidate in _TYPE_PREFIXES:
        if type_text.startswith(candidate.value):
            field_type = candidate
            suffix = type_text[len(candidate.value):]
            other_type_id = ""
            break
    else:
        field_type = FieldType.OTHER
        bracket = type_text.rfind("[")
        if type_text.endswith("]") and bracket >= 0:
            other_type_id = type_text[:bracket]
            suffix = type_text[type_text.find("["):]
        else:
            other_type_id = type_text
            suffix = ""

    return Field(
        type=field_type,
        field_name=field_name,
        other_type_id=other_type_id,
        array_size=_parse_array_size(suffix),
    )


def parse_format(text: Union[str, bytes]) -> Format:
    """Parse the body of a FORMAT message, ``name:type field;type field;...``."""
    if isinstance(text, bytes):
        text = _decode(text.split(b"\0", 1)[0])
    name, colon, fields_text = text.partition(":")
    if not colon:
        raise ULogError(f"format without ':' separator: {text!r}")

    result = Format(name=name)
    for section in _split(fields_text, ";"):
        parsed = _parse_field(section)
        if parsed.type is FieldType.UINT64 and parsed.field_name == "timestamp":
            continue
        result.fields.append(parsed)
    return result


def _info_value(type_name: str, key: str, value_bytes: bytes) -> str:
    if type_name.startswith("char["):
        return _decode(value_bytes)
    try:
        field_type = FieldType(type_name)
    except ValueError:
        return ""
    if field_type is FieldType.OTHER or field_type is FieldType.CHAR:
        return ""
    try:
        (value,) = field_type.struct.unpack_from(value_bytes, 0)
    except struct.error as error:
        raise ULogError(f"truncated value for info {key!r}") from error
    if field_type is FieldType.BOOL:
        return "1" if value else "0"
    if field_type in (FieldType.FLOAT, FieldType.DOUBLE):
        return f"{value:f}"
    if (
        field_type is FieldType.UINT32
        and key.startswith("ver_")
        and key.endswith("_release")
    ):
        return f"0x{value:08x}"
    return str(value)


def parse_info(payload: bytes) -> tuple[str, str]:
    """Parse the body of an INFO message into ``(key, value as text)``."""
    if not payload:
        raise ULogError("empty info message")
    key_len = payload[0]
    raw_key = _decode(payload[1 : 1 + key_len])
    key_parts = _split(raw_key, " ")
    if len(key_parts) < 2:
        raise ULogError(f"invalid info key {raw_key!r}")
    key = key_parts[1]
    value = _info_value(key_parts[0], key, payload[1 + key_len :])
    return key, value


def parse_parameter(payload: bytes) -> Parameter:
    """Parse the body of a PARAMETER message; only int32_t and float are known."""
    if not payload:
        raise ULogError("empty parameter message")
    key_len = payload[0]
    key = _decode(payload[1 : 1 + key_len])
    type_name, space, name = key.partition(" ")
    if not space:
        raise ULogError(f"invalid parameter key {key!r}")

    value_offset = 1 + key_len
    if type_name == "int32_t":
        val_type = FieldType.INT32
    elif type_name == "float":
        val_type = FieldType.FLOAT
    else:
        raise ULogError("unknown parameter type")
    try:
        (value,) = val_type.struct.unpack_from(payload, value_offset)
    except struct.error as error:
        raise ULogError(f"truncated value for parameter {name!r}") from error
    return Parameter(name=name, value=value, val_type=val_type)


def parse_flag_bits(payload: bytes) -> Optional[int]:
    """Validate a FLAG_BITS body; return the offset where appended data starts, if any."""
    if len(payload) != FLAG_BITS_LEN:
        raise ULogError(
            f"unsupported message length for FLAG_BITS message ({len(payload)})"
        )
    incompat_flags = payload[8:16]
    contains_appended_data = bool(
        incompat_flags[0] & INCOMPAT_FLAG0_DATA_APPENDED_MASK
    )
    unknown_bits = (incompat_flags[0] & ~INCOMPAT_FLAG0_DATA_APPENDED_MASK) or any(
        incompat_flags[1:]
    )
    if unknown_bits:
        raise ULogError("Log contains unknown incompat bits set. Refusing to parse")

    if contains_appended_data:
        first_offset, _, _ = struct.unpack_from("<3Q", payload, 16)
        if first_offset > 0:
            return first_offset
    return None