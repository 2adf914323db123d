"""
otkit.core.wire - Low level protobuf wire format reader.

This module reads the tag-length-value encoding used by protobuf. It knows
nothing about OTLP messages; otkit.core.decoder layers the message schemas
on top of it.

Every offset reported by this module is absolute, i.e. relative to the
start of the buffer handed to the decoder, so errors raised deep inside a
nested message still point at the right byte.

Classes:
    WireType: The protobuf wire types
    Tag: A decoded field key (field number, wire type, offset)
    DecodeLimits: Resource limits applied while decoding
    NodeBudget: Counter enforcing DecodeLimits.max_nodes
    WireReader: Cursor over a window of the input buffer
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, List, Optional, Tuple, TypeVar

from otkit.core.errors import DecodeError

T = TypeVar("T")

MAX_VARINT_BYTES = 10
MAX_FIELD_NUMBER = (1 << 29) - 1

_UINT64_SIGN = 1 << 63
_UINT64_RANGE = 1 << 64
_UINT32_SIGN = 1 << 31
_UINT32_RANGE = 1 << 32

_DOUBLE = struct.Struct("<d")


class WireType(IntEnum):
    VARINT = 0
    I64 = 1
    LEN = 2
    SGROUP = 3
    EGROUP = 4
    I32 = 5


@dataclass(frozen=True)
class Tag:
    field_number: int
    wire_type: WireType
    offset: int


@dataclass(frozen=True)
class DecodeLimits:
    """Resource limits for a single decode call.

    Attributes:
        max_depth: Maximum nesting depth of length-delimited submessages.
            The outermost message is depth 0.
        max_nodes: Maximum number of messages materialized in the tree.
    """
    max_depth: int = 64
    max_nodes: int = 1_000_000


class NodeBudget:
    """Counts materialized messages against DecodeLimits.max_nodes."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.count = 0

    def charge(self, offset: int) -> None:
        self.count += 1
        if self.count > self.limit:
            raise DecodeError(f"node count exceeds limit of {self.limit}", offset)


def to_int64(value: int) -> int:
    """Reinterpret an unsigned 64-bit varint as two's complement."""
    return value - _UINT64_RANGE if value >= _UINT64_SIGN else value


def to_int32(value: int) -> int:
    """Truncate a varint to 32 bits and reinterpret it as signed."""
    value &= _UINT32_RANGE - 1
    return value - _UINT32_RANGE if value >= _UINT32_SIGN else value


def zigzag_decode(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


class WireReader:
    """Sequential reader over ``data[start:end]``.

    The reader never copies the underlying buffer; nested messages are read
    through new readers sharing ``data`` with a narrower window.

    Example:
        >>> reader = WireReader(b"\\x08\\x96\\x01")
        >>> tag = reader.read_tag()
        >>> tag.field_number, reader.read_varint()
        (1, 150)
    """

    def __init__(self, data: bytes, start: int = 0, end: Optional[int] = None) -> None:
        self.data = data
        self.pos = start
        self.end = len(data) if end is None else end

    @property
    def remaining(self) -> int:
        return self.end - self.pos

    def at_end(self) -> bool:
        return self.pos >= self.end

    def sub_reader(self, start: int, end: int) -> WireReader:
        return WireReader(self.data, start, end)

    def read_varint(self) -> int:
        """Read a base-128 varint of at most 10 bytes.

        Raises:
            DecodeError: If the varint is truncated, longer than 10 bytes,
                or does not fit in 64 bits
        """
        start = self.pos
        result = 0
        shift = 0
        for index in range(MAX_VARINT_BYTES):
            if self.pos >= self.end:
                raise DecodeError("truncated varint", start)
            byte = self.data[self.pos]
            self.pos += 1
            if index == MAX_VARINT_BYTES - 1:
                if byte & 0x80:
                    raise DecodeError("varint longer than 10 bytes", start)
                if byte > 0x01:
                    raise DecodeError("varint overflows 64 bits", start)
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
            shift += 7
        # The loop always returns or raises on the tenth byte.
        raise AssertionError("unreachable")

    def read_tag(self) -> Tag:
        """Read a field key.

        Raises:
            DecodeError: For field number 0, out of range field numbers,
                group wire types and wire types 6 and 7
        """
        offset = self.pos
        key = self.read_varint()
        field_number = key >> 3
        raw_wire_type = key & 0x07
        if field_number == 0:
            raise DecodeError("invalid field number 0", offset)
        if field_number > MAX_FIELD_NUMBER:
            raise DecodeError(f"field number {field_number} out of range", offset)
        if raw_wire_type > WireType.I32:
            raise DecodeError(f"invalid wire type {raw_wire_type}", offset)
        wire_type = WireType(raw_wire_type)
        if wire_type in (WireType.SGROUP, WireType.EGROUP):
            raise DecodeError(f"unsupported group wire type {raw_wire_type}", offset)
        return Tag(field_number, wire_type, offset)

    def _take(self, size: int, what: str) -> int:
        start = self.pos
        if size > self.end - start:
            raise DecodeError(f"truncated {what}: need {size} bytes, {self.end - start} left", start)
        self.pos += size
        return start

    def read_fixed64(self) -> int:
        start = self._take(8, "fixed64")
        return int.from_bytes(self.data[start:start + 8], "little")

    def read_sfixed64(self) -> int:
        return to_int64(self.read_fixed64())

    def read_fixed32(self) -> int:
        start = self._take(4, "fixed32")
        return int.from_bytes(self.data[start:start + 4], "little")

    def read_double(self) -> float:
        start = self._take(8, "double")
        return _DOUBLE.unpack_from(self.data, start)[0]

    def read_length_delimited(self) -> Tuple[int, int]:
        """Read a length prefix and return the ``(start, end)`` window of
        the payload that follows it.

        Raises:
            DecodeError: At the offset of the length prefix when the
                declared length exceeds the bytes left in this window
        """
        prefix = self.pos
        length = self.read_varint()
        if length > self.end - self.pos:
            raise DecodeError(
                f"declared length {length} exceeds remaining {self.end - self.pos} bytes",
                prefix,
            )
        start = self.pos
        self.pos += length
        return start, self.pos

    def read_bytes(self) -> bytes:
        start, end = self.read_length_delimited()
        return bytes(self.data[start:end])

    def read_string(self) -> str:
        start, end = self.read_length_delimited()
        try:
            return bytes(self.data[start:end]).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"invalid UTF-8 in string field ({e.reason})", start + e.start) from e

    def read_packed(self, read_one: Callable[[WireReader], T]) -> List[T]:
        """Read a packed repeated scalar field."""
        start, end = self.read_length_delimited()
        packed = self.sub_reader(start, end)
        values: List[T] = []
        while not packed.at_end():
            values.append(read_one(packed))
        return values

    def skip(self, tag: Tag) -> None:
        """Skip the payload of a field this reader does not know about."""
        if tag.wire_type is WireType.VARINT:
            self.read_varint()
        elif tag.wire_type is WireType.I64:
            self._take(8, "fixed64")
        elif tag.wire_type is WireType.LEN:
            self.read_length_delimited()
        elif tag.wire_type is WireType.I32:
            self._take(4, "fixed32")
        else:
            raise DecodeError(f"cannot skip wire type {int(tag.wire_type)}", tag.offset)
