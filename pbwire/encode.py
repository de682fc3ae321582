"""Output streams and the primitives that write the protobuf wire format."""

from __future__ import annotations

import enum
import math
import struct
from collections.abc import Callable
from typing import Any

from pbwire.descriptor import LType

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF
_LTYPE_MASK = 0x0F


class EncodeError(Exception):
    """Raised when a value cannot be written to an output stream."""


class WireType(enum.IntEnum):
    """Wire type carried in the low three bits of a field header."""

    VARINT = 0
    FIXED64 = 1
    STRING = 2
    FIXED32 = 5


class OutputStream:
    """A destination for encoded bytes with an optional size limit.

    ``callback`` receives each chunk of bytes; returning False from it is an
    I/O error. A stream without a callback only counts bytes (a sizing
    stream). ``max_size`` of None means no limit.
    """

    def __init__(
        self,
        callback: Callable[[bytes], Any] | None = None,
        max_size: int | None = None,
    ) -> None:
        self.callback = callback
        self.max_size = max_size
        self.bytes_written = 0
        self._buffer: bytearray | None = None

    @classmethod
    def from_buffer(cls, size):
        """A stream collecting at most ``size`` bytes in memory."""
        buffer = bytearray()
        stream = cls(buffer.extend, size)
        stream._buffer = buffer
        return stream

    @classmethod
    def sizing(cls):
        """A stream that stores nothing and only counts the bytes written."""
        return cls(None, None)

    @property
    def is_sizing(self) -> bool:
        return self.callback is None

    def _reserve(self, count: int) -> None:
        if self.max_size is not None and self.bytes_written + count > self.max_size:
            raise EncodeError("stream full")

    def write(self, data):
        """Write ``data``; raise EncodeError if full or the callback fails."""
        data = bytes(data)
        if not data:
            return
        self._reserve(len(data))
        if self.callback is not None and self.callback(data) is False:
            raise EncodeError("io error")
        self.bytes_written += len(data)

    def getvalue(self):
        """Bytes collected by a stream made with ``from_buffer``."""
        if self._buffer is None:
            raise ValueError("stream does not keep its output")
        return bytes(self._buffer)

    def __repr__(self) -> str:
        return (
            f"OutputStream(bytes_written={self.bytes_written}, "
            f"max_size={self.max_size})"
        )


_WIRE_TYPES = {
    LType.VARINT: WireType.VARINT,
    LType.UVARINT: WireType.VARINT,
    LType.SVARINT: WireType.VARINT,
    LType.FIXED32: WireType.FIXED32,
    LType.FIXED64: WireType.FIXED64,
    LType.BYTES: WireType.STRING,
    LType.STRING: WireType.STRING,
    LType.SUBMESSAGE: WireType.STRING,
    LType.SUBMSG_W_CB: WireType.STRING,
    LType.FIXED_LENGTH_BYTES: WireType.STRING,
}


def wire_type_for(ltype):
    """Wire type used for fields of the given low-level type."""
    try:
        return _WIRE_TYPES[LType(ltype)]
    except (ValueError, KeyError):
        raise EncodeError("invalid field type") from None


def _varint_bytes(value: int) -> bytes:
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def encode_varint(stream, value):
    """Write an integer as a varint; negative values use 64-bit two's complement."""
    value = int(value)
    if not -(1 << 63) <= value <= _MASK64:
        raise ValueError(f"varint value out of range: {value}")
    stream.write(_varint_bytes(value & _MASK64))


def encode_svarint(stream, value):
    """Write a signed 64-bit integer in zig-zag varint form."""
    value = int(value)
    if not -(1 << 63) <= value < (1 << 63):
        raise ValueError(f"svarint value out of range: {value}")
    zigzag = ((value << 1) ^ (value >> 63)) & _MASK64
    stream.write(_varint_bytes(zigzag))


def encode_tag(stream, wire_type, field_number):
    """Write a field header from a wire type and field number."""
    encode_varint(stream, (int(field_number) << 3) | int(wire_type))


def encode_tag_for_field(stream, field):
    """Write the header for a field described by its tag and type byte."""
    wire_type = wire_type_for(int(field.type) & _LTYPE_MASK)
    encode_tag(stream, wire_type, field.tag)


def encode_string(stream, data):
    """Write a length-prefixed string or bytes value."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    data = bytes(data)
    encode_varint(stream, len(data))
    stream.write(data)


def _pack_float(fmt: str, value: float) -> bytes:
    try:
        return struct.pack(fmt, value)
    except OverflowError:
        return struct.pack(fmt, math.copysign(math.inf, value))


def encode_fixed32(stream, value):
    """Write a fixed32, sfixed32 (int) or float (float) value, little-endian."""
    if isinstance(value, float):
        stream.write(_pack_float("<f", value))
        return
    value = int(value)
    if not -(1 << 31) <= value <= _MASK32:
        raise ValueError(f"fixed32 value out of range: {value}")
    stream.write(struct.pack("<I", value & _MASK32))


def encode_fixed64(stream, value):
    """Write a fixed64, sfixed64 (int) or double (float) value, little-endian."""
    if isinstance(value, float):
        stream.write(struct.pack("<d", value))
        return
    value = int(value)
    if not -(1 << 63) <= value <= _MASK64:
        raise ValueError(f"fixed64 value out of range: {value}")
    stream.write(struct.pack("<Q", value & _MASK64))


def encode_float_as_double(stream, value):
    """Write a single-precision value so that it reads back as a double."""
    single = struct.unpack("<f", _pack_float("<f", float(value)))[0]
    encode_fixed64(stream, single)


def encode_submessage(stream, writer):
    """Write a length-prefixed submessage produced by ``writer(substream)``.

    The writer runs twice: once to measure, once to write. It must produce
    the same number of bytes both times. A writer returning False fails.
    """
    sizing = OutputStream.sizing()
    if writer(sizing) is False:
        raise EncodeError("submessage writer failed")
    size = sizing.bytes_written

    encode_varint(stream, size)

    if stream.is_sizing:
        stream.bytes_written += size
        return

    stream._reserve(size)
    substream = OutputStream(stream.write, size)
    if writer(substream) is False:
        raise EncodeError("submessage writer failed")
    if substream.bytes_written != size:
        raise EncodeError("submsg size changed")