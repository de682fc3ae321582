"""Compact field descriptors and the iterator that walks them.

A message descriptor is a sequence of 32-bit words. Each field takes 1, 2, 4
or 8 words; the lowest two bits of the first word give the format. Messages
are mutable mappings keyed by the data offset of each field, so the offsets
in a descriptor name the slots of a message.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterator, MutableMapping, Sequence
from dataclasses import dataclass
from typing import Any

_LTYPE_MASK = 0x0F
_HTYPE_MASK = 0x30
_ATYPE_MASK = 0xC0


class LType(enum.IntEnum):
    """Low-level type of a field: how its value is coded."""

    VARINT = 0x00
    UVARINT = 0x01
    SVARINT = 0x02
    FIXED32 = 0x03
    FIXED64 = 0x04
    BYTES = 0x05
    STRING = 0x06
    SUBMESSAGE = 0x07
    SUBMSG_W_CB = 0x08
    EXTENSION = 0x09
    FIXED_LENGTH_BYTES = 0x0A


class HType(enum.IntEnum):
    """How many values a field holds."""

    REQUIRED = 0x00
    OPTIONAL = 0x10
    SINGULAR = 0x10
    REPEATED = 0x20
    FIXARRAY = 0x20
    ONEOF = 0x30


class AType(enum.IntEnum):
    """How the value of a field is stored."""

    STATIC = 0x00
    CALLBACK = 0x40
    POINTER = 0x80


def pack_field_type(ltype, htype, atype):
    """Combine the three type parts into the type byte of a descriptor."""
    return int(ltype) | int(htype) | int(atype)


def _is_submessage(type_byte: int) -> bool:
    return (type_byte & _LTYPE_MASK) in (LType.SUBMESSAGE, LType.SUBMSG_W_CB)


def _int8(value: int) -> int:
    value &= 0xFF
    return value - 0x100 if value >= 0x80 else value


@dataclass(frozen=True)
class FieldInfo:
    """One field as described by its descriptor words."""

    tag: int
    type: int
    array_size: int
    data_offset: int
    size_offset: int
    data_size: int
    word_count: int

    @property
    def ltype(self) -> LType:
        return LType(self.type & _LTYPE_MASK)

    @property
    def htype(self) -> HType:
        return HType(self.type & _HTYPE_MASK)

    @property
    def atype(self) -> AType:
        return AType(self.type & _ATYPE_MASK)

    @property
    def is_submessage(self) -> bool:
        return _is_submessage(self.type)


def _decode_field_info(words: Sequence[int], pos: int) -> FieldInfo:
    try:
        word0 = words[pos]
        field_type = (word0 >> 8) & 0xFF
        fmt = word0 & 3
        if fmt == 0:
            return FieldInfo(
                tag=(word0 >> 2) & 0x3F,
                type=field_type,
                array_size=1,
                data_offset=(word0 >> 16) & 0xFF,
                size_offset=(word0 >> 24) & 0x0F,
                data_size=(word0 >> 28) & 0x0F,
                word_count=1,
            )
        if fmt == 1:
            word1 = words[pos + 1]
            return FieldInfo(
                tag=((word0 >> 2) & 0x3F) | ((word1 >> 28) << 6),
                type=field_type,
                array_size=(word0 >> 16) & 0x0FFF,
                data_offset=word1 & 0xFFFF,
                size_offset=(word0 >> 28) & 0x0F,
                data_size=(word1 >> 16) & 0x0FFF,
                word_count=2,
            )
        word1, word2, word3 = words[pos + 1], words[pos + 2], words[pos + 3]
        if fmt == 2:
            array_size = word0 >> 16
            word_count = 4
        else:
            array_size = words[pos + 4]
            words[pos + 7]  # the format always spans eight words
            word_count = 8
        return FieldInfo(
            tag=((word0 >> 2) & 0x3F) | ((word1 >> 8) << 6),
            type=field_type,
            array_size=array_size,
            data_offset=word2,
            size_offset=_int8(word1),
            data_size=word3,
            word_count=word_count,
        )
    except IndexError:
        raise ValueError(f"descriptor truncated at word {pos}") from None


class MessageDescriptor:
    """The field layout of one message type."""

    def __init__(
        self,
        field_info: Sequence[int],
        submsg_info: Sequence[MessageDescriptor] = (),
        largest_tag: int | None = None,
    ) -> None:
        self.field_info = tuple(field_info)
        self.submsg_info = submsg_info
        fields = []
        pos = 0
        while pos < len(self.field_info):
            info = _decode_field_info(self.field_info, pos)
            fields.append(info)
            pos += info.word_count
        self._fields = tuple(fields)
        if largest_tag is None:
            largest_tag = max((f.tag for f in fields), default=0)
        self.largest_tag = largest_tag

    def field_count(self):
        """Number of fields in the message."""
        return len(self._fields)

    def __repr__(self) -> str:
        return (
            f"MessageDescriptor(fields={self.field_count()}, "
            f"largest_tag={self.largest_tag})"
        )


@dataclass
class Extension:
    """An extension field attached to a message, in a linked chain."""

    descriptor: MessageDescriptor
    dest: Any = None
    next: Extension | None = None
    found: bool = False


@dataclass
class Callback:
    """A field whose value is produced or consumed by user functions."""

    decode: Callable[..., Any] | None = None
    encode: Callable[..., Any] | None = None
    arg: Any = None


class FieldIterator:
    """A cursor over the fields of a message descriptor.

    ``field`` is None when the descriptor has no fields.
    """

    def __init__(self, descriptor, message=None):
        self.descriptor: MessageDescriptor = descriptor
        self.message: MutableMapping[int, Any] | None = message
        self.index = 0
        self.field_info_index = 0
        self.submessage_index = 0
        self.required_field_index = 0
        self.field: FieldInfo | None = None
        self.submsg_desc: MessageDescriptor | None = None
        self._extension: Extension | None = None
        self._extension_holds_value = False
        self._load()

    @classmethod
    def for_extension(cls, extension):
        """Iterator over the single field of an extension."""
        desc = extension.descriptor
        holds_value = bool(desc.field_info) and (
            (desc.field_info[0] >> 8) & _ATYPE_MASK
        ) == AType.POINTER
        it = cls(desc, None if holds_value else extension.dest)
        it._extension = extension
        it._extension_holds_value = holds_value
        return it

    @property
    def tag(self) -> int:
        return self.field.tag if self.field is not None else 0

    @property
    def type(self) -> int:
        return self.field.type if self.field is not None else 0

    @property
    def data(self) -> Any:
        """Value of the current field in the message."""
        if self.field is None:
            return None
        if self._extension_holds_value:
            return self._extension.dest
        if self.message is None:
            return None
        return self.message.get(self.field.data_offset)

    @data.setter
    def data(self, value: Any) -> None:
        if self.field is None:
            raise ValueError("descriptor has no fields")
        if self._extension_holds_value:
            self._extension.dest = value
        elif self.message is None:
            raise ValueError("iterator has no message")
        else:
            self.message[self.field.data_offset] = value

    @property
    def size(self) -> Any:
        """Presence flag, count or fixed array size of the current field."""
        f = self.field
        if f is None:
            return None
        if self._extension is not None:
            return self._extension.found
        if self.message is None:
            return None
        if f.size_offset:
            return self.message.get(f.data_offset - f.size_offset)
        if (f.type & _HTYPE_MASK) == HType.REPEATED and (f.type & _ATYPE_MASK) in (
            AType.STATIC,
            AType.POINTER,
        ):
            return f.array_size
        return None

    @size.setter
    def size(self, value: Any) -> None:
        f = self.field
        if f is None:
            raise ValueError("descriptor has no fields")
        if self._extension is not None:
            self._extension.found = value
        elif self.message is not None and f.size_offset:
            self.message[f.data_offset - f.size_offset] = value
        else:
            raise ValueError(f"field {f.tag} has no writable size")

    def _load(self) -> bool:
        if self.index >= self.descriptor.field_count():
            return False
        info = _decode_field_info(self.descriptor.field_info, self.field_info_index)
        self.field = info
        if info.is_submessage:
            try:
                self.submsg_desc = self.descriptor.submsg_info[self.submessage_index]
            except IndexError:
                raise ValueError(
                    f"no submessage descriptor for field {info.tag}"
                ) from None
        else:
            self.submsg_desc = None
        return True

    def _advance(self) -> None:
        self.index += 1
        if self.index >= self.descriptor.field_count():
            self.index = 0
            self.field_info_index = 0
            self.submessage_index = 0
            self.required_field_index = 0
            return
        prev = self.descriptor.field_info[self.field_info_index]
        prev_type = (prev >> 8) & 0xFF
        self.field_info_index += 1 << (prev & 3)
        if (prev_type & _HTYPE_MASK) == HType.REQUIRED:
            self.required_field_index += 1
        if _is_submessage(prev_type):
            self.submessage_index += 1

    def next(self):
        """Move to the next field; False when wrapping back to the first."""
        self._advance()
        self._load()
        return self.index != 0

    def find(self, tag):
        """Move to the field with ``tag``; False (position kept) if absent."""
        if self.field is None:
            return False
        if self.tag == tag:
            return True
        if tag > self.descriptor.largest_tag:
            return False
        start = self.index
        if tag < self.tag:
            # Fields are sorted by tag; restart from the beginning.
            self.index = self.descriptor.field_count()
        while True:
            self._advance()
            word = self.descriptor.field_info[self.field_info_index]
            if ((word >> 2) & 0x3F) == (tag & 0x3F):
                self._load()
                if self.tag == tag and (self.type & _LTYPE_MASK) != LType.EXTENSION:
                    return True
            if self.index == start:
                break
        self._load()
        return False

    def find_extension(self):
        """Move to the extension range field; False (position kept) if none."""
        if self.field is None:
            return False
        if (self.type & _LTYPE_MASK) == LType.EXTENSION:
            return True
        start = self.index
        while True:
            self._advance()
            word = self.descriptor.field_info[self.field_info_index]
            if ((word >> 8) & _LTYPE_MASK) == LType.EXTENSION:
                return self._load()
            if self.index == start:
                break
        self._load()
        return False

    def __iter__(self) -> Iterator[FieldIterator]:
        """Yield the iterator itself at each field from the current one on."""
        if self.field is None:
            return
        yield self
        while self.next():
            yield self


def default_field_callback(istream, ostream, field):
    """Run the decode or encode function of a callback field, if any.

    A callback that returns False is treated as a failure.
    """
    callback = field.data
    if not isinstance(callback, Callback):
        return
    if istream is not None and callback.decode is not None:
        result = callback.decode(istream, field, callback.arg)
    elif ostream is not None and callback.encode is not None:
        result = callback.encode(ostream, field, callback.arg)
    else:
        return
    if result is False:
        raise RuntimeError(f"callback for field {field.tag} failed")