# pbwire

Small building blocks for working with the Protocol Buffers wire format
in Python. There are three modules.

## `pbwire.descriptor`: field descriptors and iteration

- `MessageDescriptor(field_info, submsg_info=(), largest_tag=None)`
  holds the packed 32-bit field-info words of one message type. Each
  field takes 1, 2, 4 or 8 words, and the lowest two bits of its first
  word give the format. `field_count()` returns the number of fields.
  If `largest_tag` is not given, it is taken from the fields.
- A field's type byte is built from `LType`, `HType` and `AType` with
  `pack_field_type(ltype, htype, atype)`. `FieldInfo` is the decoded
  form of one field: tag, type, array size, data and size offsets,
  data size and word count.
- A message is a mutable mapping, such as a `dict`, keyed by the data
  offset of each field.
- `FieldIterator(descriptor, message=None)` is a cursor over the
  fields:
  - `next()` moves on and returns False when it wraps back to the
    first field.
  - `find(tag)` moves to the field with that tag.
  - `find_extension()` moves to the extension range field.
  - Iterating it yields the cursor itself at each field.
  - `data` reads and writes the current field's value in the message.
  - `size` gives the presence flag or count stored at the size offset,
    or the fixed array size for static and pointer repeated fields.
- `Extension` links extension fields into a chain.
  `FieldIterator.for_extension(extension)` iterates over an extension's
  single field. Its `size` is the extension's `found` flag.
- `Callback` holds `decode` and `encode` functions and an `arg`.
  `default_field_callback(istream, ostream, field)` runs the matching
  function of the current field's `Callback`. If that function returns
  False, it raises `RuntimeError`.

```python
from pbwire.descriptor import (
    AType, FieldIterator, HType, LType, MessageDescriptor, pack_field_type,
)

def word(tag, ftype, offset, size):
    # one-word field format
    return (tag << 2) | (ftype << 8) | (offset << 16) | (size << 28)

desc = MessageDescriptor([
    word(1, pack_field_type(LType.VARINT, HType.REQUIRED, AType.STATIC), 0, 4),
    word(2, pack_field_type(LType.STRING, HType.REQUIRED, AType.STATIC), 4, 8),
])
message = {0: 150, 4: "hello"}
for field in FieldIterator(desc, message):
    print(field.tag, field.data)   # 1 150, then 2 hello
```

## `pbwire.utf8`: UTF-8 checking

`validate_utf8(data)` checks `bytes` or `str` up to the first NUL byte.
It returns False for overlong forms, surrogates, U+FFFE, U+FFFF and
code points above U+10FFFF.

## `pbwire.encode`: output streams and wire primitives

An `OutputStream` can write to any of three destinations:

- a bounded in-memory buffer, made with `OutputStream.from_buffer(size)`
  and read back with `getvalue()`;
- your own callback, made with `OutputStream(callback, max_size)`. The
  callback receives each chunk of bytes, and returning False from it
  is an I/O error;
- nothing at all. A stream made with `OutputStream.sizing()` only
  counts bytes.

`bytes_written` holds the count so far.

The primitives that write to a stream are:

- `encode_varint` and `encode_svarint` (zig-zag);
- `encode_tag(stream, wire_type, field_number)` and
  `encode_tag_for_field(stream, field)`. The second works out the wire
  type from the field's type byte with `wire_type_for`, giving a
  `WireType`;
- `encode_string`;
- `encode_fixed32` and `encode_fixed64`. Both take ints or floats and
  write little-endian;
- `encode_float_as_double`;
- `encode_submessage(stream, writer)`.

Failures raise `EncodeError`. Values out of range raise `ValueError`.

```python
from pbwire.encode import (
    OutputStream, WireType, encode_string, encode_tag, encode_varint,
)

stream = OutputStream.from_buffer(64)
encode_tag(stream, WireType.VARINT, 1)
encode_varint(stream, 150)
encode_tag(stream, WireType.STRING, 2)
encode_string(stream, b"hello")
print(stream.getvalue().hex())   # 089601120568656c6c6f
```

Writing past the buffer's size raises `EncodeError("stream full")`. If
the callback fails, it raises `EncodeError("io error")`:

```python
from pbwire.encode import EncodeError, OutputStream

stream = OutputStream.from_buffer(2)
try:
    stream.write(b"abc")
except EncodeError as exc:
    print(exc)   # stream full
```

`encode_submessage(stream, writer)` calls `writer(substream)` twice.
The first call measures the length and the second writes the data. If
the two calls write different amounts, it raises
`EncodeError("submsg size changed")`. On a sizing stream the writer
runs only once.

## What it does not do

pbwire provides descriptors, iteration and encoding primitives only:

- It has no encoder that walks a whole message from its descriptor.
- It does not decode the wire format at all.
- It has no code generator for `.proto` files.

To encode a message, call the primitives yourself, for example from
`Callback` functions.

## Installing

```
pip install pbwire
```

Python 3.10 or later. There are no runtime dependencies.

## Running the tests

```
pip install -e ".[test]"
pytest
```