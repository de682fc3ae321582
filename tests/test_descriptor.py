import pytest

from pbwire.descriptor import (
    AType,
    Callback,
    Extension,
    FieldInfo,
    FieldIterator,
    HType,
    LType,
    MessageDescriptor,
    default_field_callback,
    pack_field_type,
)

REQ_INT = pack_field_type(LType.VARINT, HType.REQUIRED, AType.STATIC)
OPT_INT = pack_field_type(LType.VARINT, HType.OPTIONAL, AType.STATIC)
REP_INT = pack_field_type(LType.VARINT, HType.REPEATED, AType.STATIC)
REQ_SUB = pack_field_type(LType.SUBMESSAGE, HType.REQUIRED, AType.STATIC)
OPT_SUB = pack_field_type(LType.SUBMESSAGE, HType.OPTIONAL, AType.STATIC)
EXT = pack_field_type(LType.EXTENSION, HType.OPTIONAL, AType.STATIC)
PTR_INT = pack_field_type(LType.VARINT, HType.OPTIONAL, AType.POINTER)
CB_STR = pack_field_type(LType.STRING, HType.OPTIONAL, AType.CALLBACK)


def w1(tag, type_, data_offset, size_offset=0, data_size=0):
    return [
        (tag & 0x3F) << 2
        | type_ << 8
        | data_offset << 16
        | size_offset << 24
        | data_size << 28
    ]


def w2(tag, type_, data_offset, size_offset=0, data_size=0, array_size=0):
    return [
        1 | (tag & 0x3F) << 2 | type_ << 8 | array_size << 16 | size_offset << 28,
        (tag >> 6) << 28 | data_size << 16 | data_offset,
    ]


def w4(tag, type_, data_offset, size_offset=0, data_size=0, array_size=0):
    return [
        2 | (tag & 0x3F) << 2 | type_ << 8 | array_size << 16,
        (tag >> 6) << 8 | (size_offset & 0xFF),
        data_offset,
        data_size,
    ]


def w8(tag, type_, data_offset, size_offset=0, data_size=0, array_size=0):
    return [
        3 | (tag & 0x3F) << 2 | type_ << 8,
        (tag >> 6) << 8 | (size_offset & 0xFF),
        data_offset,
        data_size,
        array_size,
        0,
        0,
        0,
    ]


def test_one_word_format():
    it = FieldIterator(MessageDescriptor(w1(5, OPT_INT, 8, 4, 4)), {})
    assert it.field == FieldInfo(
        tag=5, type=OPT_INT, array_size=1, data_offset=8,
        size_offset=4, data_size=4, word_count=1,
    )


def test_two_word_format_large_tag():
    desc = MessageDescriptor(w2(100, REP_INT, 300, 3, 2000, 10))
    f = FieldIterator(desc).field
    assert (f.tag, f.array_size, f.data_offset, f.size_offset, f.data_size) == (
        100, 10, 300, 3, 2000,
    )
    assert f.word_count == 2


def test_four_word_format_negative_size_offset():
    desc = MessageDescriptor(w4(5000, OPT_INT, 70000, -4, 123456, 60000))
    f = FieldIterator(desc).field
    assert (f.tag, f.array_size, f.data_offset, f.size_offset, f.data_size) == (
        5000, 60000, 70000, -4, 123456,
    )


def test_eight_word_format():
    desc = MessageDescriptor(w8(1001, REP_INT, 12, 2, 4, 100000))
    f = FieldIterator(desc).field
    assert (f.tag, f.array_size, f.word_count) == (1001, 100000, 8)


def test_type_parts_round_trip():
    t = pack_field_type(LType.STRING, HType.REPEATED, AType.POINTER)
    f = FieldIterator(MessageDescriptor(w1(1, t, 0))).field
    assert f.ltype is LType.STRING
    assert f.htype is HType.REPEATED
    assert f.atype is AType.POINTER


def test_field_count_and_largest_tag():
    desc = MessageDescriptor(
        w1(1, REQ_INT, 0) + w2(70, OPT_INT, 4) + w4(500, OPT_INT, 8) + w8(1001, OPT_INT, 12)
    )
    assert desc.field_count() == 4
    assert desc.largest_tag == 1001


def test_truncated_descriptor_raises():
    with pytest.raises(ValueError):
        MessageDescriptor(w2(70, OPT_INT, 4)[:1])


def mixed():
    return MessageDescriptor(
        w1(1, REQ_INT, 0) + w1(6, OPT_INT, 4) + w2(70, OPT_INT, 8) + w4(100, OPT_INT, 12)
    )


def test_iteration_yields_all_tags_in_order():
    assert [f.tag for f in FieldIterator(mixed())] == [1, 6, 70, 100]


def test_next_wraps_to_start():
    it = FieldIterator(mixed())
    assert [it.next() for _ in range(4)] == [True, True, True, False]
    assert it.index == 0
    assert it.tag == 1


def test_find_forward_and_backward():
    it = FieldIterator(mixed())
    assert it.find(70)
    assert it.tag == 70
    assert it.find(6)
    assert it.tag == 6
    assert it.find(100)
    assert it.field.data_offset == 12


def test_find_missing_keeps_position():
    it = FieldIterator(mixed())
    it.find(6)
    assert not it.find(3)
    assert it.tag == 6
    assert not it.find(5000)
    assert it.tag == 6


def test_find_skips_extension_field():
    desc = MessageDescriptor(w1(1, REQ_INT, 0) + w1(10, EXT, 4))
    it = FieldIterator(desc)
    assert not it.find(10)
    assert it.tag == 1
    assert it.find_extension()
    assert it.field.ltype is LType.EXTENSION


def test_find_extension_absent():
    it = FieldIterator(mixed())
    it.find(70)
    assert not it.find_extension()
    assert it.tag == 70


def test_required_and_submessage_indexes():
    sub_a = MessageDescriptor(w1(1, REQ_INT, 0))
    sub_b = MessageDescriptor(w1(2, REQ_INT, 0))
    desc = MessageDescriptor(
        w1(1, REQ_INT, 0) + w1(2, REQ_SUB, 4) + w1(3, OPT_SUB, 8) + w1(4, OPT_INT, 12),
        [sub_a, sub_b],
    )
    it = FieldIterator(desc)
    assert it.find(2)
    assert it.submsg_desc is sub_a
    assert it.find(3)
    assert it.submsg_desc is sub_b
    assert it.required_field_index == 2
    assert it.submessage_index == 1
    assert it.find(4)
    assert it.submsg_desc is None


def test_data_and_presence_from_message():
    message = {8: 42, 7: True}
    it = FieldIterator(MessageDescriptor(w1(1, OPT_INT, 8, 1)), message)
    assert it.data == 42
    assert it.size is True
    it.data = 43
    it.size = False
    assert message == {8: 43, 7: False}


def test_fixed_array_size_and_count():
    desc = MessageDescriptor(w2(1, REP_INT, 8, 0, 4, 5) + w2(2, REP_INT, 20, 4, 4, 3))
    message = {8: [0] * 5, 16: 2, 20: [1, 2, 0]}
    it = FieldIterator(desc, message)
    assert it.size == 5
    it.next()
    assert it.size == 2
    assert it.data == [1, 2, 0]


def test_without_message():
    it = FieldIterator(MessageDescriptor(w1(1, OPT_INT, 8, 1)))
    assert it.data is None
    assert it.size is None
    with pytest.raises(ValueError):
        it.data = 1


def test_empty_descriptor():
    it = FieldIterator(MessageDescriptor([]), {})
    assert it.field is None
    assert list(it) == []
    assert not it.next()
    assert not it.find(1)


def test_pointer_extension_stores_value_in_extension():
    ext = Extension(MessageDescriptor(w1(11, PTR_INT, 0)), dest=7)
    it = FieldIterator.for_extension(ext)
    assert it.data == 7
    assert it.size is False
    it.size = True
    it.data = 9
    assert ext.found is True
    assert ext.dest == 9


def test_static_extension_uses_dest_mapping():
    dest = {4: 5}
    ext = Extension(MessageDescriptor(w1(11, OPT_INT, 4, 1)), dest=dest)
    it = FieldIterator.for_extension(ext)
    assert it.data == 5
    it.size = True
    assert ext.found is True
    assert 3 not in dest


def callback_field(callback):
    return FieldIterator(MessageDescriptor(w1(3, CB_STR, 0)), {0: callback})


def test_default_callback_decodes():
    calls = []
    cb = Callback(decode=lambda s, f, a: calls.append(("dec", s, f.tag, a)), arg="x")
    default_field_callback("in", "out", callback_field(cb))
    assert calls == [("dec", "in", 3, "x")]


def test_default_callback_encodes_without_istream():
    calls = []
    cb = Callback(
        decode=lambda s, f, a: calls.append("dec"),
        encode=lambda s, f, a: calls.append(("enc", s, a)),
        arg=[1],
    )
    default_field_callback(None, "out", callback_field(cb))
    assert calls == [("enc", "out", [1])]


def test_default_callback_without_streams_does_nothing():
    calls = []
    cb = Callback(decode=lambda *a: calls.append(a), encode=lambda *a: calls.append(a))
    default_field_callback(None, None, callback_field(cb))
    assert calls == []


def test_default_callback_failure_raises():
    cb = Callback(decode=lambda s, f, a: False)
    with pytest.raises(RuntimeError):
        default_field_callback("in", None, callback_field(cb))