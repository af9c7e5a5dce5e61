import pytest

from luacparse.errors import DecodeError, TruncatedError, UnsupportedWidthError
from luacparse.reader import Reader


def test_fixed_width_both_orders():
    reader = Reader(b"\x01\x02\x01\x02")
    assert reader.nextUint(2) == 0x0201
    assert reader.nextUint(2, big_endian=True) == 0x0102
    assert not reader.canRead(1)


def test_signed_and_float_widths():
    reader = Reader(b"\xff\xff\xff\xff" + b"\x00\x00\x80\x3f")
    assert reader.nextSigned(4) == -1
    assert reader.nextFloatOf(4) == 1.0


@pytest.mark.parametrize("width", [0, 3, 16])
def test_unsupported_width(width):
    with pytest.raises(UnsupportedWidthError):
        Reader(b"\x00" * 32).nextUint(width)


def test_float_width_must_be_4_or_8():
    with pytest.raises(UnsupportedWidthError):
        Reader(b"\x00" * 8).nextFloatOf(2)


def test_truncated_read_reports_offset():
    reader = Reader(b"abc")
    reader.skip(2)
    with pytest.raises(TruncatedError) as exc:
        reader.read(4)
    assert exc.value.offset == 2
    # also an IndexError, like running off the end of a list
    assert isinstance(exc.value, IndexError)


def test_read_until_terminator():
    reader = Reader(b"ab\x00c")
    assert reader.readUntil(0) == b"ab"
    assert reader.pos == 3
    with pytest.raises(TruncatedError):
        reader.readUntil(0)


def test_next_list_rejects_oversized_count():
    reader = Reader(b"\x01\x02")
    with pytest.raises(TruncatedError):
        reader.nextList(1_000_000_000, reader.nextByte)


def test_context_chain_outermost_first():
    reader = Reader(b"\x01\x00")
    with pytest.raises(DecodeError) as exc:
        with reader.context("chunk"):
            reader.counted("count constants", reader.nextByte, reader.nextUint32, "constant")
    assert exc.value.context == ["chunk", "count constants", "constant 0"]
    assert str(exc.value).endswith("(chunk -> count constants -> constant 0)")


def test_limited_reader_keeps_absolute_offsets():
    reader = Reader(b"\x00\x00\x01\x02\x03")
    reader.skip(2)
    inner = reader.limited(2)
    assert inner.read(2) == b"\x01\x02"
    with pytest.raises(TruncatedError) as exc:
        inner.nextByte()
    assert exc.value.offset == 4
    assert reader.pos == 2
