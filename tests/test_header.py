import pytest

import builders
from luacparse import decode
from luacparse.errors import (
    EmbeddedCompileError,
    TruncatedError,
    UnrecognizedDialectError,
    UnsupportedDialectError,
    UnsupportedWidthError,
)
from luacparse.header import lua_header
from luacparse.luau import luau_header
from luacparse.model import Dialect
from luacparse.reader import Reader


def read_header(data: bytes):
    reader = Reader(data)
    return lua_header(reader), reader


def test_lua51_header():
    header, reader = read_header(builders.lua51_header(integral=True))
    assert header.dialect == Dialect.LUA51
    assert not header.big_endian
    assert (header.int_size, header.size_t_size, header.instruction_size) == (4, 8, 4)
    assert header.number_size == 8
    assert header.number_integral
    assert reader.pos == 12


def test_lua52_header_consumes_tail():
    data = builders.lua51_header(version=0x52)
    header, reader = read_header(data)
    assert header.dialect == Dialect.LUA52
    assert reader.pos == len(data)


@pytest.mark.parametrize("big_endian", [False, True])
def test_lua53_endianness_from_sentinel(big_endian):
    data = builders.lua53_header(big_endian=big_endian)
    header, reader = read_header(data)
    assert header.dialect == Dialect.LUA53
    assert header.big_endian is big_endian
    assert header.integer_size == 8
    assert reader.pos == len(data)


def test_lua54_header():
    data = builders.lua54_header()
    header, reader = read_header(data)
    assert header.dialect == Dialect.LUA54
    assert header.int_size == 4
    assert header.size_t_size == 8
    assert reader.pos == len(data)


def test_luajit_header_flags():
    data = builders.luajit_header(stripped=False, name=b"x", flags=0b101)
    header, reader = read_header(data)
    assert header.dialect == Dialect.LUAJ2
    assert header.is_luajit
    assert header.big_endian
    assert header.has_ffi
    assert not header.stripped
    # the chunk name is left for the prototype decoder
    assert reader.pos == 5


def test_luajit_v1():
    header, _ = read_header(builders.luajit_header(version=1))
    assert header.dialect == Dialect.LUAJ1
    assert header.stripped


@pytest.mark.parametrize(
    "data",
    [b"\x7fELF\x02\x01", b"\x1bLua\x50\x00", b"\x1bLJ\x03\x00", b"hello world"],
)
def test_unrecognized(data):
    with pytest.raises(UnrecognizedDialectError):
        decode(data)


@pytest.mark.parametrize("data", [b"", b"\x1b", b"\x1bLu", b"\x1bL", b"\x1bLua"])
def test_truncated_signature(data):
    with pytest.raises(TruncatedError):
        decode(data)


def test_unsupported_int_width():
    with pytest.raises(UnsupportedWidthError) as exc:
        decode(builders.lua51_header(int_size=3) + b"\x00" * 64)
    assert exc.value.offset == 7
    assert exc.value.context == ["header"]


def test_unsupported_float_width():
    with pytest.raises(UnsupportedWidthError):
        decode(builders.lua51_header(number_size=2) + b"\x00" * 64)


def test_integral_numbers_allow_any_width():
    header, _ = read_header(builders.lua51_header(number_size=4, integral=True))
    assert header.number_size == 4


def test_luau_header_versions():
    header = luau_header(Reader(b"\x06\x03"))
    assert header.dialect == Dialect.LUAU
    assert header.format_version == 6
    assert header.types_version == 3

    header = luau_header(Reader(b"\x03"))
    assert header.types_version == 0


@pytest.mark.parametrize("data", [b"\x02", b"\x07\x01", b"\x06\x09"])
def test_luau_header_unsupported(data):
    with pytest.raises(UnrecognizedDialectError):
        luau_header(Reader(data))


def test_luau_compile_error_payload():
    with pytest.raises(EmbeddedCompileError) as exc:
        decode(b"\x00:1: Expected identifier", dialect="luau")
    assert exc.value.message == b":1: Expected identifier"
    assert "Expected identifier" in str(exc.value)


def test_only_luau_is_named_explicitly():
    with pytest.raises(ValueError):
        decode(builders.lua51_header(), dialect="lua51")


def test_missing_decoder(monkeypatch):
    from luacparse import decoder

    monkeypatch.delitem(decoder.DECODERS, Dialect.LUA54)
    with pytest.raises(UnsupportedDialectError):
        decode(builders.lua54_header() + builders.lua54_chunk())
