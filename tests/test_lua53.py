import struct

import pytest

import builders
from luacparse import decode
from luacparse.errors import UnknownConstantTagError
from luacparse.model import ConstantType, Dialect


def sample(**chunk) -> bytes:
    return builders.lua53_header() + builders.lua53_chunk(**chunk)


def test_integer_and_float_tags():
    chunk = decode(sample(constants=[1, 1.0, -7, 0.5, True, None])).main_chunk
    assert chunk.constants[0].is_integer and chunk.constants[0].value == 1
    assert chunk.constants[1].is_float and chunk.constants[1].value == 1.0
    assert chunk.constants[2].value == -7
    assert chunk.constants[3].value == 0.5
    assert chunk.constants[4].value is True
    assert chunk.constants[5].is_nil


def test_short_and_long_strings():
    long_string = b"B" * 300
    chunk = decode(sample(name=None, constants=[b"", b"short", long_string])).main_chunk
    assert chunk.name == b""
    assert [k.value for k in chunk.constants] == [b"", b"short", long_string]
    assert all(k.type == ConstantType.STRING for k in chunk.constants)


def test_locals_and_upvalue_names_use_byte_length_strings():
    chunk = decode(
        sample(
            upvalues=[(1, 0)],
            locals_=[(b"i", 1, 4), (b"n", 2, 4)],
            upvalue_names=[b"_ENV"],
            lines=[7],
            instructions=[0x10],
        )
    ).main_chunk
    assert [(l.name, l.start_pc, l.end_pc) for l in chunk.locals] == [(b"i", 1, 4), (b"n", 2, 4)]
    assert chunk.upvalue_names == [b"_ENV"]
    assert chunk.source_lines == [(7, 0)]


def test_upvalues_precede_prototypes():
    inner = builders.lua53_chunk(name=None, constants=[42])
    chunk = decode(sample(upvalues=[(1, 0)], prototypes=[inner])).main_chunk
    assert chunk.prototypes[0].constants[0].value == 42


def test_big_endian_file():
    data = builders.lua53_header(big_endian=True)
    # name 0, line 0, last line 0, params/vararg/stack, one instruction, one integer constant
    data += b"\x00" + b"\x00" * 8 + b"\x00\x01\x02"
    data += struct.pack(">I", 1) + struct.pack(">I", 0x01020304)
    data += struct.pack(">I", 1) + b"\x13" + struct.pack(">q", -2)
    data += struct.pack(">I", 0) * 5
    bytecode = decode(data)
    assert bytecode.header.big_endian
    assert bytecode.main_chunk.instructions == [0x01020304]
    assert bytecode.main_chunk.constants[0].value == -2


def test_unknown_tag():
    data = sample(constants=[None])
    pos = len(data) - 4 * 5 - 1
    data = data[:pos] + b"\x05" + data[pos + 1 :]
    with pytest.raises(UnknownConstantTagError) as exc:
        decode(data)
    assert exc.value.offset == pos
    assert decode(sample()).header.dialect == Dialect.LUA53
