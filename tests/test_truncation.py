"""Every proper prefix of a valid file must fail cleanly with a TruncatedError."""

import pytest

import builders
from builders import CHILD, Closure
from luacparse import decode
from luacparse.errors import TruncatedError


def lua51():
    inner = builders.lua51_chunk(name=None, constants=[2.0], lines=[3])
    return builders.lua51_header() + builders.lua51_chunk(
        constants=[b"print", True, None, 1.0],
        instructions=[1, 2],
        prototypes=[inner],
        lines=[1, 2],
        locals_=[(b"a", 0, 1)],
        upvalue_names=[b"u"],
    )


def lua52():
    return builders.lua51_header(version=0x52) + builders.lua52_chunk(
        constants=[b"x", 2.0],
        instructions=[1],
        prototypes=[builders.lua52_chunk(name=None)],
        upvalues=[(1, 0)],
        upvalue_names=[b"_ENV"],
    )


def lua53():
    return builders.lua53_header() + builders.lua53_chunk(
        constants=[b"x", 3, 0.5, b"y" * 300],
        instructions=[1],
        upvalues=[(1, 0)],
        prototypes=[builders.lua53_chunk(name=None)],
        locals_=[(b"i", 0, 1)],
    )


def lua54():
    return builders.lua54_header() + builders.lua54_chunk(
        constants=[b"x", 3, 0.5, True],
        instructions=[1, 2],
        upvalues=[(1, 0, 0)],
        prototypes=[builders.lua54_chunk(name=None)],
        line_info=[1, -1],
        abs_line_info=[(0, 900)],
        locals_=[(b"i", 0, 1)],
        upvalue_names=[b"_ENV"],
    )


def luajit():
    debug_info = bytes([0]) + b"\x00"
    main = builders.luajit_proto(
        complex_constants=[CHILD, b"A" * 766, -1, complex(0.0, 1.0)],
        numeric_constants=[36100, 111122223333.4444],
        instructions=[1],
        stripped=False,
        debug_info=debug_info,
        first_line=1,
        num_line=1,
    )
    child = builders.luajit_proto(
        complex_constants=[{"array": [None, 1], "hash": [(b"k", 2.5)]}], stripped=False
    )
    return builders.luajit_file([child, main], stripped=False, name=b"=stdin")


def luau():
    strings = [b"print", b"hi"]
    child = builders.luau_proto(strings, constants=[b"hi"], instructions=[1])
    main = builders.luau_proto(
        strings,
        constants=[b"print", 1.5, Closure(0), (1.0, 2.0, 3.0, 4.0), [0]],
        instructions=[1, 2],
        children=[0],
        line_gap_log2=0,
        line_deltas=[0, 1],
        abs_lines=[1, 1],
        locals_=[(b"hi", 0, 2, 0)],
        upvalue_names=[],
    )
    return builders.luau_file(strings, [child, main], main=1, userdata_types=[b"print"])


SAMPLES = {
    "lua51": (lua51, None),
    "lua52": (lua52, None),
    "lua53": (lua53, None),
    "lua54": (lua54, None),
    "luajit": (luajit, None),
    "luau": (luau, "luau"),
}


@pytest.mark.parametrize("name", SAMPLES)
def test_every_prefix_is_truncated(name):
    build, dialect = SAMPLES[name]
    data = build()
    decode(data, dialect=dialect)
    for end in range(len(data)):
        with pytest.raises(TruncatedError):
            decode(data[:end], dialect=dialect)


def test_trailing_bytes_are_left_alone():
    data = lua51()
    assert decode(data + b"\x00garbage").main_chunk == decode(data).main_chunk
