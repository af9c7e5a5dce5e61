"""Test configuration ensuring the package and the byte builders are importable."""

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
TESTS = ROOT / "tests"

for path in (str(ROOT), str(TESTS)):
    if path not in sys.path:
        sys.path.insert(0, path)

import builders  # noqa: E402


@pytest.fixture
def lua51_sample() -> bytes:
    return builders.lua51_header() + builders.lua51_chunk(
        constants=[b"print", b"x:", 1.0, 1337.0],
        instructions=[0x00000005, 0x0080001E],
        lines=[1, 1],
        locals_=[(b"a", 0, 2)],
    )


@pytest.fixture
def luajit_sample() -> bytes:
    child = builders.luajit_proto(complex_constants=[b"inner"], instructions=[0x1])
    main = builders.luajit_proto(
        complex_constants=[builders.CHILD, b"print"],
        numeric_constants=[36100, 111122223333.0],
        instructions=[0x2, 0x3],
        flags=0b11,
    )
    return builders.luajit_file([child, main])


@pytest.fixture
def luau_sample() -> bytes:
    strings = [b"print", b"hello", b"inner"]
    child = builders.luau_proto(strings, constants=[b"hello"], instructions=[0x1], name=b"inner")
    main = builders.luau_proto(
        strings,
        constants=[b"print", b"", 2.5, builders.Closure(0)],
        instructions=[0x2, 0x3],
        children=[0],
        line_gap_log2=24,
        line_deltas=[0, 1],
        abs_lines=[1],
        locals_=[(b"hello", 0, 2, 0)],
        upvalue_names=[b""],
    )
    return builders.luau_file(strings, [child, main], main=1)
