import msgpack
import pytest

from luacparse import decode
from luacparse.interchange import from_msgpack, to_msgpack
from luacparse.model import ConstantType
from test_truncation import SAMPLES


@pytest.mark.parametrize("name", SAMPLES)
def test_round_trip(name):
    build, dialect = SAMPLES[name]
    bytecode = decode(build(), dialect=dialect)
    restored = from_msgpack(to_msgpack(bytecode))
    assert restored == bytecode


def test_types_survive():
    build, _ = SAMPLES["luajit"]
    restored = from_msgpack(to_msgpack(decode(build()))).main_chunk
    assert [type(n) for n in restored.num_constants] == [int, float]
    assert [k.type for k in restored.constants] == [
        ConstantType.COMPLEX,
        ConstantType.NUMBER,
        ConstantType.STRING,
        ConstantType.PROTO,
    ]
    assert restored.constants[0].value == complex(0.0, 1.0)
    assert restored.constants[1].is_integer
    assert restored.constants[2].value == b"A" * 766
    table = restored.prototypes[0].constants[0].value
    assert table.array[0].is_integer
    assert table.hash[0][1].is_float


def test_luau_tuples_survive():
    build, dialect = SAMPLES["luau"]
    restored = from_msgpack(to_msgpack(decode(build(), dialect=dialect))).main_chunk
    assert restored.source_lines == [(0, 1), (1, 2)]
    vector = [k for k in restored.constants if k.type == ConstantType.VECTOR][0]
    assert vector.value == (1.0, 2.0, 3.0, 4.0)


def test_unknown_interchange_version():
    with pytest.raises(ValueError):
        from_msgpack(msgpack.packb({"version": 99}))
