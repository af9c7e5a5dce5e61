"""
MessagePack form of a decoded file, for caching decodes between runs.

Everything is lowered to msgpack's own types: bytes stay ``bin``, ints and
floats keep their own encodings, so ``from_msgpack(to_msgpack(b)) == b``.
Constants are written as ``[type, payload]`` pairs.
"""

from dataclasses import asdict
from typing import Any, List

import msgpack

from luacparse.model import (
    ConstantType,
    ConstTable,
    LuaBytecode,
    LuaChunk,
    LuaConstant,
    LuaHeader,
    LuaLocal,
    LuaVarArgInfo,
    UpVal,
)

FORMAT_VERSION = 1


def _pack_constant(k: LuaConstant) -> List[Any]:
    value = k.value
    if k.type == ConstantType.TABLE:
        value = [
            [_pack_constant(v) for v in value.array],
            [[_pack_constant(key), _pack_constant(v)] for key, v in value.hash],
        ]
    elif k.type == ConstantType.VECTOR:
        value = list(value)
    elif k.type == ConstantType.COMPLEX:
        value = [value.real, value.imag]
    return [int(k.type), value]


def _unpack_constant(data: List[Any]) -> LuaConstant:
    k_type, value = ConstantType(data[0]), data[1]
    if k_type == ConstantType.TABLE:
        array, hash_ = value
        value = ConstTable(
            array=[_unpack_constant(v) for v in array],
            hash=[(_unpack_constant(key), _unpack_constant(v)) for key, v in hash_],
        )
    elif k_type == ConstantType.VECTOR:
        value = tuple(value)
    elif k_type == ConstantType.COMPLEX:
        value = complex(*value)
    return LuaConstant(k_type, value)


def _pack_chunk(chunk: LuaChunk) -> dict:
    return {
        "name": chunk.name,
        "line_defined": chunk.line_defined,
        "last_line_defined": chunk.last_line_defined,
        "num_upvalues": chunk.num_upvalues,
        "num_params": chunk.num_params,
        "max_stack": chunk.max_stack,
        "flags": chunk.flags,
        "is_vararg": None
        if chunk.is_vararg is None
        else [chunk.is_vararg.has_arg, chunk.is_vararg.needs_arg],
        "instructions": chunk.instructions,
        "constants": [_pack_constant(k) for k in chunk.constants],
        "num_constants": chunk.num_constants,
        "prototypes": [_pack_chunk(p) for p in chunk.prototypes],
        "source_lines": [list(pair) for pair in chunk.source_lines],
        "line_info": chunk.line_info,
        "locals": [[l.name, l.start_pc, l.end_pc, l.reg] for l in chunk.locals],
        "upvalue_infos": [[u.on_stack, u.id, u.kind] for u in chunk.upvalue_infos],
        "upvalue_names": chunk.upvalue_names,
        "type_info": chunk.type_info,
    }


def _unpack_chunk(data: dict) -> LuaChunk:
    is_vararg = data["is_vararg"]
    return LuaChunk(
        name=data["name"],
        line_defined=data["line_defined"],
        last_line_defined=data["last_line_defined"],
        num_upvalues=data["num_upvalues"],
        num_params=data["num_params"],
        max_stack=data["max_stack"],
        flags=data["flags"],
        is_vararg=None if is_vararg is None else LuaVarArgInfo(*is_vararg),
        instructions=data["instructions"],
        constants=[_unpack_constant(k) for k in data["constants"]],
        num_constants=data["num_constants"],
        prototypes=[_unpack_chunk(p) for p in data["prototypes"]],
        source_lines=[tuple(pair) for pair in data["source_lines"]],
        line_info=data["line_info"],
        locals=[LuaLocal(*l) for l in data["locals"]],
        upvalue_infos=[UpVal(*u) for u in data["upvalue_infos"]],
        upvalue_names=data["upvalue_names"],
        type_info=data["type_info"],
    )


def to_msgpack(bytecode: LuaBytecode) -> bytes:
    header = asdict(bytecode.header)
    header["lua_version"] = int(header["lua_version"])
    return msgpack.packb(
        {
            "version": FORMAT_VERSION,
            "header": header,
            "main_chunk": _pack_chunk(bytecode.main_chunk),
        },
        use_bin_type=True,
    )


def from_msgpack(data: bytes) -> LuaBytecode:
    unpacked = msgpack.unpackb(data, raw=False)
    if unpacked.get("version") != FORMAT_VERSION:
        raise ValueError(f"Unsupported interchange version: {unpacked.get('version')!r}")
    return LuaBytecode(
        header=LuaHeader(**unpacked["header"]),
        main_chunk=_unpack_chunk(unpacked["main_chunk"]),
    )
