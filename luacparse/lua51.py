from functools import partial
from typing import Optional

from luacparse.config import DEFAULT_MAX_DEPTH, debug
from luacparse.errors import DepthExceededError, UnknownConstantTagError
from luacparse.header import lua_instruction, lua_int, lua_number, lua_size_t
from luacparse.model import LuaChunk, LuaConstant, LuaHeader, LuaLocal, LuaVarArgInfo
from luacparse.reader import Reader

# < CONSTANT TYPES > #
LUA_TNIL = 0
LUA_TBOOLEAN = 1
LUA_TNUMBER = 3
LUA_TSTRING = 4

VARARG_HASARG = 1
VARARG_ISVARARG = 2
VARARG_NEEDSARG = 4


def check_depth(reader: Reader, depth: int, max_depth: int) -> None:
    if depth > max_depth:
        reader.fail(DepthExceededError, f"Prototypes nest deeper than {max_depth} levels")


def lua_string(reader: Reader, header: LuaHeader) -> bytes:
    """size_t length, then the bytes including a trailing NUL that is dropped."""
    with reader.context("string"):
        data = reader.read(lua_size_t(reader, header))
    return data[:-1] if data else data


def lua_constant(reader: Reader, header: LuaHeader) -> LuaConstant:
    offset = reader.pos
    tag = reader.nextByte()
    if tag == LUA_TNIL:
        return LuaConstant.nil()
    elif tag == LUA_TBOOLEAN:
        return LuaConstant.boolean(reader.nextByte() != 0)
    elif tag == LUA_TNUMBER:
        return LuaConstant.number(lua_number(reader, header))
    elif tag == LUA_TSTRING:
        return LuaConstant.string(lua_string(reader, header))
    reader.fail(UnknownConstantTagError, f"Unknown constant type: {tag}", offset)


def lua_local(reader: Reader, header: LuaHeader) -> LuaLocal:
    with reader.context("local"):
        name = lua_string(reader, header)
        start_pc = lua_int(reader, header)
        end_pc = lua_int(reader, header)
    return LuaLocal(name=name, start_pc=start_pc, end_pc=end_pc)


def vararg_info(is_vararg: int) -> Optional[LuaVarArgInfo]:
    if not is_vararg & VARARG_ISVARARG:
        return None
    return LuaVarArgInfo(
        has_arg=bool(is_vararg & VARARG_HASARG),
        needs_arg=bool(is_vararg & VARARG_NEEDSARG),
    )


def lua_chunk(
    reader: Reader, header: LuaHeader, max_depth: int = DEFAULT_MAX_DEPTH, depth: int = 0
) -> LuaChunk:
    check_depth(reader, depth, max_depth)
    int_ = partial(lua_int, reader, header)
    with reader.context("chunk"):
        name = lua_string(reader, header)
        line_defined = int_()
        last_line_defined = int_()
        num_upvalues = reader.nextByte()
        num_params = reader.nextByte()
        is_vararg = reader.nextByte()
        max_stack = reader.nextByte()
        debug(f"chunk: {name!r}, line: {line_defined}-{last_line_defined}")

        instructions = reader.counted(
            "count instruction", int_, partial(lua_instruction, reader, header)
        )
        constants = reader.counted(
            "count constants", int_, partial(lua_constant, reader, header), "constant"
        )
        prototypes = reader.counted(
            "count prototypes",
            int_,
            partial(lua_chunk, reader, header, max_depth, depth + 1),
            "prototype",
        )
        source_lines = reader.counted("count source lines", int_, lambda: (int_(), 0))
        locals_ = reader.counted("count locals", int_, partial(lua_local, reader, header))
        upvalue_names = reader.counted(
            "count upval names", int_, partial(lua_string, reader, header)
        )

    return LuaChunk(
        name=name,
        line_defined=line_defined,
        last_line_defined=last_line_defined,
        num_upvalues=num_upvalues,
        num_params=num_params,
        max_stack=max_stack,
        is_vararg=vararg_info(is_vararg),
        instructions=instructions,
        constants=constants,
        prototypes=prototypes,
        source_lines=source_lines,
        locals=locals_,
        upvalue_names=upvalue_names,
    )
