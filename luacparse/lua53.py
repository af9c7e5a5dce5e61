from functools import partial

from luacparse.config import DEFAULT_MAX_DEPTH, debug
from luacparse.errors import UnknownConstantTagError
from luacparse.header import lua_float, lua_instruction, lua_int, lua_integer, lua_size_t
from luacparse.lua51 import check_depth
from luacparse.lua52 import load_upvalue, vararg_info
from luacparse.model import LuaChunk, LuaConstant, LuaHeader, LuaLocal
from luacparse.reader import Reader

# < CONSTANT TYPES > #
LUA_TNIL = 0x00
LUA_TBOOLEAN = 0x01
LUA_TNUMFLT = 0x03
LUA_TNUMINT = 0x13
LUA_TSHRSTR = 0x04
LUA_TLNGSTR = 0x14


def load_string(reader: Reader, header: LuaHeader) -> bytes:
    """
    One size byte holding length + 1 (0 for no string). 0xFF escapes to a
    full size_t for long strings.
    """
    with reader.context("string"):
        n = reader.nextByte()
        if n == 0xFF:
            n = lua_size_t(reader, header)
        if n == 0:
            return b""
        return reader.read(n - 1)


def lua_constant(reader: Reader, header: LuaHeader) -> LuaConstant:
    offset = reader.pos
    tag = reader.nextByte()
    if tag == LUA_TNIL:
        return LuaConstant.nil()
    elif tag == LUA_TBOOLEAN:
        return LuaConstant.boolean(reader.nextByte() != 0)
    elif tag == LUA_TNUMFLT:
        return LuaConstant.number(lua_float(reader, header))
    elif tag == LUA_TNUMINT:
        return LuaConstant.number(lua_integer(reader, header))
    elif tag in (LUA_TSHRSTR, LUA_TLNGSTR):
        return LuaConstant.string(load_string(reader, header))
    reader.fail(UnknownConstantTagError, f"Unknown constant type: 0x{tag:02x}", offset)


def lua_local(reader: Reader, header: LuaHeader) -> LuaLocal:
    with reader.context("local"):
        name = load_string(reader, header)
        start_pc = lua_int(reader, header)
        end_pc = lua_int(reader, header)
    return LuaLocal(name=name, start_pc=start_pc, end_pc=end_pc)


def lua_chunk(
    reader: Reader, header: LuaHeader, max_depth: int = DEFAULT_MAX_DEPTH, depth: int = 0
) -> LuaChunk:
    check_depth(reader, depth, max_depth)
    int_ = partial(lua_int, reader, header)
    with reader.context("chunk"):
        name = load_string(reader, header)
        line_defined = int_()
        last_line_defined = int_()
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
        upvalue_infos = reader.counted("count upvalues", int_, partial(load_upvalue, reader))
        prototypes = reader.counted(
            "count prototypes",
            int_,
            partial(lua_chunk, reader, header, max_depth, depth + 1),
            "prototype",
        )
        source_lines = reader.counted("count source lines", int_, lambda: (int_(), 0))
        locals_ = reader.counted("count locals", int_, partial(lua_local, reader, header))
        upvalue_names = reader.counted(
            "count upval names", int_, partial(load_string, reader, header)
        )

    return LuaChunk(
        name=name,
        line_defined=line_defined,
        last_line_defined=last_line_defined,
        num_upvalues=len(upvalue_infos),
        num_params=num_params,
        max_stack=max_stack,
        is_vararg=vararg_info(is_vararg),
        instructions=instructions,
        constants=constants,
        prototypes=prototypes,
        source_lines=source_lines,
        locals=locals_,
        upvalue_infos=upvalue_infos,
        upvalue_names=upvalue_names,
    )
