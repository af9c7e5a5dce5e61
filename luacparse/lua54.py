from functools import partial

from luacparse.config import DEFAULT_MAX_DEPTH, debug
from luacparse.errors import UnknownConstantTagError
from luacparse.header import lua_float, lua_instruction, lua_integer
from luacparse.lua51 import check_depth
from luacparse.lua52 import vararg_info
from luacparse.model import LuaChunk, LuaConstant, LuaHeader, LuaLocal, UpVal
from luacparse.reader import Reader
from luacparse.varint import load_int, load_size

# < CONSTANT TYPES > #
LUA_VNIL = 0x00
LUA_VFALSE = 0x01
LUA_VTRUE = 0x11
LUA_VNUMINT = 0x03
LUA_VNUMFLT = 0x13
LUA_VSHRSTR = 0x04
LUA_VLNGSTR = 0x14


def load_string(reader: Reader) -> bytes:
    """Size is length + 1 so that 0 can stand for no string at all."""
    with reader.context("string"):
        n = load_size(reader)
        if n == 0:
            return b""
        return reader.read(n - 1)


def load_upvalue(reader: Reader) -> UpVal:
    with reader.context("upvalue"):
        on_stack = reader.nextByte() != 0
        upvalue_id = reader.nextByte()
        return UpVal(on_stack=on_stack, id=upvalue_id, kind=reader.nextByte())


def lua_constant(reader: Reader, header: LuaHeader) -> LuaConstant:
    offset = reader.pos
    tag = reader.nextByte()
    if tag == LUA_VNIL:
        return LuaConstant.nil()
    elif tag == LUA_VFALSE:
        return LuaConstant.boolean(False)
    elif tag == LUA_VTRUE:
        return LuaConstant.boolean(True)
    elif tag == LUA_VNUMFLT:
        return LuaConstant.number(lua_float(reader, header))
    elif tag == LUA_VNUMINT:
        return LuaConstant.number(lua_integer(reader, header))
    elif tag in (LUA_VSHRSTR, LUA_VLNGSTR):
        return LuaConstant.string(load_string(reader))
    reader.fail(UnknownConstantTagError, f"Unknown constant type: 0x{tag:02x}", offset)


def line_delta(reader: Reader) -> int:
    """lineinfo entries are signed bytes; -0x80 marks an absolute-line entry."""
    b = reader.nextByte()
    return b - 0x100 if b >= 0x80 else b


def abs_line_info(reader: Reader) -> tuple:
    pc = load_int(reader)
    return pc, load_int(reader)


def lua_local(reader: Reader) -> LuaLocal:
    with reader.context("local"):
        name = load_string(reader)
        start_pc = load_int(reader)
        end_pc = load_int(reader)
    return LuaLocal(name=name, start_pc=start_pc, end_pc=end_pc)


def lua_chunk(
    reader: Reader, header: LuaHeader, max_depth: int = DEFAULT_MAX_DEPTH, depth: int = 0
) -> LuaChunk:
    check_depth(reader, depth, max_depth)
    int_ = partial(load_int, reader)
    with reader.context("chunk"):
        with reader.context("chunk header"):
            name = load_string(reader)
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
        line_info = reader.counted("count line info", int_, partial(line_delta, reader))
        source_lines = reader.counted(
            "count source lines", int_, partial(abs_line_info, reader)
        )
        locals_ = reader.counted("count locals", int_, partial(lua_local, reader))
        upvalue_names = reader.counted(
            "count upval names", int_, partial(load_string, reader)
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
        line_info=line_info,
        locals=locals_,
        upvalue_infos=upvalue_infos,
        upvalue_names=upvalue_names,
    )
