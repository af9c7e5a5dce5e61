from functools import partial
from typing import Optional

from luacparse.config import DEFAULT_MAX_DEPTH, debug
from luacparse.header import lua_instruction, lua_int
from luacparse.lua51 import check_depth, lua_constant, lua_local, lua_string
from luacparse.model import LuaChunk, LuaHeader, LuaVarArgInfo, UpVal
from luacparse.reader import Reader


def load_upvalue(reader: Reader) -> UpVal:
    with reader.context("upvalue"):
        on_stack = reader.nextByte() != 0
        return UpVal(on_stack=on_stack, id=reader.nextByte())


def vararg_info(is_vararg: int) -> Optional[LuaVarArgInfo]:
    # 5.2 onwards dropped the implicit `arg` table, the byte is just a flag
    if not is_vararg:
        return None
    return LuaVarArgInfo(has_arg=False, needs_arg=False)


def lua_chunk(
    reader: Reader, header: LuaHeader, max_depth: int = DEFAULT_MAX_DEPTH, depth: int = 0
) -> LuaChunk:
    check_depth(reader, depth, max_depth)
    int_ = partial(lua_int, reader, header)
    with reader.context("chunk"):
        line_defined = int_()
        last_line_defined = int_()
        num_params = reader.nextByte()
        is_vararg = reader.nextByte()
        max_stack = reader.nextByte()
        debug(f"chunk: line: {line_defined}-{last_line_defined}")

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
        upvalue_infos = reader.counted("count upvalues", int_, partial(load_upvalue, reader))
        # the source name lives with the debug info in 5.2
        name = lua_string(reader, header)
        source_lines = reader.counted("count source lines", int_, lambda: (int_(), 0))
        locals_ = reader.counted("count locals", int_, partial(lua_local, reader, header))
        upvalue_names = reader.counted(
            "count upval names", int_, partial(lua_string, reader, header)
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
