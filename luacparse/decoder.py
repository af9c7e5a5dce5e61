from typing import Callable, Dict, Optional, Union

from luacparse import lua51, lua52, lua53, lua54, luajit, luau
from luacparse.config import DEFAULT_MAX_DEPTH, debug
from luacparse.errors import UnsupportedDialectError
from luacparse.header import lua_header
from luacparse.model import Dialect, LuaBytecode, LuaChunk, LuaHeader
from luacparse.reader import Reader

ChunkDecoder = Callable[[Reader, LuaHeader, int], LuaChunk]

DECODERS: Dict[Dialect, ChunkDecoder] = {
    Dialect.LUA51: lua51.lua_chunk,
    Dialect.LUA52: lua52.lua_chunk,
    Dialect.LUA53: lua53.lua_chunk,
    Dialect.LUA54: lua54.lua_chunk,
    Dialect.LUAJ1: luajit.lj_chunk,
    Dialect.LUAJ2: luajit.lj_chunk,
    Dialect.LUAU: luau.luau_chunk,
}


def decode(
    data: bytes,
    dialect: Optional[Union[str, Dialect]] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> LuaBytecode:
    """
    Decode a whole bytecode file into its header and main prototype.

    ``dialect`` is only needed for Luau (``"luau"`` or ``Dialect.LUAU``),
    which has no signature to sniff. Bytes after the main prototype are left
    alone.
    """
    reader = Reader(data)
    if dialect is None:
        header = lua_header(reader)
    elif dialect == "luau" or dialect == Dialect.LUAU:
        header = luau.luau_header(reader)
    else:
        raise ValueError(f"Only Luau has to be named explicitly, got dialect {dialect!r}")

    decoder = DECODERS.get(header.lua_version)
    if decoder is None:
        reader.fail(UnsupportedDialectError, f"No decoder for dialect 0x{header.lua_version:02x}", 0)
    main_chunk = decoder(reader, header, max_depth)
    debug(f"Decoded {header.dialect.name}, {reader.remaining()} trailing bytes")
    return LuaBytecode(header=header, main_chunk=main_chunk)


def parse(data: bytes) -> LuaBytecode:
    return decode(data)
