"""
luacparse: decode Lua 5.1-5.4, LuaJIT and Luau bytecode into a prototype tree.

    >>> from luacparse import decode
    >>> bytecode = decode(open("luac.out", "rb").read())
    >>> bytecode.main_chunk.constants
"""

from luacparse.decoder import decode, parse
from luacparse.errors import *  # noqa: F401,F403
from luacparse.errors import __all__ as _errors_all
from luacparse.model import (
    ConstantType,
    ConstTable,
    Dialect,
    LuaBytecode,
    LuaChunk,
    LuaConstant,
    LuaHeader,
    LuaLocal,
    LuaNumber,
    LuaVarArgInfo,
    ProtoFlags,
    UpVal,
)

__version__ = "0.1.0"

__all__ = [
    "decode",
    "parse",
    "ConstantType",
    "ConstTable",
    "Dialect",
    "LuaBytecode",
    "LuaChunk",
    "LuaConstant",
    "LuaHeader",
    "LuaLocal",
    "LuaNumber",
    "LuaVarArgInfo",
    "ProtoFlags",
    "UpVal",
] + _errors_all
