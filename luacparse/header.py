"""
Header sniffing and the numeric readers every dialect shares.

The header is read once; everything after it is parameterized by the
resulting `LuaHeader` (field widths, byte order, integer vs float numbers).
"""

from luacparse.config import debug
from luacparse.errors import (
    TruncatedError,
    UnrecognizedDialectError,
    UnsupportedWidthError,
)
from luacparse.model import Dialect, LuaHeader, LuaNumber
from luacparse.reader import SUPPORTED_WIDTHS, Reader

LUA_SIGNATURE = b"\x1bLua"
LUAJIT_SIGNATURE = b"\x1bLJ"

# sentinels written by 5.3/5.4 dumps to let loaders check their number format
LUAC_INT = 0x5678
LUAC_NUM = 370.5

LUAJIT_FLAG_BIG_ENDIAN = 0b00000001
LUAJIT_FLAG_STRIPPED = 0b00000010
LUAJIT_FLAG_HAS_FFI = 0b00000100

FLOAT_WIDTHS = (4, 8)


def _width(reader: Reader, what: str, allowed=SUPPORTED_WIDTHS) -> int:
    offset = reader.pos
    width = reader.nextByte()
    if width not in allowed:
        reader.fail(
            UnsupportedWidthError,
            f"Header declares {what} width {width}, expected one of {list(allowed)}",
            offset,
        )
    return width


def _sentinel_is_big_endian(reader: Reader, integer_size: int, number_size: int) -> bool:
    raw = reader.read(integer_size)
    big_endian = int.from_bytes(raw, "big") == LUAC_INT and int.from_bytes(raw, "little") != LUAC_INT
    reader.nextFloatOf(number_size, big_endian)
    return big_endian


def _lua51_or_52(reader: Reader, version: int) -> LuaHeader:
    format_version = reader.nextByte()
    # 1 is little endian
    big_endian = reader.nextByte() != 1
    int_size = _width(reader, "int")
    size_t_size = _width(reader, "size_t")
    instruction_size = _width(reader, "instruction")
    number_offset = reader.pos
    number_size = reader.nextByte()
    number_integral = reader.nextByte() != 0
    allowed = SUPPORTED_WIDTHS if number_integral else FLOAT_WIDTHS
    if number_size not in allowed:
        reader.fail(
            UnsupportedWidthError,
            f"Header declares number width {number_size}, expected one of {list(allowed)}",
            number_offset,
        )
    if version == Dialect.LUA52:
        reader.skip(6)  # LUAC_TAIL
    return LuaHeader(
        lua_version=version,
        format_version=format_version,
        big_endian=big_endian,
        int_size=int_size,
        size_t_size=size_t_size,
        instruction_size=instruction_size,
        number_size=number_size,
        number_integral=number_integral,
    )


def _lua53(reader: Reader) -> LuaHeader:
    format_version = reader.nextByte()
    reader.skip(6)  # LUAC_DATA
    int_size = _width(reader, "int")
    size_t_size = _width(reader, "size_t")
    instruction_size = _width(reader, "instruction")
    integer_size = _width(reader, "lua_Integer")
    number_size = _width(reader, "lua_Number", FLOAT_WIDTHS)
    big_endian = _sentinel_is_big_endian(reader, integer_size, number_size)
    reader.nextByte()  # upvalue count of the main closure
    return LuaHeader(
        lua_version=Dialect.LUA53,
        format_version=format_version,
        big_endian=big_endian,
        int_size=int_size,
        size_t_size=size_t_size,
        instruction_size=instruction_size,
        number_size=number_size,
        integer_size=integer_size,
    )


def _lua54(reader: Reader) -> LuaHeader:
    format_version = reader.nextByte()
    reader.skip(6)  # LUAC_DATA
    instruction_size = _width(reader, "instruction")
    integer_size = _width(reader, "lua_Integer")
    number_size = _width(reader, "lua_Number", FLOAT_WIDTHS)
    big_endian = _sentinel_is_big_endian(reader, integer_size, number_size)
    reader.nextByte()  # upvalue count of the main closure
    return LuaHeader(
        lua_version=Dialect.LUA54,
        format_version=format_version,
        big_endian=big_endian,
        int_size=4,
        size_t_size=8,
        instruction_size=instruction_size,
        number_size=number_size,
        integer_size=integer_size,
    )


def _luajit(reader: Reader, version: int) -> LuaHeader:
    flags = reader.nextByte()
    return LuaHeader(
        lua_version=Dialect.LUAJ1 if version == 1 else Dialect.LUAJ2,
        format_version=0,
        big_endian=bool(flags & LUAJIT_FLAG_BIG_ENDIAN),
        int_size=4,
        size_t_size=4,
        instruction_size=4,
        number_size=4,
        number_integral=False,
        stripped=bool(flags & LUAJIT_FLAG_STRIPPED),
        has_ffi=bool(flags & LUAJIT_FLAG_HAS_FFI),
    )


def _match_signature(reader: Reader, signature: bytes) -> bool:
    head = reader.bytecode[reader.pos : min(reader.pos + len(signature), reader.end)]
    if head == signature:
        reader.skip(len(signature))
        return True
    if len(head) < len(signature) and signature.startswith(head):
        reader.fail(
            TruncatedError,
            f"Input ends inside the {signature!r} signature",
            reader.pos + len(head),
        )
    return False


def lua_header(reader: Reader) -> LuaHeader:
    """
    Recognize the signature, then the selector byte after it. Luau has no
    signature and is never sniffed, see `luacparse.luau.luau_header`.
    """
    with reader.context("header"):
        start = reader.pos
        if _match_signature(reader, LUA_SIGNATURE):
            selector = reader.nextByte()
            if selector in (Dialect.LUA51, Dialect.LUA52):
                header = _lua51_or_52(reader, selector)
            elif selector == Dialect.LUA53:
                header = _lua53(reader)
            elif selector == Dialect.LUA54:
                header = _lua54(reader)
            else:
                reader.fail(UnrecognizedDialectError, f"Unknown Lua version byte 0x{selector:02x}", reader.pos - 1)
        elif _match_signature(reader, LUAJIT_SIGNATURE):
            selector = reader.nextByte()
            if selector not in (1, 2):
                reader.fail(UnrecognizedDialectError, f"Unknown LuaJIT version byte {selector}", reader.pos - 1)
            header = _luajit(reader, selector)
        else:
            reader.fail(
                UnrecognizedDialectError,
                f"Unrecognized signature {reader.bytecode[start:start + 4]!r}",
                start,
            )
    debug(f"Header: {header}")
    return header


def lua_int(reader: Reader, header: LuaHeader) -> int:
    with reader.context("integer"):
        return reader.nextUint(header.int_size, header.big_endian)


def lua_size_t(reader: Reader, header: LuaHeader) -> int:
    with reader.context("size_t"):
        return reader.nextUint(header.size_t_size, header.big_endian)


def lua_instruction(reader: Reader, header: LuaHeader) -> int:
    return reader.nextUint(header.instruction_size, header.big_endian)


def lua_number(reader: Reader, header: LuaHeader) -> LuaNumber:
    with reader.context("number"):
        if header.number_integral:
            return reader.nextSigned(header.number_size, header.big_endian)
        return reader.nextFloatOf(header.number_size, header.big_endian)


def lua_integer(reader: Reader, header: LuaHeader) -> int:
    """lua_Integer, 5.3 and 5.4."""
    with reader.context("integer constant"):
        return reader.nextSigned(header.integer_size, header.big_endian)


def lua_float(reader: Reader, header: LuaHeader) -> float:
    """lua_Number, 5.3 and 5.4."""
    with reader.context("float constant"):
        return reader.nextFloatOf(header.number_size, header.big_endian)
