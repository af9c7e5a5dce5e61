"""
LuaJIT bytecode (``\\x1bLJ``, versions 1 and 2).

Prototypes are dumped children first. Each completed prototype is pushed on a
stack; a parent's ``BCDUMP_KGC_CHILD`` constants pop them back off. When the
zero-length terminator is reached exactly one prototype, the main chunk,
must be left.
"""

from functools import partial
from struct import pack, unpack
from typing import List, Optional, Tuple

from luacparse.config import DEFAULT_MAX_DEPTH, debug
from luacparse.errors import DepthExceededError, SizeMismatchError, UnbalancedPrototypeStackError
from luacparse.model import (
    ConstTable,
    ConstantType,
    LuaChunk,
    LuaConstant,
    LuaHeader,
    LuaLocal,
    LuaNumber,
    LuaVarArgInfo,
    ProtoFlags,
    UpVal,
)
from luacparse.reader import Reader
from luacparse.varint import read_uleb128, read_uleb128_33

# < COMPLEX CONSTANT TYPES > #
BCDUMP_KGC_CHILD = 0
BCDUMP_KGC_TAB = 1
BCDUMP_KGC_I64 = 2
BCDUMP_KGC_U64 = 3
BCDUMP_KGC_COMPLEX = 4
BCDUMP_KGC_STR = 5

# < TABLE ITEM TYPES > #
BCDUMP_KTAB_NIL = 0
BCDUMP_KTAB_FALSE = 1
BCDUMP_KTAB_TRUE = 2
BCDUMP_KTAB_INT = 3
BCDUMP_KTAB_NUM = 4
BCDUMP_KTAB_STR = 5

# < VARIABLE NAME TYPES > #
VARNAME_END = 0
VARNAME_MAX = 7
INTERNAL_VARNAMES = [
    None,
    b"(for idx)",
    b"(for stop)",
    b"(for step)",
    b"(for gen)",
    b"(for state)",
    b"(for ctl)",
]

PROTO_UV_LOCAL = 0x8000
PROTO_UV_IMMUTABLE = 0x4000

# (prototype, height of its subtree)
StackEntry = Tuple[LuaChunk, int]


def to_int32(v: int) -> int:
    return v - 0x100000000 if v & 0x80000000 else v


def to_int64(v: int) -> int:
    return v - 0x10000000000000000 if v & 0x8000000000000000 else v


def combine_number(lo: int, hi: int) -> float:
    # the words are written lo first in either byte order
    bits = (hi << 32) | lo
    return unpack("<d", pack("<Q", bits))[0]


def read_lo_hi(reader: Reader) -> Tuple[int, int]:
    lo = read_uleb128(reader)
    return lo, read_uleb128(reader)


def lj_tabk(reader: Reader) -> LuaConstant:
    tag = read_uleb128(reader)
    if tag == BCDUMP_KTAB_NIL:
        return LuaConstant.nil()
    elif tag == BCDUMP_KTAB_FALSE:
        return LuaConstant.boolean(False)
    elif tag == BCDUMP_KTAB_TRUE:
        return LuaConstant.boolean(True)
    elif tag == BCDUMP_KTAB_INT:
        return LuaConstant.number(to_int32(read_uleb128(reader)))
    elif tag == BCDUMP_KTAB_NUM:
        lo, hi = read_lo_hi(reader)
        return LuaConstant.number(combine_number(lo, hi))
    with reader.context("string"):
        return LuaConstant.string(reader.read(tag - BCDUMP_KTAB_STR))


def lj_tab_pair(reader: Reader) -> Tuple[LuaConstant, LuaConstant]:
    key = lj_tabk(reader)
    return key, lj_tabk(reader)


def lj_tab(reader: Reader) -> LuaConstant:
    with reader.context("read table"):
        narray = read_uleb128(reader)
        nhash = read_uleb128(reader)
        with reader.context("count table array"):
            array = reader.nextList(narray, partial(lj_tabk, reader))
        with reader.context("count table hash"):
            hash_ = reader.nextList(nhash, partial(lj_tab_pair, reader))
    # slot 0 of the array part is dumped too; when set it is really key 0
    if array:
        first = array.pop(0)
        if not first.is_nil:
            hash_.append((LuaConstant.number(0), first))
    return LuaConstant.table(ConstTable(array=array, hash=hash_))


def lj_complex_constant(
    reader: Reader, stack: List[StackEntry], children: List[StackEntry]
) -> LuaConstant:
    offset = reader.pos
    tag = read_uleb128(reader)
    if tag == BCDUMP_KGC_CHILD:
        if not stack:
            reader.fail(
                UnbalancedPrototypeStackError,
                "Child constant but no completed prototype is on the stack",
                offset,
            )
        children.append(stack.pop())
        return LuaConstant.proto(len(children) - 1)
    elif tag == BCDUMP_KGC_TAB:
        return lj_tab(reader)
    elif tag in (BCDUMP_KGC_I64, BCDUMP_KGC_U64):
        lo, hi = read_lo_hi(reader)
        return LuaConstant.number(to_int64(lo | (hi << 32)))
    elif tag == BCDUMP_KGC_COMPLEX:
        re = combine_number(*read_lo_hi(reader))
        im = combine_number(*read_lo_hi(reader))
        return LuaConstant(ConstantType.COMPLEX, complex(re, im))
    with reader.context("string"):
        return LuaConstant.string(reader.read(tag - BCDUMP_KGC_STR))


def lj_num_constant(reader: Reader) -> LuaNumber:
    is_num = reader.peekByte() & 1
    lo = read_uleb128_33(reader)
    if is_num:
        return combine_number(lo, read_uleb128(reader))
    return to_int32(lo)


def lj_upvalue(reader: Reader, header: LuaHeader) -> UpVal:
    v = reader.nextUint16(header.big_endian)
    return UpVal(
        on_stack=bool(v & PROTO_UV_LOCAL),
        id=v & 0x3FFF,
        kind=1 if v & PROTO_UV_IMMUTABLE else 0,
    )


def lj_var_info(reader: Reader) -> List[LuaLocal]:
    locals_ = []
    last_pc = 0
    while True:
        kind = reader.nextByte()
        if kind == VARNAME_END:
            return locals_
        if kind < VARNAME_MAX:
            name = INTERNAL_VARNAMES[kind]
        else:
            name = bytes([kind]) + reader.readUntil(0)
        start_pc = last_pc = last_pc + read_uleb128(reader)
        end_pc = start_pc + read_uleb128(reader)
        locals_.append(LuaLocal(name=name, start_pc=start_pc, end_pc=end_pc))


def lj_debug_info(reader: Reader, header: LuaHeader, chunk: LuaChunk, numline: int) -> None:
    """Line map, upvalue names and variable ranges of an unstripped prototype."""
    width = 1 if numline < 256 else 2 if numline < 65536 else 4
    with reader.context("line info"):
        chunk.line_info = reader.nextList(
            len(chunk.instructions), partial(reader.nextUint, width, header.big_endian)
        )
    chunk.source_lines = [(chunk.line_defined + line, 0) for line in chunk.line_info]
    with reader.context("upvalue names"):
        chunk.upvalue_names = [reader.readUntil(0) for _ in range(chunk.num_upvalues)]
    with reader.context("variable info"):
        chunk.locals = lj_var_info(reader)


def lj_proto(
    reader: Reader, header: LuaHeader, stack: List[StackEntry], max_depth: int
) -> Optional[StackEntry]:
    offset = reader.pos
    size = read_uleb128(reader)
    if size == 0:
        return None

    # the body must fill its length prefix exactly
    body = reader.limited(size)
    entry = lj_proto_body(body, header, stack, max_depth)
    if body.remaining():
        reader.fail(
            SizeMismatchError,
            f"Prototype declares {size} bytes but its fields use {size - body.remaining()}",
            offset,
        )
    reader.skip(size)
    return entry


def lj_proto_body(
    reader: Reader, header: LuaHeader, stack: List[StackEntry], max_depth: int
) -> StackEntry:
    flags = reader.nextByte()
    num_params = reader.nextByte()
    framesize = reader.nextByte()
    num_upvalues = reader.nextByte()
    complex_constants_count = read_uleb128(reader)
    numeric_constants_count = read_uleb128(reader)
    instructions_count = read_uleb128(reader)

    debuginfo_size = 0
    line_defined = 0
    numline = 0
    if not header.stripped:
        debuginfo_size = read_uleb128(reader)
        if debuginfo_size:
            line_defined = read_uleb128(reader)
            numline = read_uleb128(reader)
    debug(
        f"proto: line: {line_defined}+{numline}, {instructions_count} instructions, "
        f"{complex_constants_count} complex / {numeric_constants_count} numeric constants"
    )

    with reader.context("count instruction"):
        instructions = reader.nextList(
            instructions_count, partial(reader.nextUint32, header.big_endian)
        )
    with reader.context("count upvals"):
        upvalue_infos = reader.nextList(num_upvalues, partial(lj_upvalue, reader, header))
    children: List[StackEntry] = []
    with reader.context("count complex_constant"):
        constants = reader.nextList(
            complex_constants_count,
            partial(lj_complex_constant, reader, stack, children),
            "constant",
        )
    constants.reverse()
    with reader.context("count numeric_constants"):
        num_constants = reader.nextList(
            numeric_constants_count, partial(lj_num_constant, reader), "number"
        )

    height = max((child_height + 1 for _, child_height in children), default=0)
    if height > max_depth:
        reader.fail(DepthExceededError, f"Prototypes nest deeper than {max_depth} levels")

    chunk = LuaChunk(
        num_upvalues=num_upvalues,
        num_params=num_params,
        line_defined=line_defined,
        last_line_defined=line_defined + numline,
        flags=flags,
        max_stack=framesize,
        is_vararg=LuaVarArgInfo(has_arg=False, needs_arg=False)
        if flags & ProtoFlags.IS_VARIADIC
        else None,
        instructions=instructions,
        upvalue_infos=upvalue_infos,
        constants=constants,
        num_constants=num_constants,
        prototypes=[child for child, _ in children],
    )

    if debuginfo_size:
        with reader.context("debug info"):
            debug_reader = reader.limited(debuginfo_size)
            lj_debug_info(debug_reader, header, chunk, numline)
            reader.skip(debuginfo_size)

    return chunk, height


def lj_chunk(reader: Reader, header: LuaHeader, max_depth: int = DEFAULT_MAX_DEPTH) -> LuaChunk:
    with reader.context("chunk"):
        name = b""
        if not header.stripped:
            with reader.context("chunk name"):
                name = reader.read(read_uleb128(reader))

        stack: List[StackEntry] = []
        index = 0
        while True:
            with reader.context(f"prototype {index}"):
                entry = lj_proto(reader, header, stack, max_depth)
            if entry is None:
                break
            stack.append(entry)
            index += 1

        if len(stack) != 1:
            reader.fail(
                UnbalancedPrototypeStackError,
                f"Expected exactly one prototype left on the stack, found {len(stack)}",
            )
    main, _ = stack.pop()
    main.name = name
    return main
