"""
Luau bytecode.

There is no signature: the stream starts with the bytecode version, then
(version 4+) the types version, then one string table shared by the whole
file. Every name and string constant afterwards is an index into that table,
with 0 reserved for the empty string. Prototypes are stored in a flat table;
parents refer to children by index and the main prototype id comes last.
"""

from functools import partial
from typing import List, Optional, Tuple

from luacparse.config import DEFAULT_MAX_DEPTH, debug
from luacparse.errors import (
    DepthExceededError,
    EmbeddedCompileError,
    InvalidReferenceError,
    UnknownConstantTagError,
    UnrecognizedDialectError,
)
from luacparse.model import (
    ConstantType,
    ConstTable,
    Dialect,
    LuaChunk,
    LuaConstant,
    LuaHeader,
    LuaLocal,
    LuaVarArgInfo,
)
from luacparse.reader import Reader
from luacparse.varint import read_varint

LBC_VERSION_MIN = 3
LBC_VERSION_MAX = 6
LBC_TYPE_VERSION_MIN = 1
LBC_TYPE_VERSION_MAX = 3

# < CONSTANT TYPES > #
# https://github.com/luau-lang/luau/blob/db809395bf5739c895a24dc73960b9e9ab6468c5/Compiler/include/Luau/BytecodeBuilder.h#L151-L161
LBC_CONSTANT_NIL = 0
LBC_CONSTANT_BOOLEAN = 1
LBC_CONSTANT_NUMBER = 2
LBC_CONSTANT_STRING = 3
LBC_CONSTANT_IMPORT = 4
LBC_CONSTANT_TABLE = 5
LBC_CONSTANT_CLOSURE = 6
LBC_CONSTANT_VECTOR = 7


def luau_header(reader: Reader) -> LuaHeader:
    with reader.context("header"):
        offset = reader.pos
        version = reader.nextByte()
        if version == 0:
            # a failed compile, the rest of the blob is the error message
            raise EmbeddedCompileError(reader.read(reader.remaining()), offset)
        if not LBC_VERSION_MIN <= version <= LBC_VERSION_MAX:
            reader.fail(
                UnrecognizedDialectError,
                f"Unsupported Luau bytecode version {version} "
                f"(supported: {LBC_VERSION_MIN}-{LBC_VERSION_MAX})",
                offset,
            )
        types_version = 0
        if version >= 4:
            offset = reader.pos
            types_version = reader.nextByte()
            if not LBC_TYPE_VERSION_MIN <= types_version <= LBC_TYPE_VERSION_MAX:
                reader.fail(
                    UnrecognizedDialectError,
                    f"Invalid types version (types version: {types_version})",
                    offset,
                )
    debug(f"Bytecode version: {version}, types version: {types_version}")
    return LuaHeader(
        lua_version=Dialect.LUAU,
        format_version=version,
        int_size=4,
        size_t_size=4,
        instruction_size=4,
        number_size=8,
        types_version=types_version,
    )


def read_string_ref(reader: Reader, string_table: List[bytes]) -> bytes:
    offset = reader.pos
    index = read_varint(reader)
    if index == 0:
        return b""
    if index > len(string_table):
        reader.fail(
            InvalidReferenceError,
            f"String index {index} out of range for string table with length {len(string_table)}",
            offset,
        )
    return string_table[index - 1]


def read_string_table(reader: Reader) -> List[bytes]:
    with reader.context("string table"):
        return reader.nextList(
            read_varint(reader), lambda: reader.read(read_varint(reader)), "string"
        )


def skip_userdata_types(reader: Reader, string_table: List[bytes]) -> None:
    """Userdata type remapping (types version 3): name refs until a 0 index."""
    with reader.context("userdata types"):
        while reader.nextByte() != 0:
            read_string_ref(reader, string_table)


def read_table_constant(reader: Reader, constants: List[LuaConstant]) -> ConstTable:
    table = ConstTable()
    for _ in range(read_varint(reader)):
        offset = reader.pos
        key = read_varint(reader)
        if key >= len(constants):
            reader.fail(
                InvalidReferenceError,
                f"Table key refers to constant {key}, only {len(constants)} precede it",
                offset,
            )
        table.hash.append((constants[key], LuaConstant.number(0)))
    return table


def read_constant(
    reader: Reader, string_table: List[bytes], constants: List[LuaConstant]
) -> LuaConstant:
    offset = reader.pos
    k_type = reader.nextByte()
    if k_type == LBC_CONSTANT_NIL:
        return LuaConstant.nil()
    elif k_type == LBC_CONSTANT_BOOLEAN:
        return LuaConstant.boolean(reader.nextByte() != 0)
    elif k_type == LBC_CONSTANT_NUMBER:
        return LuaConstant.number(reader.nextDouble())
    elif k_type == LBC_CONSTANT_STRING:
        return LuaConstant.string(read_string_ref(reader, string_table))
    elif k_type == LBC_CONSTANT_IMPORT:
        return LuaConstant(ConstantType.IMPORT, reader.nextUint32())
    elif k_type == LBC_CONSTANT_TABLE:
        return LuaConstant.table(read_table_constant(reader, constants))
    elif k_type == LBC_CONSTANT_CLOSURE:
        return LuaConstant.proto(read_varint(reader))
    elif k_type == LBC_CONSTANT_VECTOR:
        return LuaConstant(ConstantType.VECTOR, tuple(reader.nextFloat() for _ in range(4)))
    reader.fail(UnknownConstantTagError, f"Unrecognized constant type: {k_type}", offset)


def read_constants(reader: Reader, string_table: List[bytes]) -> List[LuaConstant]:
    # table constants refer back to earlier entries, so build the list in place
    constants: List[LuaConstant] = []
    with reader.context("count constants"):
        size_consts = read_varint(reader)
        reader.checkCount(size_consts)
        for i in range(size_consts):
            with reader.context(f"constant {i}"):
                constants.append(read_constant(reader, string_table, constants))
    return constants


def read_line_info(reader: Reader, chunk: LuaChunk) -> None:
    with reader.context("line info"):
        linegaplog2 = reader.nextByte()
        size_code = len(chunk.instructions)
        intervals = ((size_code - 1) >> linegaplog2) + 1
        chunk.line_info = reader.nextList(size_code, reader.nextByte)
        last_line = 0
        for i in range(intervals):
            last_line += reader.nextInt32()
            chunk.source_lines.append((i << linegaplog2, last_line))


def read_local(reader: Reader, string_table: List[bytes]) -> LuaLocal:
    name = read_string_ref(reader, string_table)
    start_pc = read_varint(reader)
    end_pc = read_varint(reader)
    return LuaLocal(name=name, start_pc=start_pc, end_pc=end_pc, reg=reader.nextByte())


def read_debug_info(reader: Reader, chunk: LuaChunk, string_table: List[bytes]) -> None:
    with reader.context("debug info"):
        chunk.locals = reader.counted(
            "count locals", partial(read_varint, reader), partial(read_local, reader, string_table)
        )
        chunk.upvalue_names = reader.counted(
            "count upval names",
            partial(read_varint, reader),
            partial(read_string_ref, reader, string_table),
        )


def take_child(
    reader: Reader, proto_table: List[Optional[Tuple[LuaChunk, int]]]
) -> Tuple[int, LuaChunk, int]:
    offset = reader.pos
    index = read_varint(reader)
    if index >= len(proto_table) or proto_table[index] is None:
        reader.fail(
            InvalidReferenceError,
            f"Child prototype {index} is undefined or already owned by another prototype",
            offset,
        )
    child, height = proto_table[index]
    proto_table[index] = None
    return index, child, height


def link_closures(reader: Reader, chunk: LuaChunk, child_ids: List[int]) -> None:
    """
    Closure constants are written with the file-wide proto id; rewrite them to
    the index into ``chunk.prototypes``, the same meaning PROTO has elsewhere.
    """
    for i, k in enumerate(chunk.constants):
        if k.type != ConstantType.PROTO:
            continue
        if k.value not in child_ids:
            reader.fail(
                InvalidReferenceError,
                f"Closure constant {i} refers to prototype {k.value}, "
                f"which is not a child of this prototype",
            )
        chunk.constants[i] = LuaConstant.proto(child_ids.index(k.value))


def read_proto(
    reader: Reader,
    header: LuaHeader,
    string_table: List[bytes],
    proto_table: List[Optional[Tuple[LuaChunk, int]]],
    max_depth: int,
) -> Tuple[LuaChunk, int]:
    chunk = LuaChunk()
    chunk.max_stack = reader.nextByte()
    chunk.num_params = reader.nextByte()
    chunk.num_upvalues = reader.nextByte()
    if reader.nextByte():
        chunk.is_vararg = LuaVarArgInfo(has_arg=True, needs_arg=True)
    if header.format_version >= 4:
        chunk.flags = reader.nextByte()
        with reader.context("type info"):
            chunk.type_info = reader.read(read_varint(reader))

    chunk.instructions = reader.counted(
        "count instruction", partial(read_varint, reader), reader.nextUint32
    )
    chunk.constants = read_constants(reader, string_table)
    children = reader.counted(
        "count prototypes", partial(read_varint, reader), partial(take_child, reader, proto_table)
    )
    chunk.prototypes = [child for _, child, _ in children]
    link_closures(reader, chunk, [index for index, _, _ in children])
    height = max((child_height + 1 for _, _, child_height in children), default=0)
    if height > max_depth:
        reader.fail(DepthExceededError, f"Prototypes nest deeper than {max_depth} levels")

    chunk.line_defined = read_varint(reader)
    chunk.name = read_string_ref(reader, string_table)
    debug(
        f"  proto {chunk.name!r}: {len(chunk.instructions)} instructions, "
        f"{len(chunk.constants)} constants, {len(chunk.prototypes)} children"
    )

    if reader.nextByte():  # has line info?
        read_line_info(reader, chunk)
    if reader.nextByte():  # has debug info?
        read_debug_info(reader, chunk, string_table)
    return chunk, height


def luau_chunk(reader: Reader, header: LuaHeader, max_depth: int = DEFAULT_MAX_DEPTH) -> LuaChunk:
    with reader.context("chunk"):
        string_table = read_string_table(reader)
        debug("# of strings:", len(string_table))
        if header.types_version == 3:
            skip_userdata_types(reader, string_table)

        size_protos = read_varint(reader)
        debug("# of protos:", size_protos)
        reader.checkCount(size_protos)
        proto_table: List[Optional[Tuple[LuaChunk, int]]] = []
        for i in range(size_protos):
            with reader.context(f"prototype {i}"):
                proto_table.append(read_proto(reader, header, string_table, proto_table, max_depth))

        offset = reader.pos
        main_proto_id = read_varint(reader)
        if main_proto_id >= len(proto_table) or proto_table[main_proto_id] is None:
            reader.fail(
                InvalidReferenceError,
                f"Main prototype {main_proto_id} out of range for protoTable "
                f"with length {len(proto_table)}",
                offset,
            )
    main, _ = proto_table[main_proto_id]
    return main
