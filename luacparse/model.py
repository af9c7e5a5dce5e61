"""
Decoded bytecode as plain data: header, prototype tree, constants.

Nothing here knows how to read bytes; the dialect modules build these values
and consumers (literal rendering, msgpack interchange, the CLI) only read them.
"""

from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Any, Iterator, List, Optional, Tuple, Union

# Integer or float; the Python type is the tag.
LuaNumber = Union[int, float]


class Dialect(IntEnum):
    LUA51 = 0x51
    LUA52 = 0x52
    LUA53 = 0x53
    LUA54 = 0x54
    LUAJ1 = 0x11
    LUAJ2 = 0x12
    LUAU = 0x75


class ConstantType(IntEnum):
    NIL = 0
    BOOLEAN = 1
    NUMBER = 2
    STRING = 3
    PROTO = 4
    TABLE = 5
    IMPORT = 6
    VECTOR = 7
    COMPLEX = 8


class ProtoFlags(IntFlag):
    """LuaJIT per-prototype flags."""

    HAS_CHILD = 0b00000001
    IS_VARIADIC = 0b00000010
    HAS_FFI = 0b00000100
    JIT_DISABLED = 0b00001000
    HAS_ILOOP = 0b00010000


@dataclass(frozen=True)
class LuaHeader:
    lua_version: int
    format_version: int = 0
    big_endian: bool = False
    int_size: int = 4
    size_t_size: int = 8
    instruction_size: int = 4
    number_size: int = 8
    number_integral: bool = False
    # lua_Integer width, 5.3 and 5.4 only
    integer_size: int = 8
    # luajit
    stripped: bool = False
    has_ffi: bool = False
    # luau
    types_version: int = 0

    @property
    def dialect(self) -> Dialect:
        return Dialect(self.lua_version)

    @property
    def is_luajit(self) -> bool:
        return self.lua_version in (Dialect.LUAJ1, Dialect.LUAJ2)


@dataclass
class ConstTable:
    array: List["LuaConstant"] = field(default_factory=list)
    hash: List[Tuple["LuaConstant", "LuaConstant"]] = field(default_factory=list)


@dataclass(frozen=True)
class LuaConstant:
    """
    One constant slot. ``value`` depends on ``type``:

    NIL -> None, BOOLEAN -> bool, NUMBER -> int or float, STRING -> bytes,
    PROTO -> index into the owning chunk's ``prototypes``, TABLE -> ConstTable,
    IMPORT -> the 32-bit Luau import id, VECTOR -> 4-tuple of floats,
    COMPLEX -> complex.
    """

    type: ConstantType
    value: Any = None

    @classmethod
    def nil(cls) -> "LuaConstant":
        return cls(ConstantType.NIL)

    @classmethod
    def boolean(cls, value: bool) -> "LuaConstant":
        return cls(ConstantType.BOOLEAN, bool(value))

    @classmethod
    def number(cls, value: LuaNumber) -> "LuaConstant":
        return cls(ConstantType.NUMBER, value)

    @classmethod
    def string(cls, value: bytes) -> "LuaConstant":
        return cls(ConstantType.STRING, value)

    @classmethod
    def proto(cls, index: int) -> "LuaConstant":
        return cls(ConstantType.PROTO, index)

    @classmethod
    def table(cls, value: ConstTable) -> "LuaConstant":
        return cls(ConstantType.TABLE, value)

    @property
    def is_nil(self) -> bool:
        return self.type == ConstantType.NIL

    @property
    def is_integer(self) -> bool:
        return self.type == ConstantType.NUMBER and isinstance(self.value, int)

    @property
    def is_float(self) -> bool:
        return self.type == ConstantType.NUMBER and isinstance(self.value, float)

    def __repr__(self) -> str:
        if self.type == ConstantType.NIL:
            return "Null"
        if self.type == ConstantType.NUMBER:
            kind = "Integer" if isinstance(self.value, int) else "Number"
            return f"{kind}({self.value!r})"
        if self.type == ConstantType.STRING:
            return f"String({self.value.decode('utf-8', errors='replace')!r})"
        return f"{self.type.name.capitalize()}({self.value!r})"


@dataclass
class LuaLocal:
    name: bytes
    start_pc: int
    end_pc: int
    # luau register slot
    reg: int = 0


@dataclass
class LuaVarArgInfo:
    has_arg: bool
    needs_arg: bool


@dataclass
class UpVal:
    on_stack: bool
    id: int
    kind: int = 0


@dataclass
class LuaChunk:
    name: bytes = b""
    line_defined: int = 0
    last_line_defined: int = 0
    num_upvalues: int = 0
    num_params: int = 0
    # framesize for luajit
    max_stack: int = 0
    # luajit and luau only
    flags: int = 0
    is_vararg: Optional[LuaVarArgInfo] = None
    instructions: List[int] = field(default_factory=list)
    constants: List[LuaConstant] = field(default_factory=list)
    # luajit keeps its numbers apart from the other constants
    num_constants: List[LuaNumber] = field(default_factory=list)
    prototypes: List["LuaChunk"] = field(default_factory=list)
    source_lines: List[Tuple[int, int]] = field(default_factory=list)
    line_info: List[int] = field(default_factory=list)
    locals: List[LuaLocal] = field(default_factory=list)
    upvalue_infos: List[UpVal] = field(default_factory=list)
    upvalue_names: List[bytes] = field(default_factory=list)
    # luau type annotations blob
    type_info: bytes = b""

    @property
    def display_name(self) -> str:
        return self.name.decode("utf-8", errors="replace")

    @property
    def proto_flags(self) -> ProtoFlags:
        return ProtoFlags(self.flags & 0x1F)

    def is_empty(self) -> bool:
        return not self.instructions

    def walk(self, depth: int = 0) -> Iterator[Tuple[int, "LuaChunk"]]:
        """Yield ``(depth, chunk)`` for this chunk and every nested one, parents first."""
        pending = [(depth, self)]
        while pending:
            level, chunk = pending.pop()
            yield level, chunk
            pending.extend((level + 1, child) for child in reversed(chunk.prototypes))


@dataclass
class LuaBytecode:
    header: LuaHeader
    main_chunk: LuaChunk
