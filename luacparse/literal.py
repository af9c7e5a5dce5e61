"""
Render constants back as Lua source literals, for disassembly listings.
"""

import math
import re
from typing import Optional

from luacparse.model import ConstantType, LuaConstant

LUA_KEYWORDS = frozenset(
    [
        "and", "break", "do", "else", "elseif", "end", "false", "for", "function", "goto",
        "if", "in", "local", "nil", "not", "or", "repeat", "return", "then", "true",
        "until", "while",
    ]
)

IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

_ESCAPES = {
    ord("\a"): "\\a",
    ord("\b"): "\\b",
    ord("\f"): "\\f",
    ord("\n"): "\\n",
    ord("\r"): "\\r",
    ord("\t"): "\\t",
    ord("\v"): "\\v",
    ord("\\"): "\\\\",
    ord('"'): '\\"',
}


def as_literal_str(k: LuaConstant) -> Optional[str]:
    """The string constant as text, or None if it isn't a valid UTF-8 string."""
    if k.type != ConstantType.STRING:
        return None
    try:
        return k.value.decode("utf-8")
    except UnicodeDecodeError:
        return None


def as_ident_str(k: LuaConstant) -> Optional[str]:
    """The string constant if it can be written as a bare name (``t.name``)."""
    s = as_literal_str(k)
    if s is None or s in LUA_KEYWORDS or not IDENTIFIER.fullmatch(s):
        return None
    return s


def escape_bytes(data: bytes) -> str:
    out = []
    for i, b in enumerate(data):
        if b in _ESCAPES:
            out.append(_ESCAPES[b])
        elif 0x20 <= b < 0x7F:
            out.append(chr(b))
        elif i + 1 < len(data) and 0x30 <= data[i + 1] <= 0x39:
            # a following digit would be read as part of a short escape
            out.append(f"\\{b:03d}")
        else:
            out.append(f"\\{b}")
    return "".join(out)


def format_number(n) -> str:
    if isinstance(n, int):
        return str(n)
    if math.isnan(n):
        return "0/0"
    if math.isinf(n):
        return "1/0" if n > 0 else "-1/0"
    if n.is_integer():
        return f"{n:.1f}"
    return repr(n)


def to_literal(k: LuaConstant) -> str:
    if k.type == ConstantType.NIL:
        return "nil"
    elif k.type == ConstantType.BOOLEAN:
        return "true" if k.value else "false"
    elif k.type == ConstantType.NUMBER:
        return format_number(k.value)
    elif k.type == ConstantType.STRING:
        return f'"{escape_bytes(k.value)}"'
    elif k.type == ConstantType.PROTO:
        return f"function<{k.value}>"
    elif k.type == ConstantType.IMPORT:
        return f"import<0x{k.value:08x}>"
    elif k.type == ConstantType.VECTOR:
        return "vector(" + ", ".join(format_number(c) for c in k.value) + ")"
    elif k.type == ConstantType.COMPLEX:
        return f"{format_number(k.value.real)}{k.value.imag:+}i"
    elif k.type == ConstantType.TABLE:
        items = [to_literal(v) for v in k.value.array]
        for key, value in k.value.hash:
            ident = as_ident_str(key)
            items.append(f"{ident} = {to_literal(value)}" if ident else f"[{to_literal(key)}] = {to_literal(value)}")
        return "{" + ", ".join(items) + "}"
    raise ValueError(f"Unknown constant type: {k.type}")
