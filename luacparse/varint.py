"""
Variable-length integer schemes used by the dialects.

- ``read_uleb128``: classic unsigned LEB128, low groups first, high bit set
  means more bytes follow (LuaJIT, Luau).
- ``read_uleb128_33``: LuaJIT's numeric-constant head, whose first byte gives
  up its low bit to the int/float selector.
- ``load_unsigned``: Lua 5.4's dump format, high groups first, high bit set
  marks the *last* byte, bounded by a caller-supplied ceiling.
"""

from luacparse.errors import IntegerOverflowError
from luacparse.reader import Reader

UINT32_MAX = 0xFFFFFFFF
INT32_MAX = 0x7FFFFFFF
SIZE_MAX = 0xFFFFFFFFFFFFFFFF


def read_uleb128(reader: Reader, bits: int = 32) -> int:
    start = reader.pos
    result = 0
    shift = 0
    while True:
        b = reader.nextByte()
        result |= (b & 0x7F) << shift
        if result >> bits:
            reader.fail(IntegerOverflowError, f"LEB128 value does not fit in {bits} bits", start)
        if not (b & 0x80):
            return result
        shift += 7
        if shift >= bits + 7:
            reader.fail(IntegerOverflowError, f"LEB128 value runs past {bits} bits", start)


# Luau's readVarInt is plain LEB128 over a 32-bit value.
def read_varint(reader: Reader) -> int:
    return read_uleb128(reader, 32)


def read_uleb128_33(reader: Reader) -> int:
    """
    The low bit of the first byte is the caller's (int/float selector); the
    remaining seven bits hold six bits of payload plus a continuation bit.
    """
    start = reader.pos
    v = reader.nextByte() >> 1
    if v >= 0x40:
        v &= 0x3F
        sh = -1
        while True:
            b = reader.nextByte()
            sh += 7
            v |= (b & 0x7F) << sh
            if b < 0x80:
                break
            if sh >= 27:
                reader.fail(IntegerOverflowError, "LEB128-33 value runs past 5 bytes", start)
    return v & UINT32_MAX


def load_unsigned(reader: Reader, limit: int) -> int:
    start = reader.pos
    x = 0
    limit >>= 7
    while True:
        b = reader.nextByte()
        if x >= limit:
            reader.fail(IntegerOverflowError, "integer overflow", start)
        x = (x << 7) | (b & 0x7F)
        if b & 0x80:
            return x


def load_size(reader: Reader) -> int:
    return load_unsigned(reader, SIZE_MAX)


def load_int(reader: Reader) -> int:
    return load_unsigned(reader, INT32_MAX)
