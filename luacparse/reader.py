from contextlib import contextmanager
from struct import unpack
from typing import Callable, Iterator, List, Optional, Type, TypeVar

from luacparse.errors import DecodeError, TruncatedError, UnsupportedWidthError

T = TypeVar("T")

SUPPORTED_WIDTHS = (1, 2, 4, 8)

_UNSIGNED_FORMATS = {1: "B", 2: "H", 4: "I", 8: "Q"}
_SIGNED_FORMATS = {1: "b", 2: "h", 4: "i", 8: "q"}
_FLOAT_FORMATS = {4: "f", 8: "d"}


class Reader:
    def __init__(self, bytecode: bytes, pos: int = 0, end: Optional[int] = None):
        self.bytecode: bytes = bytes(bytecode)
        self.pos: int = pos
        self.end: int = len(self.bytecode) if end is None else end

    def canRead(self, n: int) -> bool:
        return self.pos + n <= self.end

    def remaining(self) -> int:
        return self.end - self.pos

    def limited(self, n: int) -> "Reader":
        """
        A reader over the next ``n`` bytes only. Offsets stay absolute, so
        errors raised inside still point into the whole file.
        """
        self._ensure(n, "block")
        return Reader(self.bytecode, self.pos, self.pos + n)

    def fail(self, error: Type[DecodeError], reason: str, offset: Optional[int] = None) -> None:
        raise error(reason, self.pos if offset is None else offset)

    @contextmanager
    def context(self, label: str) -> Iterator[None]:
        """
        Label whatever is read inside the block, so a failure deep inside a
        prototype reads as ``chunk -> count constants -> constant 7 -> string``.
        """
        try:
            yield
        except DecodeError as e:
            e.push_context(label)
            raise

    def _ensure(self, n: int, what: str) -> None:
        if not self.canRead(n):
            self.fail(
                TruncatedError,
                f"Attempted to read {what} of {n} bytes at position {self.pos}, "
                f"but only {self.remaining()} bytes remain",
            )

    def peekByte(self) -> int:
        self._ensure(1, "byte")
        return self.bytecode[self.pos]

    def nextByte(self) -> int:
        self._ensure(1, "byte")
        value = self.bytecode[self.pos]
        self.pos += 1
        return value

    def read(self, n: int) -> bytes:
        if n < 0:
            self.fail(DecodeError, f"Cannot read a negative number of bytes ({n}).")
        self._ensure(n, "data")
        data = self.bytecode[self.pos : self.pos + n]
        self.pos += n
        return data

    def skip(self, n: int) -> None:
        if n < 0:
            self.fail(DecodeError, f"Cannot skip a negative number of bytes ({n}).")
        self._ensure(n, "padding")
        self.pos += n

    def readUntil(self, terminator: int = 0) -> bytes:
        """Read bytes up to ``terminator``, consuming but not returning it."""
        stop = self.bytecode.find(bytes([terminator]), self.pos, self.end)
        if stop < 0:
            self.fail(
                TruncatedError,
                f"Unterminated string starting at position {self.pos}, "
                f"only {self.remaining()} bytes remain",
            )
        data = self.bytecode[self.pos : stop]
        self.pos = stop + 1
        return data

    def unpackStruct(self, n: int, what: str, fmt: str) -> int | float:
        self._ensure(n, what)
        value = unpack(fmt, self.bytecode[self.pos : self.pos + n])[0]
        self.pos += n
        return value

    def _check_width(self, width: int, formats: dict) -> None:
        if width not in formats:
            self.fail(
                UnsupportedWidthError,
                f"Unsupported field width {width}, expected one of {sorted(formats)}",
            )

    def nextUint(self, width: int, big_endian: bool = False) -> int:
        self._check_width(width, _UNSIGNED_FORMATS)
        order = ">" if big_endian else "<"
        return self.unpackStruct(width, f"u{width * 8}", order + _UNSIGNED_FORMATS[width])

    def nextSigned(self, width: int, big_endian: bool = False) -> int:
        self._check_width(width, _SIGNED_FORMATS)
        order = ">" if big_endian else "<"
        return self.unpackStruct(width, f"i{width * 8}", order + _SIGNED_FORMATS[width])

    def nextFloatOf(self, width: int, big_endian: bool = False) -> float:
        self._check_width(width, _FLOAT_FORMATS)
        order = ">" if big_endian else "<"
        return self.unpackStruct(width, f"f{width * 8}", order + _FLOAT_FORMATS[width])

    def nextUint16(self, big_endian: bool = False) -> int:
        return self.nextUint(2, big_endian)

    def nextUint32(self, big_endian: bool = False) -> int:
        return self.nextUint(4, big_endian)

    def nextInt32(self, big_endian: bool = False) -> int:
        return self.nextSigned(4, big_endian)

    def nextFloat(self) -> float:
        return self.unpackStruct(4, "float", "<f")

    def nextDouble(self, big_endian: bool = False) -> float:
        return self.nextFloatOf(8, big_endian)

    def checkCount(self, count: int) -> None:
        if count > self.remaining():
            self.fail(
                TruncatedError,
                f"Sequence declares {count} elements but only {self.remaining()} bytes remain",
            )

    def nextList(
        self, count: int, read_item: Callable[[], T], label: Optional[str] = None
    ) -> List[T]:
        """
        Read ``count`` items. Every item takes at least one byte, so a count
        larger than what is left is rejected before anything is allocated.
        """
        self.checkCount(count)
        if label is None:
            return [read_item() for _ in range(count)]
        items = []
        for i in range(count):
            with self.context(f"{label} {i}"):
                items.append(read_item())
        return items

    def counted(
        self,
        label: str,
        read_count: Callable[[], int],
        read_item: Callable[[], T],
        item_label: Optional[str] = None,
    ) -> List[T]:
        """A count prefix immediately followed by exactly that many items."""
        with self.context(label):
            return self.nextList(read_count(), read_item, item_label)
