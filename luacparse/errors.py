"""
Errors raised while decoding bytecode.

Every failure carries the byte offset it happened at and the chain of
constructs that were being read, outermost first, e.g.
``chunk -> count constants -> number``.
"""

from typing import List, Optional


class DecodeError(ValueError):
    def __init__(self, reason: str, offset: int, context: Optional[List[str]] = None):
        super().__init__(reason)
        self.reason: str = reason
        self.offset: int = offset
        self.context: List[str] = list(context or [])

    def push_context(self, label: str) -> None:
        self.context.insert(0, label)

    @property
    def path(self) -> str:
        return " -> ".join(self.context)

    def __str__(self) -> str:
        message = f"{self.reason} at offset {self.offset}"
        if self.context:
            message += f" ({self.path})"
        return message


class TruncatedError(DecodeError, IndexError):
    """Fewer bytes remain than a field declares."""


class UnsupportedWidthError(DecodeError):
    """A header declares a field width outside {1, 2, 4, 8}."""


class UnrecognizedDialectError(DecodeError):
    """Unknown signature, or unknown selector byte after a known one."""


class UnsupportedDialectError(DecodeError):
    """A sniffed dialect tag has no prototype decoder."""


class UnknownConstantTagError(DecodeError):
    pass


class IntegerOverflowError(DecodeError):
    pass


class UnbalancedPrototypeStackError(DecodeError):
    pass


class SizeMismatchError(DecodeError):
    """A length-prefixed block was not consumed exactly."""


class DepthExceededError(DecodeError):
    pass


class InvalidReferenceError(DecodeError):
    """An index into a string, constant or prototype table is out of range."""


class EmbeddedCompileError(DecodeError):
    """A Luau blob carrying a compiler error message instead of bytecode."""

    def __init__(self, message: bytes, offset: int, context: Optional[List[str]] = None):
        self.message: bytes = message
        super().__init__(
            f"bytecode holds a compile error: {message.decode('utf-8', errors='replace')}",
            offset,
            context,
        )


__all__ = [
    "DecodeError",
    "TruncatedError",
    "UnsupportedWidthError",
    "UnrecognizedDialectError",
    "UnsupportedDialectError",
    "UnknownConstantTagError",
    "IntegerOverflowError",
    "UnbalancedPrototypeStackError",
    "DepthExceededError",
    "SizeMismatchError",
    "InvalidReferenceError",
    "EmbeddedCompileError",
]
