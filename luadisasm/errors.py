"""Exception hierarchy shared by the bytecode reader, decoder and analyses."""

from __future__ import annotations


class LuaBytecodeError(ValueError):
    """Base class for every fatal error raised while reading or analysing a chunk."""


class HeaderError(LuaBytecodeError):
    """Raised when the 12 byte chunk header does not describe Lua 5.1 little-endian code."""


class TruncatedChunkError(LuaBytecodeError, IndexError):
    """Raised when a read would move the cursor past the end of the buffer."""


class UnsupportedWidthError(LuaBytecodeError):
    """Raised for integer widths other than the 4 and 8 byte forms."""


class StringDecodeError(LuaBytecodeError):
    """Raised when a string constant or source name is not valid UTF-8."""


class UnknownConstantError(LuaBytecodeError):
    """Raised for constant type tags outside nil/boolean/number/string."""


class UnknownOpcodeError(LuaBytecodeError):
    """Raised for opcode numbers outside the 38 entry Lua 5.1 table."""


class InstructionDecodeError(LuaBytecodeError):
    """Raised when a serialized instruction word cannot be decoded."""


class ControlFlowError(LuaBytecodeError):
    """Raised when a branch target does not fall inside any basic block."""


class OperandKindError(LuaBytecodeError, TypeError):
    """Raised when an operand is read or rewritten as the wrong kind."""


class OperandRangeError(LuaBytecodeError):
    """Raised when a value does not fit the bit width of the operand slot it targets."""


class MissingOperandError(LuaBytecodeError, KeyError):
    """Raised when accessing a slot the instruction format does not define."""

    def __str__(self) -> str:  # KeyError would quote the message
        return str(self.args[0]) if self.args else ""


class CompilerError(RuntimeError):
    """Raised when the external ``luac`` compiler is missing or fails."""

    def __init__(self, message: str, *, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


__all__ = [
    "LuaBytecodeError",
    "HeaderError",
    "TruncatedChunkError",
    "UnsupportedWidthError",
    "StringDecodeError",
    "UnknownConstantError",
    "UnknownOpcodeError",
    "InstructionDecodeError",
    "ControlFlowError",
    "OperandKindError",
    "OperandRangeError",
    "MissingOperandError",
    "CompilerError",
]
