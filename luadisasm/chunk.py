"""Deserializer for precompiled Lua 5.1 chunks (``luac`` output)."""

from __future__ import annotations

import logging
import math
import struct
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence, Tuple, TypeVar, Union

from .errors import HeaderError, UnknownConstantError
from .instruction import Instruction, decode_instruction
from .reader import ByteReader

logger = logging.getLogger(__name__)

SIGNATURE = b"\x1bLua"
VERSION = 0x51
FORMAT = 0
LITTLE_ENDIAN = 1
HEADER_SIZE = 12

T = TypeVar("T")


@dataclass(frozen=True)
class Header:
    """Platform widths declared by the chunk header."""

    int_size: int
    size_t_size: int
    instruction_size: int
    number_size: int
    integral_flag: int = 0

    def widths(self) -> Tuple[int, int, int, int]:
        return (self.int_size, self.size_t_size, self.instruction_size, self.number_size)

    def describe(self) -> str:
        return (
            f"int={self.int_size} size_t={self.size_t_size} "
            f"instruction={self.instruction_size} number={self.number_size}"
        )


class ConstantKind(IntEnum):
    """Type tags used by the constant pool records."""

    NIL = 0
    BOOLEAN = 1
    NUMBER = 3
    STRING = 4


ConstantValue = Union[None, bool, float, str]


def number_bits(value: float) -> int:
    return struct.unpack("<Q", struct.pack("<d", value))[0]


@dataclass(frozen=True)
class Constant:
    """A constant pool entry: nil, boolean, number or string."""

    kind: ConstantKind
    value: ConstantValue = None

    @classmethod
    def nil(cls) -> "Constant":
        return cls(ConstantKind.NIL)

    @classmethod
    def boolean(cls, value: bool) -> "Constant":
        return cls(ConstantKind.BOOLEAN, bool(value))

    @classmethod
    def number(cls, value: float) -> "Constant":
        return cls(ConstantKind.NUMBER, float(value))

    @classmethod
    def string(cls, value: str) -> "Constant":
        return cls(ConstantKind.STRING, value)

    def same_value(self, other: "Constant") -> bool:
        """Exact equality; numbers compare by bit pattern."""

        if self.kind is not other.kind:
            return False
        if self.kind is ConstantKind.NUMBER:
            return number_bits(self.value) == number_bits(other.value)  # type: ignore[arg-type]
        return self.value == other.value

    def to_code(self) -> str:
        if self.kind is ConstantKind.NIL:
            return "nil"
        if self.kind is ConstantKind.BOOLEAN:
            return "true" if self.value else "false"
        if self.kind is ConstantKind.NUMBER:
            number = float(self.value)  # type: ignore[arg-type]
            if math.isnan(number):
                return "(0/0)"
            if math.isinf(number):
                return "math.huge" if number > 0 else "-math.huge"
            if number.is_integer() and abs(number) < 2 ** 53:
                return str(int(number)) if number != 0 or math.copysign(1, number) > 0 else "-0"
            return repr(number)
        text = str(self.value)
        escaped = (
            text.replace("\\", "\\\\")
            .replace('"', '\\"')
            .replace("\n", "\\n")
            .replace("\r", "\\r")
            .replace("\t", "\\t")
            .replace("\0", "\\0")
        )
        return f'"{escaped}"'


@dataclass(frozen=True)
class Local:
    """Debug record of a local variable and the PC range it is live in."""

    name: str
    start_pc: int
    end_pc: int


ProtoPath = Tuple[int, ...]


@dataclass(frozen=True)
class Proto:
    """A function prototype; the children are owned by their parent."""

    source: str
    line_defined: int
    last_line_defined: int
    upvalue_count: int
    parameter_count: int
    vararg_flag: int
    max_stack_size: int
    instructions: Tuple[Instruction, ...]
    constants: Tuple[Constant, ...]
    prototypes: Tuple["Proto", ...] = ()
    source_lines: Optional[Tuple[int, ...]] = None
    locals: Optional[Tuple[Local, ...]] = None
    upvalue_names: Optional[Tuple[str, ...]] = None

    @property
    def is_vararg(self) -> bool:
        return bool(self.vararg_flag)

    def walk(self, path: ProtoPath = ()) -> Iterator[Tuple[ProtoPath, "Proto"]]:
        """Yield ``(path, proto)`` for this proto and all descendants, depth first."""

        yield path, self
        for index, child in enumerate(self.prototypes):
            yield from child.walk(path + (index,))

    def find(self, path: Sequence[int]) -> "Proto":
        proto = self
        for depth, index in enumerate(path):
            if not 0 <= index < len(proto.prototypes):
                prefix = ".".join(str(part) for part in path[: depth + 1])
                raise IndexError(f"no nested function at path {prefix}")
            proto = proto.prototypes[index]
        return proto

    def display_name(self) -> str:
        if self.line_defined == 0:
            return f"main <{self.source or '?'}>"
        return f"function <{self.source or '?'}:{self.line_defined},{self.last_line_defined}>"


def read_header(reader: ByteReader) -> Header:
    signature = reader.bytes(4)
    if signature != SIGNATURE:
        raise HeaderError(f"bad signature {signature!r}, expected {SIGNATURE!r}")
    version = reader.byte()
    if version != VERSION:
        raise HeaderError(f"unsupported version 0x{version:02X}, expected 0x{VERSION:02X}")
    fmt = reader.byte()
    if fmt != FORMAT:
        raise HeaderError(f"unsupported format {fmt}, expected {FORMAT}")
    endianness = reader.byte()
    if endianness != LITTLE_ENDIAN:
        raise HeaderError(f"unsupported endianness flag {endianness}, only little-endian chunks are accepted")

    int_size = reader.byte()
    size_t_size = reader.byte()
    instruction_size = reader.byte()
    number_size = reader.byte()
    integral_flag = reader.byte()
    if integral_flag != 0:
        raise HeaderError(f"unexpected integral flag {integral_flag}, expected 0")

    header = Header(int_size, size_t_size, instruction_size, number_size, integral_flag)
    logger.debug("chunk header: %s", header.describe())
    return header


def _read_vector(
    reader: ByteReader,
    header: Header,
    read: Callable[[ByteReader, Header], T],
) -> List[T]:
    count = reader.int(header.int_size)
    return [read(reader, header) for _ in range(count)]


def _read_instruction(reader: ByteReader, header: Header) -> Instruction:
    return decode_instruction(reader.int(header.instruction_size))


def _read_constant(reader: ByteReader, header: Header) -> Constant:
    offset = reader.offset
    tag = reader.byte()
    if tag == ConstantKind.NIL:
        return Constant.nil()
    if tag == ConstantKind.BOOLEAN:
        return Constant.boolean(reader.byte() != 0)
    if tag == ConstantKind.NUMBER:
        return Constant.number(reader.number(header.number_size // 2))
    if tag == ConstantKind.STRING:
        return Constant.string(reader.string(header.size_t_size))
    raise UnknownConstantError(f"unknown constant tag {tag} at offset {offset}")


def _read_line(reader: ByteReader, header: Header) -> int:
    return reader.int(header.int_size)


def _read_local(reader: ByteReader, header: Header) -> Local:
    name = reader.string(header.size_t_size)
    start = reader.int(header.int_size)
    end = reader.int(header.int_size)
    return Local(name, start, end)


def _read_upvalue_name(reader: ByteReader, header: Header) -> str:
    return reader.string(header.size_t_size)


def read_proto(reader: ByteReader, header: Header, parent_source: str = "") -> Proto:
    """Read one function record and, recursively, its nested functions.

    The record has no field tags, so the fields below are consumed strictly in
    the order ``luac`` writes them.
    """

    source = reader.string(header.size_t_size) or parent_source
    line_defined = reader.int(header.int_size)
    last_line_defined = reader.int(header.int_size)
    upvalue_count = reader.byte()
    parameter_count = reader.byte()
    vararg_flag = reader.byte()
    max_stack_size = reader.byte()

    instructions = _read_vector(reader, header, _read_instruction)
    constants = _read_vector(reader, header, _read_constant)
    prototypes = _read_vector(
        reader, header, lambda nested, hdr: read_proto(nested, hdr, source)
    )
    source_lines = _read_vector(reader, header, _read_line)
    local_vars = _read_vector(reader, header, _read_local)
    upvalue_names = _read_vector(reader, header, _read_upvalue_name)

    logger.debug(
        "proto %s:%d instructions=%d constants=%d protos=%d",
        source,
        line_defined,
        len(instructions),
        len(constants),
        len(prototypes),
    )

    return Proto(
        source=source,
        line_defined=line_defined,
        last_line_defined=last_line_defined,
        upvalue_count=upvalue_count,
        parameter_count=parameter_count,
        vararg_flag=vararg_flag,
        max_stack_size=max_stack_size,
        instructions=tuple(instructions),
        constants=tuple(constants),
        prototypes=tuple(prototypes),
        source_lines=tuple(source_lines),
        locals=tuple(local_vars),
        upvalue_names=tuple(upvalue_names),
    )


def deserialize(buffer: bytes) -> Tuple[Header, Proto]:
    """Parse a complete chunk into its header and main function."""

    reader = ByteReader(buffer)
    header = read_header(reader)
    proto = read_proto(reader, header)
    if reader.remaining:
        logger.warning("%d trailing byte(s) after the main chunk ignored", reader.remaining)
    return header, proto


def load_chunk(path: Path) -> Tuple[Header, Proto]:
    return deserialize(Path(path).read_bytes())
