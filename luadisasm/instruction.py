"""Decoding of serialized Lua 5.1 instruction words into typed operands."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .errors import (
    InstructionDecodeError,
    MissingOperandError,
    OperandKindError,
    OperandRangeError,
    UnknownOpcodeError,
)
from .opcodes import (
    BITRK,
    MAXARG_SBX,
    MAXINDEXRK,
    OPCODE_TABLE,
    OpcodeInfo,
    OperandKind,
    OpMode,
    Slot,
    is_constant,
    rk_index,
)


WORD_SIZE = 4

SIZE_OP = 6
SIZE_A = 8
SIZE_B = 9
SIZE_C = 9
SIZE_BX = SIZE_B + SIZE_C

POS_A = SIZE_OP
POS_C = POS_A + SIZE_A
POS_B = POS_C + SIZE_C
POS_BX = POS_C

MASK_OP = (1 << SIZE_OP) - 1
MASK_A = (1 << SIZE_A) - 1
MASK_B = (1 << SIZE_B) - 1
MASK_C = (1 << SIZE_C) - 1
MASK_BX = (1 << SIZE_BX) - 1

SLOT_MASKS = {Slot.A: MASK_A, Slot.B: MASK_B, Slot.C: MASK_C, Slot.BX: MASK_BX}


@dataclass(frozen=True)
class Operand:
    """A decoded field tagged with what it refers to."""

    kind: OperandKind
    value: int

    @classmethod
    def register(cls, value: int) -> "Operand":
        return cls(OperandKind.REG, value)

    @classmethod
    def constant(cls, value: int) -> "Operand":
        return cls(OperandKind.KST, value)

    @classmethod
    def rk(cls, value: int) -> "Operand":
        return cls(OperandKind.RK, value)

    @classmethod
    def offset(cls, value: int) -> "Operand":
        return cls(OperandKind.SBX, value)

    def _expect(self, kind: OperandKind) -> int:
        if self.kind is not kind:
            raise OperandKindError(f"expected {kind.value} operand, found {self}")
        return self.value

    def as_register(self) -> int:
        return self._expect(OperandKind.REG)

    def as_constant(self) -> int:
        return self._expect(OperandKind.KST)

    def as_rk(self) -> int:
        return self._expect(OperandKind.RK)

    def as_offset(self) -> int:
        return self._expect(OperandKind.SBX)

    def is_constant(self) -> bool:
        return self.constant_index() is not None

    def constant_index(self) -> Optional[int]:
        """Return the constant pool index this operand references, if any."""

        if self.kind is OperandKind.KST:
            return self.value
        if self.kind is OperandKind.RK and is_constant(self.value):
            return rk_index(self.value)
        return None

    # Mutators never change the kind; each one only accepts its own kinds.

    def with_register(self, value: int, slot: Slot = Slot.A) -> "Operand":
        self._expect(OperandKind.REG)
        if not 0 <= value <= SLOT_MASKS[slot]:
            raise OperandRangeError(f"register {value} does not fit in slot {slot.value}")
        return Operand(self.kind, value)

    def with_constant(self, index: int) -> "Operand":
        if self.kind is OperandKind.KST:
            if not 0 <= index <= MASK_BX:
                raise OperandRangeError(f"constant index {index} does not fit in Bx")
            return Operand(self.kind, index)
        if self.kind is OperandKind.RK:
            if not 0 <= index <= MAXINDEXRK:
                raise OperandRangeError(f"constant index {index} does not fit in an RK operand")
            return Operand(self.kind, index | BITRK)
        raise OperandKindError(f"cannot store a constant index in {self}")

    def with_offset(self, value: int) -> "Operand":
        self._expect(OperandKind.SBX)
        if not -MAXARG_SBX <= value <= MAXARG_SBX + 1:
            raise OperandRangeError(f"branch offset {value} out of range")
        return Operand(self.kind, value)

    def format(self) -> str:
        if self.kind is OperandKind.REG:
            return f"R{self.value}"
        if self.kind is OperandKind.KST:
            return f"K{self.value}"
        if self.kind is OperandKind.RK:
            if is_constant(self.value):
                return f"K{rk_index(self.value)}"
            return f"R{self.value}"
        return f"{self.value:+d}"

    def __str__(self) -> str:
        return f"{self.kind.value}({self.value})"


@dataclass(frozen=True)
class Instruction:
    """An opcode plus exactly the operand slots its format defines."""

    opcode: int
    operands: Tuple[Tuple[Slot, Operand], ...]

    @property
    def info(self) -> OpcodeInfo:
        return OPCODE_TABLE[self.opcode]

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def mode(self) -> OpMode:
        return self.info.mode

    def slots(self) -> Tuple[Slot, ...]:
        return tuple(slot for slot, _ in self.operands)

    def get(self, slot: Slot) -> Optional[Operand]:
        for existing, operand in self.operands:
            if existing is slot:
                return operand
        return None

    def operand(self, slot: Slot) -> Operand:
        operand = self.get(slot)
        if operand is None:
            raise MissingOperandError(
                f"{self.name} ({self.mode.value}) has no {slot.value} operand"
            )
        return operand

    @property
    def a(self) -> Operand:
        return self.operand(Slot.A)

    @property
    def b(self) -> Operand:
        return self.operand(Slot.B)

    @property
    def c(self) -> Operand:
        return self.operand(Slot.C)

    @property
    def bx(self) -> Operand:
        return self.operand(Slot.BX)

    @property
    def sbx(self) -> Operand:
        return self.operand(Slot.SBX)

    def replace(self, slot: Slot, operand: Operand) -> "Instruction":
        """Return a copy with ``slot`` rewritten; the operand kind must not change."""

        current = self.operand(slot)
        if current.kind is not operand.kind:
            raise OperandKindError(
                f"{self.name}.{slot.value} holds {current.kind.value}, refusing {operand}"
            )
        mask = SLOT_MASKS.get(slot)
        if mask is not None and not 0 <= operand.value <= mask:
            raise OperandRangeError(f"{self.name}.{slot.value} cannot hold {operand}")
        return Instruction(
            self.opcode,
            tuple(
                (existing, operand if existing is slot else value)
                for existing, value in self.operands
            ),
        )

    def constant_slots(self) -> Tuple[Tuple[Slot, int], ...]:
        """Slots that currently reference the constant pool, with their index."""

        found: List[Tuple[Slot, int]] = []
        for slot, operand in self.operands:
            index = operand.constant_index()
            if index is not None:
                found.append((slot, index))
        return tuple(found)

    def format(self) -> str:
        fields = " ".join(operand.format() for _, operand in self.operands)
        return f"{self.name:<9} {fields}".rstrip()


def _split_abc(word: int) -> Tuple[int, int, int]:
    a = (word >> POS_A) & MASK_A
    b = (word >> POS_B) & MASK_B
    c = (word >> POS_C) & MASK_C
    return a, b, c


def _split_abx(word: int) -> Tuple[int, int]:
    return (word >> POS_A) & MASK_A, (word >> POS_BX) & MASK_BX


def decode_instruction(word: int) -> Instruction:
    """Decode one serialized 32 bit instruction word."""

    if not 0 <= word <= 0xFFFFFFFF:
        raise InstructionDecodeError(f"instruction word 0x{word:X} is not a 32 bit value")

    opcode = word & MASK_OP
    if opcode >= len(OPCODE_TABLE):
        raise UnknownOpcodeError(f"opcode {opcode} in word 0x{word:08X} is not a Lua 5.1 opcode")
    info = OPCODE_TABLE[opcode]

    if info.mode is OpMode.iABC or info.mode is OpMode.iAC:
        a, b, c = _split_abc(word)
        fields = {Slot.A: a, Slot.B: b, Slot.C: c}
    else:
        a, bx = _split_abx(word)
        fields = {Slot.A: a, Slot.BX: bx, Slot.SBX: bx - MAXARG_SBX}

    operands = tuple((slot, Operand(kind, fields[slot])) for slot, kind in info.slots)
    return Instruction(opcode, operands)


def decode_instructions(words: Iterable[int]) -> List[Instruction]:
    return [decode_instruction(word) for word in words]
