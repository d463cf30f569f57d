"""Operand-addressable instruction wrappers for the IR layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

from ..errors import OperandKindError
from ..instruction import Instruction, Operand
from ..opcodes import Slot


@dataclass(frozen=True)
class IROperand:
    """An operand value together with the slot it was read from."""

    slot: Slot
    operand: Operand

    def constant_index(self) -> Optional[int]:
        return self.operand.constant_index()

    def with_constant(self, index: int) -> "IROperand":
        return IROperand(self.slot, self.operand.with_constant(index))


class IRInstruction:
    """Mutable holder for one decoded instruction.

    The opcode and the slot layout are fixed; :meth:`modify` only swaps the
    value of an existing slot for another value of the same kind.
    """

    __slots__ = ("_instruction",)

    def __init__(self, instruction: Instruction) -> None:
        self._instruction = instruction

    @property
    def instruction(self) -> Instruction:
        return self._instruction

    @property
    def opcode(self) -> int:
        return self._instruction.opcode

    @property
    def name(self) -> str:
        return self._instruction.name

    def is_(self, opcode: int) -> bool:
        return self._instruction.opcode == opcode

    def _get(self, slot: Slot) -> Optional[IROperand]:
        operand = self._instruction.get(slot)
        if operand is None:
            return None
        return IROperand(slot, operand)

    def get_a(self) -> Optional[IROperand]:
        return self._get(Slot.A)

    def get_b(self) -> Optional[IROperand]:
        return self._get(Slot.B)

    def get_c(self) -> Optional[IROperand]:
        return self._get(Slot.C)

    def get_bx(self) -> Optional[IROperand]:
        return self._get(Slot.BX)

    def get_sbx(self) -> Optional[IROperand]:
        return self._get(Slot.SBX)

    def operands(self) -> List[IROperand]:
        return [IROperand(slot, operand) for slot, operand in self._instruction.operands]

    def constant_operands(self) -> List[IROperand]:
        """Operands that currently reference the constant pool."""

        return [operand for operand in self.operands() if operand.constant_index() is not None]

    def modify(self, operand: IROperand) -> None:
        current = self._instruction.get(operand.slot)
        if current is None:
            raise OperandKindError(f"{self.name} has no {operand.slot.value} operand to modify")
        self._instruction = self._instruction.replace(operand.slot, operand.operand)

    def format(self) -> str:
        return self._instruction.format()

    def __repr__(self) -> str:
        return f"IRInstruction({self.format()})"


class IRInstructions:
    """Ordered instruction sequence of one IR context."""

    def __init__(self, instructions: Iterable[IRInstruction] = ()) -> None:
        self._instructions: List[IRInstruction] = list(instructions)

    @classmethod
    def from_instructions(cls, instructions: Iterable[Instruction]) -> "IRInstructions":
        return cls(IRInstruction(instruction) for instruction in instructions)

    def __len__(self) -> int:
        return len(self._instructions)

    def __getitem__(self, pc: int) -> IRInstruction:
        return self._instructions[pc]

    def __iter__(self) -> Iterator[IRInstruction]:
        return iter(self._instructions)

    def get(self, pc: int) -> Optional[IRInstruction]:
        if 0 <= pc < len(self._instructions):
            return self._instructions[pc]
        return None

    def find_all(self, opcode: int) -> List[int]:
        return [pc for pc, instruction in enumerate(self._instructions) if instruction.is_(opcode)]

    def to_instructions(self) -> List[Instruction]:
        return [instruction.instruction for instruction in self._instructions]
