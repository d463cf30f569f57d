"""Stripped, mutable analysis view over a prototype tree."""

from __future__ import annotations

import logging
from typing import Iterator, List, Tuple

from ..chunk import Proto, ProtoPath
from .constants import IRConstants
from .instructions import IRInstructions, IROperand

logger = logging.getLogger(__name__)


class IRContext:
    """Wrap a :class:`Proto` for constant-pool rewriting.

    Line info, local names and upvalue names are dropped: the context is an
    analysis view, not a lossless copy of the chunk.  Each context owns its
    ``closures`` exclusively and keeps no reference back to its parent.
    """

    def __init__(
        self,
        *,
        source: str,
        upvalue_count: int,
        parameter_count: int,
        vararg_flag: int,
        max_stack_size: int,
        instructions: IRInstructions,
        constants: IRConstants,
        closures: List["IRContext"],
    ) -> None:
        self.source = source
        self.upvalue_count = upvalue_count
        self.parameter_count = parameter_count
        self.vararg_flag = vararg_flag
        self.max_stack_size = max_stack_size
        self.instructions = instructions
        self.constants = constants
        self.closures = closures

    @classmethod
    def from_proto(cls, proto: Proto) -> "IRContext":
        return cls(
            source=proto.source,
            upvalue_count=proto.upvalue_count,
            parameter_count=proto.parameter_count,
            vararg_flag=proto.vararg_flag,
            max_stack_size=proto.max_stack_size,
            instructions=IRInstructions.from_instructions(proto.instructions),
            constants=IRConstants.from_constants(proto.constants),
            closures=[cls.from_proto(child) for child in proto.prototypes],
        )

    def walk(self, path: ProtoPath = ()) -> Iterator[Tuple[ProtoPath, "IRContext"]]:
        yield path, self
        for index, closure in enumerate(self.closures):
            yield from closure.walk(path + (index,))

    def get_instructions(self, opcode: int) -> List[int]:
        """PCs of every instruction with ``opcode``."""

        return self.instructions.find_all(opcode)

    def get_constant_instructions(self) -> List[int]:
        """PCs of the instructions that reference at least one constant."""

        return [
            pc
            for pc, instruction in enumerate(self.instructions)
            if instruction.constant_operands()
        ]

    def get_constant_references(self, index: int) -> List[Tuple[int, IROperand]]:
        """Every ``(pc, operand)`` that references constant ``index``."""

        references: List[Tuple[int, IROperand]] = []
        for pc, instruction in enumerate(self.instructions):
            for operand in instruction.constant_operands():
                if operand.constant_index() == index:
                    references.append((pc, operand))
        return references

    def remap_constant(self, old: int, new: int) -> int:
        """Point every reference to constant ``old`` at constant ``new``.

        Only the referenced index changes: opcodes, other operands and the
        constant pool itself are left alone.  Every replacement operand is
        built before any instruction is touched, so an index that does not fit
        one of the operands raises :class:`OperandRangeError` with the context
        unchanged.  Returns the number of operands rewritten.
        """

        if not 0 <= new < len(self.constants):
            raise IndexError(f"constant index {new} outside pool of {len(self.constants)}")

        references = self.get_constant_references(old)
        replacements = [(pc, operand.with_constant(new)) for pc, operand in references]
        for pc, operand in replacements:
            self.instructions[pc].modify(operand)
        logger.debug("remapped %d reference(s) from K%d to K%d in %s", len(references), old, new, self.source)
        return len(references)

    def merge_duplicate_constants(self, *, recursive: bool = True) -> int:
        """Redirect references to repeated constants at their first occurrence."""

        rewritten = 0
        for duplicate, original in self.constants.find_duplicates().items():
            rewritten += self.remap_constant(duplicate, original)
        if recursive:
            for closure in self.closures:
                rewritten += closure.merge_duplicate_constants(recursive=True)
        return rewritten
