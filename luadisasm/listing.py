"""Instruction listing utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional

from .cfg import ControlFlowGraph, ControlFlowGraphBuilder
from .chunk import Header, Proto, ProtoPath
from .instruction import Instruction
from .opcodes import Opcode


class Disassembler:
    """Render textual listings of a prototype tree, optionally with CFG blocks."""

    def __init__(self, *, cfg_builder: Optional[ControlFlowGraphBuilder] = None) -> None:
        self.cfg_builder = cfg_builder or ControlFlowGraphBuilder()

    def generate_listing(
        self,
        proto: Proto,
        *,
        header: Optional[Header] = None,
        with_cfg: bool = False,
    ) -> str:
        lines: List[str] = []
        if header is not None:
            lines.append(f"; lua 5.1 chunk {header.describe()}")
            lines.append("")
        for path, child in proto.walk():
            lines.extend(self._render_function(path, child, with_cfg))
        return "\n".join(lines) + "\n"

    def write_listing(
        self,
        proto: Proto,
        output_path: Path,
        *,
        header: Optional[Header] = None,
        with_cfg: bool = False,
    ) -> None:
        listing = self.generate_listing(proto, header=header, with_cfg=with_cfg)
        output_path.write_text(listing, "utf-8")

    def _render_function(self, path: ProtoPath, proto: Proto, with_cfg: bool) -> List[str]:
        name = ".".join(str(part) for part in path) or "main"
        vararg = "+" if proto.is_vararg else ""
        lines = [
            f"; function {name}: {proto.display_name()}",
            (
                f"; {proto.parameter_count}{vararg} params, {proto.max_stack_size} slots,"
                f" {proto.upvalue_count} upvalues, {len(proto.instructions)} instructions,"
                f" {len(proto.constants)} constants, {len(proto.prototypes)} functions"
            ),
        ]

        cfg: Optional[ControlFlowGraph] = None
        if with_cfg:
            cfg = self.cfg_builder.build(proto.instructions)
        block_starts = {block.start: block for block in cfg} if cfg else {}

        for pc, instruction in enumerate(proto.instructions):
            block = block_starts.get(pc)
            if block is not None:
                lines.append(f"; block {block.index} [{block.start}, {block.stop}) -> {block.target.describe()}")
            lines.append(self._format_instruction(proto, pc, instruction))

        lines.extend(self._render_constants(proto))
        lines.extend(self._render_debug(proto))
        lines.append("")
        return lines

    def _format_instruction(self, proto: Proto, pc: int, instruction: Instruction) -> str:
        line_info = ""
        if proto.source_lines and pc < len(proto.source_lines):
            line_info = f"[{proto.source_lines[pc]}]"
        text = f"  {pc + 1:4d} {line_info:<6} {instruction.format()}"
        comment = self._comment(proto, pc, instruction)
        if comment:
            text = f"{text:<44} ; {comment}"
        return text

    @staticmethod
    def _comment(proto: Proto, pc: int, instruction: Instruction) -> str:
        parts: List[str] = []
        for _, index in instruction.constant_slots():
            if 0 <= index < len(proto.constants):
                parts.append(proto.constants[index].to_code())
            else:
                parts.append(f"K{index}?")
        if instruction.opcode in (Opcode.JMP, Opcode.FORLOOP, Opcode.FORPREP):
            parts.append(f"to {pc + 2 + instruction.sbx.as_offset()}")
        return " ".join(parts)

    @staticmethod
    def _render_constants(proto: Proto) -> Iterable[str]:
        yield f"; constants ({len(proto.constants)})"
        for index, constant in enumerate(proto.constants):
            yield f";   K{index} = {constant.to_code()}"

    @staticmethod
    def _render_debug(proto: Proto) -> Iterable[str]:
        if proto.locals:
            yield f"; locals ({len(proto.locals)})"
            for index, local in enumerate(proto.locals):
                yield f";   {index} {local.name} {local.start_pc + 1} {local.end_pc + 1}"
        if proto.upvalue_names:
            yield f"; upvalues ({len(proto.upvalue_names)})"
            for index, name in enumerate(proto.upvalue_names):
                yield f";   {index} {name}"
