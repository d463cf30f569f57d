"""Utilities for serialising an IR context tree into a text format."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from ..chunk import ProtoPath
from .context import IRContext
from .instructions import IRInstruction


class IRTextRenderer:
    """Render :class:`IRContext` trees into a stable textual form."""

    def render(self, context: IRContext) -> str:
        lines: List[str] = []
        for path, child in context.walk():
            lines.extend(self._render_context(path, child))
        return "\n".join(lines) + "\n"

    def write(self, context: IRContext, output_path: Path) -> None:
        output_path.write_text(self.render(context), "utf-8")

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _render_context(self, path: ProtoPath, context: IRContext) -> Iterable[str]:
        name = ".".join(str(part) for part in path) or "main"
        yield (
            f"; context {name} source={context.source or '?'} params={context.parameter_count}"
            f" upvalues={context.upvalue_count} vararg={context.vararg_flag}"
            f" stack={context.max_stack_size} closures={len(context.closures)}"
        )
        yield "; constants"
        if len(context.constants):
            for index, constant in enumerate(context.constants):
                yield f";   K{index} = {constant.value.to_code()}"
        else:
            yield ";   (empty)"
        for pc, instruction in enumerate(context.instructions):
            yield self._render_instruction(context, pc, instruction)
        yield ""

    @staticmethod
    def _render_instruction(context: IRContext, pc: int, instruction: IRInstruction) -> str:
        line = f"[{pc:4d}] {instruction.format()}"
        comments = []
        for operand in instruction.constant_operands():
            index = operand.constant_index()
            if index is not None and 0 <= index < len(context.constants):
                comments.append(f"K{index}={context.constants[index].value.to_code()}")
            else:
                comments.append(f"K{index}=?")
        if comments:
            line = f"{line:<40} ; {' '.join(comments)}"
        return line
