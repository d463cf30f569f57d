"""Public exports for the IR layer."""

from .constants import IRConstant, IRConstants
from .context import IRContext
from .instructions import IRInstruction, IRInstructions, IROperand
from .printer import IRTextRenderer

__all__ = [
    "IRConstant",
    "IRConstants",
    "IRContext",
    "IRInstruction",
    "IRInstructions",
    "IROperand",
    "IRTextRenderer",
]
