"""Public package exports for the Lua 5.1 bytecode disassembler."""

from .cfg import (
    BinCond,
    Block,
    ControlFlowGraph,
    ControlFlowGraphBuilder,
    ForLoop,
    ForPrep,
    Jmp,
    Nop,
    Target,
    TForLoop,
    build_cfg,
    build_cfgs,
)
from .chunk import Constant, ConstantKind, Header, Local, Proto, deserialize, load_chunk
from .compiler import LuaCompiler
from .graph import Digraph
from .instruction import Instruction, Operand, decode_instruction
from .ir import IRConstants, IRContext, IRInstructions, IRTextRenderer
from .listing import Disassembler
from .opcodes import Opcode, OperandKind, OpMode, Slot, describe_opcode, opcode_name
from .reader import ByteReader

__all__ = [
    "BinCond",
    "Block",
    "ByteReader",
    "Constant",
    "ConstantKind",
    "ControlFlowGraph",
    "ControlFlowGraphBuilder",
    "Digraph",
    "Disassembler",
    "ForLoop",
    "ForPrep",
    "Header",
    "IRConstants",
    "IRContext",
    "IRInstructions",
    "IRTextRenderer",
    "Instruction",
    "Jmp",
    "Local",
    "LuaCompiler",
    "Nop",
    "OpMode",
    "Opcode",
    "Operand",
    "OperandKind",
    "Proto",
    "Slot",
    "TForLoop",
    "Target",
    "build_cfg",
    "build_cfgs",
    "decode_instruction",
    "describe_opcode",
    "deserialize",
    "load_chunk",
    "opcode_name",
]
