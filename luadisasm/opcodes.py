"""Static description of the Lua 5.1 instruction set."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Tuple

from .errors import OperandRangeError


class OpMode(Enum):
    """Bit layout of the 26 bits that follow the opcode."""

    iABC = "iABC"
    iABx = "iABx"
    iAsBx = "iAsBx"
    isBx = "isBx"
    iAC = "iAC"


class OperandKind(Enum):
    """What a decoded field refers to."""

    REG = "Reg"
    KST = "Kst"
    RK = "RK"
    SBX = "sBx"


class Slot(Enum):
    A = "A"
    B = "B"
    C = "C"
    BX = "Bx"
    SBX = "sBx"


class Opcode(IntEnum):
    MOVE = 0
    LOADK = 1
    LOADBOOL = 2
    LOADNIL = 3
    GETUPVAL = 4
    GETGLOBAL = 5
    GETTABLE = 6
    SETGLOBAL = 7
    SETUPVAL = 8
    SETTABLE = 9
    NEWTABLE = 10
    SELF = 11
    ADD = 12
    SUB = 13
    MUL = 14
    DIV = 15
    MOD = 16
    POW = 17
    UNM = 18
    NOT = 19
    LEN = 20
    CONCAT = 21
    JMP = 22
    EQ = 23
    LT = 24
    LE = 25
    TEST = 26
    TESTSET = 27
    CALL = 28
    TAILCALL = 29
    RETURN = 30
    FORLOOP = 31
    FORPREP = 32
    TFORLOOP = 33
    SETLIST = 34
    CLOSE = 35
    CLOSURE = 36
    VARARG = 37


@dataclass(frozen=True)
class OpcodeInfo:
    """Format template for one opcode: the layout and the kind of every slot."""

    code: int
    name: str
    mode: OpMode
    slots: Tuple[Tuple[Slot, OperandKind], ...]

    def has(self, slot: Slot) -> bool:
        return any(existing is slot for existing, _ in self.slots)

    def kind_of(self, slot: Slot) -> Optional[OperandKind]:
        for existing, kind in self.slots:
            if existing is slot:
                return kind
        return None

    def describe(self) -> str:
        fields = " ".join(f"{slot.value}:{kind.value}" for slot, kind in self.slots)
        return f"{self.name} ({self.mode.value}) {fields}"


# Sign bias of the 18 bit sBx field.
MAXARG_SBX = 0x1FFFF
# RK operands with this bit set index the constant pool.
BITRK = 1 << 8
MAXINDEXRK = BITRK - 1

REG = OperandKind.REG
KST = OperandKind.KST
RK = OperandKind.RK
SBX = OperandKind.SBX


def _abc(
    op: Opcode,
    a: OperandKind,
    b: Optional[OperandKind] = None,
    c: Optional[OperandKind] = None,
) -> OpcodeInfo:
    slots = [(Slot.A, a)]
    if b is not None:
        slots.append((Slot.B, b))
    if c is not None:
        slots.append((Slot.C, c))
    return OpcodeInfo(int(op), op.name, OpMode.iABC, tuple(slots))


def _abx(op: Opcode, bx: OperandKind) -> OpcodeInfo:
    return OpcodeInfo(int(op), op.name, OpMode.iABx, ((Slot.A, REG), (Slot.BX, bx)))


def _asbx(op: Opcode) -> OpcodeInfo:
    return OpcodeInfo(int(op), op.name, OpMode.iAsBx, ((Slot.A, REG), (Slot.SBX, SBX)))


OPCODE_TABLE: Tuple[OpcodeInfo, ...] = (
    _abc(Opcode.MOVE, REG, REG),
    _abx(Opcode.LOADK, KST),
    _abc(Opcode.LOADBOOL, REG, REG, REG),
    _abc(Opcode.LOADNIL, REG, REG),
    _abc(Opcode.GETUPVAL, REG, REG),
    _abx(Opcode.GETGLOBAL, KST),
    _abc(Opcode.GETTABLE, REG, REG, RK),
    _abx(Opcode.SETGLOBAL, KST),
    _abc(Opcode.SETUPVAL, REG, REG),
    _abc(Opcode.SETTABLE, REG, RK, RK),
    _abc(Opcode.NEWTABLE, REG, REG, REG),
    _abc(Opcode.SELF, REG, REG, RK),
    _abc(Opcode.ADD, REG, RK, RK),
    _abc(Opcode.SUB, REG, RK, RK),
    _abc(Opcode.MUL, REG, RK, RK),
    _abc(Opcode.DIV, REG, RK, RK),
    _abc(Opcode.MOD, REG, RK, RK),
    _abc(Opcode.POW, REG, RK, RK),
    _abc(Opcode.UNM, REG, REG),
    _abc(Opcode.NOT, REG, REG),
    _abc(Opcode.LEN, REG, REG),
    _abc(Opcode.CONCAT, REG, REG, REG),
    OpcodeInfo(int(Opcode.JMP), "JMP", OpMode.isBx, ((Slot.SBX, SBX),)),
    _abc(Opcode.EQ, REG, RK, RK),
    _abc(Opcode.LT, REG, RK, RK),
    _abc(Opcode.LE, REG, RK, RK),
    _abc(Opcode.TEST, REG, None, REG),
    _abc(Opcode.TESTSET, REG, REG, REG),
    _abc(Opcode.CALL, REG, REG, REG),
    _abc(Opcode.TAILCALL, REG, REG, REG),
    _abc(Opcode.RETURN, REG, REG),
    _asbx(Opcode.FORLOOP),
    _asbx(Opcode.FORPREP),
    OpcodeInfo(int(Opcode.TFORLOOP), "TFORLOOP", OpMode.iAC, ((Slot.A, REG), (Slot.C, REG))),
    _abc(Opcode.SETLIST, REG, REG, REG),
    _abc(Opcode.CLOSE, REG),
    _abx(Opcode.CLOSURE, REG),
    _abc(Opcode.VARARG, REG, REG),
)

# Opcodes that skip the following JMP when their test succeeds.
CONDITIONAL_SKIP_OPCODES = frozenset(
    {Opcode.EQ, Opcode.LT, Opcode.LE, Opcode.TEST, Opcode.TESTSET}
)
BRANCH_OPCODES = frozenset({Opcode.JMP, Opcode.FORLOOP, Opcode.FORPREP})
CONTROL_OPCODES = CONDITIONAL_SKIP_OPCODES | BRANCH_OPCODES | {Opcode.TFORLOOP}


def describe_opcode(code: int) -> Optional[OpcodeInfo]:
    if 0 <= code < len(OPCODE_TABLE):
        return OPCODE_TABLE[code]
    return None


def opcode_name(code: int) -> Optional[str]:
    info = describe_opcode(code)
    return info.name if info else None


def is_constant(rk: int) -> bool:
    return bool(rk & BITRK)


def rk_index(rk: int) -> int:
    return rk & ~BITRK


def as_rk_constant(index: int) -> int:
    if not 0 <= index <= MAXINDEXRK:
        raise OperandRangeError(f"constant index {index} does not fit in an RK operand")
    return index | BITRK
