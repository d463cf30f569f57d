import pytest

from bytecode_helpers import abc, abx, asbx, rk_k
from luadisasm.errors import (
    InstructionDecodeError,
    MissingOperandError,
    OperandKindError,
    OperandRangeError,
    UnknownOpcodeError,
)
from luadisasm.instruction import Operand, decode_instruction, decode_instructions
from luadisasm.opcodes import (
    OPCODE_TABLE,
    Opcode,
    OperandKind,
    OpMode,
    Slot,
    describe_opcode,
    opcode_name,
)


def test_move_word_64() -> None:
    instruction = decode_instruction(64)

    assert instruction.opcode == Opcode.MOVE
    assert instruction.a == Operand.register(1)
    assert instruction.b == Operand.register(0)
    assert instruction.get(Slot.C) is None


def test_abc_field_order_is_a_c_b() -> None:
    word = abc(Opcode.ADD, a=3, b=rk_k(2), c=7)
    instruction = decode_instruction(word)

    assert instruction.a.as_register() == 3
    assert instruction.b == Operand.rk(0x102)
    assert instruction.c == Operand.rk(7)
    assert instruction.b.constant_index() == 2
    assert instruction.c.constant_index() is None


def test_abx_constant_slot() -> None:
    instruction = decode_instruction(abx(Opcode.GETGLOBAL, a=4, bx=0x3FFFF))

    assert instruction.mode is OpMode.iABx
    assert instruction.a == Operand.register(4)
    assert instruction.bx == Operand.constant(0x3FFFF)
    assert instruction.bx.constant_index() == 0x3FFFF


@pytest.mark.parametrize("offset", [-0x1FFFF, -5, -1, 0, 1, 12, 0x20000])
def test_signed_offsets_use_fixed_bias(offset: int) -> None:
    jmp = decode_instruction(asbx(Opcode.JMP, sbx=offset))
    forloop = decode_instruction(asbx(Opcode.FORLOOP, a=2, sbx=offset))

    assert jmp.sbx.as_offset() == offset
    assert jmp.slots() == (Slot.SBX,)
    assert forloop.a.as_register() == 2
    assert forloop.sbx == Operand.offset(offset)


def test_tforloop_decodes_a_and_c() -> None:
    instruction = decode_instruction(abc(Opcode.TFORLOOP, a=5, c=2))

    assert instruction.mode is OpMode.iAC
    assert instruction.a.as_register() == 5
    assert instruction.c.as_register() == 2
    with pytest.raises(MissingOperandError):
        instruction.b


def test_test_opcode_uses_c_not_b() -> None:
    instruction = decode_instruction(abc(Opcode.TEST, a=1, c=1))
    assert instruction.slots() == (Slot.A, Slot.C)
    assert instruction.c.as_register() == 1


def test_missing_slot_access_is_an_error() -> None:
    loadk = decode_instruction(abx(Opcode.LOADK, a=0, bx=1))
    with pytest.raises(MissingOperandError):
        loadk.b
    with pytest.raises(MissingOperandError):
        loadk.sbx


def test_unknown_opcode_is_fatal() -> None:
    with pytest.raises(UnknownOpcodeError):
        decode_instruction(38)
    with pytest.raises(UnknownOpcodeError):
        decode_instruction(0x3F)


def test_word_must_fit_32_bits() -> None:
    with pytest.raises(InstructionDecodeError):
        decode_instruction(1 << 32)


def test_operand_accessors_check_kind() -> None:
    operand = Operand.constant(3)
    assert operand.as_constant() == 3
    with pytest.raises(OperandKindError):
        operand.as_register()
    with pytest.raises(OperandKindError):
        Operand.register(1).as_offset()


def test_mutators_preserve_kind() -> None:
    assert Operand.constant(3).with_constant(9) == Operand.constant(9)
    assert Operand.rk(0x101).with_constant(4) == Operand.rk(0x104)
    assert Operand.rk(5).with_constant(4) == Operand.rk(0x104)
    assert Operand.offset(-2).with_offset(7) == Operand.offset(7)

    with pytest.raises(OperandKindError):
        Operand.register(1).with_constant(2)
    with pytest.raises(OperandKindError):
        Operand.constant(1).with_offset(2)
    with pytest.raises(OperandRangeError):
        Operand.rk(0x101).with_constant(256)


def test_replace_rejects_kind_change() -> None:
    instruction = decode_instruction(abx(Opcode.LOADK, a=0, bx=1))

    updated = instruction.replace(Slot.BX, Operand.constant(5))
    assert updated.bx == Operand.constant(5)
    assert instruction.bx == Operand.constant(1)

    with pytest.raises(OperandKindError):
        instruction.replace(Slot.BX, Operand.register(5))


def test_constant_slots_lists_kst_and_rk_constants() -> None:
    settable = decode_instruction(abc(Opcode.SETTABLE, a=0, b=rk_k(1), c=rk_k(2)))
    assert settable.constant_slots() == ((Slot.B, 1), (Slot.C, 2))

    move = decode_instruction(abc(Opcode.MOVE, a=0, b=1))
    assert move.constant_slots() == ()


def test_decode_instructions_maps_sequence() -> None:
    decoded = decode_instructions([64, abc(Opcode.RETURN, 0, 1)])
    assert [instruction.name for instruction in decoded] == ["MOVE", "RETURN"]


def test_opcode_table_is_complete_and_consistent() -> None:
    assert len(OPCODE_TABLE) == 38
    for code, info in enumerate(OPCODE_TABLE):
        assert info.code == code
        assert info.name == Opcode(code).name
        kinds = [kind for _, kind in info.slots]
        if info.mode is OpMode.isBx:
            assert info.slots == ((Slot.SBX, OperandKind.SBX),)
        elif info.mode is OpMode.iAsBx:
            assert kinds == [OperandKind.REG, OperandKind.SBX]
        else:
            assert OperandKind.SBX not in kinds


def test_opcode_name_lookup() -> None:
    assert opcode_name(0) == "MOVE"
    assert opcode_name(37) == "VARARG"
    assert opcode_name(38) is None
    assert opcode_name(-1) is None
    assert describe_opcode(22).mode is OpMode.isBx
    assert describe_opcode(1).kind_of(Slot.BX) is OperandKind.KST


def test_register_width_depends_on_slot() -> None:
    register = Operand.register(0)

    assert register.with_register(255) == Operand.register(255)
    assert register.with_register(511, Slot.B) == Operand.register(511)
    with pytest.raises(OperandRangeError):
        register.with_register(256)
    with pytest.raises(OperandRangeError):
        register.with_register(512, Slot.C)
    with pytest.raises(OperandKindError):
        Operand.constant(0).with_register(1)


def test_replace_rejects_values_wider_than_the_slot() -> None:
    move = decode_instruction(abc(Opcode.MOVE, a=0, b=1))

    assert move.replace(Slot.B, Operand.register(300)).b == Operand.register(300)
    with pytest.raises(OperandRangeError):
        move.replace(Slot.A, Operand.register(256))
    assert move.a == Operand.register(0)
