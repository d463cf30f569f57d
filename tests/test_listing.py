from pathlib import Path

from bytecode_helpers import abc, abx, asbx, encode_chunk, encode_function, return_one_chunk
from luadisasm import Disassembler
from luadisasm.chunk import deserialize
from luadisasm.opcodes import Opcode


def test_listing_for_return_one() -> None:
    header, proto = deserialize(return_one_chunk())

    listing = Disassembler().generate_listing(proto, header=header, with_cfg=True)
    lines = listing.splitlines()

    assert lines[0] == "; lua 5.1 chunk int=4 size_t=4 instruction=4 number=8"
    assert "; function main: main <@return1.lua>" in lines
    assert "; 0+ params, 2 slots, 0 upvalues, 3 instructions, 1 constants, 0 functions" in lines
    assert "; block 0 [0, 3) -> NOP" in lines
    loadk = next(line for line in lines if "LOADK" in line)
    assert loadk.startswith("     1 [1]")
    assert loadk.endswith("; 1")
    assert ";   K0 = 1" in lines


def test_listing_without_cfg_has_no_block_markers() -> None:
    _, proto = deserialize(return_one_chunk())

    listing = Disassembler().generate_listing(proto)

    assert "; block" not in listing
    assert "; lua 5.1 chunk" not in listing


def test_listing_annotates_jumps_and_nested_functions() -> None:
    inner = encode_function(
        source=None,
        line_defined=2,
        last_line_defined=4,
        code=[abc(Opcode.RETURN, 0, 1)],
        locals=[("self", 0, 1)],
        upvalues=["env"],
        upvalue_count=1,
    )
    main = encode_function(
        code=[
            abc(Opcode.EQ, 0, 0, 1),
            asbx(Opcode.JMP, sbx=1),
            abx(Opcode.CLOSURE, 2, 0),
            abc(Opcode.RETURN, 0, 1),
        ],
        lines=[1, 1, 4, 5],
        protos=[inner],
    )
    _, proto = deserialize(encode_chunk(main))

    lines = Disassembler().generate_listing(proto, with_cfg=True).splitlines()

    jump = next(line for line in lines if "JMP" in line)
    assert jump.endswith("; to 4")
    assert "; block 0 [0, 1) -> BinCond(1, 2)" in lines
    assert "; function 0: function <@test.lua:2,4>" in lines
    assert ";   0 self 1 2" in lines
    assert ";   0 env" in lines


def test_write_listing(tmp_path: Path) -> None:
    _, proto = deserialize(return_one_chunk())
    path = tmp_path / "out.listing.txt"

    Disassembler().write_listing(proto, path)

    assert path.read_text("utf-8") == Disassembler().generate_listing(proto)
