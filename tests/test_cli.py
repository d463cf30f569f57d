import subprocess
import sys
from pathlib import Path

from bytecode_helpers import abc, abx, encode_chunk, encode_function, return_one_chunk

import lua_disasm
from luadisasm.opcodes import Opcode

SCRIPT = Path(__file__).resolve().parents[1] / "lua_disasm.py"


def test_cli_generates_listing(tmp_path: Path) -> None:
    chunk_path = tmp_path / "return1.luac"
    chunk_path.write_bytes(return_one_chunk())
    ir_path = tmp_path / "out.ir.txt"
    cfg_path = tmp_path / "main.dot"

    result = subprocess.run(
        [
            sys.executable,
            str(SCRIPT),
            str(chunk_path),
            "--ir-out",
            str(ir_path),
            "--cfg-out",
            str(cfg_path),
        ],
        check=True,
        capture_output=True,
        text=True,
    )

    assert "listing written to" in result.stdout
    assert "total execution time" in result.stdout
    listing = chunk_path.with_suffix(".listing.txt").read_text("utf-8")
    assert "LOADK" in listing
    assert "; block 0 [0, 3) -> NOP" in listing
    assert ir_path.read_text("utf-8").startswith("; context main")
    assert cfg_path.read_text("utf-8").startswith("digraph G {")


def test_main_merges_constants_for_nested_function(tmp_path: Path) -> None:
    inner = encode_function(
        source=None,
        code=[abx(Opcode.LOADK, 0, 1), abc(Opcode.RETURN, 0, 1)],
        constants=["s", "s"],
    )
    main = encode_function(code=[abx(Opcode.CLOSURE, 0, 0), abc(Opcode.RETURN, 0, 1)], protos=[inner])
    chunk_path = tmp_path / "nested.luac"
    chunk_path.write_bytes(encode_chunk(main))
    listing_path = tmp_path / "listing.txt"
    ir_path = tmp_path / "nested.ir.txt"
    cfg_path = tmp_path / "inner.dot"

    status = lua_disasm.main(
        [
            str(chunk_path),
            "--listing-out",
            str(listing_path),
            "--ir-out",
            str(ir_path),
            "--merge-constants",
            "--cfg-out",
            str(cfg_path),
            "--function",
            "0",
            "--no-cfg",
        ]
    )

    assert status == 0
    assert "; block" not in listing_path.read_text("utf-8")
    assert "LOADK     R0 K0" in ir_path.read_text("utf-8")
    assert '"Entry" -> "Block0";' in cfg_path.read_text("utf-8")


def test_main_reports_malformed_chunk(tmp_path: Path, capsys) -> None:
    chunk_path = tmp_path / "broken.luac"
    chunk_path.write_bytes(b"\x1bLuaR\x00\x01\x04\x04\x04\x08\x00")

    status = lua_disasm.main([str(chunk_path)])

    assert status == 1
    assert "error: unsupported version 0x52" in capsys.readouterr().err
