import subprocess
from pathlib import Path
from types import SimpleNamespace

import pytest

from luadisasm import compiler
from luadisasm.compiler import LUAC_ENV_VAR, LuaCompiler, find_luac
from luadisasm.errors import CompilerError


def test_find_luac_prefers_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(LUAC_ENV_VAR, "/opt/lua/bin/luac")
    monkeypatch.setattr(compiler.shutil, "which", lambda name: pytest.fail("PATH searched"))

    assert find_luac() == "/opt/lua/bin/luac"


def test_find_luac_searches_candidates_in_order(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(LUAC_ENV_VAR, raising=False)
    seen = []

    def fake_which(name: str):
        seen.append(name)
        return "/usr/bin/luac51" if name == "luac51" else None

    monkeypatch.setattr(compiler.shutil, "which", fake_which)

    assert find_luac() == "/usr/bin/luac51"
    assert seen == ["luac5.1", "luac51"]


def test_missing_compiler_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(LUAC_ENV_VAR, raising=False)
    monkeypatch.setattr(compiler.shutil, "which", lambda name: None)

    with pytest.raises(CompilerError, match="no Lua 5.1 compiler"):
        LuaCompiler().compile(Path("missing.lua"))


def test_compile_returns_stdout(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    def fake_run(command, **kwargs):
        calls.append((command, kwargs))
        return SimpleNamespace(returncode=0, stdout=b"\x1bLua\x51", stderr=b"")

    monkeypatch.setattr(compiler.subprocess, "run", fake_run)

    data = LuaCompiler("luac5.1", timeout=5).compile(Path("prog.lua"))

    assert data == b"\x1bLua\x51"
    command, kwargs = calls[0]
    assert command == ["luac5.1", "-o", "-", "prog.lua"]
    assert kwargs["capture_output"] is True
    assert kwargs["timeout"] == 5


def test_compile_failure_carries_stderr(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        compiler.subprocess,
        "run",
        lambda command, **kwargs: SimpleNamespace(returncode=1, stdout=b"", stderr=b"prog.lua:1: syntax error"),
    )

    with pytest.raises(CompilerError) as excinfo:
        LuaCompiler("luac5.1").compile(Path("prog.lua"))

    assert "status 1" in str(excinfo.value)
    assert excinfo.value.stderr == "prog.lua:1: syntax error"


def test_empty_output_is_an_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        compiler.subprocess,
        "run",
        lambda command, **kwargs: SimpleNamespace(returncode=0, stdout=b"", stderr=b""),
    )

    with pytest.raises(CompilerError, match="no output"):
        LuaCompiler("luac5.1").compile(Path("prog.lua"))


def test_launch_failures_are_wrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    def missing(command, **kwargs):
        raise FileNotFoundError(command[0])

    def slow(command, **kwargs):
        raise subprocess.TimeoutExpired(command, kwargs["timeout"])

    monkeypatch.setattr(compiler.subprocess, "run", missing)
    with pytest.raises(CompilerError, match="failed to run"):
        LuaCompiler("luac5.1").compile(Path("prog.lua"))

    monkeypatch.setattr(compiler.subprocess, "run", slow)
    with pytest.raises(CompilerError, match="timed out"):
        LuaCompiler("luac5.1").compile(Path("prog.lua"))
