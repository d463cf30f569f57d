"""Thin wrapper around an external Lua 5.1 ``luac`` binary."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional, Sequence

from .errors import CompilerError

logger = logging.getLogger(__name__)

LUAC_ENV_VAR = "LUADISASM_LUAC"
DEFAULT_CANDIDATES: Sequence[str] = ("luac5.1", "luac51", "luac")


def find_luac(candidates: Sequence[str] = DEFAULT_CANDIDATES) -> Optional[str]:
    """Return the first compiler found on ``PATH`` or ``None``."""

    override = os.environ.get(LUAC_ENV_VAR)
    if override:
        return override
    for name in candidates:
        resolved = shutil.which(name)
        if resolved:
            return resolved
    return None


class LuaCompiler:
    """Produce bytecode buffers from Lua source files.

    Only the bytes matter to the rest of the package; nothing here checks the
    compiler version beyond what the chunk header later enforces.
    """

    def __init__(self, executable: Optional[str] = None, *, timeout: Optional[float] = 60.0) -> None:
        self.executable = executable or find_luac()
        self.timeout = timeout

    def command(self, source_path: Path) -> Sequence[str]:
        if not self.executable:
            raise CompilerError(
                f"no Lua 5.1 compiler found; install luac5.1 or set {LUAC_ENV_VAR}"
            )
        return [self.executable, "-o", "-", str(source_path)]

    def compile(self, source_path: Path) -> bytes:
        command = self.command(source_path)
        logger.info("compiling %s with %s", source_path, command[0])
        try:
            result = subprocess.run(
                command,
                check=False,
                capture_output=True,
                timeout=self.timeout,
            )
        except OSError as exc:
            raise CompilerError(f"failed to run {command[0]}: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise CompilerError(f"{command[0]} timed out after {self.timeout}s") from exc

        stderr = result.stderr.decode("utf-8", "replace")
        if result.returncode != 0:
            raise CompilerError(
                f"{command[0]} exited with status {result.returncode}: {stderr.strip()}",
                stderr=stderr,
            )
        if not result.stdout:
            raise CompilerError(f"{command[0]} produced no output", stderr=stderr)
        return result.stdout
