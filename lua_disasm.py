#!/usr/bin/env python3
"""Command-line interface for the Lua 5.1 bytecode disassembler."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence, Tuple

from luadisasm import (
    ControlFlowGraphBuilder,
    Disassembler,
    IRContext,
    IRTextRenderer,
    LuaCompiler,
    deserialize,
)
from luadisasm.errors import CompilerError, LuaBytecodeError

logger = logging.getLogger("lua_disasm")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "input",
        type=Path,
        help="Compiled Lua 5.1 chunk, or a Lua source file together with --compile",
    )
    parser.add_argument(
        "--compile",
        action="store_true",
        help="Treat the input as Lua source and compile it with luac first",
    )
    parser.add_argument(
        "--luac",
        default=None,
        help="Path of the Lua 5.1 compiler (defaults to $LUADISASM_LUAC or luac5.1 on PATH)",
    )
    parser.add_argument(
        "--listing-out",
        type=Path,
        default=None,
        help="Override the default <input>.listing.txt output path",
    )
    parser.add_argument(
        "--ir-out",
        type=Path,
        default=None,
        help="Also write the IR view of the chunk to this path",
    )
    parser.add_argument(
        "--cfg-out",
        type=Path,
        default=None,
        help="Also write the control-flow graph of one function as DOT",
    )
    parser.add_argument(
        "--function",
        default="",
        help="Dotted child path of the function for --cfg-out, e.g. 0.1 (default: main)",
    )
    parser.add_argument(
        "--merge-constants",
        action="store_true",
        help="Redirect references to duplicate constants before writing the IR",
    )
    parser.add_argument(
        "--no-cfg",
        action="store_true",
        help="Do not annotate the listing with basic blocks",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )
    return parser.parse_args(argv)


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def parse_function_path(text: str) -> Tuple[int, ...]:
    if not text or text == "main":
        return ()
    try:
        return tuple(int(part) for part in text.split("."))
    except ValueError:
        raise SystemExit(f"invalid function path: {text!r}") from None


def load_buffer(args: argparse.Namespace) -> bytes:
    if not args.input.exists():
        raise SystemExit(f"missing input file: {args.input}")
    if args.compile:
        return LuaCompiler(args.luac).compile(args.input)
    return args.input.read_bytes()


def run(args: argparse.Namespace) -> None:
    buffer = load_buffer(args)
    header, proto = deserialize(buffer)
    logger.info("loaded %s (%s)", args.input, header.describe())

    listing_path = args.listing_out or args.input.with_suffix(".listing.txt")
    Disassembler().write_listing(proto, listing_path, header=header, with_cfg=not args.no_cfg)
    print(f"listing written to {listing_path}")

    if args.cfg_out is not None:
        path = parse_function_path(args.function)
        try:
            target = proto.find(path)
        except IndexError as exc:
            raise SystemExit(str(exc)) from None
        cfg = ControlFlowGraphBuilder().build(target.instructions)
        cfg.to_graph().write(args.cfg_out)
        print(f"cfg written to {args.cfg_out}")

    if args.ir_out is not None:
        context = IRContext.from_proto(proto)
        if args.merge_constants:
            rewritten = context.merge_duplicate_constants()
            logger.info("merged duplicate constants, %d operand(s) rewritten", rewritten)
        IRTextRenderer().write(context, args.ir_out)
        print(f"ir written to {args.ir_out}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    start_time = time.perf_counter()
    args = parse_args(argv)
    configure_logging(args.verbose)
    try:
        run(args)
    except (LuaBytecodeError, CompilerError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    total_time = time.perf_counter() - start_time
    print(f"total execution time: {total_time:.2f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
