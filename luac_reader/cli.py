"""Command line entry point for inspecting Lua bytecode images."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, TextIO

from . import serialize
from .exceptions import DecodeError
from .logging_config import close_debug_logger, configure_console_logging, configure_debug_file_logger
from .model import BytecodeImage, Chunk, ConstantKind, LuaConstant, LuaVersion
from .undump import DEFAULT_MAX_DEPTH, decode
from .vm.opnames import opcode_name, split_instruction

LOG = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="luac-reader", description="Lua bytecode decoder")
    parser.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH, help="maximum prototype nesting")
    parser.add_argument("-v", "--verbose", action="store_true", help="log decoding steps to stderr")
    parser.add_argument("--debug-log", type=Path, help="write a DEBUG trace of the run to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    info = sub.add_parser("info", help="show header fields and totals")
    info.add_argument("file", type=Path)

    dump = sub.add_parser("dump", help="serialize the decoded image")
    dump.add_argument("file", type=Path)
    dump.add_argument("--format", choices=("json", "msgpack"), default="json")
    dump.add_argument("-o", "--output", type=Path)
    dump.add_argument("--indent", type=int)

    disasm = sub.add_parser("disasm", help="list instructions and constants")
    disasm.add_argument("file", type=Path)
    return parser


def _display_bytes(value: bytes) -> str:
    return value.decode("utf-8", errors="backslashreplace")


def format_constant(constant: LuaConstant) -> str:
    kind = constant.kind
    if kind is ConstantKind.NIL:
        return "nil"
    if kind is ConstantKind.BOOLEAN:
        return "true" if constant.value else "false"
    if kind is ConstantKind.STRING:
        return json.dumps(_display_bytes(constant.value))
    if kind is ConstantKind.PROTO:
        return f"<function {constant.value}>"
    if kind is ConstantKind.TABLE:
        table = constant.value
        return f"<table array={len(table.array)} hash={len(table.hash)}>"
    if kind is ConstantKind.COMPLEX:
        real, imag = constant.value
        return f"{real!r}{imag:+}i"
    return repr(constant.value)


def format_instruction(version: LuaVersion, word: int) -> str:
    fields = split_instruction(version, word)
    name = opcode_name(version, fields["op"])
    if version.is_luajit:
        return f"{name:<10} {fields['a']} {fields['d']}"
    text = f"{name:<10} {fields['a']} {fields['b']} {fields['c']}"
    if fields.get("k"):
        text += " k"
    return text


def disassemble(image: BytecodeImage, out: TextIO) -> None:
    version = image.header.version
    stack = [(image.main_chunk, 0)]
    while stack:
        chunk, depth = stack.pop()
        pad = "  " * depth
        out.write(
            f"{pad}function {_display_bytes(chunk.name) or '?'}:"
            f"{chunk.line_defined},{chunk.last_line_defined} "
            f"({len(chunk.instructions)} instructions, {chunk.num_params} params, "
            f"{chunk.max_stack} slots, {chunk.num_upvalues} upvalues)\n"
        )
        for pc, word in enumerate(chunk.instructions):
            out.write(f"{pad}  [{pc}] {format_instruction(version, word)}\n")
        for index, constant in enumerate(chunk.constants):
            out.write(f"{pad}  K{index} = {format_constant(constant)}\n")
        for index, constant in enumerate(chunk.num_constants):
            out.write(f"{pad}  N{index} = {format_constant(constant)}\n")
        stack.extend((child, depth + 1) for child in reversed(chunk.prototypes))


def _print_info(image: BytecodeImage, out: TextIO) -> None:
    for key, value in image.header.as_dict().items():
        if isinstance(value, bytes):
            value = _display_bytes(value)
        out.write(f"{key}: {value}\n")
    totals = image.main_chunk.total_counts()
    out.write(f"instructions: {totals.instructions}\n")
    out.write(f"constants: {totals.constants}\n")
    out.write(f"upvalues: {totals.upvalues}\n")
    out.write(f"prototypes: {totals.prototypes}\n")


def _write_dump(image: BytecodeImage, args: argparse.Namespace) -> None:
    if args.format == "msgpack":
        payload = serialize.to_msgpack(image)
    else:
        payload = (serialize.to_json(image, indent=args.indent) + "\n").encode("utf-8")
    if args.output is not None:
        args.output.write_bytes(payload)
        LOG.info("wrote %d bytes to %s", len(payload), args.output)
    else:
        sys.stdout.buffer.write(payload)
        sys.stdout.flush()


def main(argv: List[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_console_logging(args.verbose)

    debug_logger = None
    if args.debug_log is not None:
        debug_logger = configure_debug_file_logger("luac_reader", args.debug_log)

    try:
        try:
            data = args.file.read_bytes()
        except OSError as exc:
            parser.error(f"cannot read {args.file}: {exc}")

        try:
            image = decode(data, max_depth=args.max_depth)
        except DecodeError as exc:
            LOG.debug("decode failed: %s", exc)
            sys.stderr.write(json.dumps(serialize.error_payload(exc)) + "\n")
            return 1

        if args.command == "info":
            _print_info(image, sys.stdout)
        elif args.command == "dump":
            _write_dump(image, args)
        elif args.command == "disasm":
            disassemble(image, sys.stdout)
        return 0
    finally:
        if debug_logger is not None:
            close_debug_logger(debug_logger)


if __name__ == "__main__":  # pragma: no cover - CLI wrapper
    raise SystemExit(main())
