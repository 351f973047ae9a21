"""Command-line entry point: compile a file and print the mapping tables as JSON."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from .api import compile_file, dump_ir, trace_error, trace_word_offset
from .compile_types import CompilerConfig
from .errors import TracemapError
from . import constants

logger = logging.getLogger(__name__)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tracemap",
        description="Map runtime failure points back to source spans",
    )
    parser.add_argument("file", help="Source file to compile")
    parser.add_argument(
        "--contract",
        action="store_true",
        help="Compile as a contract and report entry points",
    )
    target = parser.add_mutually_exclusive_group()
    target.add_argument(
        "--pc", type=int, default=None, help="Locate an instruction ordinal"
    )
    target.add_argument(
        "--offset", type=int, default=None, help="Locate a word offset"
    )
    parser.add_argument(
        "--ir-only", action="store_true", help="Only print the IR text"
    )
    parser.add_argument(
        "--max-bytecode-size",
        type=int,
        default=constants.DEFAULT_MAX_BYTECODE_SIZE,
        help="Word limit for generated code (default: %(default)s)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log pipeline detail to stderr"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    logger.debug("Arguments: %s", args)

    try:
        if args.ir_only:
            with open(args.file, encoding="utf-8") as f:
                print(dump_ir(f.read()))
            return 0

        config = CompilerConfig(max_bytecode_size=args.max_bytecode_size)
        result = compile_file(args.file, contract=args.contract, config=config)
    except (TracemapError, OSError, UnicodeDecodeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if args.pc is not None:
        payload = trace_error(args.pc, result).to_dict()
    elif args.offset is not None:
        payload = trace_word_offset(args.offset, result).to_dict()
    else:
        payload = result.to_dict()
    print(json.dumps(payload, indent=2, default=str))
    if args.verbose:
        print(result.stats.report(), file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
